"""
Exercise Matcher - Configuration

Loads settings from environment variables with sensible defaults.
"""

from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings

# Load .env file
load_dotenv()

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = Field(
        default=f"sqlite:///{PROJECT_ROOT}/data/exercise_matcher.db"
    )

    @property
    def project_root(self) -> Path:
        """Return project root directory."""
        return PROJECT_ROOT

    # Application
    DEBUG: bool = Field(default=False)
    LOG_LEVEL: str = Field(default="INFO")
    LOG_TO_FILE: bool = Field(default=True)
    LOG_DIR: str = Field(default=str(PROJECT_ROOT / "logs"))

    # Static matching data (equipment prefixes, synonyms, index weights)
    EXERCISE_MATCHING_CONFIG: str = Field(
        default=str(PROJECT_ROOT / "config" / "exercise_matching.yaml")
    )

    # Exercise resolution settings
    ALIAS_LEARN_THRESHOLD: float = Field(default=0.8)
    ALIAS_CACHE_TTL_SECONDS: int = Field(default=3600)
    BATCH_CONCURRENCY: int = Field(default=10)

    # Relative image paths in the catalog are served from this host
    EXERCISE_IMAGE_BASE_URL: str = Field(default="https://wger.de")

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
