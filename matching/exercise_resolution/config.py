"""
Static matching data: equipment prefixes, synonym table, index weights.

Loaded from config/exercise_matching.yaml so the tables can change without
code changes.
"""

from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from config.settings import settings
from matching.exercise_resolution.normalizer import (
    DEFAULT_EQUIPMENT_PREFIXES,
    normalize_exercise_name,
)


class IndexField(BaseModel):
    weight: float = Field(gt=0)
    # Prose fields are scored by best substring alignment
    partial: bool = False


class IndexConfig(BaseModel):
    fields: dict[str, IndexField] = Field(
        default_factory=lambda: {
            "name": IndexField(weight=2.0),
            "name_normalized": IndexField(weight=1.5),
            "description": IndexField(weight=0.5, partial=True),
        }
    )
    threshold: float = Field(default=0.4, ge=0, le=1)
    min_match_length: int = Field(default=3, ge=1)
    description_threshold: float = Field(default=0.6, ge=0, le=1)


class PipelineConfig(BaseModel):
    description_fallback_score: float = Field(default=0.5, ge=0, le=1)
    max_candidates: int = Field(default=3, ge=1)


class MatchingConfig(BaseModel):
    """Validated contents of the exercise matching YAML file."""

    equipment_prefixes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EQUIPMENT_PREFIXES)
    )
    synonyms: dict[str, str] = Field(default_factory=dict)
    index: IndexConfig = Field(default_factory=IndexConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)

    @field_validator("equipment_prefixes")
    @classmethod
    def _normalize_prefixes(cls, prefixes: list[str]) -> list[str]:
        return [normalize_exercise_name(p) for p in prefixes if normalize_exercise_name(p)]

    @field_validator("synonyms")
    @classmethod
    def _normalize_synonyms(cls, synonyms: dict[str, str]) -> dict[str, str]:
        # Lookups happen on normalized keys
        return {
            normalize_exercise_name(source): normalize_exercise_name(target)
            for source, target in synonyms.items()
        }


def load_matching_config(path: Optional[str | Path] = None) -> MatchingConfig:
    """Load matching config from YAML."""
    config_path = Path(path or settings.EXERCISE_MATCHING_CONFIG)
    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}
    return MatchingConfig.model_validate(data)
