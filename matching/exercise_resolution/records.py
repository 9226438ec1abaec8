"""
Value types shared by the exercise resolution stages.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class MatchType(Enum):
    """Pipeline stage that produced a match."""
    ALIAS = "alias"                      # Learned alias hit
    EXACT = "exact"                      # Normalized name equality
    FUZZY = "fuzzy"                      # Weighted index search
    PREFIX_STRIPPED = "prefix_stripped"  # Search retried without equipment prefix
    DESCRIPTION = "description"          # Description-only fallback search


@dataclass(frozen=True)
class CatalogEntry:
    """A reference exercise. Immutable for the lifetime of a loaded catalog."""
    id: int
    name: str
    name_normalized: str
    description: Optional[str] = None
    category: Optional[str] = None
    muscles: tuple[str, ...] = ()
    equipment: tuple[str, ...] = ()
    image_urls: tuple[str, ...] = ()


@dataclass
class Alias:
    """Learned mapping from normalized input text to a catalog entry."""
    alias: str
    exercise_id: int
    confidence: float
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass(frozen=True)
class SearchHit:
    """One index result; score runs from 0 (exact) to 1 (no similarity)."""
    entry: CatalogEntry
    score: float


@dataclass(frozen=True)
class Candidate:
    entry: CatalogEntry
    confidence: float


@dataclass
class MatchResult:
    """Result of resolving one exercise name."""
    entry: CatalogEntry
    confidence: float
    alternatives: list[Candidate] = field(default_factory=list)
    match_type: MatchType = MatchType.FUZZY

    @property
    def image_url(self) -> Optional[str]:
        return self.entry.image_urls[0] if self.entry.image_urls else None

    def __repr__(self) -> str:
        return (
            f"<MatchResult({self.entry.name}, {self.match_type.value}, "
            f"conf={self.confidence:.2f}, alternatives={len(self.alternatives)})>"
        )
