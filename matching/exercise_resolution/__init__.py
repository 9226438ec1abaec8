"""
Exercise Name Resolution

Reconciles free-form exercise names with the reference exercise catalog:
- Normalization and static synonym substitution
- Learned aliases (O(1) repeat lookups)
- Weighted fuzzy name matching (rapidfuzz) with equipment-prefix and
  description fallbacks
- Concurrent batch resolution for whole workout plans
"""

from matching.exercise_resolution.aliases import AliasLearner, SqlAliasStore
from matching.exercise_resolution.batch import (
    BatchResolver,
    ImageResolution,
    ResolutionCache,
)
from matching.exercise_resolution.catalog import (
    CatalogLoader,
    CatalogSnapshot,
    SqlCatalogSource,
)
from matching.exercise_resolution.config import MatchingConfig, load_matching_config
from matching.exercise_resolution.exceptions import (
    AliasPersistenceError,
    CatalogLoadError,
    ExerciseResolutionError,
)
from matching.exercise_resolution.normalizer import (
    normalize_exercise_name,
    strip_equipment_prefix,
)
from matching.exercise_resolution.records import (
    Alias,
    Candidate,
    CatalogEntry,
    MatchResult,
    MatchType,
)
from matching.exercise_resolution.resolver import ExerciseResolver

__all__ = [
    "Alias",
    "AliasLearner",
    "AliasPersistenceError",
    "BatchResolver",
    "Candidate",
    "CatalogEntry",
    "CatalogLoadError",
    "CatalogLoader",
    "CatalogSnapshot",
    "ExerciseResolutionError",
    "ExerciseResolver",
    "ImageResolution",
    "MatchResult",
    "MatchType",
    "MatchingConfig",
    "ResolutionCache",
    "SqlAliasStore",
    "SqlCatalogSource",
    "load_matching_config",
    "normalize_exercise_name",
    "strip_equipment_prefix",
]
