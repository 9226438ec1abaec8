"""
Exercise name canonicalization.

Pure text functions with no I/O. The normalized form is the alias cache key,
so `normalize_exercise_name` must stay idempotent.
"""

import re
from typing import Iterable, Mapping, Optional

DEFAULT_EQUIPMENT_PREFIXES = (
    "barbell",
    "dumbbell",
    "cable",
    "machine",
    "bodyweight",
    "smith machine",
)

# Word separators become spaces ("Bench-Press" -> "bench press"), anything
# else outside [a-z0-9 ] is dropped.
_SEPARATORS = re.compile(r"[-_/]")
_DISALLOWED = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_exercise_name(raw: Optional[str]) -> str:
    """
    Normalize an exercise name for comparison.

    - Lowercase
    - Separators to spaces, other special characters removed
    - Collapse whitespace and trim
    """
    if not raw:
        return ""

    normalized = _SEPARATORS.sub(" ", raw.lower())
    normalized = _DISALLOWED.sub("", normalized)
    normalized = _WHITESPACE.sub(" ", normalized)

    return normalized.strip()


def strip_equipment_prefix(
    text: str,
    prefixes: Iterable[str] = DEFAULT_EQUIPMENT_PREFIXES,
) -> str:
    """
    Remove one leading equipment word ("barbell row" -> "row").

    Only the first matching prefix is removed, and the result is not
    re-checked. Returns the input unchanged when no prefix applies.
    """
    lowered = text.lower()
    for prefix in prefixes:
        if lowered.startswith(prefix + " "):
            return lowered[len(prefix) + 1:].strip()
    return text


def apply_synonyms(normalized: str, synonyms: Mapping[str, str]) -> str:
    """Swap a known synonym for the term the catalog uses."""
    return synonyms.get(normalized, normalized)
