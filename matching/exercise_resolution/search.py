"""
Weighted fuzzy search over catalog fields.

Scores follow the 0 (exact) to 1 (no similarity) convention. Each indexed
field is compared separately with rapidfuzz and the per-field distances are
combined as a weighted mean:

- Name-like fields: 60% ratio + 40% token sort ratio (tolerates typos and
  word reordering, but a short query does not fully match a longer name)
- Prose fields (partial): best substring alignment, so the match position
  inside the text does not matter
"""

import re
from typing import Iterable, Optional

from rapidfuzz import fuzz

from matching.exercise_resolution.config import IndexConfig, IndexField
from matching.exercise_resolution.normalizer import normalize_exercise_name
from matching.exercise_resolution.records import CatalogEntry, SearchHit

_HTML_TAG = re.compile(r"<[^>]+>")


def _field_text(entry: CatalogEntry, field_name: str) -> str:
    value = getattr(entry, field_name, None)
    if not value:
        return ""
    if not isinstance(value, str):
        value = " ".join(value)
    # Catalog descriptions arrive as HTML fragments
    return normalize_exercise_name(_HTML_TAG.sub(" ", value))


class FuzzyIndex:
    """
    Approximate matching index over a fixed list of catalog entries.

    Field texts are prepared once at construction; the index is read-only
    afterwards and safe to share between concurrent searches.
    """

    def __init__(
        self,
        entries: Iterable[CatalogEntry],
        fields: dict[str, IndexField],
        threshold: float = 0.4,
        min_match_length: int = 3,
    ):
        self.fields = dict(fields)
        self.threshold = threshold
        self.min_match_length = min_match_length
        self._records: list[tuple[CatalogEntry, dict[str, str]]] = [
            (entry, {name: _field_text(entry, name) for name in self.fields})
            for entry in entries
        ]

    @classmethod
    def primary(cls, entries: Iterable[CatalogEntry], config: IndexConfig) -> "FuzzyIndex":
        """Index over every configured field."""
        return cls(
            entries,
            config.fields,
            threshold=config.threshold,
            min_match_length=config.min_match_length,
        )

    @classmethod
    def description_only(
        cls, entries: Iterable[CatalogEntry], config: IndexConfig
    ) -> "FuzzyIndex":
        """Looser index restricted to the description field."""
        field = config.fields.get("description") or IndexField(weight=1.0, partial=True)
        return cls(
            entries,
            {"description": field},
            threshold=config.description_threshold,
            min_match_length=config.min_match_length,
        )

    def __len__(self) -> int:
        return len(self._records)

    def search(self, query: str, limit: Optional[int] = None) -> list[SearchHit]:
        """
        Find entries within the threshold, best (lowest) score first.

        Ties keep catalog order.
        """
        query = normalize_exercise_name(query)
        if len(query) < self.min_match_length:
            return []

        hits = []
        for entry, texts in self._records:
            score = self._score(query, texts)
            if score is not None and score <= self.threshold:
                hits.append(SearchHit(entry=entry, score=score))

        hits.sort(key=lambda hit: hit.score)
        return hits[:limit] if limit else hits

    def _score(self, query: str, texts: dict[str, str]) -> Optional[float]:
        """
        Weighted mean distance over the fields long enough to compare.

        Returns None when no single field is within the threshold.
        """
        weighted = 0.0
        total_weight = 0.0
        any_field_matched = False

        for name, field in self.fields.items():
            text = texts[name]
            if len(text) < self.min_match_length:
                continue

            distance = 1.0 - self._similarity(query, text, field.partial) / 100.0
            distance = min(1.0, max(0.0, distance))
            if distance <= self.threshold:
                any_field_matched = True

            weighted += distance * field.weight
            total_weight += field.weight

        if not any_field_matched or total_weight == 0:
            return None
        return weighted / total_weight

    @staticmethod
    def _similarity(query: str, text: str, partial: bool) -> float:
        """Similarity 0-100."""
        if query == text:
            return 100.0
        if partial and len(text) > len(query):
            return fuzz.partial_ratio(query, text)
        return (fuzz.ratio(query, text) * 0.6) + (fuzz.token_sort_ratio(query, text) * 0.4)
