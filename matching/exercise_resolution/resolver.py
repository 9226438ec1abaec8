"""
Exercise name resolution pipeline.

Maps a free-form exercise name from a generated workout plan to the best
matching reference catalog entry. Stages run in order and the first that
produces a match wins:

1. Learned alias for the normalized name
2. Exact normalized-name match (learned with confidence 1.0)
3. Weighted fuzzy search
4. Fuzzy search without a leading equipment word ("barbell row" -> "row")
5. Looser description-only search
6. Miss -> None

Fuzzy results with confidence >= the learn threshold are remembered as
aliases under the normalized input name.
"""

from typing import Optional

from sqlalchemy.orm import sessionmaker

from config.logging import get_logger
from matching.exercise_resolution.aliases import AliasLearner, SqlAliasStore
from matching.exercise_resolution.catalog import (
    CatalogLoader,
    CatalogSnapshot,
    SqlCatalogSource,
)
from matching.exercise_resolution.config import MatchingConfig, load_matching_config
from matching.exercise_resolution.normalizer import (
    apply_synonyms,
    normalize_exercise_name,
    strip_equipment_prefix,
)
from matching.exercise_resolution.records import (
    Candidate,
    MatchResult,
    MatchType,
    SearchHit,
)
from matching.exercise_resolution.search import FuzzyIndex

logger = get_logger("resolver")


def _top_score(hits: list[SearchHit]) -> float:
    return hits[0].score if hits else 1.0


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def _confidence(score: float) -> float:
    return _clamp(1.0 - score)


class ExerciseResolver:
    """
    Resolves exercise names against the reference catalog.

    One instance owns the catalog cache and is shared by every caller.

    Usage:
        resolver = ExerciseResolver.from_database(SessionLocal)
        result = await resolver.resolve("DB Bench Press")
        if result:
            print(result.entry.name, result.confidence)
    """

    def __init__(
        self,
        loader: CatalogLoader,
        aliases: AliasLearner,
        config: Optional[MatchingConfig] = None,
    ):
        self.loader = loader
        self.aliases = aliases
        self.config = config or loader.config

    @classmethod
    def from_database(
        cls,
        session_factory: sessionmaker,
        config: Optional[MatchingConfig] = None,
    ) -> "ExerciseResolver":
        config = config or load_matching_config()
        loader = CatalogLoader(SqlCatalogSource(session_factory), config)
        aliases = AliasLearner(SqlAliasStore(session_factory))
        return cls(loader, aliases, config)

    async def preload(self) -> None:
        """Load the catalog ahead of the first resolution."""
        await self.loader.ensure_loaded()

    def invalidate_cache(self) -> None:
        """Force a catalog reload on next use. Learned aliases are kept."""
        self.loader.invalidate()
        self.aliases.clear_cache()

    def cache_key(self, raw_name: Optional[str]) -> str:
        return normalize_exercise_name(raw_name)

    def search_term(self, key: str) -> str:
        return apply_synonyms(key, self.config.synonyms)

    async def resolve(self, raw_name: Optional[str]) -> Optional[MatchResult]:
        """
        Resolve one exercise name.

        Returns None for blank input (without touching the catalog or alias
        store) and when nothing in the catalog is similar enough. Raises
        CatalogLoadError if the catalog cannot be loaded.
        """
        if not raw_name or not raw_name.strip():
            return None

        key = self.cache_key(raw_name)
        if not key:
            return None
        search_term = self.search_term(key)

        snapshot = await self.loader.ensure_loaded()

        # Step 1: learned alias
        alias = await self.aliases.lookup(key)
        if alias is not None:
            entry = snapshot.get(alias.exercise_id)
            if entry is not None:
                logger.debug(f"Alias hit: '{key}' -> '{entry.name}'")
                return MatchResult(
                    entry=entry,
                    confidence=_clamp(alias.confidence),
                    match_type=MatchType.ALIAS,
                )
            logger.warning(
                f"Alias '{key}' points to exercise {alias.exercise_id} "
                f"which is not in the catalog"
            )

        # Step 2: exact normalized name
        exact = snapshot.find_exact(search_term)
        if exact is not None:
            await self.aliases.learn(key, exact, 1.0, exact=True)
            return MatchResult(entry=exact, confidence=1.0, match_type=MatchType.EXACT)

        # Steps 3-5: progressively looser searches
        hits, match_type = self._fuzzy_search(snapshot, search_term)
        if not hits:
            logger.info(f"No catalog match for '{raw_name}'")
            return None

        candidates = [
            Candidate(entry=hit.entry, confidence=_confidence(hit.score))
            for hit in hits[: self.config.pipeline.max_candidates]
        ]
        best = candidates[0]
        result = MatchResult(
            entry=best.entry,
            confidence=best.confidence,
            alternatives=candidates[1:],
            match_type=match_type,
        )
        logger.debug(f"Resolved '{raw_name}': {result}")

        # Cached under the original input, not the substituted search term
        await self.aliases.learn(key, best.entry, best.confidence)
        return result

    def _fuzzy_search(
        self,
        snapshot: CatalogSnapshot,
        search_term: str,
    ) -> tuple[list[SearchHit], MatchType]:
        """Run the fuzzy stages; returns the best hit list and its stage."""
        index = snapshot.index
        hits = self._search(index, search_term)
        match_type = MatchType.FUZZY

        if not hits or _top_score(hits) > index.threshold:
            stripped = strip_equipment_prefix(search_term, self.config.equipment_prefixes)
            if stripped != search_term:
                stripped_hits = self._search(index, stripped)
                if stripped_hits and _top_score(stripped_hits) < _top_score(hits):
                    hits, match_type = stripped_hits, MatchType.PREFIX_STRIPPED

        if not hits or _top_score(hits) > self.config.pipeline.description_fallback_score:
            description_hits = self._search(snapshot.description_index(), search_term)
            if description_hits and _top_score(description_hits) < _top_score(hits):
                hits, match_type = description_hits, MatchType.DESCRIPTION

        return hits, match_type

    @staticmethod
    def _search(index: FuzzyIndex, term: str) -> list[SearchHit]:
        return [hit for hit in index.search(term) if hit.score <= index.threshold]
