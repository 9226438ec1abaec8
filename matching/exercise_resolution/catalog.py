"""
Reference catalog loading and the shared search snapshot.

The catalog is fetched once per loader and published together with its
search index as one immutable `CatalogSnapshot`. Concurrent callers of
`ensure_loaded()` share a single in-flight fetch.
"""

import asyncio
import time
from typing import Iterable, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from config.logging import get_logger
from matching.exercise_resolution.config import MatchingConfig
from matching.exercise_resolution.exceptions import CatalogLoadError
from matching.exercise_resolution.normalizer import normalize_exercise_name
from matching.exercise_resolution.records import CatalogEntry
from matching.exercise_resolution.search import FuzzyIndex
from matching.models import Exercise

logger = get_logger("catalog")


class CatalogSource(Protocol):
    async def fetch_all(self) -> list[CatalogEntry]:
        ...


class SqlCatalogSource:
    """Reads the full `exercises` table."""

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def fetch_all(self) -> list[CatalogEntry]:
        try:
            return await asyncio.to_thread(self._fetch_all_sync)
        except SQLAlchemyError as e:
            raise CatalogLoadError(f"Failed to load exercise catalog: {e}") from e

    def _fetch_all_sync(self) -> list[CatalogEntry]:
        db: Session = self.session_factory()
        try:
            rows = db.query(Exercise).order_by(Exercise.id).all()
            return [entry_from_row(row) for row in rows]
        finally:
            db.close()


def entry_from_row(row: Exercise) -> CatalogEntry:
    return CatalogEntry(
        id=row.wger_id,
        name=row.name,
        name_normalized=row.name_normalized or normalize_exercise_name(row.name),
        description=row.description,
        category=row.category,
        muscles=tuple(row.muscles or ()),
        equipment=tuple(row.equipment or ()),
        image_urls=tuple(row.image_urls or ()),
    )


class CatalogSnapshot:
    """Loaded catalog plus its primary search index. Read-only once built."""

    def __init__(
        self,
        entries: Iterable[CatalogEntry],
        index: FuzzyIndex,
        config: MatchingConfig,
    ):
        self.entries = tuple(entries)
        self.index = index
        self.config = config
        self._by_id = {entry.id: entry for entry in self.entries}
        self._by_normalized: dict[str, CatalogEntry] = {}
        for entry in self.entries:
            # Names are not unique; the first entry in catalog order wins
            self._by_normalized.setdefault(entry.name_normalized, entry)

    @classmethod
    def build(cls, entries: Iterable[CatalogEntry], config: MatchingConfig) -> "CatalogSnapshot":
        entries = list(entries)
        return cls(entries, FuzzyIndex.primary(entries, config.index), config)

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, entry_id: int) -> Optional[CatalogEntry]:
        return self._by_id.get(entry_id)

    def find_exact(self, normalized_name: str) -> Optional[CatalogEntry]:
        return self._by_normalized.get(normalized_name)

    def description_index(self) -> FuzzyIndex:
        """Build the looser description-only index (not memoized)."""
        return FuzzyIndex.description_only(self.entries, self.config.index)


class CatalogLoader:
    """
    Owns the in-memory catalog for one resolver.

    Usage:
        loader = CatalogLoader(SqlCatalogSource(SessionLocal), config)
        snapshot = await loader.ensure_loaded()
    """

    def __init__(self, source: CatalogSource, config: MatchingConfig):
        self.source = source
        self.config = config
        self._snapshot: Optional[CatalogSnapshot] = None
        self._pending: Optional[asyncio.Task] = None
        self._generation = 0

    @property
    def is_loaded(self) -> bool:
        return self._snapshot is not None

    async def ensure_loaded(self) -> CatalogSnapshot:
        """
        Return the loaded catalog, fetching it on first use.

        Callers arriving while a fetch is in flight await that same fetch. A
        failed fetch raises CatalogLoadError in every waiter and leaves the
        loader empty so the next call retries.
        """
        snapshot = self._snapshot
        if snapshot is not None:
            return snapshot

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._load(self._generation))

        # A cancelled caller must not cancel the fetch other callers await
        return await asyncio.shield(self._pending)

    def invalidate(self) -> None:
        """Drop the catalog and index; the next ensure_loaded() refetches."""
        self._generation += 1
        self._snapshot = None
        self._pending = None
        logger.info("Exercise catalog invalidated")

    async def _load(self, generation: int) -> CatalogSnapshot:
        start = time.perf_counter()
        try:
            try:
                entries = await self.source.fetch_all()
            except CatalogLoadError:
                raise
            except Exception as e:
                raise CatalogLoadError(f"Failed to load exercise catalog: {e}") from e

            snapshot = CatalogSnapshot.build(entries, self.config)

            # An invalidate() during the fetch means this data may be stale
            if generation == self._generation:
                self._snapshot = snapshot

            logger.info(
                f"Loaded {len(snapshot)} exercises in "
                f"{(time.perf_counter() - start) * 1000:.0f}ms"
            )
            return snapshot
        except CatalogLoadError as e:
            logger.error(str(e))
            raise
        finally:
            if generation == self._generation:
                self._pending = None
