"""
Learned alias persistence.

Aliases map a normalized input name to a catalog entry so repeat lookups skip
fuzzy search. `SqlAliasStore` persists them in `exercise_aliases`;
`AliasLearner` puts a TTL cache in front of the store and decides when a
resolution is good enough to remember.
"""

import asyncio
import time
from typing import Iterable, Optional, Protocol

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from config.logging import get_logger
from config.settings import settings
from matching.exercise_resolution.exceptions import AliasPersistenceError
from matching.exercise_resolution.records import Alias, CatalogEntry
from matching.models import ExerciseAlias

logger = get_logger("aliases")


class AliasStore(Protocol):
    async def get(self, key: str) -> Optional[Alias]:
        ...

    async def get_many(self, keys: Iterable[str]) -> dict[str, Alias]:
        ...

    async def upsert(self, key: str, exercise_id: int, confidence: float) -> None:
        ...


def _alias_from_row(row: ExerciseAlias) -> Alias:
    return Alias(
        alias=row.alias,
        exercise_id=row.exercise_id,
        confidence=row.confidence_score,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SqlAliasStore:
    """
    Alias store backed by the `exercise_aliases` table.

    Sessions are synchronous, so each call runs in a worker thread.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def get(self, key: str) -> Optional[Alias]:
        return await self._run(self._get_sync, key)

    async def get_many(self, keys: Iterable[str]) -> dict[str, Alias]:
        keys = sorted(set(keys))
        if not keys:
            return {}
        return await self._run(self._get_many_sync, keys)

    async def upsert(self, key: str, exercise_id: int, confidence: float) -> None:
        await self._run(self._upsert_sync, key, exercise_id, confidence)

    async def _run(self, fn, *args):
        try:
            return await asyncio.to_thread(fn, *args)
        except SQLAlchemyError as e:
            raise AliasPersistenceError(f"Alias store error: {e}") from e

    def _get_sync(self, key: str) -> Optional[Alias]:
        db: Session = self.session_factory()
        try:
            row = db.get(ExerciseAlias, key)
            return _alias_from_row(row) if row else None
        finally:
            db.close()

    def _get_many_sync(self, keys: list[str]) -> dict[str, Alias]:
        db: Session = self.session_factory()
        try:
            rows = db.query(ExerciseAlias).filter(ExerciseAlias.alias.in_(keys)).all()
            return {row.alias: _alias_from_row(row) for row in rows}
        finally:
            db.close()

    def _upsert_sync(self, key: str, exercise_id: int, confidence: float) -> None:
        """Insert or overwrite; concurrent writers on one key: last write wins."""
        db: Session = self.session_factory()
        try:
            dialect = db.get_bind().dialect.name
            if dialect == "postgresql":
                from sqlalchemy.dialects.postgresql import insert
            elif dialect == "sqlite":
                from sqlalchemy.dialects.sqlite import insert
            else:
                insert = None

            if insert is None:
                db.merge(
                    ExerciseAlias(
                        alias=key,
                        exercise_id=exercise_id,
                        confidence_score=confidence,
                    )
                )
            else:
                stmt = insert(ExerciseAlias).values(
                    alias=key,
                    exercise_id=exercise_id,
                    confidence_score=confidence,
                )
                stmt = stmt.on_conflict_do_update(
                    index_elements=[ExerciseAlias.alias],
                    set_={
                        "exercise_id": stmt.excluded.exercise_id,
                        "confidence_score": stmt.excluded.confidence_score,
                        "updated_at": func.now(),
                    },
                )
                db.execute(stmt)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        finally:
            db.close()


class AliasCache:
    """In-process TTL cache of aliases read from or written to the store."""

    def __init__(self, ttl_seconds: float = 3600):
        self.ttl_seconds = ttl_seconds
        self._items: dict[str, tuple[Alias, float]] = {}
        self._last_pruned = time.monotonic()

    def get(self, key: str) -> Optional[Alias]:
        item = self._items.get(key)
        if item is None:
            return None
        alias, stored_at = item
        if time.monotonic() - stored_at >= self.ttl_seconds:
            self._items.pop(key, None)
            return None
        return alias

    def put(self, alias: Alias) -> None:
        now = time.monotonic()
        if now - self._last_pruned >= self.ttl_seconds:
            self._prune(now)
        self._items[alias.alias] = (alias, now)

    def _prune(self, now: float) -> None:
        """Drop expired entries, including keys that are never read again."""
        expired = [
            key for key, (_, stored_at) in self._items.items()
            if now - stored_at >= self.ttl_seconds
        ]
        for key in expired:
            del self._items[key]
        self._last_pruned = now

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None


class AliasLearner:
    """
    Alias lookups and learning for the matching pipeline.

    Store failures never escape: lookups degrade to a miss and writes are
    logged and dropped.
    """

    def __init__(
        self,
        store: AliasStore,
        learn_threshold: Optional[float] = None,
        cache_ttl_seconds: Optional[float] = None,
    ):
        self.store = store
        self.learn_threshold = (
            settings.ALIAS_LEARN_THRESHOLD if learn_threshold is None else learn_threshold
        )
        self.cache = AliasCache(
            settings.ALIAS_CACHE_TTL_SECONDS if cache_ttl_seconds is None else cache_ttl_seconds
        )

    async def lookup(self, key: str) -> Optional[Alias]:
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        try:
            alias = await self.store.get(key)
        except Exception as e:
            logger.warning(f"Alias lookup failed for '{key}': {e}")
            return None

        if alias is not None:
            self.cache.put(alias)
        return alias

    async def prefetch(self, keys: Iterable[str]) -> int:
        """Warm the cache for many keys with one store query."""
        missing = {key for key in keys if key and key not in self.cache}
        if not missing:
            return 0

        try:
            found = await self.store.get_many(missing)
        except Exception as e:
            logger.warning(f"Alias prefetch failed for {len(missing)} keys: {e}")
            return 0

        for alias in found.values():
            self.cache.put(alias)
        return len(found)

    def should_learn(self, confidence: float) -> bool:
        return confidence >= self.learn_threshold

    async def learn(
        self,
        key: str,
        entry: CatalogEntry,
        confidence: float,
        exact: bool = False,
    ) -> bool:
        """
        Remember `key` -> `entry` when the match is exact or confident enough.

        Returns True if the alias was written.
        """
        if exact:
            confidence = 1.0
        elif not self.should_learn(confidence):
            logger.info(
                f"Low confidence match ({confidence:.2f}): '{key}' -> '{entry.name}', "
                f"alias not saved"
            )
            return False

        try:
            await self.store.upsert(key, entry.id, confidence)
        except Exception as e:
            logger.error(f"Failed to save alias '{key}' -> {entry.id}: {e}")
            return False

        self.cache.put(Alias(alias=key, exercise_id=entry.id, confidence=confidence))
        logger.debug(f"Saved alias '{key}' -> '{entry.name}' (confidence: {confidence:.2f})")
        return True

    def clear_cache(self) -> None:
        self.cache.clear()
