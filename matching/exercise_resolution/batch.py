"""
Batch resolution for whole workout plans.

Meant to run after the plan has already been shown: callers either await
`resolve_many()` off the rendering path or hand the names to `schedule()`
and read images from the `ResolutionCache` when it fills in.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urljoin

from config.logging import get_logger
from config.settings import settings
from matching.exercise_resolution.exceptions import CatalogLoadError
from matching.exercise_resolution.records import MatchResult
from matching.exercise_resolution.resolver import ExerciseResolver

logger = get_logger("batch")


@dataclass(frozen=True)
class ImageResolution:
    image_url: Optional[str]
    confidence: float


class ResolutionCache:
    """
    Raw exercise name -> image to display, for one plan view.

    Matches below `min_confidence` are recorded with no image rather than
    showing a possibly wrong picture. Clear it when the plan reloads.
    """

    def __init__(
        self,
        image_base_url: Optional[str] = None,
        min_confidence: Optional[float] = None,
    ):
        self.image_base_url = image_base_url or settings.EXERCISE_IMAGE_BASE_URL
        self.min_confidence = (
            settings.ALIAS_LEARN_THRESHOLD if min_confidence is None else min_confidence
        )
        self._items: dict[str, ImageResolution] = {}

    def record(self, raw_name: str, match: Optional[MatchResult]) -> ImageResolution:
        if match is None:
            resolution = ImageResolution(image_url=None, confidence=0.0)
        elif match.confidence < self.min_confidence:
            resolution = ImageResolution(image_url=None, confidence=match.confidence)
        else:
            resolution = ImageResolution(
                image_url=self._absolute_url(match.image_url),
                confidence=match.confidence,
            )
        self._items[raw_name] = resolution
        return resolution

    def populate(self, results: dict[str, Optional[MatchResult]]) -> None:
        for raw_name, match in results.items():
            self.record(raw_name, match)

    def get(self, raw_name: str) -> Optional[ImageResolution]:
        return self._items.get(raw_name)

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, raw_name: str) -> bool:
        return raw_name in self._items

    def __len__(self) -> int:
        return len(self._items)

    def _absolute_url(self, url: Optional[str]) -> Optional[str]:
        if not url:
            return None
        if url.startswith("http"):
            return url
        return urljoin(self.image_base_url, url)


class BatchResolver:
    """
    Resolves many names concurrently, bounded by a semaphore.

    By default one failing name resolves to None and the rest of the batch
    still completes. With fail_fast=True the first failure is raised.
    """

    def __init__(
        self,
        resolver: ExerciseResolver,
        concurrency: Optional[int] = None,
        fail_fast: bool = False,
    ):
        self.resolver = resolver
        self.concurrency = concurrency or settings.BATCH_CONCURRENCY
        self.fail_fast = fail_fast

    async def resolve_many(
        self,
        raw_names: Iterable[str],
        cache: Optional[ResolutionCache] = None,
    ) -> dict[str, Optional[MatchResult]]:
        """
        Resolve every distinct name.

        The result has exactly one key per input string, verbatim.
        """
        start = time.perf_counter()
        names = list(dict.fromkeys(raw_names))
        if not names:
            return {}

        logger.info(f"Finding matches for {len(names)} exercises...")

        # Load once up front; a failed load is not refetched by every name
        try:
            await self.resolver.preload()
        except CatalogLoadError as e:
            if self.fail_fast:
                raise
            logger.error(f"Catalog unavailable, {len(names)} exercises left unmatched: {e}")
            return self._finish(names, [None] * len(names), cache, start)

        # One query for all known aliases instead of one per name
        await self.resolver.aliases.prefetch(
            self.resolver.cache_key(name) for name in names
        )

        semaphore = asyncio.Semaphore(self.concurrency)
        tasks = [
            asyncio.ensure_future(self._resolve_one(semaphore, name)) for name in names
        ]
        try:
            matches = await asyncio.gather(*tasks)
        except BaseException:
            # fail_fast: stop the rest of the batch from resolving and learning
            for task in tasks:
                task.cancel()
            raise

        return self._finish(names, matches, cache, start)

    def _finish(
        self,
        names: list[str],
        matches: list[Optional[MatchResult]],
        cache: Optional[ResolutionCache],
        start: float,
    ) -> dict[str, Optional[MatchResult]]:
        results = dict(zip(names, matches))
        if cache is not None:
            cache.populate(results)

        matched = sum(1 for match in matches if match is not None)
        logger.info(
            f"Matched {matched}/{len(names)} exercises in "
            f"{(time.perf_counter() - start) * 1000:.0f}ms"
        )
        return results

    def schedule(
        self,
        raw_names: Iterable[str],
        cache: Optional[ResolutionCache] = None,
    ) -> asyncio.Task:
        """Start resolution in the background and return the task."""
        return asyncio.ensure_future(self.resolve_many(list(raw_names), cache))

    async def _resolve_one(
        self,
        semaphore: asyncio.Semaphore,
        raw_name: str,
    ) -> Optional[MatchResult]:
        async with semaphore:
            if self.fail_fast:
                return await self.resolver.resolve(raw_name)
            try:
                return await self.resolver.resolve(raw_name)
            except Exception as e:
                logger.error(f"Resolution failed for '{raw_name}': {e}")
                return None
