"""
Tests for batch resolution and the plan image cache.
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fakes import make_entry, make_resolver
from matching.exercise_resolution import (
    BatchResolver,
    CatalogLoadError,
    ImageResolution,
    MatchResult,
    MatchType,
    ResolutionCache,
)

CATALOG = [
    make_entry(1, "Bench Press", image_urls=["/media/exercise-images/bench.png"]),
    make_entry(2, "Squat", image_urls=["https://cdn.example.com/squat.png"]),
    make_entry(3, "Row"),
]


def test_one_key_per_input_name():
    resolver, _, _ = make_resolver(CATALOG)
    batch = BatchResolver(resolver)

    results = asyncio.run(batch.resolve_many(["a", "b", "c"]))

    assert set(results) == {"a", "b", "c"}
    assert all(result is None or isinstance(result, MatchResult) for result in results.values())


def test_keys_are_verbatim_and_distinct():
    resolver, source, _ = make_resolver(CATALOG)
    batch = BatchResolver(resolver)

    names = ["Bench Press", "bench-press", "Bench Press", "Barbell Row", "Jumping Jacks"]
    results = asyncio.run(batch.resolve_many(names))

    assert list(results) == ["Bench Press", "bench-press", "Barbell Row", "Jumping Jacks"]
    assert results["Bench Press"].entry.id == 1
    assert results["bench-press"].entry.id == 1
    assert results["Barbell Row"].entry.id == 3
    assert results["Jumping Jacks"] is None
    # Concurrent resolutions share a single catalog fetch
    assert source.calls == 1


def test_empty_batch():
    resolver, source, _ = make_resolver(CATALOG)
    assert asyncio.run(BatchResolver(resolver).resolve_many([])) == {}
    assert source.calls == 0


def test_aliases_prefetched_in_one_query():
    resolver, _, store = make_resolver(CATALOG)
    batch = BatchResolver(resolver)

    asyncio.run(batch.resolve_many(["Squat", "Bench Press", "Row"]))

    assert store.get_many_calls == 1


def test_failed_item_is_isolated():
    resolver, _, _ = make_resolver(CATALOG)
    original = resolver.resolve

    async def flaky_resolve(raw_name):
        if raw_name == "Squat":
            raise RuntimeError("boom")
        return await original(raw_name)

    resolver.resolve = flaky_resolve
    results = asyncio.run(BatchResolver(resolver).resolve_many(["Squat", "Bench Press"]))

    assert results["Squat"] is None
    assert results["Bench Press"].entry.id == 1


def test_fail_fast_raises_first_failure():
    resolver, source, _ = make_resolver(CATALOG)
    source.fail_times = 1

    with pytest.raises(CatalogLoadError):
        asyncio.run(BatchResolver(resolver, fail_fast=True).resolve_many(["Squat", "Row"]))


def test_catalog_failure_isolated_per_item_by_default():
    resolver, source, _ = make_resolver(CATALOG)
    source.fail_times = 1

    results = asyncio.run(BatchResolver(resolver).resolve_many(["Squat", "Row"]))

    assert results == {"Squat": None, "Row": None}


def test_populates_resolution_cache():
    resolver, _, _ = make_resolver(CATALOG)
    cache = ResolutionCache(image_base_url="https://wger.de", min_confidence=0.8)

    asyncio.run(
        BatchResolver(resolver).resolve_many(["Bench Press", "Squat", "Row", "Jumping Jacks"], cache=cache)
    )

    assert len(cache) == 4
    assert cache.get("Bench Press") == ImageResolution(
        image_url="https://wger.de/media/exercise-images/bench.png", confidence=1.0
    )
    assert cache.get("Squat").image_url == "https://cdn.example.com/squat.png"
    assert cache.get("Row") == ImageResolution(image_url=None, confidence=1.0)
    assert cache.get("Jumping Jacks") == ImageResolution(image_url=None, confidence=0.0)


def test_schedule_runs_in_background():
    resolver, _, _ = make_resolver(CATALOG)
    cache = ResolutionCache()

    async def scenario():
        task = BatchResolver(resolver).schedule(["Squat"], cache)
        # Nothing resolved until the task gets to run
        assert "Squat" not in cache
        return await task

    results = asyncio.run(scenario())
    assert results["Squat"].entry.id == 2
    assert cache.get("Squat").confidence == 1.0


def test_low_confidence_match_has_no_image():
    entry = make_entry(1, "Bench Press", image_urls=["/media/bench.png"])
    cache = ResolutionCache(image_base_url="https://wger.de", min_confidence=0.8)

    low = cache.record("benchish", MatchResult(entry=entry, confidence=0.5, match_type=MatchType.DESCRIPTION))
    high = cache.record("bench pres", MatchResult(entry=entry, confidence=0.85))

    assert low == ImageResolution(image_url=None, confidence=0.5)
    assert high == ImageResolution(image_url="https://wger.de/media/bench.png", confidence=0.85)


def test_cache_clear():
    cache = ResolutionCache()
    cache.record("Squat", None)
    assert "Squat" in cache

    cache.clear()
    assert len(cache) == 0
    assert cache.get("Squat") is None


def test_catalog_outage_fetched_once_per_batch():
    resolver, source, _ = make_resolver(CATALOG)
    source.fail_times = 10**6
    cache = ResolutionCache()
    names = [f"exercise {i}" for i in range(50)]

    results = asyncio.run(BatchResolver(resolver, concurrency=5).resolve_many(names, cache=cache))

    assert source.calls == 1
    assert list(results) == names
    assert all(result is None for result in results.values())
    assert cache.get("exercise 0") == ImageResolution(image_url=None, confidence=0.0)
    assert len(cache) == 50


def test_fail_fast_catalog_outage_fetched_once():
    resolver, source, _ = make_resolver(CATALOG)
    source.fail_times = 10**6
    names = [f"exercise {i}" for i in range(20)]

    with pytest.raises(CatalogLoadError):
        asyncio.run(BatchResolver(resolver, concurrency=5, fail_fast=True).resolve_many(names))
    assert source.calls == 1


def test_fail_fast_cancels_remaining_resolutions():
    resolver, _, store = make_resolver(CATALOG)
    original = resolver.resolve
    finished = []

    async def slow_or_failing(raw_name):
        if raw_name == "Squat":
            raise RuntimeError("boom")
        await asyncio.sleep(0.01)
        result = await original(raw_name)
        finished.append(raw_name)
        return result

    resolver.resolve = slow_or_failing

    async def scenario():
        with pytest.raises(RuntimeError):
            await BatchResolver(resolver, fail_fast=True).resolve_many(["Squat", "Row", "Bench Press"])
        # Give cancelled siblings time to run if they were still alive
        await asyncio.sleep(0.05)

    asyncio.run(scenario())

    assert finished == []
    assert store.upserts == []
