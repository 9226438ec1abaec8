"""
Tests for catalog loading: single-flight fetches, failure and invalidation.
"""

import asyncio
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from fakes import FakeCatalogSource, make_entry
from matching.exercise_resolution import CatalogLoader, CatalogLoadError, load_matching_config

ENTRIES = [make_entry(1, "Squat"), make_entry(2, "Bench Press"), make_entry(3, "Squat")]


def test_concurrent_callers_share_one_fetch():
    source = FakeCatalogSource(ENTRIES, delay=0.01)
    loader = CatalogLoader(source, load_matching_config())

    async def scenario():
        return await asyncio.gather(*(loader.ensure_loaded() for _ in range(5)))

    snapshots = asyncio.run(scenario())

    assert source.calls == 1
    assert all(snapshot is snapshots[0] for snapshot in snapshots)
    assert len(snapshots[0]) == 3
    assert loader.is_loaded


def test_loaded_catalog_is_memoized():
    source = FakeCatalogSource(ENTRIES)
    loader = CatalogLoader(source, load_matching_config())

    async def scenario():
        first = await loader.ensure_loaded()
        second = await loader.ensure_loaded()
        return first, second

    first, second = asyncio.run(scenario())
    assert first is second
    assert source.calls == 1


def test_failed_load_reaches_every_waiter_and_allows_retry():
    source = FakeCatalogSource(ENTRIES, delay=0.01, fail_times=1)
    loader = CatalogLoader(source, load_matching_config())

    async def scenario():
        results = await asyncio.gather(
            *(loader.ensure_loaded() for _ in range(3)),
            return_exceptions=True,
        )
        assert all(isinstance(result, CatalogLoadError) for result in results)
        assert not loader.is_loaded

        return await loader.ensure_loaded()

    snapshot = asyncio.run(scenario())
    assert source.calls == 2
    assert len(snapshot) == 3


def test_load_error_wraps_source_exception():
    loader = CatalogLoader(FakeCatalogSource(ENTRIES, fail_times=1), load_matching_config())

    with pytest.raises(CatalogLoadError) as exc_info:
        asyncio.run(loader.ensure_loaded())
    assert isinstance(exc_info.value.__cause__, ConnectionError)


def test_invalidate_forces_refetch():
    source = FakeCatalogSource(ENTRIES)
    loader = CatalogLoader(source, load_matching_config())

    async def scenario():
        first = await loader.ensure_loaded()
        loader.invalidate()
        assert not loader.is_loaded
        second = await loader.ensure_loaded()
        return first, second

    first, second = asyncio.run(scenario())
    assert source.calls == 2
    assert first is not second


def test_invalidate_during_load_discards_stale_catalog():
    source = FakeCatalogSource(ENTRIES, delay=0.01)
    loader = CatalogLoader(source, load_matching_config())

    async def scenario():
        in_flight = asyncio.ensure_future(loader.ensure_loaded())
        await asyncio.sleep(0)
        loader.invalidate()
        await in_flight
        return loader.is_loaded

    assert asyncio.run(scenario()) is False


def test_snapshot_lookups():
    loader = CatalogLoader(FakeCatalogSource(ENTRIES), load_matching_config())
    snapshot = asyncio.run(loader.ensure_loaded())

    assert snapshot.get(2).name == "Bench Press"
    assert snapshot.get(99) is None
    # Duplicate names: first entry in catalog order wins
    assert snapshot.find_exact("squat").id == 1
    assert snapshot.find_exact("deadlift") is None
    assert len(snapshot.index) == 3
    assert snapshot.description_index().threshold == 0.6
