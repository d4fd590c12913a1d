"""Tests for the ScopeCache reverse index."""

from datetime import datetime, timedelta, timezone

import pytest

from src.jamf.prestage.adapters.field_mapper import PrestageFieldMapper
from src.jamf.prestage.use_cases.scope_cache import ScopeCache


class TestScopeCache:
    """Tests for lazy loading, refresh and invalidation."""

    @pytest.fixture
    def cache(self, api):
        api.scopes["1"]["serials"] = ["A"]
        api.scopes["2"]["serials"] = ["B"]
        return ScopeCache(api, PrestageFieldMapper())

    @pytest.mark.asyncio
    async def test_loads_lazily_once(self, api, cache):
        assert not cache.is_loaded
        assert api.index_fetches == 0

        first = await cache.reverse_index()
        second = await cache.reverse_index()

        assert first == {"A": "1", "B": "2"}
        assert second == first
        assert api.index_fetches == 1
        assert cache.is_loaded

    @pytest.mark.asyncio
    async def test_lookup(self, cache):
        assert await cache.lookup("A") == "1"
        assert await cache.lookup("C") is None

    @pytest.mark.asyncio
    async def test_stale_until_refreshed(self, api, cache):
        """Without refresh the cache keeps answering from the old fetch."""
        await cache.reverse_index()
        api.scopes["2"]["serials"] = ["B", "C"]

        assert await cache.lookup("C") is None
        assert await cache.lookup("C", refresh=True) == "2"
        assert api.index_fetches == 2

    @pytest.mark.asyncio
    async def test_refresh_reflects_latest_fetch_exactly(self, api, cache):
        """A refreshed index equals the aggregate fetch, nothing left over."""
        await cache.reverse_index()
        api.scopes["1"]["serials"] = []
        api.scopes["2"]["serials"] = ["C"]

        index = await cache.reverse_index(refresh=True)

        assert index == {"C": "2"}

    @pytest.mark.asyncio
    async def test_invalidate_forces_refetch(self, api, cache):
        await cache.reverse_index()

        cache.invalidate()

        assert not cache.is_loaded
        assert cache.fetched_at is None
        await cache.reverse_index()
        assert api.index_fetches == 2

    @pytest.mark.asyncio
    async def test_returned_index_is_a_copy(self, cache):
        index = await cache.reverse_index()
        index["Z"] = "99"

        assert await cache.lookup("Z") is None

    @pytest.mark.asyncio
    async def test_fetched_at_uses_clock(self, api):
        times = iter([
            datetime(2024, 5, 1, tzinfo=timezone.utc),
            datetime(2024, 5, 1, tzinfo=timezone.utc) + timedelta(minutes=5),
        ])
        cache = ScopeCache(api, PrestageFieldMapper(), clock=lambda: next(times))

        await cache.reverse_index()
        assert cache.fetched_at == datetime(2024, 5, 1, tzinfo=timezone.utc)

        await cache.reverse_index(refresh=True)
        assert cache.fetched_at == datetime(2024, 5, 1, 0, 5, tzinfo=timezone.utc)
