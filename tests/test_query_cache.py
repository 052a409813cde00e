import asyncio

import pytest

from tms.adapters.query_cache_inmemory import InMemoryQueryCache
from tms.core.managers.cache_keys import JobCacheKeys

JOB = "22222222-2222-4222-8222-222222222222"
PROJECT = "11111111-1111-4111-8111-111111111111"


class TestEntries:
    def test_values_are_copied(self):
        cache = InMemoryQueryCache()
        value = {"rows": [1]}
        cache.set(("k",), value)

        value["rows"].append(2)
        got = cache.get(("k",))
        got["rows"].append(3)

        assert cache.get(("k",)) == {"rows": [1]}

    def test_invalidate_marks_prefix_stale(self):
        cache = InMemoryQueryCache()
        cache.set(JobCacheKeys.active(PROJECT), [])
        cache.set(JobCacheKeys.detail(JOB), {"id": JOB})
        cache.set(("other",), 1)

        affected = cache.invalidate(JobCacheKeys.ALL)

        assert set(affected) == {JobCacheKeys.active(PROJECT), JobCacheKeys.detail(JOB)}
        assert cache.is_stale(JobCacheKeys.detail(JOB))
        assert not cache.is_stale(("other",))
        # stale entries keep their value until refetched
        assert cache.get(JobCacheKeys.detail(JOB)) == {"id": JOB}

    def test_set_clears_stale_flag(self):
        cache = InMemoryQueryCache()
        cache.set(("k",), 1)
        cache.invalidate(("k",))

        cache.set(("k",), 2)

        assert not cache.is_stale(("k",))

    def test_missing_entry_is_stale(self):
        assert InMemoryQueryCache().is_stale(("missing",))

    def test_delete_and_keys(self):
        cache = InMemoryQueryCache()
        cache.set(JobCacheKeys.lists() + ("a",), 1)
        cache.set(JobCacheKeys.lists() + ("b",), 2)
        cache.set(JobCacheKeys.detail(JOB), 3)

        cache.delete(JobCacheKeys.lists() + ("a",))
        cache.delete(("never-set",))

        assert cache.keys(JobCacheKeys.lists()) == [JobCacheKeys.lists() + ("b",)]


class TestFetch:
    @pytest.mark.asyncio
    async def test_concurrent_fetches_share_one_request(self):
        cache = InMemoryQueryCache()
        calls = 0
        release = asyncio.Event()

        async def fetcher():
            nonlocal calls
            calls += 1
            await release.wait()
            return ["row"]

        first = asyncio.create_task(cache.fetch(("k",), fetcher))
        second = asyncio.create_task(cache.fetch(("k",), fetcher))
        await asyncio.sleep(0)
        release.set()

        assert await first == ["row"]
        assert await second == ["row"]
        assert calls == 1
        assert cache.get(("k",)) == ["row"]

    @pytest.mark.asyncio
    async def test_fetch_errors_propagate_and_leave_cache_untouched(self):
        cache = InMemoryQueryCache()
        cache.set(("k",), "old")

        async def failing():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await cache.fetch(("k",), failing)

        assert cache.get(("k",)) == "old"

    @pytest.mark.asyncio
    async def test_cancel_pending_discards_result(self):
        cache = InMemoryQueryCache()
        cache.set(JobCacheKeys.detail(JOB), "optimistic")
        started = asyncio.Event()

        async def slow():
            started.set()
            await asyncio.sleep(10)
            return "stale"

        waiter = asyncio.create_task(cache.fetch(JobCacheKeys.detail(JOB), slow))
        await started.wait()

        await cache.cancel_pending(JobCacheKeys.ALL)

        assert await waiter == "optimistic"
        assert cache.get(JobCacheKeys.detail(JOB)) == "optimistic"

    @pytest.mark.asyncio
    async def test_cancel_pending_ignores_other_prefixes(self):
        cache = InMemoryQueryCache()
        release = asyncio.Event()

        async def fetcher():
            await release.wait()
            return 1

        waiter = asyncio.create_task(cache.fetch(("other",), fetcher))
        await asyncio.sleep(0)

        await cache.cancel_pending(JobCacheKeys.ALL)
        release.set()

        assert await waiter == 1
