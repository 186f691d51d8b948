"""
Unit tests for parallel fetching.
"""
import asyncio

import pytest

from datalayer.cache import RequestCache
from datalayer.resilience import fetch_parallel


class TestFetchParallel:

    @pytest.mark.asyncio
    async def test_results_keep_their_names(self):
        async def classes():
            await asyncio.sleep(0.01)
            return ["6A", "6B"]

        async def teachers():
            return ["M. Ndiaye"]

        results = await fetch_parallel({"classes": classes, "teachers": teachers})

        assert results == {"classes": ["6A", "6B"], "teachers": ["M. Ndiaye"]}
        assert list(results) == ["classes", "teachers"]

    @pytest.mark.asyncio
    async def test_fetches_run_concurrently(self):
        # Each side waits for the other: a sequential run would hang
        a_started = asyncio.Event()
        b_started = asyncio.Event()

        async def a():
            a_started.set()
            await b_started.wait()
            return "a"

        async def b():
            b_started.set()
            await a_started.wait()
            return "b"

        results = await asyncio.wait_for(fetch_parallel({"a": a, "b": b}), timeout=1)
        assert results == {"a": "a", "b": "b"}

    @pytest.mark.asyncio
    async def test_any_failure_fails_the_whole_call(self):
        error = ConnectionError("payments service down")

        async def students():
            return ["Awa", "Moussa"]

        async def payments():
            raise error

        with pytest.raises(ConnectionError) as excinfo:
            await fetch_parallel({"students": students, "payments": payments})
        assert excinfo.value is error

    @pytest.mark.asyncio
    async def test_empty_mapping(self):
        assert await fetch_parallel({}) == {}

    @pytest.mark.asyncio
    async def test_composes_with_request_cache(self):
        cache = RequestCache()
        calls = 0

        async def load_exams():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0)
            return ["Composition 1"]

        results = await fetch_parallel({
            "dashboard": lambda: cache.get("exams:s1", load_exams),
            "sidebar": lambda: cache.get("exams:s1", load_exams),
        })

        assert results["dashboard"] is results["sidebar"]
        assert calls == 1
