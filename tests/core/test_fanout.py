"""bounded_gather 单元测试"""

import asyncio

import pytest
from jobtrack.core.fanout import bounded_gather


class TestBoundedGather:
    async def test_results_follow_input_order(self):
        async def worker(n: int) -> int:
            await asyncio.sleep(0.01 * (5 - n))
            return n * 10

        results = await bounded_gather(range(5), worker, concurrency=5)
        assert results == [(0, 0), (1, 10), (2, 20), (3, 30), (4, 40)]

    async def test_failure_is_isolated(self):
        async def worker(n: int) -> int:
            if n == 2:
                raise RuntimeError("boom")
            return n

        results = await bounded_gather([1, 2, 3], worker, concurrency=2)
        assert results[0] == (1, 1)
        assert isinstance(results[1][1], RuntimeError)
        assert results[2] == (3, 3)

    async def test_concurrency_is_bounded(self):
        in_flight = 0
        peak = 0

        async def worker(n: int) -> None:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1

        await bounded_gather(range(10), worker, concurrency=3)
        assert peak == 3

    async def test_non_positive_concurrency_treated_as_one(self):
        async def worker(n: int) -> int:
            return n

        assert await bounded_gather([1], worker, concurrency=0) == [(1, 1)]

    async def test_empty_input(self):
        async def worker(n: int) -> int:
            return n

        assert await bounded_gather([], worker, concurrency=4) == []

    async def test_cancellation_propagates(self):
        started = asyncio.Event()

        async def worker(n: int) -> None:
            started.set()
            await asyncio.Event().wait()

        task = asyncio.create_task(bounded_gather([1, 2], worker, concurrency=2))
        await started.wait()
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
