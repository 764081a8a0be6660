"""有界并发扇出

每个条目独立执行，单个失败不影响其他条目；
结果按输入顺序返回，失败以异常对象表示。
取消（asyncio.CancelledError）不被捕获，向上传播。
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")


async def bounded_gather(
    items: Iterable[T],
    worker: Callable[[T], Awaitable[R]],
    concurrency: int,
) -> list[tuple[T, R | Exception]]:
    """以最多 concurrency 个并发执行 worker

    Args:
        items: 待处理条目
        worker: 单条目协程函数
        concurrency: 最大并发数（>= 1）

    Returns:
        [(item, 结果或异常), ...]，与输入顺序一致
    """
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _run(item: T) -> tuple[T, R | Exception]:
        async with semaphore:
            try:
                return item, await worker(item)
            except Exception as e:
                return item, e

    return list(await asyncio.gather(*(_run(item) for item in items)))
