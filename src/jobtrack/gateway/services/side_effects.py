"""SideEffectRunner -- 与请求解耦的后台副作用执行器

通知扇出、绩效重算在已提交的变更之后运行，不阻塞也不影响响应。
asyncio.create_task 复制当前 contextvars，request_id / trace_id 随之进入后台日志。
应用关闭时等待在途任务，超时后取消并记录被放弃的工作。
"""

import asyncio
from collections.abc import Coroutine
from typing import Any

import structlog

log = structlog.get_logger()


class SideEffectRunner:
    """后台副作用执行器"""

    def __init__(self) -> None:
        self._tasks: set[asyncio.Task] = set()
        self._closed = False

    @property
    def pending_count(self) -> int:
        return len(self._tasks)

    def schedule(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task | None:
        """调度一个副作用协程

        Returns:
            后台 asyncio.Task；执行器已关闭时返回 None
        """
        if self._closed:
            coro.close()
            log.warning("side_effect_rejected", side_effect=name, reason="runner_closed")
            return None

        task = asyncio.create_task(self._run(name, coro), name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _run(self, name: str, coro: Coroutine[Any, Any, Any]) -> None:
        try:
            await coro
        except asyncio.CancelledError:
            log.warning("side_effect_abandoned", side_effect=name)
            raise
        except Exception as e:
            log.error(
                "side_effect_failed",
                side_effect=name,
                error_type=type(e).__name__,
                error=str(e),
            )

    async def drain(self) -> None:
        """等待所有在途副作用完成（包括执行期间新调度的）"""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: float) -> int:
        """停止接收新任务，等待在途任务，超时后取消

        Returns:
            被取消（放弃）的副作用数量
        """
        self._closed = True
        pending = set(self._tasks)
        if not pending:
            return 0

        done, still_pending = await asyncio.wait(pending, timeout=timeout)
        for task in still_pending:
            task.cancel()
        if still_pending:
            await asyncio.gather(*still_pending, return_exceptions=True)

        log.info(
            "side_effects_shutdown",
            completed=len(done),
            abandoned=len(still_pending),
        )
        return len(still_pending)
