"""CacheLayer -- 带 TTL 的键值读缓存

单进程内存实现，threading.Lock 保护，可在重叠请求间并发读写。
每个键维护一个失效代数：读路径在加载前取代数，回填时用 set_if_generation，
加载期间发生过失效则放弃回填，旧值不会在失效之后重新进入缓存。
每个变更操作自行计算并返回失效键集合（invalidation_keys），
由调用方在响应返回前同步失效。
"""

import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

import structlog

log = structlog.get_logger()


def task_key(task_id: str) -> str:
    return f"task:{task_id}"


def tasks_key(user_id: str) -> str:
    """用户可见的全部任务"""
    return f"tasks:{user_id}"


def assigned_tasks_key(user_id: str) -> str:
    return f"assignedTasks:{user_id}"


def history_key(user_id: str) -> str:
    return f"history:{user_id}"


def user_keys(user_id: str) -> list[str]:
    """单个用户相关的全部缓存键"""
    return [tasks_key(user_id), assigned_tasks_key(user_id), history_key(user_id)]


def invalidation_keys(task_ids: Iterable[str], user_ids: Iterable[str]) -> frozenset[str]:
    """计算一次变更的失效键集合

    Args:
        task_ids: 被变更的任务 ID
        user_ids: 变更前后涉及的全部用户 ID（旧/新分配用户 + 创建者）

    Returns:
        需要失效的缓存键集合
    """
    keys: set[str] = {task_key(t) for t in task_ids}
    for user_id in user_ids:
        keys.update(user_keys(user_id))
    return frozenset(keys)


@dataclass
class _CacheEntry:
    value: Any
    inserted_at: float
    ttl: float

    def expired(self, now: float) -> bool:
        return now - self.inserted_at >= self.ttl


class CacheLayer:
    """键控 TTL 缓存"""

    def __init__(
        self,
        default_ttl: float = 600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            default_ttl: 默认 TTL（秒）
            clock: 单调时钟，测试可注入
        """
        self._entries: dict[str, _CacheEntry] = {}
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()
        self._default_ttl = default_ttl
        self._clock = clock

    def get(self, key: str) -> tuple[Any, bool]:
        """读取缓存

        Returns:
            (value, hit) -- 未命中或已过期时 value 为 None
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None, False
            if entry.expired(now):
                del self._entries[key]
                return None, False
            return entry.value, True

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        """写入缓存，ttl 为 None 时使用默认 TTL"""
        effective_ttl = self._default_ttl if ttl is None else ttl
        if effective_ttl <= 0:
            return
        with self._lock:
            self._entries[key] = _CacheEntry(
                value=value,
                inserted_at=self._clock(),
                ttl=effective_ttl,
            )

    def generation(self, key: str) -> int:
        """键的当前失效代数（读路径在加载数据前调用）"""
        with self._lock:
            return self._generations.get(key, 0)

    def set_if_generation(
        self, key: str, value: Any, generation: int, ttl: float | None = None
    ) -> bool:
        """仅当键自 generation 之后未被失效时写入

        Returns:
            是否写入；加载期间键已被失效时返回 False
        """
        effective_ttl = self._default_ttl if ttl is None else ttl
        if effective_ttl <= 0:
            return False
        with self._lock:
            current = self._generations.get(key, 0)
            if current == generation:
                self._entries[key] = _CacheEntry(
                    value=value,
                    inserted_at=self._clock(),
                    ttl=effective_ttl,
                )
                return True
        log.debug("cache_fill_skipped", key=key, generation=generation, current=current)
        return False

    def invalidate_all(self, keys: Iterable[str]) -> int:
        """批量失效

        Returns:
            实际删除的键数量
        """
        keys = list(keys)
        removed = 0
        with self._lock:
            for key in keys:
                self._generations[key] = self._generations.get(key, 0) + 1
                if self._entries.pop(key, None) is not None:
                    removed += 1
        log.debug("cache_invalidated", key_count=len(keys), removed=removed)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
