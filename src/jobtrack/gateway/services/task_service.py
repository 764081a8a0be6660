"""TaskService -- 任务生命周期编排

每个变更操作的流程：
1. 在任务级 asyncio.Lock 内读取当前任务（惰性应用 overdue 规则并落盘）
2. 通过 StatusEngine 校验并转换
3. TaskStore 比较并交换写入（version 不一致抛 ConflictError）
4. 同步失效本次变更计算出的缓存键集合
5. 通知扇出 / 绩效重算交给 SideEffectRunner 后台执行
"""

import asyncio
import base64
import binascii
from collections.abc import AsyncIterator, Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog
from jobtrack.core.cache import (
    CacheLayer,
    assigned_tasks_key,
    history_key,
    invalidation_keys,
    task_key,
    tasks_key,
)
from jobtrack.core.dependencies import validate_dependencies
from jobtrack.core.exceptions import (
    AuthenticationError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    TaskLockedError,
    ValidationError,
)
from jobtrack.core.models import (
    TERMINAL_STATES,
    USER_SETTABLE_STATES,
    AssignedUser,
    Attachment,
    CreatorInfo,
    NotificationType,
    PerformanceScore,
    SubTask,
    Task,
    TaskStatsAggregate,
    TaskStatus,
)
from jobtrack.core.notifications import NotificationDispatcher
from jobtrack.core.performance import PerformanceRecalculator, calculate_user_performance
from jobtrack.core.stats import aggregate_task_stats
from jobtrack.core.status_engine import (
    apply_attachment_add,
    apply_full_update,
    apply_status_change,
    apply_subtask_toggle,
    compute_derived_status,
    refresh_task,
    validate_completion,
)
from jobtrack.core.store import StoreGroup
from ulid import ULID

from ..schemas import AttachmentCreateRequest, SubTaskInput, TaskWriteRequest
from .side_effects import SideEffectRunner

log = structlog.get_logger()


@dataclass
class MutationResult:
    """变更结果：落盘后的任务 + 已失效的缓存键"""

    task: Task
    invalidated_keys: frozenset[str] = field(default_factory=frozenset)


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class TaskService:
    """任务业务服务"""

    _task_locks: dict[str, _LockEntry] = {}

    def __init__(
        self,
        store_group: StoreGroup,
        cache: CacheLayer,
        dispatcher: NotificationDispatcher,
        recalculator: PerformanceRecalculator,
        runner: SideEffectRunner,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._stores = store_group
        self._cache = cache
        self._dispatcher = dispatcher
        self._recalculator = recalculator
        self._runner = runner
        self._clock = clock or (lambda: datetime.now(UTC))

    # ------------------------------------------------------------------
    # 写操作
    # ------------------------------------------------------------------

    async def create_task(self, actor_id: str, data: TaskWriteRequest) -> MutationResult:
        """创建任务

        Raises:
            AuthenticationError: 调用者不是已知用户
            ValidationError: 标题为空、状态非法、分配用户未知、依赖非法
        """
        now = self._clock()
        title = self._validated_title(data.title)
        self._validate_requested_status(data.status)

        creator = await self._stores.user_store.get_user(actor_id)
        if creator is None:
            raise AuthenticationError(f"Unknown user {actor_id}")

        task_id = str(ULID())
        assigned_users = await self._resolve_assignees(data.requested_assignee_ids(), [])
        dependencies = await validate_dependencies(
            task_id, data.dependencies, self._stores.task_store
        )

        task = Task(
            task_id=task_id,
            title=title,
            description=data.description,
            status=data.status or TaskStatus.TODO,
            priority=data.priority,
            category=data.category or "Personal",
            due_date=data.due_date,
            team_id=data.team_id,
            created_by=CreatorInfo.from_user(creator),
            assigned_users=assigned_users,
            sub_tasks=self._build_subtasks(data.sub_tasks, [], now),
            dependencies=dependencies,
            created_at=now,
            updated_at=now,
        )
        status = compute_derived_status(task, now)
        task = task.model_copy(update={"status": status, "is_locked": status in TERMINAL_STATES})

        stored = await self._stores.task_store.create_task(task)
        keys = self._invalidate([stored.task_id], stored.involved_user_ids())

        log.info(
            "task_created",
            task_id=stored.task_id,
            created_by=actor_id,
            assignee_count=len(stored.assigned_users),
            status=stored.status.value,
        )
        self._schedule_notifications(
            NotificationType.TASK_ASSIGNED, stored, stored.assigned_user_ids
        )
        return MutationResult(task=stored, invalidated_keys=keys)

    async def update_task(
        self,
        actor_id: str,
        task_id: str,
        data: TaskWriteRequest,
        if_match: int | None = None,
    ) -> MutationResult:
        """整体替换任务（仅创建者）

        Args:
            actor_id: 调用者 ID
            task_id: 任务 ID
            data: 新的任务内容
            if_match: If-Match 头中的基线版本（body version 优先）

        Raises:
            NotFoundError / ForbiddenError / ConflictError / TaskLockedError / ValidationError
        """
        now = self._clock()
        title = self._validated_title(data.title)
        if data.status == TaskStatus.OVERDUE:
            raise ValidationError(
                "Status 'overdue' is derived from the due date and cannot be set",
                field="status",
            )

        async with self._task_lock(task_id):
            raw = await self._stores.task_store.get_task(task_id)
            if raw is None:
                raise NotFoundError("Task", task_id)
            self._ensure_creator(raw, actor_id)

            # 基线版本与读取时的存储版本比较（惰性 overdue 落盘之前）
            base_version = data.version if data.version is not None else if_match
            if base_version is not None and base_version != raw.version:
                raise ConflictError(task_id, base_version, raw.version)
            existing = await self._persist_refresh(raw, now)

            assigned_users = await self._resolve_assignees(
                data.requested_assignee_ids(), existing.assigned_users
            )
            dependencies = await validate_dependencies(
                task_id, data.dependencies, self._stores.task_store
            )
            candidate = existing.model_copy(
                update={
                    "title": title,
                    "description": data.description,
                    "priority": data.priority,
                    "category": data.category or "Personal",
                    "due_date": data.due_date,
                    "team_id": data.team_id,
                    "assigned_users": assigned_users,
                    "sub_tasks": self._build_subtasks(data.sub_tasks, existing.sub_tasks, now),
                    "dependencies": dependencies,
                    "updated_at": now,
                }
            )
            updated = apply_full_update(existing, candidate, now, requested_status=data.status)
            stored = await self._stores.task_store.update_task(updated, existing.version)

        keys = self._invalidate(
            [task_id], existing.involved_user_ids() | stored.involved_user_ids()
        )
        log.info(
            "task_updated",
            task_id=task_id,
            version=stored.version,
            status=stored.status.value,
        )

        previous = set(existing.assigned_user_ids)
        added = [u for u in stored.assigned_user_ids if u not in previous]
        retained = [u for u in stored.assigned_user_ids if u in previous]
        if stored.status == TaskStatus.OVERDUE and existing.status != TaskStatus.OVERDUE:
            self._schedule_notifications(NotificationType.TASK_OVERDUE, stored, retained)
            self._schedule_recalculation(stored.assigned_user_ids)
        else:
            self._schedule_notifications(NotificationType.TASK_UPDATED, stored, retained)
        self._schedule_notifications(NotificationType.TASK_ASSIGNED, stored, added)
        return MutationResult(task=stored, invalidated_keys=keys)

    async def change_status(
        self, actor_id: str, task_id: str, new_status: TaskStatus
    ) -> MutationResult:
        """通用状态接口（仅 todo / in-progress）"""
        now = self._clock()
        async with self._task_lock(task_id):
            existing = await self._load_for_write(task_id, now)
            changed = apply_status_change(existing, new_status, now)
            if changed.status == existing.status:
                return MutationResult(task=existing)
            changed = changed.model_copy(update={"updated_at": now})
            stored = await self._stores.task_store.update_task(changed, existing.version)

        keys = self._invalidate([task_id], stored.involved_user_ids())
        log.info(
            "task_status_changed",
            task_id=task_id,
            actor_id=actor_id,
            from_status=existing.status.value,
            to_status=stored.status.value,
        )
        self._schedule_notifications(
            NotificationType.TASK_UPDATED, stored, stored.assigned_user_ids
        )
        return MutationResult(task=stored, invalidated_keys=keys)

    async def complete_task(self, actor_id: str, task_id: str) -> MutationResult:
        """完成任务：子任务与依赖全部完成后进入 completed 并锁定

        Raises:
            CompletionBlockedError: AlreadyTerminal / SubtasksIncomplete / DependenciesIncomplete
        """
        now = self._clock()
        async with self._task_lock(task_id):
            existing = await self._load_for_write(task_id, now)
            dependency_tasks = await self._stores.task_store.query_by_ids(existing.dependencies)
            dependency_statuses = {
                t.task_id: refresh_task(t, now).status for t in dependency_tasks
            }
            completed = validate_completion(existing, dependency_statuses, now)
            completed = completed.model_copy(update={"updated_at": now})
            stored = await self._stores.task_store.update_task(completed, existing.version)

        keys = self._invalidate([task_id], stored.involved_user_ids())
        log.info("task_completed", task_id=task_id, actor_id=actor_id)
        self._schedule_notifications(
            NotificationType.TASK_COMPLETED, stored, stored.assigned_user_ids
        )
        self._schedule_recalculation(stored.assigned_user_ids)
        return MutationResult(task=stored, invalidated_keys=keys)

    async def toggle_subtask(
        self, actor_id: str, task_id: str, subtask_id: str
    ) -> MutationResult:
        """翻转子任务完成标记（任意调用者，任务未锁定时）"""
        now = self._clock()
        async with self._task_lock(task_id):
            existing = await self._load_for_write(task_id, now)
            toggled = apply_subtask_toggle(existing, subtask_id, now)
            toggled = toggled.model_copy(update={"updated_at": now})
            stored = await self._stores.task_store.update_task(toggled, existing.version)

        keys = self._invalidate([task_id], stored.involved_user_ids())
        log.info(
            "subtask_toggled",
            task_id=task_id,
            subtask_id=subtask_id,
            actor_id=actor_id,
            status=stored.status.value,
        )
        self._schedule_notifications(
            NotificationType.TASK_UPDATED, stored, stored.assigned_user_ids
        )
        return MutationResult(task=stored, invalidated_keys=keys)

    async def add_attachment(
        self, actor_id: str, task_id: str, data: AttachmentCreateRequest
    ) -> MutationResult:
        """追加附件（任务未锁定时）

        文件先写入存储；任务写入失败时删除刚写入的文件。
        """
        now = self._clock()
        if not data.file_name.strip():
            raise ValidationError("fileName is required", field="fileName")
        content = self._decode_content(data.content)
        if content is None and not data.file_url:
            raise ValidationError("Either content or fileUrl is required", field="content")

        async with self._task_lock(task_id):
            existing = await self._load_for_write(task_id, now)
            if existing.is_locked:
                raise TaskLockedError(task_id)

            attachment_id = str(ULID())
            if content is not None:
                file_url = await self._stores.attachment_storage.save(
                    task_id, attachment_id, data.file_name, content
                )
            else:
                file_url = data.file_url
            attachment = Attachment(
                attachment_id=attachment_id,
                file_name=data.file_name,
                file_url=file_url,
                file_type=data.file_type,
                upload_date=now,
            )

            try:
                updated = apply_attachment_add(existing, attachment, now)
                updated = updated.model_copy(update={"updated_at": now})
                stored = await self._stores.task_store.update_task(updated, existing.version)
            except Exception:
                if content is not None:
                    await self._stores.attachment_storage.remove_for_task(task_id, [attachment])
                raise

        keys = self._invalidate([task_id], stored.involved_user_ids())
        log.info(
            "attachment_added",
            task_id=task_id,
            attachment_id=attachment_id,
            actor_id=actor_id,
            size=len(content) if content is not None else None,
        )
        self._schedule_notifications(
            NotificationType.TASK_UPDATED, stored, stored.assigned_user_ids
        )
        return MutationResult(task=stored, invalidated_keys=keys)

    async def delete_task(self, actor_id: str, task_id: str) -> MutationResult:
        """删除任务（仅创建者），级联清理附件文件"""
        async with self._task_lock(task_id):
            existing = await self._stores.task_store.get_task(task_id)
            if existing is None:
                raise NotFoundError("Task", task_id)
            self._ensure_creator(existing, actor_id)

            deleted = await self._stores.task_store.delete_task(task_id)
            if not deleted:
                raise NotFoundError("Task", task_id)

        keys = self._invalidate([task_id], existing.involved_user_ids())
        removed = 0
        if existing.attachments:
            removed = await self._stores.attachment_storage.remove_for_task(
                task_id, existing.attachments
            )
        log.info(
            "task_deleted",
            task_id=task_id,
            actor_id=actor_id,
            attachments_removed=removed,
        )
        self._schedule_notifications(
            NotificationType.TASK_DELETED, existing, existing.assigned_user_ids
        )
        self._schedule_recalculation(existing.assigned_user_ids)
        return MutationResult(task=existing, invalidated_keys=keys)

    # ------------------------------------------------------------------
    # 读操作
    # ------------------------------------------------------------------

    async def get_task(self, task_id: str) -> Task:
        """读取任务（缓存 + 惰性 overdue）

        Raises:
            NotFoundError: 任务不存在
        """
        key = task_key(task_id)
        # 加载前取失效代数，加载期间有写入提交则放弃回填
        generation = self._cache.generation(key)
        cached, hit = self._cache.get(key)
        task = cached if hit else await self._stores.task_store.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)

        current = await self._refresh_and_persist(task, self._clock())
        if not hit or current is not task:
            self._cache.set_if_generation(key, current, generation)
        return current

    async def list_tasks_for_user(self, user_id: str) -> list[Task]:
        """用户创建或被分配的任务"""
        return await self._cached_list(
            tasks_key(user_id),
            lambda: self._stores.task_store.query_by_user_id(user_id),
        )

    async def list_assigned_tasks(self, user_id: str) -> list[Task]:
        """用户被分配的任务"""
        return await self._cached_list(
            assigned_tasks_key(user_id),
            lambda: self._stores.task_store.query_by_user_id(user_id, assigned_only=True),
        )

    async def list_task_history(self, user_id: str) -> list[Task]:
        """用户被分配且已进入终态（completed / overdue）的任务"""
        key = history_key(user_id)
        generation = self._cache.generation(key)
        cached, hit = self._cache.get(key)
        if hit:
            return cached

        tasks = await self.list_assigned_tasks(user_id)
        history = [t for t in tasks if t.status in TERMINAL_STATES]
        self._cache.set_if_generation(key, history, generation)
        return history

    async def list_team_tasks(self, team_id: str) -> list[Task]:
        tasks = await self._stores.task_store.query_by_team_id(team_id)
        return await self._refresh_all(tasks, self._clock())

    async def team_stats(self, team_id: str) -> TaskStatsAggregate:
        tasks = await self.list_team_tasks(team_id)
        return aggregate_task_stats(tasks, self._clock())

    async def get_performance(self, user_id: str) -> PerformanceScore:
        """已保存的绩效分；尚未计算过时按当前任务集即时推导（不落盘）"""
        score = await self._stores.performance_store.get_score(user_id)
        if score is not None:
            return score
        tasks = await self._stores.task_store.query_by_user_id(user_id, assigned_only=True)
        return calculate_user_performance(user_id, tasks, self._clock())

    # ------------------------------------------------------------------
    # 内部辅助
    # ------------------------------------------------------------------

    async def _cached_list(self, key: str, loader: Callable) -> list[Task]:
        generation = self._cache.generation(key)
        cached, hit = self._cache.get(key)
        tasks = cached if hit else await loader()
        current = await self._refresh_all(tasks, self._clock())
        changed = any(a is not b for a, b in zip(current, tasks, strict=True))
        if not hit or changed:
            self._cache.set_if_generation(key, current, generation)
        return current

    async def _refresh_all(self, tasks: list[Task], now: datetime) -> list[Task]:
        return [await self._refresh_and_persist(t, now) for t in tasks]

    async def _refresh_and_persist(self, task: Task, now: datetime) -> Task:
        """读路径的惰性 overdue：检测到流转时在任务锁内落盘"""
        if refresh_task(task, now) is task:
            return task
        async with self._task_lock(task.task_id):
            current = await self._stores.task_store.get_task(task.task_id)
            if current is None:
                return refresh_task(task, now)
            return await self._persist_refresh(current, now)

    async def _load_for_write(self, task_id: str, now: datetime) -> Task:
        """写路径读取任务（调用方已持有任务锁）"""
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return await self._persist_refresh(task, now)

    async def _persist_refresh(self, task: Task, now: datetime) -> Task:
        """落盘时间驱动的 overdue 流转并触发相应副作用"""
        refreshed = refresh_task(task, now)
        if refreshed is task:
            return task

        refreshed = refreshed.model_copy(update={"updated_at": now})
        try:
            stored = await self._stores.task_store.update_task(refreshed, task.version)
        except ConflictError:
            # 其他进程已写入，以其结果为准
            latest = await self._stores.task_store.get_task(task.task_id)
            if latest is None:
                raise NotFoundError("Task", task.task_id) from None
            return refresh_task(latest, now)

        self._invalidate([task.task_id], stored.involved_user_ids())
        if stored.status == TaskStatus.OVERDUE and task.status != TaskStatus.OVERDUE:
            log.info("task_overdue", task_id=task.task_id, due_date=task.due_date.isoformat())
            self._schedule_notifications(
                NotificationType.TASK_OVERDUE, stored, stored.assigned_user_ids
            )
            self._schedule_recalculation(stored.assigned_user_ids)
        return stored

    def _invalidate(self, task_ids: Iterable[str], user_ids: Iterable[str]) -> frozenset[str]:
        keys = invalidation_keys(task_ids, user_ids)
        self._cache.invalidate_all(keys)
        return keys

    def _schedule_notifications(
        self, event: NotificationType, task: Task, recipients: Iterable[str]
    ) -> None:
        recipients = list(recipients)
        if not recipients:
            return
        self._runner.schedule(
            f"notify:{event.value}:{task.task_id}",
            self._dispatcher.notify(event, task, recipients),
        )

    def _schedule_recalculation(self, user_ids: Iterable[str]) -> None:
        user_ids = list(user_ids)
        if not user_ids:
            return
        self._runner.schedule(
            "recalculate_performance",
            self._recalculator.recalculate_for_users(user_ids),
        )

    @staticmethod
    def _ensure_creator(task: Task, actor_id: str) -> None:
        if task.created_by.user_id != actor_id:
            raise ForbiddenError(
                f"Only the creator of task {task.task_id} may modify or delete it"
            )

    @staticmethod
    def _validated_title(title: str) -> str:
        title = title.strip()
        if not title:
            raise ValidationError("Title is required", field="title")
        return title

    @staticmethod
    def _validate_requested_status(status: TaskStatus | None) -> None:
        if status is not None and status not in USER_SETTABLE_STATES:
            raise ValidationError(
                f"Status '{status.value}' cannot be set when creating a task",
                field="status",
            )

    @staticmethod
    def _decode_content(content: str | None) -> bytes | None:
        if content is None:
            return None
        # 兼容 data URL 形式：data:<mime>;base64,<payload>
        if content.startswith("data:") and "," in content:
            content = content.split(",", 1)[1]
        try:
            return base64.b64decode(content, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValidationError("content must be base64 encoded", field="content") from e

    async def _resolve_assignees(
        self, user_ids: list[str], existing: list[AssignedUser]
    ) -> list[AssignedUser]:
        """解析分配用户快照

        已分配的用户保留原快照；新分配的用户从 UserStore 拷贝新快照。
        """
        if not user_ids:
            return []
        kept = {u.user_id: u for u in existing}
        new_ids = [uid for uid in user_ids if uid not in kept]
        users = {u.user_id: u for u in await self._stores.user_store.get_users(new_ids)}
        missing = [uid for uid in new_ids if uid not in users]
        if missing:
            raise ValidationError(
                f"Unknown assigned users: {', '.join(missing)}",
                field="assignedUsers",
                missing=missing,
            )
        return [
            kept[uid] if uid in kept else AssignedUser.from_user(users[uid])
            for uid in user_ids
        ]

    @staticmethod
    def _build_subtasks(
        inputs: list[SubTaskInput], existing: list[SubTask], now: datetime
    ) -> list[SubTask]:
        previous = {s.subtask_id: s for s in existing}
        sub_tasks: list[SubTask] = []
        for item in inputs:
            title = item.title.strip()
            if not title:
                raise ValidationError("Subtask title is required", field="subTasks")
            before = previous.get(item.subtask_id) if item.subtask_id else None
            completed_date = None
            if item.completed:
                completed_date = (
                    item.completed_date
                    or (before.completed_date if before and before.completed else None)
                    or now
                )
            sub_tasks.append(
                SubTask(
                    subtask_id=item.subtask_id or str(ULID()),
                    title=title,
                    completed=item.completed,
                    completed_date=completed_date,
                )
            )
        ids = [s.subtask_id for s in sub_tasks]
        if len(ids) != len(set(ids)):
            raise ValidationError("Subtask ids must be unique", field="subTasks")
        return sub_tasks

    @classmethod
    @asynccontextmanager
    async def _task_lock(cls, task_id: str) -> AsyncIterator[None]:
        """任务级锁，序列化同一任务在本进程内的写入；无持有者时回收"""
        entry = cls._task_locks.get(task_id)
        if entry is None:
            entry = _LockEntry()
            cls._task_locks[task_id] = entry
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0 and cls._task_locks.get(task_id) is entry:
                del cls._task_locks[task_id]

