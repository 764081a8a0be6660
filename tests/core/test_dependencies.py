"""依赖校验单元测试

测试内容：
1. find_cycle 纯函数
2. 自依赖 / 未知依赖 / 依赖环被拒绝
3. 合法依赖去重后返回
"""

import pytest
from jobtrack.core.dependencies import find_cycle, validate_dependencies
from jobtrack.core.exceptions import ValidationError


class TestFindCycle:
    def test_no_cycle(self):
        graph = {"b": ["c"], "c": []}
        assert find_cycle("a", ["b"], graph) is None

    def test_direct_cycle(self):
        graph = {"b": ["a"]}
        assert find_cycle("a", ["b"], graph) == ["a", "b", "a"]

    def test_transitive_cycle(self):
        graph = {"b": ["c"], "c": ["d"], "d": ["a"]}
        assert find_cycle("a", ["b"], graph) == ["a", "b", "c", "d", "a"]

    def test_cycle_not_through_task_is_ignored(self):
        """与正在写入的任务无关的环不在此处处理"""
        graph = {"b": ["c"], "c": ["b"]}
        assert find_cycle("a", ["b"], graph) is None


class TestValidateDependencies:
    """写入时依赖校验"""

    async def test_valid_dependencies_deduplicated(self, store_group, make_task):
        dep = make_task(title="Upstream")
        await store_group.task_store.create_task(dep)

        deps = await validate_dependencies(
            "new-task", [dep.task_id, dep.task_id], store_group.task_store
        )
        assert deps == [dep.task_id]

    async def test_empty(self, store_group):
        assert await validate_dependencies("t1", [], store_group.task_store) == []

    async def test_self_dependency_rejected(self, store_group, make_task):
        task = make_task()
        await store_group.task_store.create_task(task)
        with pytest.raises(ValidationError) as exc_info:
            await validate_dependencies(task.task_id, [task.task_id], store_group.task_store)
        assert exc_info.value.field == "dependencies"

    async def test_unknown_dependency_rejected(self, store_group):
        with pytest.raises(ValidationError) as exc_info:
            await validate_dependencies("t1", ["ghost"], store_group.task_store)
        assert exc_info.value.details["missing"] == ["ghost"]

    async def test_cycle_rejected(self, store_group, make_task):
        # a 依赖 b，b 依赖 c；现在让 c 依赖 a
        c = make_task(title="C")
        b = make_task(title="B", dependencies=[c.task_id])
        a = make_task(title="A", dependencies=[b.task_id])
        for task in (c, b, a):
            await store_group.task_store.create_task(task)

        with pytest.raises(ValidationError) as exc_info:
            await validate_dependencies(c.task_id, [a.task_id], store_group.task_store)
        assert exc_info.value.details["cycle"] == [c.task_id, a.task_id, b.task_id, c.task_id]

    async def test_dangling_transitive_dependency_tolerated(self, store_group, make_task):
        """已删除的间接依赖不阻塞写入"""
        upstream = make_task(title="Upstream", dependencies=["deleted-task"])
        await store_group.task_store.create_task(upstream)

        deps = await validate_dependencies("t1", [upstream.task_id], store_group.task_store)
        assert deps == [upstream.task_id]
