"""任务依赖校验

依赖必须引用已存在的其他任务，且不得形成环。
环会让环上所有任务永远无法完成，因此在写入时拒绝。
"""

from collections.abc import Iterable, Mapping

from .exceptions import ValidationError
from .store.protocols import TaskStore


def find_cycle(
    task_id: str,
    dependencies: Iterable[str],
    graph: Mapping[str, Iterable[str]],
) -> list[str] | None:
    """检测以 task_id 为起点的依赖环

    Args:
        task_id: 正在写入的任务
        dependencies: 该任务新的依赖集合
        graph: 其他任务 ID -> 其依赖集合（已落盘）

    Returns:
        环路径（首尾均为 task_id），无环时返回 None
    """
    stack: list[tuple[str, list[str]]] = [(dep, [task_id, dep]) for dep in dependencies]
    visited: set[str] = set()
    while stack:
        node, path = stack.pop()
        if node == task_id:
            return path
        if node in visited:
            continue
        visited.add(node)
        for nxt in graph.get(node, ()):
            stack.append((nxt, [*path, nxt]))
    return None


async def validate_dependencies(
    task_id: str,
    dependencies: list[str],
    task_store: TaskStore,
) -> list[str]:
    """校验依赖集合，返回去重后的依赖 ID 列表

    Raises:
        ValidationError: 自依赖、引用不存在的任务或形成依赖环
    """
    deps = list(dict.fromkeys(dependencies))
    if not deps:
        return deps

    if task_id in deps:
        raise ValidationError(
            "A task cannot depend on itself",
            field="dependencies",
            task_id=task_id,
        )

    # 沿依赖图逐层加载，构建可达子图
    graph: dict[str, list[str]] = {}
    frontier = set(deps)
    first_level = True
    while frontier:
        loaded = await task_store.query_by_ids(frontier)
        if first_level:
            missing = sorted(set(deps) - {t.task_id for t in loaded})
            if missing:
                raise ValidationError(
                    f"Dependencies reference unknown tasks: {', '.join(missing)}",
                    field="dependencies",
                    missing=missing,
                )
            first_level = False
        for task in loaded:
            graph[task.task_id] = list(task.dependencies)
        frontier = {
            dep
            for task in loaded
            for dep in task.dependencies
            if dep not in graph and dep != task_id
        }

    cycle = find_cycle(task_id, deps, graph)
    if cycle is not None:
        raise ValidationError(
            f"Dependency cycle detected: {' -> '.join(cycle)}",
            field="dependencies",
            cycle=cycle,
        )
    return deps
