"""CLI 入口模块 -- python -m jobtrack.core <command>

支持的命令：
  recalculate-performance [user_id ...]  重算用户绩效分（缺省为全部镜像用户）
"""

import asyncio
import sys

from .config import get_attachments_dir, get_db_path, get_fanout_concurrency


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m jobtrack.core <command>")
        print("命令:")
        print("  recalculate-performance [user_id ...]  重算用户绩效分")
        sys.exit(1)

    command = sys.argv[1]

    if command == "recalculate-performance":
        failed = asyncio.run(recalculate_performance(sys.argv[2:]))
        sys.exit(1 if failed else 0)
    else:
        print(f"未知命令: {command}")
        print("可用命令: recalculate-performance")
        sys.exit(1)


async def recalculate_performance(user_ids: list[str]) -> int:
    """执行绩效重算

    Returns:
        失败的用户数
    """
    from .exceptions import PerformanceUpdateError
    from .performance import PerformanceRecalculator
    from .store import create_store_group

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")

    store_group = await create_store_group(db_path, get_attachments_dir())

    try:
        if not user_ids:
            user_ids = await store_group.user_store.list_user_ids()
        recalculator = PerformanceRecalculator(
            store_group.task_store,
            store_group.performance_store,
            concurrency=get_fanout_concurrency(),
        )
        results = await recalculator.recalculate_for_users(user_ids)
    finally:
        await store_group.conn.close()

    failed = 0
    for user_id, outcome in results.items():
        if isinstance(outcome, PerformanceUpdateError):
            failed += 1
            print(f"  {user_id}: 失败 -- {outcome.original_error}")
        else:
            print(f"  {user_id}: {outcome.score:.2f}")
    print(f"重算完成，共 {len(results)} 个用户，失败 {failed} 个")
    return failed


if __name__ == "__main__":
    main()
