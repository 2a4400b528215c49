"""CLI 入口模块 -- python -m tasktree.sync <command>

支持的命令：
  init-db            创建 SQLite 表结构
  show <user_id>     加载并打印用户的分类树（空用户会初始化默认分类）
"""

import asyncio
import sys

from tasktree.core.config import get_db_path, load_sync_config
from tasktree.core.logging_config import setup_logging


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m tasktree.sync <command>")
        print("命令:")
        print("  init-db            创建 SQLite 表结构")
        print("  show <user_id>     加载并打印用户的分类树")
        sys.exit(1)

    setup_logging()
    command = sys.argv[1]

    if command == "init-db":
        asyncio.run(init_database())
    elif command == "show":
        if len(sys.argv) < 3:
            print("用法: python -m tasktree.sync show <user_id>")
            sys.exit(1)
        if not asyncio.run(show_tree(sys.argv[2])):
            sys.exit(2)
    else:
        print(f"未知命令: {command}")
        print("可用命令: init-db, show")
        sys.exit(1)


async def init_database() -> None:
    """创建（或确认已存在）SQLite 表结构"""
    from tasktree.core.store import open_sqlite_store

    db_path = get_db_path()
    print(f"数据库路径: {db_path}")
    store = await open_sqlite_store(db_path)
    await store.close()
    print("初始化完成")


async def show_tree(user_id: str) -> bool:
    """加载并打印分类树，返回是否加载成功"""
    from tasktree.core.models import UserSession
    from tasktree.core.store import create_record_store

    from .controller import SessionController
    from .gateway import PersistenceGateway

    config = load_sync_config()
    store = await create_record_store(config)
    try:
        controller = SessionController(
            PersistenceGateway(store),
            load_timeout_s=config.load_timeout_s,
        )
        result = await controller.sign_in(UserSession.from_identity(user_id))
        if not result.ok:
            print(f"加载失败 ({result.error}): {result.message}")
            return False

        for category in controller.categories:
            progress = controller.progress(category.id)
            print(
                f"[{category.color}] {category.name} "
                f"({progress.completed} of {progress.total} completed)"
            )
            for task in category.tasks:
                mark = "x" if task.completed else " "
                print(f"  {task.position:>3}. [{mark}] {task.text}")

        overall = controller.progress()
        print(f"合计: {overall.completed}/{overall.total} ({overall.ratio:.0%})")
        return True
    finally:
        await store.close()


if __name__ == "__main__":
    main()
