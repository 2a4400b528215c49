"""TaskTree Sync -- 客户端状态同步层

src/tasktree/sync 的公开接口导出。
"""

from .bootstrap import DEFAULT_CATEGORIES, DefaultCategoryBootstrap
from .controller import SessionController
from .gateway import PersistenceGateway, assemble_tree, record_to_task

__all__ = [
    "PersistenceGateway",
    "assemble_tree",
    "record_to_task",
    "DefaultCategoryBootstrap",
    "DEFAULT_CATEGORIES",
    "SessionController",
]
