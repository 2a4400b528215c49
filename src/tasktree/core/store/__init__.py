"""TaskTree Core Store -- 远程存储后端

提供工厂函数按配置创建 RecordStore 实例。
"""

from pathlib import Path

import aiosqlite

from ..config import SyncConfig
from .protocols import RecordStore
from .rest_store import RestRecordStore
from .sqlite_init import init_db
from .sqlite_store import SqliteRecordStore


async def open_sqlite_store(db_path: str) -> SqliteRecordStore:
    """打开（必要时创建）SQLite 数据库并返回 RecordStore

    Args:
        db_path: SQLite 数据库文件路径

    Returns:
        SqliteRecordStore 实例
    """
    # 确保数据库目录存在
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)
    return SqliteRecordStore(conn)


async def create_record_store(config: SyncConfig) -> RecordStore:
    """按配置创建 RecordStore

    Args:
        config: 同步层配置

    Returns:
        store_mode 对应的 RecordStore 实现
    """
    if config.store_mode == "rest":
        return RestRecordStore(
            base_url=config.rest_url,
            api_key=config.rest_api_key.get_secret_value(),
            timeout_s=config.request_timeout_s,
        )
    return await open_sqlite_store(config.db_path)


__all__ = [
    "RecordStore",
    "SqliteRecordStore",
    "RestRecordStore",
    "create_record_store",
    "open_sqlite_store",
    "init_db",
]
