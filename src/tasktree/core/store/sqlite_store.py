"""RecordStore SQLite 实现

id 使用 ULID，由存储端分配；created_at 由存储端写入。
每条语句单独提交，不提供跨行事务：多行写入的原子性不在本层保证。
"""

from datetime import UTC, datetime
from typing import Any

import aiosqlite
from ulid import ULID

from ..exceptions import RecordNotFoundError, StoreError
from ..models.records import CategoryRecord, TaskRecord

# update_task 允许写入的列
_UPDATABLE_TASK_COLUMNS = ("text", "completed", "position")


class SqliteRecordStore:
    """RecordStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn

    async def select_categories(self, user_id: str) -> list[CategoryRecord]:
        """查询用户全部分类，按 created_at 正序"""
        rows = await self._fetchall(
            """
            SELECT * FROM categories
            WHERE user_id = ?
            ORDER BY created_at ASC, rowid ASC
            """,
            (user_id,),
        )
        return [self._row_to_category(row) for row in rows]

    async def select_tasks(self, user_id: str) -> list[TaskRecord]:
        """查询用户全部任务，按 position 正序"""
        rows = await self._fetchall(
            """
            SELECT * FROM tasks
            WHERE user_id = ?
            ORDER BY position ASC, created_at ASC
            """,
            (user_id,),
        )
        return [self._row_to_task(row) for row in rows]

    async def insert_category(
        self,
        user_id: str,
        name: str,
        color: str,
    ) -> CategoryRecord:
        """插入分类"""
        record = CategoryRecord(
            id=str(ULID()),
            user_id=user_id,
            name=name,
            color=color,
            created_at=datetime.now(UTC),
        )
        await self._write(
            """
            INSERT INTO categories (id, user_id, name, color, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                record.id,
                record.user_id,
                record.name,
                record.color,
                record.created_at.isoformat(),
            ),
        )
        return record

    async def delete_category(self, category_id: str) -> None:
        """删除分类，tasks 通过外键 ON DELETE CASCADE 级联删除

        目标行已不存在时视为成功（删除是幂等的）。
        """
        await self._write("DELETE FROM categories WHERE id = ?", (category_id,))

    async def insert_task(
        self,
        user_id: str,
        category_id: str,
        text: str,
        position: int,
    ) -> TaskRecord:
        """插入任务，仅当分类存在且属于同一用户时写入"""
        record = TaskRecord(
            id=str(ULID()),
            category_id=category_id,
            user_id=user_id,
            text=text,
            completed=False,
            position=position,
            created_at=datetime.now(UTC),
        )
        rowcount = await self._write(
            """
            INSERT INTO tasks (id, category_id, user_id, text, completed, position, created_at)
            SELECT ?, ?, ?, ?, 0, ?, ?
            WHERE EXISTS (SELECT 1 FROM categories WHERE id = ? AND user_id = ?)
            """,
            (
                record.id,
                record.category_id,
                record.user_id,
                record.text,
                record.position,
                record.created_at.isoformat(),
                category_id,
                user_id,
            ),
        )
        if rowcount == 0:
            raise RecordNotFoundError("categories", category_id)
        return record

    async def update_task(self, task_id: str, fields: dict[str, Any]) -> None:
        """单行部分字段更新"""
        unknown = set(fields) - set(_UPDATABLE_TASK_COLUMNS)
        if unknown:
            raise StoreError(f"tasks 不支持更新的列: {sorted(unknown)}", recoverable=False)
        if not fields:
            return

        columns: list[str] = []
        params: list[Any] = []
        for column in _UPDATABLE_TASK_COLUMNS:
            if column not in fields:
                continue
            value = fields[column]
            if column == "completed":
                value = 1 if value else 0
            columns.append(f"{column} = ?")
            params.append(value)
        params.append(task_id)

        rowcount = await self._write(
            f"UPDATE tasks SET {', '.join(columns)} WHERE id = ?",
            tuple(params),
        )
        if rowcount == 0:
            raise RecordNotFoundError("tasks", task_id)

    async def delete_task(self, task_id: str) -> None:
        """删除任务，目标行已不存在时视为成功"""
        await self._write("DELETE FROM tasks WHERE id = ?", (task_id,))

    async def close(self) -> None:
        await self._conn.close()

    async def _fetchall(self, sql: str, params: tuple) -> list[aiosqlite.Row]:
        try:
            cursor = await self._conn.execute(sql, params)
            return list(await cursor.fetchall())
        except aiosqlite.Error as e:
            raise StoreError(f"SQLite 查询失败: {e}") from e

    async def _write(self, sql: str, params: tuple) -> int:
        """执行单条写语句并立即提交，返回受影响行数"""
        try:
            cursor = await self._conn.execute(sql, params)
            await self._conn.commit()
            return cursor.rowcount
        except aiosqlite.Error as e:
            await self._conn.rollback()
            raise StoreError(f"SQLite 写入失败: {e}") from e

    @staticmethod
    def _row_to_category(row: aiosqlite.Row) -> CategoryRecord:
        """将数据库行转换为 CategoryRecord"""
        return CategoryRecord(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            color=row["color"],
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> TaskRecord:
        """将数据库行转换为 TaskRecord"""
        return TaskRecord(
            id=row["id"],
            category_id=row["category_id"],
            user_id=row["user_id"],
            text=row["text"],
            completed=bool(row["completed"]),
            position=int(row["position"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
