"""RecordStore Protocol 接口定义

远程存储的抽象接口，使用 Python Protocol 实现结构化子类型（duck typing）。
实现方在失败时抛出 StoreError；更新未命中任何行时抛出 RecordNotFoundError。
"""

from typing import Any, Protocol

from ..models.records import CategoryRecord, TaskRecord


class RecordStore(Protocol):
    """按 user_id 限定作用域的分类/任务行存储"""

    async def select_categories(self, user_id: str) -> list[CategoryRecord]:
        """查询用户全部分类，按 created_at 正序"""
        ...

    async def select_tasks(self, user_id: str) -> list[TaskRecord]:
        """查询用户全部任务，按 position 正序"""
        ...

    async def insert_category(
        self,
        user_id: str,
        name: str,
        color: str,
    ) -> CategoryRecord:
        """插入分类，返回存储端分配 id/created_at 后的行"""
        ...

    async def delete_category(self, category_id: str) -> None:
        """删除分类（级联删除其任务）"""
        ...

    async def insert_task(
        self,
        user_id: str,
        category_id: str,
        text: str,
        position: int,
    ) -> TaskRecord:
        """插入未完成的任务，返回存储端分配 id/created_at 后的行"""
        ...

    async def update_task(self, task_id: str, fields: dict[str, Any]) -> None:
        """单行部分字段更新"""
        ...

    async def delete_task(self, task_id: str) -> None:
        """删除任务"""
        ...

    async def close(self) -> None:
        """释放连接"""
        ...
