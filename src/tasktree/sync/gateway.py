"""PersistenceGateway -- 领域对象与远程存储行之间的唯一通道

每个操作：发出一个或多个存储请求，把存储异常转换为 None/False，
并记录诊断日志。任何异常都不会越过本层抛给 Controller。
"""

from collections.abc import Sequence

import structlog

from tasktree.core.models import Category, CategoryRecord, Task, TaskRecord, TaskUpdate
from tasktree.core.store import RecordStore

log = structlog.get_logger()


def _epoch_ms(record: TaskRecord) -> int:
    return int(record.created_at.timestamp() * 1000)


def record_to_task(record: TaskRecord) -> Task:
    """TaskRecord -> Task"""
    return Task(
        id=record.id,
        text=record.text,
        completed=record.completed,
        position=record.position,
        created_at=_epoch_ms(record),
    )


def assemble_tree(
    categories: Sequence[CategoryRecord],
    tasks: Sequence[TaskRecord],
) -> list[Category]:
    """把分类行与任务行组装为分类树

    分类保持输入顺序；任务按 position 升序挂到所属分类下，
    引用未知分类的任务被丢弃。
    """
    by_category: dict[str, list[Task]] = {record.id: [] for record in categories}
    for record in tasks:
        bucket = by_category.get(record.category_id)
        if bucket is None:
            log.warning(
                "orphan_task_skipped",
                task_id=record.id,
                category_id=record.category_id,
            )
            continue
        bucket.append(record_to_task(record))

    return [
        Category(
            id=record.id,
            name=record.name,
            color=record.color,
            tasks=sorted(by_category[record.id], key=lambda task: task.position),
        )
        for record in categories
    ]


class PersistenceGateway:
    """远程存储网关"""

    def __init__(self, store: RecordStore) -> None:
        self._store = store

    async def load_all(self, user_id: str) -> list[Category] | None:
        """加载用户完整的分类/任务树

        Returns:
            分类树（用户没有分类时为空列表）；任一查询失败时返回 None
        """
        try:
            categories = await self._store.select_categories(user_id)
            log.debug("categories_fetched", user_id=user_id, count=len(categories))
            if not categories:
                return []
            tasks = await self._store.select_tasks(user_id)
            log.debug("tasks_fetched", user_id=user_id, count=len(tasks))
            tree = assemble_tree(categories, tasks)
        except Exception as e:
            log.error(
                "load_all_failed",
                user_id=user_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None

        log.info("load_all_completed", user_id=user_id, category_count=len(tree))
        return tree

    async def create_category(self, user_id: str, name: str, color: str) -> str | None:
        """创建分类，返回存储端分配的 id；失败返回 None"""
        try:
            record = await self._store.insert_category(user_id, name, color)
        except Exception as e:
            log.error(
                "create_category_failed",
                user_id=user_id,
                name=name,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None
        log.info("category_created", user_id=user_id, category_id=record.id)
        return record.id

    async def delete_category(self, category_id: str) -> bool:
        """删除分类（存储端级联删除其任务）"""
        try:
            await self._store.delete_category(category_id)
        except Exception as e:
            log.error(
                "delete_category_failed",
                category_id=category_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return False
        log.info("category_deleted", category_id=category_id)
        return True

    async def create_task(
        self,
        user_id: str,
        category_id: str,
        text: str,
        position: int,
    ) -> str | None:
        """创建任务，返回存储端分配的 id；失败返回 None"""
        try:
            record = await self._store.insert_task(user_id, category_id, text, position)
        except Exception as e:
            log.error(
                "create_task_failed",
                user_id=user_id,
                category_id=category_id,
                position=position,
                error_type=type(e).__name__,
                error=str(e),
            )
            return None
        log.info(
            "task_created",
            category_id=category_id,
            task_id=record.id,
            position=position,
        )
        return record.id

    async def update_task(self, task_id: str, update: TaskUpdate) -> bool:
        """部分字段更新任务"""
        fields = update.to_fields()
        try:
            await self._store.update_task(task_id, fields)
        except Exception as e:
            log.error(
                "update_task_failed",
                task_id=task_id,
                fields=sorted(fields),
                error_type=type(e).__name__,
                error=str(e),
            )
            return False
        return True

    async def delete_task(self, task_id: str) -> bool:
        try:
            await self._store.delete_task(task_id)
        except Exception as e:
            log.error(
                "delete_task_failed",
                task_id=task_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return False
        log.info("task_deleted", task_id=task_id)
        return True

    async def set_positions(self, category_id: str, ordered_task_ids: Sequence[str]) -> bool:
        """按给定顺序把每个任务的 position 改写为其下标

        逐行顺序更新，非事务：中途失败时已写入的行不会回滚，
        远程 position 序列可能处于部分更新状态。
        """
        for index, task_id in enumerate(ordered_task_ids):
            try:
                await self._store.update_task(task_id, {"position": index})
            except Exception as e:
                log.error(
                    "set_positions_failed",
                    category_id=category_id,
                    task_id=task_id,
                    written=index,
                    total=len(ordered_task_ids),
                    error_type=type(e).__name__,
                    error=str(e),
                )
                return False
        log.debug("positions_rewritten", category_id=category_id, total=len(ordered_task_ids))
        return True
