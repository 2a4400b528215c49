"""SessionController -- 内存中分类/任务树的唯一持有者

每个变更操作遵循同一流程：
1. 校验（未登录、空文本、分类/任务不存在时直接拒绝，不发起远程调用）
2. 通过 PersistenceGateway 写远程存储
3. 远程确认成功后才修改内存树；失败时内存树保持原样

调用方需串行化用户操作：同一分类上的两个变更操作不应并发执行。
"""

import asyncio
import time
from collections.abc import Callable, Iterable

import structlog

from tasktree.core.colors import pick_color
from tasktree.core.config import DEFAULT_LOAD_TIMEOUT_S
from tasktree.core.models import (
    Category,
    FailureKind,
    MoveDirection,
    OperationResult,
    ProgressSummary,
    Task,
    TaskUpdate,
    UserSession,
)

from .bootstrap import DefaultCategoryBootstrap
from .gateway import PersistenceGateway

log = structlog.get_logger()


def _now_ms() -> int:
    return int(time.time() * 1000)


def _renumbered(tasks: Iterable[Task]) -> list[Task]:
    """按当前顺序把 position 重写为 0..n-1"""
    return [task.model_copy(update={"position": index}) for index, task in enumerate(tasks)]


def _is_contiguous(tasks: list[Task]) -> bool:
    return [task.position for task in tasks] == list(range(len(tasks)))


def _next_position(tasks: list[Task]) -> int:
    """追加位置；position 连续时等于任务数，否则取最大值 + 1 以避免重复"""
    return max((task.position for task in tasks), default=-1) + 1


class SessionController:
    """会话/状态控制器"""

    def __init__(
        self,
        gateway: PersistenceGateway,
        bootstrap: DefaultCategoryBootstrap | None = None,
        color_picker: Callable[[Iterable[str]], str] = pick_color,
        load_timeout_s: float = DEFAULT_LOAD_TIMEOUT_S,
    ) -> None:
        """
        Args:
            gateway: 远程存储网关
            bootstrap: 默认分类初始化策略，None 时使用 DefaultCategoryBootstrap
            color_picker: 新分类颜色分配函数
            load_timeout_s: load 中远程拉取的超时（秒）
        """
        self._gateway = gateway
        self._bootstrap = bootstrap or DefaultCategoryBootstrap(gateway)
        self._pick_color = color_picker
        self._load_timeout_s = load_timeout_s

        self._session: UserSession | None = None
        self._tree: list[Category] = []
        self._stale: set[str] = set()
        # 每次登录/登出递增；远程调用返回后据此丢弃过期会话的结果
        self._generation = 0

    # ---- 只读视图 ----

    @property
    def session(self) -> UserSession | None:
        return self._session

    @property
    def is_authenticated(self) -> bool:
        return self._session is not None

    @property
    def categories(self) -> list[Category]:
        """当前分类树的快照（深拷贝，修改快照不影响内部状态）"""
        return [category.model_copy(deep=True) for category in self._tree]

    @property
    def stale_category_ids(self) -> frozenset[str]:
        """多行写入中途失败、远程 position 可能不一致的分类"""
        return frozenset(self._stale)

    def get_category(self, category_id: str) -> Category | None:
        category = self._find_category(category_id)
        return category.model_copy(deep=True) if category else None

    def progress(self, category_id: str | None = None) -> ProgressSummary:
        """单个分类或整棵树的完成进度；分类不存在时返回零值"""
        if category_id is not None:
            category = self._find_category(category_id)
            if category is None:
                return ProgressSummary()
            return ProgressSummary(
                completed=category.completed_count,
                total=category.total_count,
            )
        return ProgressSummary(
            completed=sum(category.completed_count for category in self._tree),
            total=sum(category.total_count for category in self._tree),
        )

    # ---- 会话生命周期 ----

    async def sign_in(self, session: UserSession) -> OperationResult:
        """登录：采用新会话并加载该用户的分类树"""
        self.clear()
        self._session = session
        structlog.contextvars.bind_contextvars(user_id=session.user_id)
        log.info("session_started", user_id=session.user_id)
        return await self.load(session.user_id)

    def sign_out(self) -> None:
        if self._session is not None:
            log.info("session_ended", user_id=self._session.user_id)
        self.clear()

    def clear(self) -> None:
        """忘记当前用户并清空分类树"""
        self._generation += 1
        structlog.contextvars.unbind_contextvars("user_id")
        self._session = None
        self._tree = []
        self._stale = set()

    async def load(self, user_id: str | None = None) -> OperationResult:
        """拉取分类树；远程没有任何分类时执行默认分类初始化

        远程拉取受 load_timeout_s 限制。超时或失败时采用空树（fail-soft），
        且不会触发默认分类初始化。
        """
        if user_id is None and self._session is not None:
            user_id = self._session.user_id
        if not user_id:
            return self._reject(FailureKind.UNAUTHENTICATED, "load", "You must be logged in.")
        if self._session is not None and user_id != self._session.user_id:
            return self._reject(
                FailureKind.UNAUTHENTICATED,
                "load",
                "Cannot load another user's tasks in this session.",
            )

        generation = self._generation
        try:
            fetched = await asyncio.wait_for(
                self._gateway.load_all(user_id),
                timeout=self._load_timeout_s,
            )
        except TimeoutError:
            log.warning("load_timeout", user_id=user_id, timeout_s=self._load_timeout_s)
            self._adopt_loaded(generation, user_id, [])
            return OperationResult.failure(FailureKind.TIMEOUT, "Loading your tasks timed out.")
        except Exception as e:
            log.error("load_failed", user_id=user_id, error_type=type(e).__name__)
            self._adopt_loaded(generation, user_id, [])
            return OperationResult.failure(FailureKind.STORE, "Failed to load your tasks.")

        if fetched is None:
            self._adopt_loaded(generation, user_id, [])
            return OperationResult.failure(FailureKind.STORE, "Failed to load your tasks.")

        if not fetched:
            if not self._is_current(generation):
                return self._session_changed("load")
            log.info("no_categories_found", user_id=user_id)
            fetched = await self._bootstrap.bootstrap(user_id)

        if not self._adopt_loaded(generation, user_id, fetched):
            return self._session_changed("load")
        return OperationResult.success(self.categories)

    # ---- 分类操作 ----

    async def add_category(self, name: str) -> OperationResult:
        """新建分类并追加到树尾"""
        session = self._session
        if session is None:
            return self._reject(
                FailureKind.UNAUTHENTICATED,
                "add_category",
                "You must be logged in to add a category.",
            )
        name = (name or "").strip()
        if not name:
            return self._reject(
                FailureKind.VALIDATION, "add_category", "Category name must not be empty."
            )

        color = self._pick_color(category.color for category in self._tree)
        generation = self._generation
        category_id = await self._gateway.create_category(session.user_id, name, color)
        if category_id is None:
            return OperationResult.failure(
                FailureKind.STORE,
                "Failed to create category. Please try again.",
            )
        if not self._is_current(generation):
            return self._session_changed("add_category")

        category = Category(id=category_id, name=name, color=color)
        self._tree = [*self._tree, category]
        return OperationResult.success(category.model_copy(deep=True))

    async def delete_category(self, category_id: str) -> OperationResult:
        """删除分类及其全部任务（确认交互由调用方负责）"""
        rejected = self._check_category(category_id, "delete_category")
        if rejected is not None:
            return rejected

        generation = self._generation
        if not await self._gateway.delete_category(category_id):
            return OperationResult.failure(
                FailureKind.STORE,
                "Failed to delete category. Please try again.",
            )
        if not self._is_current(generation):
            return self._session_changed("delete_category")

        self._tree = [category for category in self._tree if category.id != category_id]
        self._stale.discard(category_id)
        return OperationResult.success(category_id)

    # ---- 任务操作 ----

    async def add_task(self, category_id: str, text: str) -> OperationResult:
        """在分类末尾追加任务，position = 当前任务数

        分类的 position 不连续（此前压缩失败）时先尝试重写为 0..n-1；
        重写仍失败则取最大 position + 1，保证分类内 position 不重复。
        """
        rejected = self._check_category(category_id, "add_task")
        if rejected is not None:
            return rejected
        text = (text or "").strip()
        if not text:
            return self._reject(FailureKind.VALIDATION, "add_task", "Task text must not be empty.")

        category = self._find_category(category_id)
        generation = self._generation
        if not _is_contiguous(category.tasks):
            await self._resync_positions(category)
            if not self._is_current(generation):
                return self._session_changed("add_task")
            category = self._find_category(category_id)
            if category is None:
                return self._reject(FailureKind.NOT_FOUND, "add_task", "Category not found.")
        position = _next_position(category.tasks)
        task_id = await self._gateway.create_task(
            self._session.user_id, category_id, text, position
        )
        if task_id is None:
            return OperationResult.failure(
                FailureKind.STORE,
                "Failed to add task. Please try again.",
            )
        if not self._is_current(generation):
            return self._session_changed("add_task")

        task = Task(
            id=task_id,
            text=text,
            completed=False,
            position=position,
            created_at=_now_ms(),
        )
        current = self._find_category(category_id)
        if current is None:
            return OperationResult.failure(
                FailureKind.NOT_FOUND,
                "Category was removed before the task was added.",
            )
        self._replace_tasks(category_id, [*current.tasks, task])
        return OperationResult.success(task.model_copy())

    async def toggle_task(self, category_id: str, task_id: str) -> OperationResult:
        """切换任务完成状态"""
        rejected = self._check_task(category_id, task_id, "toggle_task")
        if rejected is not None:
            return rejected

        task = self._find_category(category_id).find_task(task_id)
        completed = not task.completed
        return await self._update_task(
            category_id,
            task_id,
            TaskUpdate(completed=completed),
            "Failed to update task. Please try again.",
        )

    async def edit_task(self, category_id: str, task_id: str, text: str) -> OperationResult:
        """修改任务文本"""
        rejected = self._check_task(category_id, task_id, "edit_task")
        if rejected is not None:
            return rejected
        text = (text or "").strip()
        if not text:
            return self._reject(FailureKind.VALIDATION, "edit_task", "Task text must not be empty.")

        return await self._update_task(
            category_id,
            task_id,
            TaskUpdate(text=text),
            "Failed to rename task. Please try again.",
        )

    async def delete_task(self, category_id: str, task_id: str) -> OperationResult:
        """删除任务，并把剩余任务的 position 压缩为 0..n-1

        删除一经远程确认即从内存树移除；随后的 position 重写失败时
        保留旧 position、标记分类为 stale，并返回 PARTIAL。
        """
        rejected = self._check_task(category_id, task_id, "delete_task")
        if rejected is not None:
            return rejected

        generation = self._generation
        if not await self._gateway.delete_task(task_id):
            return OperationResult.failure(
                FailureKind.STORE,
                "Failed to delete task. Please try again.",
            )
        if not self._is_current(generation):
            return self._session_changed("delete_task")

        current = self._find_category(category_id)
        if current is None:
            return OperationResult.success(task_id)
        remaining = [task for task in current.tasks if task.id != task_id]
        self._replace_tasks(category_id, remaining)

        if _is_contiguous(remaining):
            return OperationResult.success(task_id)

        ok = await self._gateway.set_positions(category_id, [task.id for task in remaining])
        if not self._is_current(generation):
            return self._session_changed("delete_task")
        if not ok:
            self._mark_stale(category_id, "delete_task")
            return OperationResult.failure(
                FailureKind.PARTIAL,
                "Task deleted, but the remaining order could not be saved. Reload to resync.",
            )

        current = self._find_category(category_id)
        if current is not None:
            self._replace_tasks(category_id, _renumbered(current.tasks))
        return OperationResult.success(task_id)

    async def move_task(
        self,
        category_id: str,
        task_id: str,
        direction: MoveDirection | str,
    ) -> OperationResult:
        """与相邻任务交换位置，然后重写整个分类的 position 序列

        越界移动（首项上移、末项下移）不发起远程调用，直接返回成功且树不变。
        """
        try:
            direction = MoveDirection(direction)
        except ValueError:
            return self._reject(
                FailureKind.VALIDATION, "move_task", f"Unknown direction: {direction!r}"
            )
        rejected = self._check_task(category_id, task_id, "move_task")
        if rejected is not None:
            return rejected

        category = self._find_category(category_id)
        index = category.task_index(task_id)
        target = index + direction.offset
        if target < 0 or target >= len(category.tasks):
            log.debug(
                "move_task_at_boundary",
                category_id=category_id,
                task_id=task_id,
                direction=direction.value,
            )
            return OperationResult.success(category.model_copy(deep=True))

        reordered = list(category.tasks)
        reordered[index], reordered[target] = reordered[target], reordered[index]

        generation = self._generation
        ok = await self._gateway.set_positions(category_id, [task.id for task in reordered])
        if not self._is_current(generation):
            return self._session_changed("move_task")
        if not ok:
            self._mark_stale(category_id, "move_task")
            return OperationResult.failure(
                FailureKind.PARTIAL,
                "Failed to reorder tasks. Reload to resync.",
            )

        updated = self._replace_tasks(category_id, _renumbered(reordered))
        if updated is None:
            return OperationResult.failure(
                FailureKind.NOT_FOUND,
                "Category was removed before the new order was applied.",
            )
        return OperationResult.success(updated.model_copy(deep=True))

    # ---- 内部辅助 ----

    async def _update_task(
        self,
        category_id: str,
        task_id: str,
        update: TaskUpdate,
        failure_message: str,
    ) -> OperationResult:
        generation = self._generation
        if not await self._gateway.update_task(task_id, update):
            return OperationResult.failure(FailureKind.STORE, failure_message)
        if not self._is_current(generation):
            return self._session_changed("update_task")

        category = self._find_category(category_id)
        if category is None:
            return OperationResult.failure(FailureKind.NOT_FOUND, "Category no longer exists.")
        changes = update.to_fields()
        tasks = [
            task.model_copy(update=changes) if task.id == task_id else task
            for task in category.tasks
        ]
        self._replace_tasks(category_id, tasks)
        updated = self._find_category(category_id).find_task(task_id)
        return OperationResult.success(updated.model_copy())

    async def _resync_positions(self, category: Category) -> bool:
        """把分类的 position 重写为 0..n-1；成功后清除该分类的 stale 标记"""
        generation = self._generation
        ok = await self._gateway.set_positions(category.id, [task.id for task in category.tasks])
        if not ok or not self._is_current(generation):
            return False

        current = self._find_category(category.id)
        if current is not None:
            self._replace_tasks(category.id, _renumbered(current.tasks))
        self._stale.discard(category.id)
        log.info("category_positions_resynced", category_id=category.id)
        return True

    def _find_category(self, category_id: str) -> Category | None:
        for category in self._tree:
            if category.id == category_id:
                return category
        return None

    def _replace_tasks(self, category_id: str, tasks: list[Task]) -> Category | None:
        """用新任务列表替换分类，整体替换树引用（单次原子更新）"""
        tree = list(self._tree)
        for index, category in enumerate(tree):
            if category.id == category_id:
                updated = category.model_copy(update={"tasks": tasks})
                tree[index] = updated
                self._tree = tree
                return updated
        return None

    def _check_category(self, category_id: str, operation: str) -> OperationResult | None:
        if self._session is None:
            return self._reject(
                FailureKind.UNAUTHENTICATED, operation, "You must be logged in."
            )
        if self._find_category(category_id) is None:
            return self._reject(FailureKind.NOT_FOUND, operation, "Category not found.")
        return None

    def _check_task(
        self,
        category_id: str,
        task_id: str,
        operation: str,
    ) -> OperationResult | None:
        rejected = self._check_category(category_id, operation)
        if rejected is not None:
            return rejected
        if self._find_category(category_id).find_task(task_id) is None:
            return self._reject(FailureKind.NOT_FOUND, operation, "Task not found.")
        return None

    @staticmethod
    def _reject(kind: FailureKind, operation: str, message: str) -> OperationResult:
        log.info("operation_rejected", operation=operation, reason=kind.value)
        return OperationResult.failure(kind, message)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    @staticmethod
    def _session_changed(operation: str) -> OperationResult:
        log.warning("result_discarded_session_changed", operation=operation)
        return OperationResult.failure(
            FailureKind.UNAUTHENTICATED,
            "Session changed before the change was applied.",
        )

    def _mark_stale(self, category_id: str, operation: str) -> None:
        log.warning("category_marked_stale", category_id=category_id, operation=operation)
        self._stale.add(category_id)

    def _adopt_loaded(self, generation: int, user_id: str, tree: list[Category]) -> bool:
        """采用加载结果；期间会话已切换时丢弃"""
        if not self._is_current(generation):
            log.warning("load_result_discarded", user_id=user_id)
            return False
        self._tree = tree
        self._stale = set()
        return True
