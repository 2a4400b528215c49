"""默认分类初始化

新用户首次加载（远程没有任何分类）时，依次创建固定的默认分类。
不保证幂等：对同一用户重复调用会产生重复分类，调用方只应在分类数为 0 时调用。
"""

import structlog

from tasktree.core.models import Category

from .gateway import PersistenceGateway

log = structlog.get_logger()

# (名称, 颜色)，按创建顺序排列；颜色均取自调色板
DEFAULT_CATEGORIES: tuple[tuple[str, str], ...] = (
    ("Client", "blue"),
    ("Biz System", "green"),
    ("Web & Funnel", "purple"),
    ("AI & Tech", "orange"),
    ("Learning", "amber"),
    ("Personal", "pink"),
)


class DefaultCategoryBootstrap:
    """默认分类初始化策略"""

    def __init__(
        self,
        gateway: PersistenceGateway,
        defaults: tuple[tuple[str, str], ...] = DEFAULT_CATEGORIES,
    ) -> None:
        self._gateway = gateway
        self._defaults = defaults

    async def bootstrap(self, user_id: str) -> list[Category]:
        """逐个创建默认分类

        创建失败的分类记录日志后跳过，不重试。

        Returns:
            成功创建的分类（按默认顺序，任务列表为空）
        """
        log.info("bootstrap_started", user_id=user_id, count=len(self._defaults))
        created: list[Category] = []
        for name, color in self._defaults:
            category_id = await self._gateway.create_category(user_id, name, color)
            if category_id is None:
                log.warning("bootstrap_category_skipped", user_id=user_id, name=name)
                continue
            created.append(Category(id=category_id, name=name, color=color))

        log.info(
            "bootstrap_completed",
            user_id=user_id,
            created=len(created),
            skipped=len(self._defaults) - len(created),
        )
        return created
