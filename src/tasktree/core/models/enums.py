"""枚举定义

包含 MoveDirection 任务移动方向与 FailureKind 操作失败分类。
"""

from enum import StrEnum


class MoveDirection(StrEnum):
    """任务在分类内的移动方向"""

    UP = "up"
    DOWN = "down"

    @property
    def offset(self) -> int:
        """目标下标相对当前下标的偏移量"""
        return -1 if self is MoveDirection.UP else 1


class FailureKind(StrEnum):
    """Controller 操作失败分类"""

    # 调用 Gateway 之前即被拒绝
    VALIDATION = "validation"
    UNAUTHENTICATED = "unauthenticated"
    NOT_FOUND = "not_found"

    # 远程调用失败
    STORE = "store"
    TIMEOUT = "timeout"

    # 多行写入中途失败，远程可能已处于不一致状态
    PARTIAL = "partial"
