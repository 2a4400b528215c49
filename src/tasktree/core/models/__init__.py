"""TaskTree Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import FailureKind, MoveDirection
from .records import CategoryRecord, TaskRecord
from .result import OperationResult
from .session import UserSession
from .task import Category, ProgressSummary, Task, TaskUpdate

__all__ = [
    # 枚举
    "MoveDirection",
    "FailureKind",
    # 领域模型
    "Task",
    "Category",
    "TaskUpdate",
    "ProgressSummary",
    "UserSession",
    # 结果类型
    "OperationResult",
    # 存储行结构
    "CategoryRecord",
    "TaskRecord",
]
