"""OperationResult -- Controller 操作的显式结果类型

所有 Controller 操作返回该类型，预期内的失败不以异常形式抛出。
"""

from typing import Any

from pydantic import BaseModel, Field

from .enums import FailureKind


class OperationResult(BaseModel):
    """操作结果：成功时携带 value，失败时携带 error + message"""

    ok: bool = Field(description="操作是否成功")
    value: Any = Field(default=None, description="成功时的返回值")
    error: FailureKind | None = Field(default=None, description="失败分类")
    message: str = Field(default="", description="面向用户的错误描述")

    @classmethod
    def success(cls, value: Any = None) -> "OperationResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, kind: FailureKind, message: str) -> "OperationResult":
        return cls(ok=False, error=kind, message=message)

    def __bool__(self) -> bool:
        return self.ok
