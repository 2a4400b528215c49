"""远程存储异常体系

store 层只抛出这里定义的异常；Gateway 在边界处统一捕获并降级为 None/False。
"""


class StoreError(Exception):
    """远程存储基础异常"""

    def __init__(self, message: str, recoverable: bool = True) -> None:
        """
        Args:
            message: 错误描述
            recoverable: 是否可通过用户重试恢复
        """
        super().__init__(message)
        self.recoverable = recoverable


class StoreUnreachableError(StoreError):
    """存储后端不可达（连接失败、超时、DNS 解析失败等）"""

    def __init__(self, endpoint: str, original_error: Exception) -> None:
        """
        Args:
            endpoint: 尝试连接的地址或数据库路径
            original_error: 原始异常
        """
        super().__init__(
            f"存储后端不可达: {endpoint} -- {original_error}",
            recoverable=True,
        )
        self.endpoint = endpoint
        self.original_error = original_error


class RecordNotFoundError(StoreError):
    """写操作未命中任何记录（目标行已被删除或 id 不存在）"""

    def __init__(self, table: str, record_id: str) -> None:
        super().__init__(f"{table} 中不存在记录: {record_id}", recoverable=False)
        self.table = table
        self.record_id = record_id
