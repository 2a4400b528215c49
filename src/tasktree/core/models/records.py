"""远程存储行结构

categories(id, user_id, name, color, created_at)
tasks(id, category_id, user_id, text, completed, position, created_at)
所有查询均按 user_id 限定作用域。
"""

from datetime import datetime

from pydantic import BaseModel, Field


class CategoryRecord(BaseModel):
    """categories 表的一行"""

    id: str
    user_id: str
    name: str
    color: str
    created_at: datetime = Field(description="存储端分配的创建时间")


class TaskRecord(BaseModel):
    """tasks 表的一行"""

    id: str
    category_id: str
    user_id: str
    text: str
    completed: bool = False
    position: int = 0
    created_at: datetime = Field(description="存储端分配的创建时间")
