"""Task / Category 领域模型

Category 独占其 tasks；tasks 按 position 升序排列，
position 在同一分类内是 0..n-1 的连续排列。
"""

from pydantic import BaseModel, Field, field_validator


class Task(BaseModel):
    """单个待办事项"""

    id: str = Field(description="存储端分配的不透明标识")
    text: str = Field(description="任务文本，非空")
    completed: bool = Field(default=False, description="是否已完成")
    position: int = Field(ge=0, description="分类内从 0 开始的排序号")
    created_at: int = Field(description="创建时间（epoch 毫秒）")

    @field_validator("text")
    @classmethod
    def text_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("task text must not be blank")
        return value


class Category(BaseModel):
    """带颜色的任务分组"""

    id: str = Field(description="存储端分配的不透明标识")
    name: str = Field(description="分类名称，非空")
    color: str = Field(description="调色板中的颜色名")
    tasks: list[Task] = Field(default_factory=list, description="按 position 升序的任务")

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("category name must not be blank")
        return value

    def task_index(self, task_id: str) -> int:
        """返回任务在列表中的下标，不存在时返回 -1"""
        for index, task in enumerate(self.tasks):
            if task.id == task_id:
                return index
        return -1

    def find_task(self, task_id: str) -> Task | None:
        index = self.task_index(task_id)
        return self.tasks[index] if index >= 0 else None

    @property
    def completed_count(self) -> int:
        return sum(1 for task in self.tasks if task.completed)

    @property
    def total_count(self) -> int:
        return len(self.tasks)


class TaskUpdate(BaseModel):
    """任务部分字段更新，仅写入非 None 字段"""

    completed: bool | None = None
    text: str | None = None
    position: int | None = Field(default=None, ge=0)

    def to_fields(self) -> dict:
        return self.model_dump(exclude_none=True)


class ProgressSummary(BaseModel):
    """完成进度统计"""

    completed: int = 0
    total: int = 0

    @property
    def ratio(self) -> float:
        if self.total == 0:
            return 0.0
        return self.completed / self.total
