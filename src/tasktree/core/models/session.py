"""用户会话模型

由认证协作方在登录时构造并交给 Controller，登出时由 Controller 丢弃。
"""

from pydantic import BaseModel, Field


class UserSession(BaseModel):
    """已认证用户"""

    user_id: str = Field(description="远程存储中的用户作用域键")
    email: str = Field(default="", description="登录邮箱")
    name: str = Field(default="User", description="显示名称")

    @classmethod
    def from_identity(
        cls,
        user_id: str,
        email: str = "",
        name: str | None = None,
    ) -> "UserSession":
        """从认证结果构造会话

        显示名称优先使用 name，其次使用邮箱 @ 前的部分，最后回退为 "User"。
        """
        display = (name or "").strip()
        if not display and email:
            display = email.split("@", 1)[0].strip()
        return cls(user_id=user_id, email=email, name=display or "User")
