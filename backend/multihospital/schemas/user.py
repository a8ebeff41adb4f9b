from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import List

#USER数据模型

# 登录 - 使用邮箱和密码
class UserLogin(BaseModel):
    email: EmailStr = Field(description="登录邮箱")
    password: str = Field(min_length=1, max_length=64, description="密码")


# 当前登录用户(由 Token 解析得到)
class user(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    email: str
    is_active: bool = True
    roles: List[str] = []
    last_login_ip: str | None = None
    last_login_time: int | None = None

    def has_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)
