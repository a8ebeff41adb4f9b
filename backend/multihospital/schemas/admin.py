from pydantic import BaseModel, EmailStr, Field, ConfigDict
from typing import Optional, List
from datetime import datetime


# 管理员创建(同时在账号库创建 admin 角色账号)
class AdminCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50, description="真实姓名")
    email: EmailStr = Field(description="登录邮箱")
    password: str = Field(min_length=6, max_length=64, description="密码")


class AdminUpdate(BaseModel):
    name: str = Field(min_length=1, max_length=50, description="真实姓名")


class AdminItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    admin_id: int
    name: str
    email: str
    created_at: datetime
    updated_at: datetime


class AdminListResponse(BaseModel):
    admins: List[AdminItem]
