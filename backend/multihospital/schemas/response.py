from typing import Generic, TypeVar, Optional, List
from pydantic import BaseModel

T = TypeVar("T")


# 通用响应模型
class ResponseModel(BaseModel, Generic[T]):
    code: int
    message: Optional[T]

# ====== 全局异常相关返回类型 ======
class UnknownErrorResponse(BaseModel):
    error: str
    detail: str

class HTTPErrorResponse(BaseModel):
    error: str
    detail: str

# 业务/资源/认证/账号/并发异常统一结构: error 为类别描述, msg 为可读信息
class ErrorResponse(BaseModel):
    error: str
    msg: str

AuthErrorResponse = ErrorResponse


# ====== AUTH认证模块相关返回类型 ======

# 登录成功返回的数据模型
class LoginResponse(BaseModel):
    userid: int
    access_token: str
    token_type: str
    roles: List[str]

# 获取当前用户角色返回的数据模型
class UserRoleResponse(BaseModel):
    user_id: int
    email: str
    roles: List[str]

# 删除成功返回的数据模型(只返回确认信息, 不返回删除明细)
class DeleteResponse(BaseModel):
    detail: str

