 # exception_handlers.py
from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import traceback
import logging
import json
from multihospital.schemas.response import ResponseModel, UnknownErrorResponse, HTTPErrorResponse, ErrorResponse
from multihospital.core.config import settings


logger = logging.getLogger(__name__)


class BusinessHTTPException(Exception):
    """业务逻辑相关异常, 例如数据验证、缺少联系方式、预约状态非法等"""
    def __init__(self, code: int, msg: str, status_code: int = 400):
        self.status_code = status_code
        self.detail = {"code": code, "msg": msg}
        super().__init__(msg)

class ResourceHTTPException(Exception):
    """资源相关异常, 例如资源不存在、资源已存在等"""
    def __init__(self, code: int, msg: str, status_code: int = 400):
        self.status_code = status_code
        self.detail = {"code": code, "msg": msg}
        super().__init__(msg)

class AuthHTTPException(Exception):
    """专为认证相关接口设计的异常,例如权限不足、登录失败等"""
    def __init__(self, code: int, msg: str, status_code: int = 400):
        self.status_code = status_code
        self.detail = {"code": code, "msg": msg}
        super().__init__(msg)

class IdentityHTTPException(Exception):
    """账号库拒绝变更时的异常(角色撤销失败/账号删除失败), errors 为账号库返回的逐项错误"""
    def __init__(self, code: int, msg: str, errors: list[str] | None = None, status_code: int = 400):
        self.status_code = status_code
        self.errors = list(errors or [])
        self.detail = {"code": code, "msg": msg}
        super().__init__(msg)

class ConcurrencyHTTPException(Exception):
    """并发写冲突: 读取之后该行已被其他请求修改, 需重新获取后再提交"""
    def __init__(self, code: int, msg: str, status_code: int = 409):
        self.status_code = status_code
        self.detail = {"code": code, "msg": msg}
        super().__init__(msg)


# 已知业务异常, 接口中捕获后原样抛出交给对应处理器
KNOWN_HTTP_EXCEPTIONS = (
    AuthHTTPException,
    BusinessHTTPException,
    ResourceHTTPException,
    IdentityHTTPException,
    ConcurrencyHTTPException,
)


def _error_content(code: int, error: str, msg: str) -> dict:
    return ResponseModel(code=code, message=ErrorResponse(error=error, msg=msg)).model_dump()


def register_exception_handlers(app):
    """全局异常处理器

    所有错误统一返回 HTTP 200, 由响应体中的 code 区分错误类别,
    message 中 error 为类别描述, msg 为可读信息。
    """

    #无法处理异常
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled Exception: {traceback.format_exc()}")

        # 确保异常信息完全转换为字符串,避免 JSON 序列化错误
        error_detail = str(exc)

        return JSONResponse(
            status_code=200,
            content=ResponseModel(
                code=settings.UNKNOWN_ERROR_CODE,
                message=UnknownErrorResponse(error="未知错误", detail=error_detail)
            ).model_dump(),
        )

    #HTTP异常
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        logger.warning(f"HTTPException: {exc.detail}")
        return JSONResponse(
            status_code=200,
            content=ResponseModel(
                code=settings.HTTP_ERROR_CODE,
                message=HTTPErrorResponse(error="HTTP异常", detail=str(exc.detail))
            ).model_dump(),
        )

    #验证异常
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        logger.info(f"Validation Error: {errors}")

        # 确保所有错误信息都可以被 JSON 序列化
        serializable_errors = []
        for e in errors:
            error_dict = {
                "type": str(e.get("type", "unknown")),
                "loc": [str(part) for part in e.get("loc", [])],
                "msg": str(e.get("msg", "")),
            }
            # 如果包含 json 解析错误，给出更友好的提示
            if e.get("type") == "json_invalid":
                error_dict["msg"] = "请求体不是有效的 JSON，请检查格式"
            serializable_errors.append(error_dict)

        return JSONResponse(
            status_code=200,
            content=_error_content(
                settings.REQ_ERROR_CODE,
                "请求参数验证失败",
                json.dumps(serializable_errors, ensure_ascii=False),
            ),
        )

    #认证异常
    @app.exception_handler(AuthHTTPException)
    async def auth_http_exception_handler(request: Request, exc: AuthHTTPException):
        logger.warning(f"AuthHTTPException: {exc.detail}")
        return JSONResponse(
            status_code=200,
            content=_error_content(exc.detail["code"], "认证时出现异常", exc.detail["msg"]),
        )

    @app.exception_handler(BusinessHTTPException)
    async def business_http_exception_handler(request: Request, exc: BusinessHTTPException):
        logger.warning(f"BusinessHTTPException: {exc.detail}")
        return JSONResponse(
            status_code=200,
            content=_error_content(exc.detail["code"], "业务规则校验失败", exc.detail["msg"]),
        )

    @app.exception_handler(ResourceHTTPException)
    async def resource_http_exception_handler(request: Request, exc: ResourceHTTPException):
        logger.warning(f"ResourceHTTPException: {exc.detail}")
        return JSONResponse(
            status_code=200,
            content=_error_content(exc.detail["code"], "资源操作失败", exc.detail["msg"]),
        )

    @app.exception_handler(IdentityHTTPException)
    async def identity_http_exception_handler(request: Request, exc: IdentityHTTPException):
        logger.warning(f"IdentityHTTPException: {exc.detail} errors={exc.errors}")
        msg = exc.detail["msg"]
        if exc.errors:
            msg = f"{msg}: {'; '.join(exc.errors)}"
        return JSONResponse(
            status_code=200,
            content=_error_content(exc.detail["code"], "账号变更失败", msg),
        )

    @app.exception_handler(ConcurrencyHTTPException)
    async def concurrency_http_exception_handler(request: Request, exc: ConcurrencyHTTPException):
        logger.warning(f"ConcurrencyHTTPException: {exc.detail}")
        return JSONResponse(
            status_code=200,
            content=_error_content(exc.detail["code"], "并发写冲突", exc.detail["msg"]),
        )
