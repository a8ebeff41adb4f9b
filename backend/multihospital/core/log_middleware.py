import time
import json
import logging
from typing import Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from multihospital.core.security import get_user_id_from_request
from multihospital.db.base import IdentitySessionLocal, UserAccessLog

logger = logging.getLogger(__name__)


async def save_log_to_db(log_data: dict):
    """将访问日志写入账号库, 写入失败只记录告警, 不影响请求"""
    async with IdentitySessionLocal() as db:
        try:
            db.add(UserAccessLog(**log_data))
            await db.commit()
        except Exception as e:
            await db.rollback()
            logger.warning(f"访问日志写入失败: {e}")


def _business_code(response, body: bytes) -> Optional[int]:
    """从统一响应体中取出业务 code, 非 JSON 响应返回 None"""
    if not response.headers.get("content-type", "").startswith("application/json"):
        return None
    try:
        data = json.loads(body)
    except ValueError:
        return None
    return data.get("code") if isinstance(data, dict) else None


class LogMiddleware(BaseHTTPMiddleware):
    """记录每个请求的耗时与业务 code, 并持久化到 user_access_log"""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        duration_ms = int((time.perf_counter() - started) * 1000)

        # 响应体只能读取一次, 读完后重新包装
        chunks = [chunk async for chunk in response.body_iterator]
        body = b"".join(chunks)

        async def replay():
            yield body

        response.body_iterator = replay()

        code = _business_code(response, body)
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} code={code} {duration_ms}ms")

        await save_log_to_db({
            "user_id": await get_user_id_from_request(request),
            "ip": request.client.host if request.client else "unknown",
            "ua": request.headers.get("user-agent"),
            "url": str(request.url),
            "method": request.method,
            "status_code": response.status_code,
            "response_code": code,
            "duration_ms": duration_ms,
        })
        return response
