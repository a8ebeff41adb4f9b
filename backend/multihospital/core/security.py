from passlib.context import CryptContext
from jose import jwt, JWTError
from datetime import timedelta
from fastapi import Request
import logging

from multihospital.core.datetime_utils import get_now
from multihospital.core.config import settings
from multihospital.db.base import redis

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


#对原始密码进行hash加密
def get_hash_pwd(pwd: str):

    return pwd_context.hash(pwd)

#登入时验证密码
def verify_pwd(plain_pwd: str, hashed_pwd: str):

    return pwd_context.verify(plain_pwd, hashed_pwd)

#登入后获取Token
def create_access_token(data: dict, expires_delta: timedelta = None):

    to_encode = data.copy()
    expire = get_now() + (expires_delta or timedelta(minutes=settings.TOKEN_EXPIRE_TIME))

    to_encode.update({"exp": expire})
    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.TOKEN_ALGORITHM)
    return encoded_jwt


def decode_access_token(token: str) -> dict | None:
    """解析 Token, 签名错误或过期时返回 None"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.TOKEN_ALGORITHM])
    except JWTError:
        return None


def extract_token(request: Request) -> str | None:
    """从 Authorization 头(Bearer)或 query 参数 token 中取出 Token"""
    auth_header = request.headers.get("authorization")
    if auth_header:
        parts = auth_header.split()
        if len(parts) == 2 and parts[0].lower() == "bearer":
            return parts[1].strip()
        # 兼容某些客户端直接放 token 的情况
        return auth_header.strip()
    return request.query_params.get("token")


async def get_user_id_from_request(request: Request) -> int | None:
    """
    从请求中提取用户ID(只提取,不抛异常)
    - 如果 token 缺失/无效，返回 None
    """
    token = extract_token(request)
    if not token:
        return None

    # Redis 验证：token -> user_id
    try:
        user_id = await redis.get(f"token:{token}")
    except Exception as e:
        logger.debug(f"读取 token 会话失败: {e}")
        return None
    if not user_id:
        return None

    # JWT 验证（验证 sub 与 redis 中的 user_id 一致）
    payload = decode_access_token(token)
    if not payload:
        return None
    sub = payload.get("sub")
    if sub is None or str(user_id) != str(sub):
        return None
    return int(sub)
