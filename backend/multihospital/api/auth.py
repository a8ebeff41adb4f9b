from fastapi import APIRouter, Depends, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Union, Optional
from datetime import timedelta
import logging
import time

from multihospital.core.security import verify_pwd, create_access_token, decode_access_token
from multihospital.schemas.user import user as UserSchema, UserLogin
from multihospital.schemas.response import ResponseModel, AuthErrorResponse, LoginResponse, UserRoleResponse
from multihospital.db.base import get_identity_db, redis
from multihospital.services.identity_service import AccountRef, IdentityStore
from multihospital.core.config import settings
from multihospital.core.exception_handler import AuthHTTPException, BusinessHTTPException, KNOWN_HTTP_EXCEPTIONS

logger = logging.getLogger(__name__)

router = APIRouter()
oauth2_scheme = OAuth2PasswordBearer("/auth/login", auto_error=False)


def _token_invalid(msg: str = "Token 无效或已失效") -> AuthHTTPException:
    return AuthHTTPException(code=settings.TOKEN_INVALID_CODE, msg=msg, status_code=401)


async def get_current_user(
    token: Optional[str] = Depends(oauth2_scheme),
    identity_db: AsyncSession = Depends(get_identity_db)
) -> UserSchema:
    """根据 Token 获取当前用户信息 (请求头中带 Token)"""
    if not token:
        raise _token_invalid()

    try:
        user_id = await redis.get(f"token:{token}")
    except Exception as e:
        logger.error(f"访问 Redis 时发生异常: {e}")
        raise _token_invalid()

    if not user_id:
        raise _token_invalid()

    payload = decode_access_token(token)
    sub = payload.get("sub") if payload else None
    if sub is None or str(sub) != str(user_id):
        raise _token_invalid()

    store = IdentityStore(identity_db)
    account = await store.find_account_by_id(int(sub))
    if not account or not account.is_active:
        raise _token_invalid("Token 无效或用户不存在")

    return UserSchema(
        user_id=account.user_id,
        email=account.email,
        is_active=account.is_active,
        roles=await store.get_roles(account),
        last_login_ip=account.last_login_ip,
        last_login_time=account.last_login_time,
    )


async def get_optional_user(
    token: Optional[str] = Depends(oauth2_scheme),
    identity_db: AsyncSession = Depends(get_identity_db)
) -> Optional[UserSchema]:
    """未携带 Token 时返回 None, 携带了无效 Token 仍按认证失败处理"""
    if not token:
        return None
    return await get_current_user(token, identity_db)


def require_roles(*roles: str):
    """生成角色校验依赖, 当前用户持有任一角色即可通过"""
    async def _checker(current_user: UserSchema = Depends(get_current_user)) -> UserSchema:
        if not current_user.has_role(*roles):
            raise AuthHTTPException(
                code=settings.INSUFFICIENT_AUTHORITY_CODE,
                msg=f"无权限，仅 {'/'.join(roles)} 可操作",
                status_code=403
            )
        return current_user
    return _checker


@router.post("/login", response_model=ResponseModel[Union[LoginResponse, AuthErrorResponse]])
async def login(login_data: UserLogin, request: Request, identity_db: AsyncSession = Depends(get_identity_db)):
    """登录接口 - 使用邮箱和密码进行认证, Token 写入 Redis 会话"""
    try:
        store = IdentityStore(identity_db)
        account = await store.find_account_by_email(AccountRef.from_email(login_data.email))
        if not account or not verify_pwd(login_data.password, account.hashed_password):
            raise AuthHTTPException(
                code=settings.LOGIN_FAILED_CODE,
                msg="用户不存在或密码错误",
                status_code=401
            )
        if not account.is_active:
            raise AuthHTTPException(
                code=settings.LOGIN_FAILED_CODE,
                msg="账号已被停用",
                status_code=401
            )

        roles = await store.get_roles(account)
        now_ts = int(time.time())
        login_ip = request.client.host if request.client else "unknown"
        logger.info(f"登录 - IP: {login_ip}, 邮箱: {account.email}")

        token = create_access_token(
            data={
                "sub": str(account.user_id),
                "login_time": now_ts,
                "login_ip": login_ip,
                "roles": roles,
            },
            expires_delta=timedelta(minutes=settings.TOKEN_EXPIRE_TIME)
        )
        # 清除旧 token, 每个账号只保留一个有效会话
        old_token = await redis.get(f"user_token:{account.user_id}")
        if old_token:
            await redis.delete(f"token:{old_token}")
        await redis.setex(f"token:{token}", settings.TOKEN_EXPIRE_TIME * 60, account.user_id)
        await redis.setex(f"user_token:{account.user_id}", settings.TOKEN_EXPIRE_TIME * 60, token)

        account.last_login_ip = login_ip
        account.last_login_time = now_ts
        await identity_db.commit()

        return ResponseModel(
            code=0,
            message=LoginResponse(
                userid=account.user_id,
                access_token=token,
                token_type="bearer",
                roles=roles,
            )
        )
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        logger.error(f"登录时发生异常: {str(e)}")
        raise AuthHTTPException(
            code=settings.LOGIN_FAILED_CODE,
            msg="登录失败，请稍后重试",
            status_code=500
        )


@router.post("/logout")
async def logout(current_user: UserSchema = Depends(get_current_user)):
    """用户登出接口"""
    try:
        # 清除 Redis 中的 token
        token = await redis.get(f"user_token:{current_user.user_id}")
        if token:
            await redis.delete(f"token:{token}")
            await redis.delete(f"user_token:{current_user.user_id}")
        return ResponseModel(code=0, message="登出成功")
    except Exception as e:
        logger.error(f"用户登出时发生异常: {str(e)}")
        raise BusinessHTTPException(
            code=settings.UNKNOWN_ERROR_CODE,
            msg="登出失败，请稍后重试",
            status_code=500
        )


@router.get("/me", response_model=ResponseModel[Union[UserRoleResponse, AuthErrorResponse]])
async def get_me(current_user: UserSchema = Depends(get_current_user)):
    """获取当前用户及其角色,Token无效时抛出统一异常"""
    return ResponseModel(
        code=0,
        message=UserRoleResponse(
            user_id=current_user.user_id,
            email=current_user.email,
            roles=current_user.roles,
        )
    )
