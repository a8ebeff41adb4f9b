"""
账号库服务

实体库中的医生/管理员/患者只通过邮箱字符串与账号库关联(软外键),
这里用 AccountRef 显式表示这种弱引用: 需要通过查询解析, 永远不假设账号一定存在。

remove_roles / delete_account 不直接抛异常, 而是返回 IdentityResult,
由调用方决定是否中止(级联删除时任一失败即整体中止)。
"""
from dataclasses import dataclass, field
from typing import Iterable, List, Optional
import logging

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from multihospital.core.config import settings
from multihospital.core.exception_handler import BusinessHTTPException
from multihospital.core.security import get_hash_pwd
from multihospital.db.base import redis
from multihospital.models.user import User, UserRole, parse_role

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccountRef:
    """指向账号库的弱引用(按邮箱)"""
    email: str

    @classmethod
    def from_email(cls, email: Optional[str]) -> Optional["AccountRef"]:
        """空邮箱无法构造引用, 返回 None"""
        if email is None or not email.strip():
            return None
        return cls(email=email.strip().lower())


@dataclass
class IdentityResult:
    """账号库变更结果, errors 为逐项错误描述"""
    succeeded: bool
    errors: List[str] = field(default_factory=list)

    @classmethod
    def success(cls) -> "IdentityResult":
        return cls(succeeded=True)

    @classmethod
    def failed(cls, *errors: str) -> "IdentityResult":
        return cls(succeeded=False, errors=list(errors))


class IdentityStore:
    """账号库操作, 只使用传入的账号库会话, 提交时机由调用方控制"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_account_by_email(self, ref: Optional[AccountRef]) -> Optional[User]:
        if ref is None:
            return None
        result = await self.db.execute(
            select(User).options(selectinload(User.roles)).where(User.email == ref.email)
        )
        return result.scalar_one_or_none()

    async def find_account_by_id(self, user_id: int) -> Optional[User]:
        result = await self.db.execute(
            select(User).options(selectinload(User.roles)).where(User.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_roles(self, account: User) -> List[str]:
        result = await self.db.execute(
            select(UserRole.role).where(UserRole.user_id == account.user_id).order_by(UserRole.role)
        )
        return list(result.scalars().all())

    async def add_roles(self, account: User, roles: Iterable[str]) -> IdentityResult:
        current = set(await self.get_roles(account))
        errors = []
        for role in roles:
            parsed = parse_role(role)
            if parsed is None:
                errors.append(f"未知角色: {role}")
                continue
            if parsed.value in current:
                continue
            self.db.add(UserRole(user_id=account.user_id, role=parsed.value))
            current.add(parsed.value)
        if errors:
            return IdentityResult.failed(*errors)
        try:
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"为账号 {account.email} 分配角色失败: {e}")
            return IdentityResult.failed(f"分配角色失败: {e}")
        return IdentityResult.success()

    async def remove_roles(self, account: User, roles: Iterable[str]) -> IdentityResult:
        """撤销角色; 要撤销的角色未分配给该账号时失败"""
        roles = list(roles)
        current = set(await self.get_roles(account))
        missing = [role for role in roles if role not in current]
        if missing:
            return IdentityResult.failed(*[f"账号 {account.email} 未分配角色 {role}" for role in missing])
        try:
            await self.db.execute(
                delete(UserRole).where(UserRole.user_id == account.user_id, UserRole.role.in_(roles))
            )
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"撤销账号 {account.email} 的角色失败: {e}")
            return IdentityResult.failed(f"撤销角色失败: {e}")
        # 已加载的关系集合与数据库保持一致
        self.db.expire(account, ["roles"])
        return IdentityResult.success()

    async def delete_account(self, account: User) -> IdentityResult:
        try:
            await self.db.delete(account)
            await self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"删除账号 {account.email} 失败: {e}")
            return IdentityResult.failed(f"删除账号失败: {e}")
        return IdentityResult.success()

    async def create_account(self, email: str, password: str, roles: Iterable[str]) -> User:
        """创建账号并分配角色, 邮箱已被占用时抛出业务异常"""
        ref = AccountRef.from_email(email)
        if ref is None:
            raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg="邮箱不能为空", status_code=400)
        if await self.find_account_by_email(ref):
            raise BusinessHTTPException(
                code=settings.REGISTER_FAILED_CODE,
                msg=f"邮箱 {ref.email} 已被占用",
                status_code=400
            )
        account = User(email=ref.email, hashed_password=get_hash_pwd(password), is_active=True)
        self.db.add(account)
        await self.db.flush()

        result = await self.add_roles(account, roles)
        if not result.succeeded:
            raise BusinessHTTPException(
                code=settings.REGISTER_FAILED_CODE,
                msg="; ".join(result.errors),
                status_code=400
            )
        await self.db.refresh(account, ["roles"])
        return account

    async def revoke_tokens(self, user_id: int) -> None:
        """清除 Redis 中的 token 映射，防止已删除用户继续使用旧 token"""
        try:
            token = await redis.get(f"user_token:{user_id}")
            if token:
                await redis.delete(f"token:{token}")
                await redis.delete(f"user_token:{user_id}")
        except Exception as rex:
            logger.warning(f"删除用户 token 时 Redis 操作失败: {rex}")
