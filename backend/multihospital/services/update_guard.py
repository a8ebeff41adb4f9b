"""
乐观锁提交保护

实体表均配置了 version_id_col, 提交时若目标行在读取之后被修改或删除,
ORM 会抛出 StaleDataError。此时回滚并重新检查该行是否存在:
- 不存在: 按资源不存在处理
- 仍存在: 按并发写冲突处理, 由调用方重新获取后再提交, 不做自动重试或合并
"""
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from multihospital.core.config import settings
from multihospital.core.exception_handler import ResourceHTTPException, ConcurrencyHTTPException

logger = logging.getLogger(__name__)


async def entity_exists(db: AsyncSession, model, pk_column, pk_value) -> bool:
    count = await db.scalar(select(func.count()).select_from(model).where(pk_column == pk_value))
    return bool(count)


async def commit_guarded(db: AsyncSession, model, pk_column, pk_value, label: str) -> None:
    try:
        await db.commit()
    except StaleDataError:
        await db.rollback()
        if not await entity_exists(db, model, pk_column, pk_value):
            logger.warning(f"{label} {pk_value} 在提交前已被删除")
            raise ResourceHTTPException(
                code=settings.NOT_FOUND_CODE,
                msg=f"{label}不存在",
                status_code=404
            )
        logger.warning(f"{label} {pk_value} 提交时发生并发写冲突")
        raise ConcurrencyHTTPException(
            code=settings.CONCURRENCY_CONFLICT_CODE,
            msg=f"{label}已被其他请求修改，请刷新后重试",
            status_code=409
        )
