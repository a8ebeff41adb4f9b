from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from typing import Optional, Union
import logging

from multihospital.api.auth import get_optional_user, require_roles
from multihospital.core.config import settings
from multihospital.core.exception_handler import AuthHTTPException, BusinessHTTPException, ResourceHTTPException, KNOWN_HTTP_EXCEPTIONS
from multihospital.db.base import get_db, get_identity_db, Administrator
from multihospital.models.user import Role
from multihospital.schemas.admin import AdminCreate, AdminUpdate, AdminItem, AdminListResponse
from multihospital.schemas.response import ResponseModel, AuthErrorResponse, DeleteResponse
from multihospital.schemas.user import user as UserSchema
from multihospital.services.cascade_service import CascadeService, ParentKind
from multihospital.services.identity_service import IdentityStore
from multihospital.services.update_guard import commit_guarded

logger = logging.getLogger(__name__)
router = APIRouter()


async def _get_admin_or_404(db: AsyncSession, admin_id: int) -> Administrator:
    admin = await db.get(Administrator, admin_id)
    if not admin:
        raise ResourceHTTPException(
            code=settings.NOT_FOUND_CODE,
            msg="管理员不存在",
            status_code=404
        )
    return admin


@router.get("", response_model=ResponseModel[Union[AdminListResponse, AuthErrorResponse]])
async def get_admins(
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(require_roles("admin"))
):
    result = await db.execute(select(Administrator).order_by(Administrator.admin_id))
    admins = result.scalars().all()
    return ResponseModel(
        code=0,
        message=AdminListResponse(admins=[AdminItem.model_validate(a) for a in admins])
    )


@router.get("/{admin_id}", response_model=ResponseModel[Union[AdminItem, AuthErrorResponse]])
async def get_admin(
    admin_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(require_roles("admin"))
):
    admin = await _get_admin_or_404(db, admin_id)
    return ResponseModel(code=0, message=AdminItem.model_validate(admin))


@router.post("", response_model=ResponseModel[Union[AdminItem, AuthErrorResponse]])
async def create_admin(
    data: AdminCreate,
    db: AsyncSession = Depends(get_db),
    identity_db: AsyncSession = Depends(get_identity_db),
    current_user: Optional[UserSchema] = Depends(get_optional_user)
):
    """
    创建管理员并同时创建 admin 角色账号。
    系统中尚无管理员时允许匿名创建第一个管理员, 之后仅管理员可操作。
    """
    try:
        admin_count = await db.scalar(select(func.count()).select_from(Administrator))
        if admin_count and (current_user is None or not current_user.has_role(Role.ADMIN.value)):
            raise AuthHTTPException(
                code=settings.INSUFFICIENT_AUTHORITY_CODE,
                msg="无权限，仅 admin 可操作",
                status_code=403
            )

        account = await IdentityStore(identity_db).create_account(data.email, data.password, [Role.ADMIN.value])
        await identity_db.commit()

        db_admin = Administrator(name=data.name, email=account.email)
        db.add(db_admin)
        try:
            await db.commit()
        except Exception:
            logger.error(f"管理员记录创建失败, 但账号 {account.email} 已创建")
            raise
        await db.refresh(db_admin)

        logger.info(f"创建管理员成功: {db_admin.name} ({db_admin.email})")
        return ResponseModel(code=0, message=AdminItem.model_validate(db_admin))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        logger.error(f"创建管理员时发生异常: {str(e)}")
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="内部服务异常",
            status_code=500
        )


@router.put("/{admin_id}", response_model=ResponseModel[Union[AdminItem, AuthErrorResponse]])
async def update_admin(
    admin_id: int,
    data: AdminUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(require_roles("admin"))
):
    """只允许修改姓名, 邮箱与账号库关联不在此处变更"""
    try:
        db_admin = await _get_admin_or_404(db, admin_id)
        db_admin.name = data.name
        await commit_guarded(db, Administrator, Administrator.admin_id, admin_id, "管理员")
        await db.refresh(db_admin)
        return ResponseModel(code=0, message=AdminItem.model_validate(db_admin))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        logger.error(f"更新管理员时发生异常: {str(e)}")
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="内部服务异常",
            status_code=500
        )


@router.delete("/{admin_id}", response_model=ResponseModel[Union[DeleteResponse, AuthErrorResponse]])
async def delete_admin(
    admin_id: int,
    db: AsyncSession = Depends(get_db),
    identity_db: AsyncSession = Depends(get_identity_db),
    current_user: UserSchema = Depends(require_roles("admin"))
):
    """删除管理员, 先撤销其账号的全部角色并删除账号"""
    try:
        detail = await CascadeService(db, identity_db).delete_with_cascade(ParentKind.ADMIN, admin_id)
        return ResponseModel(code=0, message=DeleteResponse(detail=detail))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        logger.error(f"删除管理员时发生异常: {str(e)}")
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="内部服务异常",
            status_code=500
        )
