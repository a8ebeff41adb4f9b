from fastapi import APIRouter, Depends, UploadFile, File, Form
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Optional, Union
import logging

from multihospital.api.auth import require_roles
from multihospital.core.config import settings
from multihospital.core.exception_handler import BusinessHTTPException, ResourceHTTPException, KNOWN_HTTP_EXCEPTIONS
from multihospital.db.base import get_db, get_identity_db, Hospital
from multihospital.schemas.hospital import HospitalItem, HospitalListResponse
from multihospital.schemas.response import ResponseModel, AuthErrorResponse, DeleteResponse
from multihospital.schemas.user import user as UserSchema
from multihospital.services.cascade_service import CascadeService, ParentKind
from multihospital.services.image_service import image_item, read_image_upload, guess_media_type
from multihospital.services.update_guard import commit_guarded

logger = logging.getLogger(__name__)
router = APIRouter()


def _hospital_item(hospital: Hospital) -> HospitalItem:
    return HospitalItem(
        hospital_id=hospital.hospital_id,
        name=hospital.name,
        address=hospital.address,
        phone=hospital.phone,
        email=hospital.email,
        image=image_item(hospital.image, f"/hospitals/{hospital.hospital_id}/image"),
        created_at=hospital.created_at,
        updated_at=hospital.updated_at,
    )


async def _get_hospital_or_404(db: AsyncSession, hospital_id: int) -> Hospital:
    hospital = await db.get(Hospital, hospital_id)
    if not hospital:
        raise ResourceHTTPException(
            code=settings.NOT_FOUND_CODE,
            msg="医院不存在",
            status_code=404
        )
    return hospital


@router.get("", response_model=ResponseModel[HospitalListResponse])
async def get_hospitals(db: AsyncSession = Depends(get_db)):
    """获取医院列表 - 无需登录"""
    result = await db.execute(select(Hospital).order_by(Hospital.hospital_id))
    hospitals = result.scalars().all()
    return ResponseModel(code=0, message=HospitalListResponse(hospitals=[_hospital_item(h) for h in hospitals]))


@router.get("/{hospital_id}", response_model=ResponseModel[Union[HospitalItem, AuthErrorResponse]])
async def get_hospital(hospital_id: int, db: AsyncSession = Depends(get_db)):
    """获取单个医院 - 无需登录"""
    hospital = await _get_hospital_or_404(db, hospital_id)
    return ResponseModel(code=0, message=_hospital_item(hospital))


@router.get("/{hospital_id}/image")
async def get_hospital_image(hospital_id: int, db: AsyncSession = Depends(get_db)):
    """返回医院图片原始字节"""
    hospital = await _get_hospital_or_404(db, hospital_id)
    if not hospital.image:
        raise ResourceHTTPException(
            code=settings.NOT_FOUND_CODE,
            msg="该医院暂无图片",
            status_code=404
        )
    return Response(content=hospital.image, media_type=guess_media_type(hospital.image))


@router.post("", response_model=ResponseModel[Union[HospitalItem, AuthErrorResponse]])
async def create_hospital(
    name: str = Form(..., min_length=1, max_length=100),
    address: Optional[str] = Form(None, max_length=255),
    phone: Optional[str] = Form(None, max_length=25),
    email: Optional[str] = Form(None, max_length=255),
    image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(require_roles("admin"))
):
    """创建医院 - 仅管理员可操作, multipart 表单, 图片可选"""
    try:
        image_bytes = await read_image_upload(image)

        db_hospital = Hospital(
            name=name,
            address=address,
            phone=phone,
            email=email,
            image=image_bytes,
        )
        db.add(db_hospital)
        await db.commit()
        await db.refresh(db_hospital)

        logger.info(f"创建医院成功: {db_hospital.name}")
        return ResponseModel(code=0, message=_hospital_item(db_hospital))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        logger.error(f"创建医院时发生异常: {str(e)}")
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="内部服务异常",
            status_code=500
        )


@router.put("/{hospital_id}", response_model=ResponseModel[Union[HospitalItem, AuthErrorResponse]])
async def update_hospital(
    hospital_id: int,
    name: Optional[str] = Form(None, min_length=1, max_length=100),
    address: Optional[str] = Form(None, max_length=255),
    phone: Optional[str] = Form(None, max_length=25),
    email: Optional[str] = Form(None, max_length=255),
    image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(require_roles("admin"))
):
    """更新医院信息 - 仅管理员可操作, 只修改提交的字段"""
    try:
        db_hospital = await _get_hospital_or_404(db, hospital_id)
        image_bytes = await read_image_upload(image)

        if name:
            db_hospital.name = name
        if address is not None:
            db_hospital.address = address
        if phone is not None:
            db_hospital.phone = phone
        if email is not None:
            db_hospital.email = email
        if image_bytes:
            db_hospital.image = image_bytes

        await commit_guarded(db, Hospital, Hospital.hospital_id, hospital_id, "医院")
        await db.refresh(db_hospital)

        logger.info(f"更新医院成功: {db_hospital.name}")
        return ResponseModel(code=0, message=_hospital_item(db_hospital))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        logger.error(f"更新医院时发生异常: {str(e)}")
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="内部服务异常",
            status_code=500
        )


@router.delete("/{hospital_id}", response_model=ResponseModel[Union[DeleteResponse, AuthErrorResponse]])
async def delete_hospital(
    hospital_id: int,
    db: AsyncSession = Depends(get_db),
    identity_db: AsyncSession = Depends(get_identity_db),
    current_user: UserSchema = Depends(require_roles("admin"))
):
    """
    删除医院 - 仅管理员可操作。下属科室/医生由数据库级联删除。
    """
    try:
        detail = await CascadeService(db, identity_db).delete_with_cascade(ParentKind.HOSPITAL, hospital_id)
        return ResponseModel(code=0, message=DeleteResponse(detail=detail))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        logger.error(f"删除医院时发生异常: {str(e)}")
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="内部服务异常",
            status_code=500
        )
