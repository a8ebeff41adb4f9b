from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from typing import Union
import logging

from multihospital.api.auth import require_roles
from multihospital.core.config import settings
from multihospital.core.exception_handler import BusinessHTTPException, ResourceHTTPException, KNOWN_HTTP_EXCEPTIONS
from multihospital.db.base import get_db, get_identity_db, Department, Doctor
from multihospital.models.user import Role
from multihospital.schemas.doctor import DoctorCreate, DoctorUpdate, DoctorItem, DoctorListResponse
from multihospital.schemas.response import ResponseModel, AuthErrorResponse, DeleteResponse
from multihospital.schemas.user import user as UserSchema
from multihospital.services.cascade_service import CascadeService
from multihospital.services.identity_service import IdentityStore
from multihospital.services.update_guard import commit_guarded

logger = logging.getLogger(__name__)
router = APIRouter()


def doctor_item(doctor: Doctor) -> DoctorItem:
    return DoctorItem(
        doctor_id=doctor.doctor_id,
        department_id=doctor.department_id,
        hospital_id=doctor.hospital_id,
        name=doctor.name,
        specialization=doctor.specialization,
        phone=doctor.phone,
        email=doctor.email,
        hospital_name=doctor.hospital.name if doctor.hospital else None,
        department_name=doctor.department.name if doctor.department else None,
        created_at=doctor.created_at,
        updated_at=doctor.updated_at,
    )


async def _load_doctor(db: AsyncSession, doctor_id: int) -> Doctor:
    result = await db.execute(
        select(Doctor)
        .options(selectinload(Doctor.department), selectinload(Doctor.hospital))
        .where(Doctor.doctor_id == doctor_id)
    )
    doctor = result.scalar_one_or_none()
    if not doctor:
        raise ResourceHTTPException(
            code=settings.NOT_FOUND_CODE,
            msg="医生不存在",
            status_code=404
        )
    return doctor


async def _ensure_department(db: AsyncSession, department_id: int) -> Department:
    department = await db.get(Department, department_id)
    if not department:
        raise ResourceHTTPException(
            code=settings.NOT_FOUND_CODE,
            msg="科室不存在",
            status_code=404
        )
    return department


@router.get("", response_model=ResponseModel[DoctorListResponse])
async def get_doctors(db: AsyncSession = Depends(get_db)):
    """获取医生列表 - 无需登录"""
    result = await db.execute(
        select(Doctor)
        .options(selectinload(Doctor.department), selectinload(Doctor.hospital))
        .order_by(Doctor.doctor_id)
    )
    doctors = result.scalars().all()
    return ResponseModel(code=0, message=DoctorListResponse(doctors=[doctor_item(d) for d in doctors]))


@router.get("/{doctor_id}", response_model=ResponseModel[Union[DoctorItem, AuthErrorResponse]])
async def get_doctor(doctor_id: int, db: AsyncSession = Depends(get_db)):
    doctor = await _load_doctor(db, doctor_id)
    return ResponseModel(code=0, message=doctor_item(doctor))


@router.post("", response_model=ResponseModel[Union[DoctorItem, AuthErrorResponse]])
async def create_doctor(
    data: DoctorCreate,
    db: AsyncSession = Depends(get_db),
    identity_db: AsyncSession = Depends(get_identity_db),
    current_user: UserSchema = Depends(require_roles("admin"))
):
    """
    创建医生 - 仅管理员可操作
    - 所属医院取自科室
    - 提供 password 时同时创建 doctor 角色账号(此时 email 必填)
    """
    try:
        department = await _ensure_department(db, data.department_id)

        if data.password:
            if not data.email:
                raise BusinessHTTPException(
                    code=settings.MISSING_CONTACT_INFO_CODE,
                    msg="创建医生账号需要提供邮箱",
                    status_code=400
                )
            await IdentityStore(identity_db).create_account(data.email, data.password, [Role.DOCTOR.value])
            await identity_db.commit()

        db_doctor = Doctor(
            department_id=department.department_id,
            hospital_id=department.hospital_id,
            name=data.name,
            specialization=data.specialization,
            phone=data.phone,
            email=data.email.lower() if data.email else None,
        )
        db.add(db_doctor)
        try:
            await db.commit()
        except Exception:
            if data.password:
                logger.error(f"医生记录创建失败, 但账号 {data.email} 已创建")
            raise

        doctor = await _load_doctor(db, db_doctor.doctor_id)
        logger.info(f"创建医生成功: {doctor.name} (科室 {department.department_id})")
        return ResponseModel(code=0, message=doctor_item(doctor))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        logger.error(f"创建医生时发生异常: {str(e)}")
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="内部服务异常",
            status_code=500
        )


@router.put("/{doctor_id}", response_model=ResponseModel[Union[DoctorItem, AuthErrorResponse]])
async def update_doctor(
    doctor_id: int,
    data: DoctorUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(require_roles("admin"))
):
    """更新医生信息 - 仅管理员可操作; 调换科室时所属医院随之变化"""
    try:
        db_doctor = await _load_doctor(db, doctor_id)

        if data.department_id is not None and data.department_id != db_doctor.department_id:
            department = await _ensure_department(db, data.department_id)
            db_doctor.department_id = department.department_id
            db_doctor.hospital_id = department.hospital_id
        if data.name is not None:
            db_doctor.name = data.name
        if data.specialization is not None:
            db_doctor.specialization = data.specialization
        if data.phone is not None:
            db_doctor.phone = data.phone

        await commit_guarded(db, Doctor, Doctor.doctor_id, doctor_id, "医生")
        db.expunge(db_doctor)
        doctor = await _load_doctor(db, doctor_id)
        return ResponseModel(code=0, message=doctor_item(doctor))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        logger.error(f"更新医生时发生异常: {str(e)}")
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="内部服务异常",
            status_code=500
        )


@router.delete("/{doctor_id}", response_model=ResponseModel[Union[DeleteResponse, AuthErrorResponse]])
async def delete_doctor(
    doctor_id: int,
    db: AsyncSession = Depends(get_db),
    identity_db: AsyncSession = Depends(get_identity_db),
    current_user: UserSchema = Depends(require_roles("admin"))
):
    """删除医生 - 仅管理员可操作; 有邮箱时同时撤销并删除其账号"""
    try:
        detail = await CascadeService(db, identity_db).delete_doctor(doctor_id)
        return ResponseModel(code=0, message=DeleteResponse(detail=detail))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        logger.error(f"删除医生时发生异常: {str(e)}")
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="内部服务异常",
            status_code=500
        )
