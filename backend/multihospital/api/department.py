from fastapi import APIRouter, Depends, UploadFile, File, Form
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.orm import selectinload
from typing import Optional, Union
import logging

from multihospital.api.auth import require_roles
from multihospital.api.doctor import doctor_item
from multihospital.core.config import settings
from multihospital.core.exception_handler import BusinessHTTPException, ResourceHTTPException, KNOWN_HTTP_EXCEPTIONS
from multihospital.db.base import get_db, get_identity_db, Hospital, Department, Doctor
from multihospital.schemas.department import DepartmentItem, DepartmentListResponse, DepartmentUpdate
from multihospital.schemas.doctor import DoctorListResponse
from multihospital.schemas.response import ResponseModel, AuthErrorResponse, DeleteResponse
from multihospital.schemas.user import user as UserSchema
from multihospital.services.cascade_service import CascadeService, ParentKind
from multihospital.services.image_service import image_item, read_image_upload, guess_media_type
from multihospital.services.update_guard import commit_guarded

logger = logging.getLogger(__name__)
router = APIRouter()


def _department_item(department: Department) -> DepartmentItem:
    return DepartmentItem(
        department_id=department.department_id,
        hospital_id=department.hospital_id,
        hospital_name=department.hospital.name if department.hospital else None,
        name=department.name,
        description=department.description,
        image=image_item(department.image, f"/departments/{department.department_id}/image"),
        created_at=department.created_at,
        updated_at=department.updated_at,
    )


async def _load_department(db: AsyncSession, department_id: int) -> Department:
    result = await db.execute(
        select(Department)
        .options(selectinload(Department.hospital))
        .where(Department.department_id == department_id)
    )
    department = result.scalar_one_or_none()
    if not department:
        raise ResourceHTTPException(
            code=settings.NOT_FOUND_CODE,
            msg="科室不存在",
            status_code=404
        )
    return department


async def _ensure_hospital(db: AsyncSession, hospital_id: int) -> Hospital:
    hospital = await db.get(Hospital, hospital_id)
    if not hospital:
        raise ResourceHTTPException(
            code=settings.NOT_FOUND_CODE,
            msg="医院不存在",
            status_code=404
        )
    return hospital


@router.get("", response_model=ResponseModel[DepartmentListResponse])
async def get_departments(db: AsyncSession = Depends(get_db)):
    """获取全部科室 - 无需登录"""
    result = await db.execute(
        select(Department).options(selectinload(Department.hospital)).order_by(Department.department_id)
    )
    departments = result.scalars().all()
    return ResponseModel(code=0, message=DepartmentListResponse(departments=[_department_item(d) for d in departments]))


@router.get("/hospital/{hospital_id}", response_model=ResponseModel[Union[DepartmentListResponse, AuthErrorResponse]])
async def get_departments_by_hospital(hospital_id: int, db: AsyncSession = Depends(get_db)):
    """获取某医院下的科室"""
    await _ensure_hospital(db, hospital_id)
    result = await db.execute(
        select(Department)
        .options(selectinload(Department.hospital))
        .where(Department.hospital_id == hospital_id)
        .order_by(Department.department_id)
    )
    departments = result.scalars().all()
    return ResponseModel(code=0, message=DepartmentListResponse(departments=[_department_item(d) for d in departments]))


@router.get("/{department_id}", response_model=ResponseModel[Union[DepartmentItem, AuthErrorResponse]])
async def get_department(department_id: int, db: AsyncSession = Depends(get_db)):
    department = await _load_department(db, department_id)
    return ResponseModel(code=0, message=_department_item(department))


@router.get("/{department_id}/doctors", response_model=ResponseModel[Union[DoctorListResponse, AuthErrorResponse]])
async def get_department_doctors(department_id: int, db: AsyncSession = Depends(get_db)):
    """获取科室下的医生"""
    await _load_department(db, department_id)
    result = await db.execute(
        select(Doctor)
        .options(selectinload(Doctor.department), selectinload(Doctor.hospital))
        .where(Doctor.department_id == department_id)
        .order_by(Doctor.doctor_id)
    )
    doctors = result.scalars().all()
    return ResponseModel(code=0, message=DoctorListResponse(doctors=[doctor_item(d) for d in doctors]))


@router.get("/{department_id}/image")
async def get_department_image(department_id: int, db: AsyncSession = Depends(get_db)):
    department = await db.get(Department, department_id)
    if not department or not department.image:
        raise ResourceHTTPException(
            code=settings.NOT_FOUND_CODE,
            msg="科室不存在或暂无图片",
            status_code=404
        )
    return Response(content=department.image, media_type=guess_media_type(department.image))


@router.post("", response_model=ResponseModel[Union[DepartmentItem, AuthErrorResponse]])
async def create_department(
    hospital_id: int = Form(...),
    name: str = Form(..., min_length=1, max_length=100),
    description: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(require_roles("admin"))
):
    """创建科室 - 仅管理员可操作, 所属医院必须存在"""
    try:
        await _ensure_hospital(db, hospital_id)
        image_bytes = await read_image_upload(image)

        db_department = Department(
            hospital_id=hospital_id,
            name=name,
            description=description,
            image=image_bytes,
        )
        db.add(db_department)
        await db.commit()

        department = await _load_department(db, db_department.department_id)
        logger.info(f"创建科室成功: {department.name} (医院 {hospital_id})")
        return ResponseModel(code=0, message=_department_item(department))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        logger.error(f"创建科室时发生异常: {str(e)}")
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="内部服务异常",
            status_code=500
        )


@router.put("/{department_id}", response_model=ResponseModel[Union[DepartmentItem, AuthErrorResponse]])
async def update_department(
    department_id: int,
    data: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(require_roles("admin"))
):
    """更新科室 - 仅管理员可操作; 转移到其他医院时检查目标医院存在"""
    try:
        db_department = await _load_department(db, department_id)

        if data.hospital_id is not None and data.hospital_id != db_department.hospital_id:
            await _ensure_hospital(db, data.hospital_id)
            db_department.hospital_id = data.hospital_id
            # 医生的 hospital_id 必须与所在科室保持一致, 否则删除原医院时会被级联删除
            await db.execute(
                update(Doctor)
                .where(Doctor.department_id == department_id)
                .values(hospital_id=data.hospital_id, version_id=Doctor.version_id + 1)
                .execution_options(synchronize_session="fetch")
            )
        if data.name is not None:
            db_department.name = data.name
        if data.description is not None:
            db_department.description = data.description

        await commit_guarded(db, Department, Department.department_id, department_id, "科室")
        # 重新加载以刷新 hospital 关系
        db.expunge(db_department)
        department = await _load_department(db, department_id)
        return ResponseModel(code=0, message=_department_item(department))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        logger.error(f"更新科室时发生异常: {str(e)}")
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="内部服务异常",
            status_code=500
        )


@router.delete("/{department_id}", response_model=ResponseModel[Union[DeleteResponse, AuthErrorResponse]])
async def delete_department(
    department_id: int,
    db: AsyncSession = Depends(get_db),
    identity_db: AsyncSession = Depends(get_identity_db),
    current_user: UserSchema = Depends(require_roles("admin"))
):
    """删除科室 - 仅管理员可操作; 先清理下属医生的账号, 再删除科室及医生"""
    try:
        detail = await CascadeService(db, identity_db).delete_with_cascade(ParentKind.DEPARTMENT, department_id)
        return ResponseModel(code=0, message=DeleteResponse(detail=detail))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        logger.error(f"删除科室时发生异常: {str(e)}")
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="内部服务异常",
            status_code=500
        )
