from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Union
import logging

from multihospital.api.auth import get_current_user, require_roles
from multihospital.core.config import settings
from multihospital.core.exception_handler import BusinessHTTPException, ResourceHTTPException, KNOWN_HTTP_EXCEPTIONS
from multihospital.db.base import get_db, get_identity_db, Patient
from multihospital.models.patient import Gender
from multihospital.models.user import Role
from multihospital.schemas.patient import PatientRegister, PatientItem, PatientListResponse
from multihospital.schemas.response import ResponseModel, AuthErrorResponse
from multihospital.schemas.user import user as UserSchema
from multihospital.services.identity_service import IdentityStore

logger = logging.getLogger(__name__)
router = APIRouter()


def _patient_item(patient: Patient) -> PatientItem:
    return PatientItem(
        patient_id=patient.patient_id,
        first_name=patient.first_name,
        last_name=patient.last_name,
        email=patient.email,
        phone=patient.phone,
        date_of_birth=patient.date_of_birth,
        gender=patient.gender.value,
        address=patient.address,
        created_at=patient.created_at,
        updated_at=patient.updated_at,
    )


def _parse_gender(value) -> Gender:
    if not value:
        return Gender.UNKNOWN
    for member in Gender:
        if str(value).strip().lower() == member.value:
            return member
    raise BusinessHTTPException(
        code=settings.REQ_ERROR_CODE,
        msg=f"性别取值非法: {value}",
        status_code=400
    )


@router.post("/register", response_model=ResponseModel[Union[PatientItem, AuthErrorResponse]])
async def register_patient(
    data: PatientRegister,
    db: AsyncSession = Depends(get_db),
    identity_db: AsyncSession = Depends(get_identity_db)
):
    """患者注册 - 无需登录, 同时创建 patient 角色账号"""
    try:
        gender = _parse_gender(data.gender)

        account = await IdentityStore(identity_db).create_account(data.email, data.password, [Role.PATIENT.value])
        await identity_db.commit()

        db_patient = Patient(
            first_name=data.first_name,
            last_name=data.last_name,
            email=account.email,
            phone=data.phone,
            date_of_birth=data.date_of_birth,
            gender=gender,
            address=data.address,
        )
        db.add(db_patient)
        try:
            await db.commit()
        except Exception:
            logger.error(f"患者记录创建失败, 但账号 {account.email} 已创建")
            raise
        await db.refresh(db_patient)

        logger.info(f"患者注册成功: {db_patient.full_name} ({db_patient.email})")
        return ResponseModel(code=0, message=_patient_item(db_patient))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        logger.error(f"患者注册时发生异常: {str(e)}")
        raise BusinessHTTPException(
            code=settings.REGISTER_FAILED_CODE,
            msg="注册失败，请稍后重试",
            status_code=500
        )


@router.get("", response_model=ResponseModel[Union[PatientListResponse, AuthErrorResponse]])
async def get_patients(
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(require_roles("admin"))
):
    """获取患者列表 - 仅管理员"""
    result = await db.execute(select(Patient).order_by(Patient.patient_id))
    patients = result.scalars().all()
    return ResponseModel(code=0, message=PatientListResponse(patients=[_patient_item(p) for p in patients]))


@router.get("/{patient_id}", response_model=ResponseModel[Union[PatientItem, AuthErrorResponse]])
async def get_patient(
    patient_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(get_current_user)
):
    patient = await db.get(Patient, patient_id)
    if not patient:
        raise ResourceHTTPException(
            code=settings.NOT_FOUND_CODE,
            msg="患者不存在",
            status_code=404
        )
    return ResponseModel(code=0, message=_patient_item(patient))
