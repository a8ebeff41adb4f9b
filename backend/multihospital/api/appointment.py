from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from typing import Union
import logging

from multihospital.api.auth import get_current_user, require_roles
from multihospital.core.config import settings
from multihospital.core.exception_handler import BusinessHTTPException, KNOWN_HTTP_EXCEPTIONS
from multihospital.db.base import get_db, Appointment
from multihospital.schemas.appointment import (
    AppointmentCreate,
    AppointmentStatusUpdate,
    AppointmentItem,
    AppointmentListResponse,
    TreatmentRecordCreate,
    TreatmentRecordItem,
)
from multihospital.schemas.response import ResponseModel, AuthErrorResponse, DeleteResponse
from multihospital.schemas.user import user as UserSchema
from multihospital.services.appointment_service import AppointmentService

logger = logging.getLogger(__name__)
router = APIRouter()


def _appointment_item(appointment: Appointment) -> AppointmentItem:
    return AppointmentItem(
        appointment_id=appointment.appointment_id,
        patient_id=appointment.patient_id,
        patient_name=appointment.patient.full_name if appointment.patient else None,
        doctor_id=appointment.doctor_id,
        doctor_name=appointment.doctor.name if appointment.doctor else None,
        appointment_date=appointment.appointment_date,
        appointment_time=appointment.appointment_time,
        reason=appointment.reason,
        status=appointment.status.value,
        treatment_record_id=appointment.treatment_record_id,
        created_at=appointment.created_at,
        updated_at=appointment.updated_at,
    )


def _record_item(record) -> TreatmentRecordItem:
    return TreatmentRecordItem(
        treatment_record_id=record.treatment_record_id,
        appointment_id=record.appointment_id,
        diagnosis=record.diagnosis,
        treatment=record.treatment,
        prescription=record.prescription,
        notes=record.notes,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _with_relations(stmt):
    return stmt.options(selectinload(Appointment.patient), selectinload(Appointment.doctor))


async def _list(db: AsyncSession, *criteria) -> AppointmentListResponse:
    stmt = _with_relations(select(Appointment)).where(*criteria).order_by(
        Appointment.appointment_date, Appointment.appointment_time, Appointment.appointment_id
    )
    result = await db.execute(stmt)
    return AppointmentListResponse(appointments=[_appointment_item(a) for a in result.scalars().all()])


async def _load(db: AsyncSession, appointment_id: int) -> Appointment:
    await AppointmentService(db).get(appointment_id)
    result = await db.execute(_with_relations(select(Appointment)).where(Appointment.appointment_id == appointment_id))
    return result.scalar_one()


def _internal_error(action: str, e: Exception) -> BusinessHTTPException:
    logger.error(f"{action}时发生异常: {str(e)}")
    return BusinessHTTPException(
        code=settings.REQ_ERROR_CODE,
        msg="内部服务异常",
        status_code=500
    )


@router.get("", response_model=ResponseModel[Union[AppointmentListResponse, AuthErrorResponse]])
async def get_appointments(
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(get_current_user)
):
    return ResponseModel(code=0, message=await _list(db))


@router.get("/doctor/{doctor_id}", response_model=ResponseModel[Union[AppointmentListResponse, AuthErrorResponse]])
async def get_appointments_by_doctor(
    doctor_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(get_current_user)
):
    return ResponseModel(code=0, message=await _list(db, Appointment.doctor_id == doctor_id))


@router.get("/patient/{patient_id}", response_model=ResponseModel[Union[AppointmentListResponse, AuthErrorResponse]])
async def get_appointments_by_patient(
    patient_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(get_current_user)
):
    return ResponseModel(code=0, message=await _list(db, Appointment.patient_id == patient_id))


@router.get("/{appointment_id}", response_model=ResponseModel[Union[AppointmentItem, AuthErrorResponse]])
async def get_appointment(
    appointment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(get_current_user)
):
    return ResponseModel(code=0, message=_appointment_item(await _load(db, appointment_id)))


@router.post("", response_model=ResponseModel[Union[AppointmentItem, AuthErrorResponse]])
async def create_appointment(
    data: AppointmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(require_roles("patient"))
):
    """患者创建预约, 状态缺省为 Scheduled"""
    try:
        appointment = await AppointmentService(db).create(data)
        return ResponseModel(code=0, message=_appointment_item(await _load(db, appointment.appointment_id)))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        raise _internal_error("创建预约", e)


@router.put("/{appointment_id}/status", response_model=ResponseModel[Union[AppointmentItem, AuthErrorResponse]])
async def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(get_current_user)
):
    """更新预约状态; 取值不在 AppointmentStatus 中时拒绝, 预约保持不变"""
    try:
        appointment = await AppointmentService(db).update_status(appointment_id, data.new_status)
        return ResponseModel(code=0, message=_appointment_item(await _load(db, appointment.appointment_id)))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        raise _internal_error("更新预约状态", e)


@router.put("/{appointment_id}", response_model=ResponseModel[Union[AppointmentItem, AuthErrorResponse]])
async def update_appointment(
    appointment_id: int,
    data: AppointmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(require_roles("patient"))
):
    try:
        appointment = await AppointmentService(db).update(appointment_id, data)
        return ResponseModel(code=0, message=_appointment_item(await _load(db, appointment.appointment_id)))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        raise _internal_error("更新预约", e)


@router.delete("/{appointment_id}", response_model=ResponseModel[Union[DeleteResponse, AuthErrorResponse]])
async def delete_appointment(
    appointment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(require_roles("patient"))
):
    """删除预约及其诊疗记录"""
    try:
        await AppointmentService(db).delete(appointment_id)
        return ResponseModel(code=0, message=DeleteResponse(detail="成功删除预约"))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        raise _internal_error("删除预约", e)


@router.post("/{appointment_id}/treatment-record", response_model=ResponseModel[Union[TreatmentRecordItem, AuthErrorResponse]])
async def create_treatment_record(
    appointment_id: int,
    data: TreatmentRecordCreate,
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(require_roles("doctor"))
):
    """医生为预约提交诊疗记录, 每个预约至多一条"""
    try:
        record = await AppointmentService(db).attach_treatment_record(appointment_id, data)
        return ResponseModel(code=0, message=_record_item(record))
    except KNOWN_HTTP_EXCEPTIONS:
        raise
    except Exception as e:
        raise _internal_error("提交诊疗记录", e)


@router.get("/{appointment_id}/treatment-record", response_model=ResponseModel[Union[TreatmentRecordItem, AuthErrorResponse]])
async def get_treatment_record(
    appointment_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: UserSchema = Depends(get_current_user)
):
    record = await AppointmentService(db).get_treatment_record(appointment_id)
    return ResponseModel(code=0, message=_record_item(record))
