"""
预约服务

状态更新只校验取值是否属于 AppointmentStatus, 不限制状态之间的流转顺序,
任意状态都可以直接改为其他任意状态。
"""
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from multihospital.core.config import settings
from multihospital.core.datetime_utils import get_now_naive
from multihospital.core.exception_handler import BusinessHTTPException, ResourceHTTPException
from multihospital.models.appointment import Appointment, AppointmentStatus, parse_appointment_status
from multihospital.models.doctor import Doctor
from multihospital.models.patient import Patient
from multihospital.models.treatment_record import TreatmentRecord
from multihospital.schemas.appointment import AppointmentCreate, TreatmentRecordCreate
from multihospital.services.update_guard import commit_guarded

logger = logging.getLogger(__name__)


def _invalid_status(value) -> BusinessHTTPException:
    allowed = ", ".join(member.value for member in AppointmentStatus)
    return BusinessHTTPException(
        code=settings.INVALID_STATUS_CODE,
        msg=f"预约状态非法: {value}，可选值: {allowed}",
        status_code=400
    )


class AppointmentService:

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, appointment_id: int) -> Appointment:
        appointment = await self.db.get(Appointment, appointment_id)
        if not appointment:
            raise ResourceHTTPException(code=settings.NOT_FOUND_CODE, msg="预约不存在", status_code=404)
        return appointment

    async def _check_references(self, patient_id: int, doctor_id: int) -> None:
        if not await self.db.get(Patient, patient_id):
            raise ResourceHTTPException(code=settings.NOT_FOUND_CODE, msg="患者不存在", status_code=404)
        if not await self.db.get(Doctor, doctor_id):
            raise ResourceHTTPException(code=settings.NOT_FOUND_CODE, msg="医生不存在", status_code=404)

    def _resolve_status(self, value: Optional[str], default: AppointmentStatus) -> AppointmentStatus:
        if value is None:
            return default
        status = parse_appointment_status(value)
        if status is None:
            raise _invalid_status(value)
        return status

    async def create(self, data: AppointmentCreate) -> Appointment:
        status = self._resolve_status(data.status, AppointmentStatus.SCHEDULED)
        await self._check_references(data.patient_id, data.doctor_id)

        appointment = Appointment(
            patient_id=data.patient_id,
            doctor_id=data.doctor_id,
            appointment_date=data.appointment_date,
            appointment_time=data.appointment_time,
            reason=data.reason,
            status=status,
        )
        self.db.add(appointment)
        await self.db.commit()
        await self.db.refresh(appointment)
        logger.info(f"创建预约成功: {appointment.appointment_id}")
        return appointment

    async def update(self, appointment_id: int, data: AppointmentCreate) -> Appointment:
        appointment = await self.get(appointment_id)
        status = self._resolve_status(data.status, appointment.status)
        await self._check_references(data.patient_id, data.doctor_id)

        # 诊疗记录ID不随预约更新而改变
        appointment.patient_id = data.patient_id
        appointment.doctor_id = data.doctor_id
        appointment.appointment_date = data.appointment_date
        appointment.appointment_time = data.appointment_time
        appointment.reason = data.reason
        appointment.status = status

        await commit_guarded(self.db, Appointment, Appointment.appointment_id, appointment_id, "预约")
        await self.db.refresh(appointment)
        return appointment

    async def update_status(self, appointment_id: int, new_status) -> Appointment:
        """非法状态直接拒绝, 预约的状态和 updated_at 都保持不变"""
        status = parse_appointment_status(new_status)
        if status is None:
            raise _invalid_status(new_status)

        appointment = await self.get(appointment_id)
        appointment.status = status
        # 状态未变化时也要刷新 updated_at, 显式赋值保证产生 UPDATE
        appointment.updated_at = get_now_naive()

        await commit_guarded(self.db, Appointment, Appointment.appointment_id, appointment_id, "预约")
        await self.db.refresh(appointment)
        logger.info(f"预约 {appointment_id} 状态更新为 {status.value}")
        return appointment

    async def delete(self, appointment_id: int) -> None:
        """删除预约, 同时删除至多一条关联的诊疗记录(同一事务)"""
        appointment = await self.get(appointment_id)

        result = await self.db.execute(
            select(TreatmentRecord).where(TreatmentRecord.appointment_id == appointment_id)
        )
        record = result.scalars().first()
        if record:
            await self.db.delete(record)
            await self.db.flush()

        await self.db.delete(appointment)
        await commit_guarded(self.db, Appointment, Appointment.appointment_id, appointment_id, "预约")
        logger.info(f"删除预约成功: {appointment_id}")

    async def attach_treatment_record(self, appointment_id: int, data: TreatmentRecordCreate) -> TreatmentRecord:
        appointment = await self.get(appointment_id)

        result = await self.db.execute(
            select(TreatmentRecord).where(TreatmentRecord.appointment_id == appointment_id)
        )
        if result.scalars().first():
            raise BusinessHTTPException(
                code=settings.REQ_ERROR_CODE,
                msg="该预约已有诊疗记录",
                status_code=400
            )

        record = TreatmentRecord(
            appointment_id=appointment_id,
            diagnosis=data.diagnosis,
            treatment=data.treatment,
            prescription=data.prescription,
            notes=data.notes,
        )
        self.db.add(record)
        await self.db.flush()

        appointment.treatment_record_id = record.treatment_record_id
        await commit_guarded(self.db, Appointment, Appointment.appointment_id, appointment_id, "预约")
        await self.db.refresh(record)
        return record

    async def get_treatment_record(self, appointment_id: int) -> TreatmentRecord:
        await self.get(appointment_id)
        result = await self.db.execute(
            select(TreatmentRecord).where(TreatmentRecord.appointment_id == appointment_id)
        )
        record = result.scalars().first()
        if not record:
            raise ResourceHTTPException(code=settings.NOT_FOUND_CODE, msg="诊疗记录不存在", status_code=404)
        return record
