# tests/test_appointment_service.py
from datetime import date, time

import pytest
from sqlalchemy import func, select

from multihospital.core.config import settings
from multihospital.core.exception_handler import BusinessHTTPException, ResourceHTTPException
from multihospital.db.base import AsyncSessionLocal
from multihospital.models import Appointment, AppointmentStatus, TreatmentRecord
from multihospital.models.appointment import parse_appointment_status
from multihospital.schemas.appointment import AppointmentCreate, TreatmentRecordCreate
from multihospital.services.appointment_service import AppointmentService


@pytest.fixture
async def booked(seed):
    hospital_id = await seed.hospital()
    department_id = await seed.department(hospital_id)
    doctor_id = await seed.doctor(department_id, email="doc@example.com")
    patient_id = await seed.patient()
    appointment_id = await seed.appointment(patient_id, doctor_id)
    return {"patient_id": patient_id, "doctor_id": doctor_id, "appointment_id": appointment_id}


async def _reload(appointment_id: int) -> Appointment:
    async with AsyncSessionLocal() as session:
        return await session.get(Appointment, appointment_id)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("Confirmed", AppointmentStatus.CONFIRMED),
        ("completed", AppointmentStatus.COMPLETED),
        ("NO_SHOW", AppointmentStatus.NO_SHOW),
        (" noshow ", AppointmentStatus.NO_SHOW),
        ("Teleported", None),
        ("", None),
        (None, None),
        (3, None),
    ],
)
def test_parse_appointment_status(value, expected):
    assert parse_appointment_status(value) is expected


async def test_invalid_status_leaves_appointment_untouched(db, booked):
    before = await _reload(booked["appointment_id"])

    with pytest.raises(BusinessHTTPException) as exc_info:
        await AppointmentService(db).update_status(booked["appointment_id"], "Teleported")

    assert exc_info.value.detail["code"] == settings.INVALID_STATUS_CODE
    after = await _reload(booked["appointment_id"])
    assert after.status is AppointmentStatus.SCHEDULED
    assert after.updated_at == before.updated_at
    assert after.version_id == before.version_id


async def test_valid_status_updates_timestamp(db, booked):
    before = await _reload(booked["appointment_id"])

    appointment = await AppointmentService(db).update_status(booked["appointment_id"], "confirmed")

    assert appointment.status is AppointmentStatus.CONFIRMED
    after = await _reload(booked["appointment_id"])
    assert after.status is AppointmentStatus.CONFIRMED
    assert after.updated_at >= before.updated_at
    assert after.version_id == before.version_id + 1


async def test_same_status_still_refreshes_timestamp(db, booked):
    before = await _reload(booked["appointment_id"])

    await AppointmentService(db).update_status(booked["appointment_id"], "Scheduled")

    after = await _reload(booked["appointment_id"])
    assert after.version_id == before.version_id + 1


async def test_status_update_on_missing_appointment(db):
    with pytest.raises(ResourceHTTPException):
        await AppointmentService(db).update_status(12345, "Confirmed")


async def test_create_defaults_to_scheduled(db, booked):
    data = AppointmentCreate(
        patient_id=booked["patient_id"],
        doctor_id=booked["doctor_id"],
        appointment_date=date(2026, 2, 1),
        appointment_time=time(14, 0),
    )

    appointment = await AppointmentService(db).create(data)

    assert appointment.status is AppointmentStatus.SCHEDULED
    assert appointment.created_at is not None


async def test_create_rejects_unknown_doctor(db, booked):
    data = AppointmentCreate(
        patient_id=booked["patient_id"],
        doctor_id=999,
        appointment_date=date(2026, 2, 1),
        appointment_time=time(14, 0),
    )

    with pytest.raises(ResourceHTTPException) as exc_info:
        await AppointmentService(db).create(data)

    assert exc_info.value.detail["msg"] == "医生不存在"


async def test_delete_removes_treatment_record(db, booked):
    service = AppointmentService(db)
    record = await service.attach_treatment_record(
        booked["appointment_id"], TreatmentRecordCreate(diagnosis="Flu", treatment="Rest")
    )
    assert (await _reload(booked["appointment_id"])).treatment_record_id == record.treatment_record_id

    await service.delete(booked["appointment_id"])

    async with AsyncSessionLocal() as session:
        assert await session.scalar(select(func.count()).select_from(Appointment)) == 0
        assert await session.scalar(select(func.count()).select_from(TreatmentRecord)) == 0


async def test_second_treatment_record_is_rejected(db, booked):
    service = AppointmentService(db)
    await service.attach_treatment_record(booked["appointment_id"], TreatmentRecordCreate(diagnosis="Flu"))

    with pytest.raises(BusinessHTTPException):
        await service.attach_treatment_record(booked["appointment_id"], TreatmentRecordCreate(diagnosis="Cold"))
