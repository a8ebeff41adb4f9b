# tests/conftest.py
import os
import tempfile
from datetime import date, time
from unittest.mock import AsyncMock, MagicMock

import pytest

# 两个库使用独立的 SQLite 文件, 必须在导入应用之前设置
_TMP_DIR = tempfile.mkdtemp(prefix="multihospital-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'entity.db')}"
os.environ["IDENTITY_DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_TMP_DIR, 'identity.db')}"
os.environ["LOG_DIR"] = os.path.join(_TMP_DIR, "logs")
os.environ.setdefault("IMAGE_REF_MODE", "inline")

import httpx  # noqa: E402

from multihospital.api.auth import get_current_user, get_optional_user  # noqa: E402
from multihospital.core.security import get_hash_pwd  # noqa: E402
from multihospital.db.base import (  # noqa: E402
    AsyncSessionLocal,
    Base,
    IdentityBase,
    IdentitySessionLocal,
    engine,
    identity_engine,
)
from multihospital.main import app  # noqa: E402
from multihospital.models import (  # noqa: E402
    Administrator,
    Appointment,
    AppointmentStatus,
    Department,
    Doctor,
    Hospital,
    Patient,
    User,
    UserRole,
)
from multihospital.schemas.user import user as UserSchema  # noqa: E402


@pytest.fixture(autouse=True)
async def databases():
    """每个测试前重建两个库的表结构"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    async with identity_engine.begin() as conn:
        await conn.run_sync(IdentityBase.metadata.drop_all)
        await conn.run_sync(IdentityBase.metadata.create_all)
    yield


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    """Redis token 会话替换为内存字典"""
    store = {}

    async def _get(key):
        return store.get(key)

    async def _setex(key, ttl, value):
        store[key] = str(value)

    async def _delete(*keys):
        removed = 0
        for key in keys:
            if store.pop(key, None) is not None:
                removed += 1
        return removed

    redis = MagicMock()
    redis.get = AsyncMock(side_effect=_get)
    redis.setex = AsyncMock(side_effect=_setex)
    redis.delete = AsyncMock(side_effect=_delete)
    redis.ping = AsyncMock(return_value=True)
    redis.store = store

    monkeypatch.setattr("multihospital.api.auth.redis", redis)
    monkeypatch.setattr("multihospital.services.identity_service.redis", redis)
    monkeypatch.setattr("multihospital.core.security.redis", redis)
    return redis


@pytest.fixture
async def db():
    async with AsyncSessionLocal() as session:
        yield session


@pytest.fixture
async def identity_db():
    async with IdentitySessionLocal() as session:
        yield session


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    """把当前用户替换为持有指定角色的用户"""
    def _login_as(*roles, user_id=1, email="tester@example.com"):
        current = UserSchema(user_id=user_id, email=email, roles=list(roles))
        app.dependency_overrides[get_current_user] = lambda: current
        app.dependency_overrides[get_optional_user] = lambda: current
        return current
    yield _login_as
    app.dependency_overrides.clear()


class Seeder:
    """直接写库构造测试数据, 每个方法独立提交并返回主键"""

    async def hospital(self, name="Central Hospital", image=None) -> int:
        async with AsyncSessionLocal() as session:
            hospital = Hospital(name=name, address="1 Main St", image=image)
            session.add(hospital)
            await session.commit()
            return hospital.hospital_id

    async def department(self, hospital_id: int, name="Cardiology") -> int:
        async with AsyncSessionLocal() as session:
            department = Department(hospital_id=hospital_id, name=name)
            session.add(department)
            await session.commit()
            return department.department_id

    async def doctor(self, department_id: int, name="Dr. House", email=None) -> int:
        async with AsyncSessionLocal() as session:
            department = await session.get(Department, department_id)
            doctor = Doctor(
                department_id=department_id,
                hospital_id=department.hospital_id,
                name=name,
                email=email,
            )
            session.add(doctor)
            await session.commit()
            return doctor.doctor_id

    async def admin(self, name="Root", email="root@example.com") -> int:
        async with AsyncSessionLocal() as session:
            admin = Administrator(name=name, email=email)
            session.add(admin)
            await session.commit()
            return admin.admin_id

    async def patient(self, email="patient@example.com") -> int:
        async with AsyncSessionLocal() as session:
            patient = Patient(first_name="Ada", last_name="Lovelace", email=email)
            session.add(patient)
            await session.commit()
            return patient.patient_id

    async def appointment(self, patient_id: int, doctor_id: int, status=AppointmentStatus.SCHEDULED) -> int:
        async with AsyncSessionLocal() as session:
            appointment = Appointment(
                patient_id=patient_id,
                doctor_id=doctor_id,
                appointment_date=date(2026, 1, 5),
                appointment_time=time(9, 30),
                reason="checkup",
                status=status,
            )
            session.add(appointment)
            await session.commit()
            return appointment.appointment_id

    async def account(self, email: str, roles=(), password="secret123") -> int:
        async with IdentitySessionLocal() as session:
            account = User(email=email, hashed_password=get_hash_pwd(password), is_active=True)
            session.add(account)
            await session.flush()
            for role in roles:
                session.add(UserRole(user_id=account.user_id, role=role))
            await session.commit()
            return account.user_id


@pytest.fixture
def seed():
    return Seeder()
