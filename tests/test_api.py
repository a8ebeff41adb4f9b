# tests/test_api.py
from sqlalchemy import func, select

from multihospital.core.config import settings
from multihospital.db.base import AsyncSessionLocal, IdentitySessionLocal
from multihospital.models import Department, Doctor, Hospital, User, UserRole
from multihospital.services import image_service

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


async def _count(session_factory, model, *criteria) -> int:
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model).where(*criteria))


async def test_root(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json() == {"message": "Welcome to MultiHospital API"}


async def test_create_hospital_requires_token(client):
    response = await client.post("/hospitals", data={"name": "General"})

    assert response.status_code == 200
    body = response.json()
    assert body["code"] == settings.TOKEN_INVALID_CODE
    assert await _count(AsyncSessionLocal, Hospital) == 0


async def test_create_hospital_requires_admin_role(client, login_as):
    login_as("patient")

    response = await client.post("/hospitals", data={"name": "General"})

    assert response.json()["code"] == settings.INSUFFICIENT_AUTHORITY_CODE


async def test_create_and_list_hospital_with_inline_image(client, login_as):
    login_as("admin")

    response = await client.post(
        "/hospitals",
        data={"name": "General", "address": "5 Elm St"},
        files={"image": ("logo.png", PNG_BYTES, "image/png")},
    )

    body = response.json()
    assert body["code"] == 0
    assert body["message"]["name"] == "General"
    assert body["message"]["image"]["kind"] == "inline"

    listing = (await client.get("/hospitals")).json()
    assert [h["name"] for h in listing["message"]["hospitals"]] == ["General"]


async def test_hospital_image_path_mode(client, seed, monkeypatch):
    monkeypatch.setattr(image_service.settings, "IMAGE_REF_MODE", "path")
    hospital_id = await seed.hospital(image=PNG_BYTES)

    body = (await client.get(f"/hospitals/{hospital_id}")).json()
    image = body["message"]["image"]
    assert image == {"kind": "path", "data": None, "path": f"/hospitals/{hospital_id}/image"}

    raw = await client.get(image["path"])
    assert raw.status_code == 200
    assert raw.headers["content-type"] == "image/png"
    assert raw.content == PNG_BYTES


async def test_get_missing_hospital(client):
    body = (await client.get("/hospitals/404")).json()

    assert body["code"] == settings.NOT_FOUND_CODE


async def test_update_hospital_changes_only_given_fields(client, seed, login_as):
    login_as("admin")
    hospital_id = await seed.hospital(name="Old")

    body = (await client.put(f"/hospitals/{hospital_id}", data={"phone": "555-0100"})).json()

    assert body["code"] == 0
    assert body["message"]["name"] == "Old"
    assert body["message"]["phone"] == "555-0100"


async def test_delete_hospital_cascades(client, seed, login_as):
    login_as("admin")
    hospital_id = await seed.hospital()
    department_id = await seed.department(hospital_id)
    await seed.doctor(department_id, email="a@example.com")

    body = (await client.delete(f"/hospitals/{hospital_id}")).json()

    assert body["code"] == 0
    assert body["message"] == {"detail": "成功删除医院"}
    assert await _count(AsyncSessionLocal, Department) == 0
    assert await _count(AsyncSessionLocal, Doctor) == 0

    again = (await client.delete(f"/hospitals/{hospital_id}")).json()
    assert again["code"] == settings.NOT_FOUND_CODE


async def test_create_department_needs_existing_hospital(client, login_as):
    login_as("admin")

    body = (await client.post("/departments", data={"hospital_id": "77", "name": "Cardiology"})).json()

    assert body["code"] == settings.NOT_FOUND_CODE
    assert await _count(AsyncSessionLocal, Department) == 0


async def test_update_department_reassignment_checks_hospital(client, seed, login_as):
    login_as("admin")
    hospital_id = await seed.hospital()
    target_id = await seed.hospital(name="Target")
    department_id = await seed.department(hospital_id)

    missing = (await client.put(f"/departments/{department_id}", json={"hospital_id": 999})).json()
    assert missing["code"] == settings.NOT_FOUND_CODE

    moved = (await client.put(f"/departments/{department_id}", json={"hospital_id": target_id})).json()
    assert moved["code"] == 0
    assert moved["message"]["hospital_id"] == target_id
    assert moved["message"]["hospital_name"] == "Target"


async def test_delete_department_with_doctor_missing_email(client, seed, login_as):
    login_as("admin")
    hospital_id = await seed.hospital()
    department_id = await seed.department(hospital_id)
    await seed.doctor(department_id, email="a@example.com")
    lacking = await seed.doctor(department_id, email=None)

    body = (await client.delete(f"/departments/{department_id}")).json()

    assert body["code"] == settings.MISSING_CONTACT_INFO_CODE
    assert str(lacking) in body["message"]["msg"]
    assert await _count(AsyncSessionLocal, Department) == 1
    assert await _count(AsyncSessionLocal, Doctor) == 2


async def test_department_doctors_listing(client, seed):
    hospital_id = await seed.hospital()
    department_id = await seed.department(hospital_id, name="Neurology")
    await seed.doctor(department_id, name="Dr. Strange", email="s@example.com")

    body = (await client.get(f"/departments/{department_id}/doctors")).json()

    doctors = body["message"]["doctors"]
    assert [d["name"] for d in doctors] == ["Dr. Strange"]
    assert doctors[0]["department_name"] == "Neurology"


async def test_doctor_lifecycle_with_account(client, seed, login_as):
    login_as("admin")
    hospital_id = await seed.hospital()
    department_id = await seed.department(hospital_id)

    created = (await client.post("/doctors", json={
        "department_id": department_id,
        "name": "Dr. Who",
        "email": "Who@Example.com",
        "password": "tardis42",
    })).json()

    assert created["code"] == 0
    doctor = created["message"]
    assert doctor["hospital_id"] == hospital_id
    assert doctor["email"] == "who@example.com"
    async with IdentitySessionLocal() as session:
        roles = (await session.execute(select(UserRole.role).join(User).where(User.email == "who@example.com"))).scalars().all()
    assert roles == ["doctor"]

    deleted = (await client.delete(f"/doctors/{doctor['doctor_id']}")).json()
    assert deleted["code"] == 0
    assert await _count(IdentitySessionLocal, User) == 0
    assert await _count(AsyncSessionLocal, Doctor) == 0


async def test_doctor_account_requires_email(client, seed, login_as):
    login_as("admin")
    hospital_id = await seed.hospital()
    department_id = await seed.department(hospital_id)

    body = (await client.post("/doctors", json={
        "department_id": department_id,
        "name": "Dr. Nobody",
        "password": "secret123",
    })).json()

    assert body["code"] == settings.MISSING_CONTACT_INFO_CODE
    assert await _count(AsyncSessionLocal, Doctor) == 0


async def test_first_admin_can_be_created_anonymously(client):
    payload = {"name": "Root", "email": "root@example.com", "password": "rootpass"}

    first = (await client.post("/admins", json=payload)).json()
    assert first["code"] == 0
    assert first["message"]["email"] == "root@example.com"

    second = (await client.post("/admins", json={**payload, "email": "other@example.com"})).json()
    assert second["code"] == settings.INSUFFICIENT_AUTHORITY_CODE


async def test_admin_delete_through_api(client, seed, login_as):
    login_as("admin")
    admin_id = await seed.admin(email="boss@example.com")
    await seed.account("boss@example.com", roles=["admin"])

    body = (await client.delete(f"/admins/{admin_id}")).json()

    assert body["code"] == 0
    assert body["message"] == {"detail": "成功删除管理员及其关联账号"}
    assert await _count(IdentitySessionLocal, User) == 0


async def test_register_login_and_me(client):
    registered = (await client.post("/patients/register", json={
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "password": "engines1",
        "gender": "female",
    })).json()
    assert registered["code"] == 0
    assert registered["message"]["gender"] == "female"

    login = (await client.post("/auth/login", json={"email": "ada@example.com", "password": "engines1"})).json()
    assert login["code"] == 0
    assert login["message"]["roles"] == ["patient"]
    token = login["message"]["access_token"]

    me = (await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})).json()
    assert me["code"] == 0
    assert me["message"]["email"] == "ada@example.com"

    await client.post("/auth/logout", headers={"Authorization": f"Bearer {token}"})
    after = (await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})).json()
    assert after["code"] == settings.TOKEN_INVALID_CODE


async def test_login_with_wrong_password(client, seed):
    await seed.account("ada@example.com", roles=["patient"], password="engines1")

    body = (await client.post("/auth/login", json={"email": "ada@example.com", "password": "nope"})).json()

    assert body["code"] == settings.LOGIN_FAILED_CODE


async def test_register_duplicate_email(client, seed):
    await seed.account("ada@example.com", roles=["patient"])

    body = (await client.post("/patients/register", json={
        "first_name": "Ada",
        "last_name": "Lovelace",
        "email": "ada@example.com",
        "password": "engines1",
    })).json()

    assert body["code"] == settings.REGISTER_FAILED_CODE


async def test_invalid_status_through_api(client, seed, login_as):
    login_as("patient")
    hospital_id = await seed.hospital()
    department_id = await seed.department(hospital_id)
    doctor_id = await seed.doctor(department_id, email="doc@example.com")
    patient_id = await seed.patient()
    appointment_id = await seed.appointment(patient_id, doctor_id)

    bad = (await client.put(f"/appointments/{appointment_id}/status", json={"new_status": "Teleported"})).json()
    assert bad["code"] == settings.INVALID_STATUS_CODE

    good = (await client.put(f"/appointments/{appointment_id}/status", json={"new_status": "Completed"})).json()
    assert good["code"] == 0
    assert good["message"]["status"] == "Completed"
    assert good["message"]["patient_name"] == "Ada Lovelace"


async def test_appointment_flow(client, seed, login_as):
    hospital_id = await seed.hospital()
    department_id = await seed.department(hospital_id)
    doctor_id = await seed.doctor(department_id, email="doc@example.com")
    patient_id = await seed.patient()

    login_as("patient")
    created = (await client.post("/appointments", json={
        "patient_id": patient_id,
        "doctor_id": doctor_id,
        "appointment_date": "2026-03-01",
        "appointment_time": "10:15:00",
        "reason": "fever",
    })).json()
    assert created["code"] == 0
    appointment_id = created["message"]["appointment_id"]
    assert created["message"]["status"] == "Scheduled"

    login_as("doctor")
    record = (await client.post(
        f"/appointments/{appointment_id}/treatment-record", json={"diagnosis": "Influenza"}
    )).json()
    assert record["code"] == 0

    by_doctor = (await client.get(f"/appointments/doctor/{doctor_id}")).json()
    assert by_doctor["message"]["appointments"][0]["treatment_record_id"] == record["message"]["treatment_record_id"]

    login_as("patient")
    deleted = (await client.delete(f"/appointments/{appointment_id}")).json()
    assert deleted["code"] == 0

    missing = (await client.get(f"/appointments/{appointment_id}/treatment-record")).json()
    assert missing["code"] == settings.NOT_FOUND_CODE


async def test_stale_token_of_deleted_admin_stays_invalid(client, seed):
    victim_admin_id = await seed.admin(email="victim@example.com")
    await seed.admin(name="Other", email="other@example.com")
    await seed.account("victim@example.com", roles=["admin"], password="rootpass")
    await seed.account("other@example.com", roles=["admin"], password="rootpass")

    credentials = {"email": "victim@example.com", "password": "rootpass"}
    first_token = (await client.post("/auth/login", json=credentials)).json()["message"]["access_token"]
    second_token = (await client.post("/auth/login", json=credentials)).json()["message"]["access_token"]

    # 重新登录后旧 token 立即失效
    stale = (await client.get("/auth/me", headers={"Authorization": f"Bearer {first_token}"})).json()
    assert stale["code"] == settings.TOKEN_INVALID_CODE

    deleted = (await client.delete(
        f"/admins/{victim_admin_id}", headers={"Authorization": f"Bearer {second_token}"}
    )).json()
    assert deleted["code"] == 0

    # 新账号不会拿到被删除账号的 user_id
    await seed.account("newcomer@example.com", roles=["patient"])

    for token in (first_token, second_token):
        me = (await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})).json()
        assert me["code"] == settings.TOKEN_INVALID_CODE


async def test_department_move_keeps_doctors_when_old_hospital_deleted(client, seed, login_as):
    login_as("admin")
    old_hospital = await seed.hospital(name="Old")
    new_hospital = await seed.hospital(name="New")
    department_id = await seed.department(old_hospital)
    doctor_id = await seed.doctor(department_id, email="stay@example.com")
    await seed.account("stay@example.com", roles=["doctor"])

    moved = (await client.put(f"/departments/{department_id}", json={"hospital_id": new_hospital})).json()
    assert moved["code"] == 0

    doctor = (await client.get(f"/doctors/{doctor_id}")).json()
    assert doctor["message"]["hospital_id"] == new_hospital

    deleted = (await client.delete(f"/hospitals/{old_hospital}")).json()
    assert deleted["code"] == 0

    doctors = (await client.get(f"/departments/{department_id}/doctors")).json()
    assert [d["doctor_id"] for d in doctors["message"]["doctors"]] == [doctor_id]
    assert doctors["message"]["doctors"][0]["hospital_name"] == "New"
