"""
级联删除一致性服务

删除父实体(医院/科室/管理员)时, 保证不会在账号库中留下仍持有角色、
却已对应不到实体记录的账号, 也不会留下孤儿子记录。

执行顺序固定为:
1. 加载父实体及依赖记录, 全部校验通过后才开始任何变更
2. 在一个账号库事务中撤销角色并删除账号, 任一失败整体回滚并中止
3. 提交账号库事务
4. 在一个实体库事务中删除父实体, 子记录由数据库 ON DELETE CASCADE 删除

两个库之间没有分布式事务: 第 3 步之后、第 4 步提交之前失败时,
账号已删除而实体行仍在, 此时记录 error 日志(含受影响邮箱)供人工处理。
"""
import enum
import logging
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from multihospital.core.config import settings
from multihospital.core.exception_handler import (
    BusinessHTTPException,
    IdentityHTTPException,
    ResourceHTTPException,
)
from multihospital.models.administrator import Administrator
from multihospital.models.department import Department
from multihospital.models.doctor import Doctor
from multihospital.models.hospital import Hospital
from multihospital.services.identity_service import AccountRef, IdentityStore
from multihospital.services.update_guard import commit_guarded

logger = logging.getLogger(__name__)


class ParentKind(str, enum.Enum):
    HOSPITAL = "hospital"
    DEPARTMENT = "department"
    ADMIN = "admin"


class CascadeService:

    def __init__(self, db: AsyncSession, identity_db: AsyncSession):
        self.db = db
        self.identity_db = identity_db
        self.identity = IdentityStore(identity_db)

    async def delete_with_cascade(self, kind: ParentKind, parent_id: int) -> str:
        """删除父实体并清理依赖账号, 成功时返回确认信息"""
        if kind is ParentKind.ADMIN:
            return await self._delete_admin(parent_id)
        if kind is ParentKind.DEPARTMENT:
            return await self._delete_department(parent_id)
        if kind is ParentKind.HOSPITAL:
            return await self._delete_hospital(parent_id)
        raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg=f"不支持的删除类型: {kind}")

    async def _delete_admin(self, admin_id: int) -> str:
        admin = await self.db.get(Administrator, admin_id)
        if not admin:
            raise ResourceHTTPException(code=settings.NOT_FOUND_CODE, msg="管理员不存在", status_code=404)

        # 管理员没有对应账号不算错误, 照常删除管理员记录
        purged = await self._purge_accounts([AccountRef.from_email(admin.email)])

        await self._delete_entity(admin, Administrator, Administrator.admin_id, admin_id, "管理员", purged)
        logger.info(f"删除管理员成功: {admin.name} (清理账号 {len(purged)} 个)")
        return "成功删除管理员及其关联账号"

    async def _delete_department(self, department_id: int) -> str:
        result = await self.db.execute(
            select(Department)
            .options(selectinload(Department.doctors))
            .where(Department.department_id == department_id)
        )
        department = result.scalar_one_or_none()
        if not department:
            raise ResourceHTTPException(code=settings.NOT_FOUND_CODE, msg="科室不存在", status_code=404)

        # 先校验所有医生, 任一医生缺少邮箱则不做任何变更
        refs = []
        for doctor in department.doctors:
            ref = AccountRef.from_email(doctor.email)
            if ref is None:
                raise BusinessHTTPException(
                    code=settings.MISSING_CONTACT_INFO_CODE,
                    msg=f"医生 {doctor.doctor_id} 未关联邮箱，无法清理其账号",
                    status_code=400
                )
            refs.append(ref)

        purged = await self._purge_accounts(refs)

        # 医生行由数据库级联删除, 与科室删除处于同一事务
        doctor_count = len(department.doctors)
        await self._delete_entity(department, Department, Department.department_id, department_id, "科室", purged)
        logger.info(f"删除科室成功: {department.name} (医生 {doctor_count} 名, 清理账号 {len(purged)} 个)")
        return "成功删除科室及其下属全部医生"

    async def _delete_hospital(self, hospital_id: int) -> str:
        hospital = await self.db.get(Hospital, hospital_id)
        if not hospital:
            raise ResourceHTTPException(code=settings.NOT_FOUND_CODE, msg="医院不存在", status_code=404)

        # 科室/医生交给数据库 ON DELETE CASCADE, 不清理医生账号
        await self._delete_entity(hospital, Hospital, Hospital.hospital_id, hospital_id, "医院", [])
        logger.info(f"删除医院成功: {hospital.name}")
        return "成功删除医院"

    async def delete_doctor(self, doctor_id: int) -> str:
        """单独删除医生: 有邮箱时先撤销并删除其账号, 再删除医生记录"""
        doctor = await self.db.get(Doctor, doctor_id)
        if not doctor:
            raise ResourceHTTPException(code=settings.NOT_FOUND_CODE, msg="医生不存在", status_code=404)

        purged = await self._purge_accounts([AccountRef.from_email(doctor.email)])

        await self._delete_entity(doctor, Doctor, Doctor.doctor_id, doctor_id, "医生", purged)
        logger.info(f"删除医生成功: {doctor.name} (清理账号 {len(purged)} 个)")
        return "成功删除医生"

    async def _purge_accounts(self, refs: Iterable[Optional[AccountRef]]) -> List[str]:
        """撤销角色并删除账号, 全部成功后统一提交账号库事务, 返回被删除账号的邮箱"""
        purged: List[str] = []
        purged_user_ids: List[int] = []
        seen = set()
        for ref in refs:
            if ref is None or ref in seen:
                continue
            seen.add(ref)

            account = await self.identity.find_account_by_email(ref)
            if account is None:
                continue

            roles = await self.identity.get_roles(account)
            if roles:
                result = await self.identity.remove_roles(account, roles)
                if not result.succeeded:
                    await self.identity_db.rollback()
                    raise IdentityHTTPException(
                        code=settings.ROLE_REVOCATION_FAILED_CODE,
                        msg=f"撤销账号 {ref.email} 的角色失败",
                        errors=result.errors
                    )

            user_id = account.user_id
            result = await self.identity.delete_account(account)
            if not result.succeeded:
                await self.identity_db.rollback()
                raise IdentityHTTPException(
                    code=settings.IDENTITY_DELETION_FAILED_CODE,
                    msg=f"删除账号 {ref.email} 失败",
                    errors=result.errors
                )
            purged.append(ref.email)
            purged_user_ids.append(user_id)

        if not purged:
            return purged

        try:
            await self.identity_db.commit()
        except SQLAlchemyError as e:
            await self.identity_db.rollback()
            logger.error(f"提交账号库事务失败: {e}")
            raise IdentityHTTPException(
                code=settings.IDENTITY_DELETION_FAILED_CODE,
                msg="删除关联账号失败",
                errors=[str(e)]
            )

        for user_id in purged_user_ids:
            await self.identity.revoke_tokens(user_id)
        return purged

    async def _delete_entity(self, entity, model, pk_column, pk_value, label: str, purged: List[str]) -> None:
        await self.db.delete(entity)
        try:
            await commit_guarded(self.db, model, pk_column, pk_value, label)
        except Exception:
            if purged:
                # 账号已删除但实体行删除失败, 两库不一致
                logger.error(f"{label} {pk_value} 删除失败, 但以下账号已被删除: {', '.join(purged)}")
            raise
