from sqlalchemy import Column, Integer, String, Boolean, BigInteger, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from multihospital.db.base import IdentityBase
from multihospital.core.datetime_utils import get_now_naive
import enum

# 定义角色枚举
class Role(enum.Enum):
    ADMIN = "admin"             # 管理员
    DOCTOR = "doctor"           # 医生
    PATIENT = "patient"         # 患者


# USER数据库表类-模型(账号库)
class User(IdentityBase):
    __tablename__ = "user"
    # user_id 与 Redis 会话绑定, 删除账号后不能复用
    __table_args__ = {"sqlite_autoincrement": True}

    # id
    user_id = Column(Integer, primary_key=True, autoincrement=True, index=True)

    # 登录邮箱, 账号库内唯一; 实体库中医生/管理员/患者通过该邮箱软关联
    email = Column(String(255), unique=True, index=True, nullable=False)

    # 安全字段
    hashed_password = Column(String(255), nullable=False)

    # 状态字段
    is_active = Column(Boolean, default=True, comment="用户是否有效(可被封禁)")

    # 登录信息字段
    last_login_ip = Column(String(64), nullable=True) # 最近登录IP
    last_login_time = Column(BigInteger, nullable=True) # 最近登录时间（时间戳）

    # 时间字段
    created_at = Column(DateTime, default=get_now_naive, comment="创建时间")
    updated_at = Column(DateTime, default=get_now_naive, onupdate=get_now_naive, comment="最后更新时间")

    # 关系字段

    # 与user_role表为一对多的关系
    roles = relationship("UserRole", back_populates="user", cascade="all, delete-orphan")

    # 与user_access_log表为一对多的关系
    user_access_logs = relationship("UserAccessLog", back_populates="user", passive_deletes="all")


class UserRole(IdentityBase):
    """账号-角色关联表"""
    __tablename__ = "user_role"
    __table_args__ = (
        UniqueConstraint("user_id", "role", name="uq_user_role"),
        {"sqlite_autoincrement": True},
    )

    user_role_id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("user.user_id", ondelete="CASCADE"), nullable=False, index=True)
    role = Column(String(20), nullable=False, comment="角色标签: admin/doctor/patient")

    user = relationship("User", back_populates="roles")


# 运行时兼容性帮助：将传入的字符串映射到 Role
def parse_role(value: str) -> Role | None:
    """把可能的字符串值（大小写不确定）解析为 Role 成员, 无法解析时返回 None"""
    if not value:
        return None
    for member in Role:
        if value.lower() == member.value:
            return member
    return None
