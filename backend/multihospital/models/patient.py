from sqlalchemy import Column, Integer, String, Date, Enum
from sqlalchemy.orm import relationship
from multihospital.db.base import Base
from multihospital.models.mixins import TimestampVersionMixin
import enum


# 定义性别枚举
class Gender(enum.Enum):
    MALE = "male"
    FEMALE = "female"
    UNKNOWN = "unknown"


class Patient(TimestampVersionMixin, Base):
    """患者详细信息表"""
    __tablename__ = "patient"

    patient_id = Column(Integer, primary_key=True, autoincrement=True, comment="患者业务 ID")
    first_name = Column(String(50), nullable=False, comment="名")
    last_name = Column(String(50), nullable=False, comment="姓")
    email = Column(String(255), nullable=False, index=True, comment="登录邮箱(账号软关联)")
    phone = Column(String(25), nullable=True, comment="手机号")
    date_of_birth = Column(Date, nullable=True, comment="出生日期")
    gender = Column(
        Enum(Gender, values_callable=lambda e: [v.value for v in e], name="gender", native_enum=False),
        nullable=False,
        default=Gender.UNKNOWN,
        comment="性别"
    )
    address = Column(String(255), nullable=True, comment="住址")

    # 关系字段
    appointments = relationship("Appointment", back_populates="patient", passive_deletes="all")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
