from sqlalchemy import Column, Integer, String, ForeignKey
from sqlalchemy.orm import relationship
from multihospital.db.base import Base
from multihospital.models.mixins import TimestampVersionMixin


class Doctor(TimestampVersionMixin, Base):
    """医生基本信息表"""
    __tablename__ = "doctor"

    doctor_id = Column(Integer, primary_key=True, autoincrement=True, comment="医生唯一 ID")
    department_id = Column(
        Integer,
        ForeignKey("department.department_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="外键，关联 department.department_id",
    )
    hospital_id = Column(
        Integer,
        ForeignKey("hospital.hospital_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="外键，关联 hospital.hospital_id",
    )
    name = Column(String(50), nullable=False, comment="医生姓名")
    specialization = Column(String(100), nullable=True, comment="专长")
    phone = Column(String(25), nullable=True, comment="联系电话")
    # 账号库中的登录邮箱, 仅为软关联, 不保证唯一也不保证账号存在
    email = Column(String(255), nullable=True, index=True, comment="联系邮箱(账号软关联)")

    # 关系字段
    department = relationship("Department", back_populates="doctors")
    hospital = relationship("Hospital", back_populates="doctors")
    appointments = relationship("Appointment", back_populates="doctor", passive_deletes="all")
