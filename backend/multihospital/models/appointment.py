from sqlalchemy import Column, Integer, String, Date, Time, Text, Enum, ForeignKey
from sqlalchemy.orm import relationship
from multihospital.db.base import Base
from multihospital.models.mixins import TimestampVersionMixin
import enum


class AppointmentStatus(enum.Enum):
    SCHEDULED = "Scheduled"      # 已预约
    CONFIRMED = "Confirmed"      # 已确认
    COMPLETED = "Completed"      # 已完成
    CANCELLED = "Cancelled"      # 已取消
    NO_SHOW = "NoShow"           # 未到场


def parse_appointment_status(value) -> AppointmentStatus | None:
    """把请求中的状态(值或成员名, 大小写不敏感)解析为 AppointmentStatus, 无法解析时返回 None"""
    if isinstance(value, AppointmentStatus):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    for member in AppointmentStatus:
        if text.lower() in (member.value.lower(), member.name.lower()):
            return member
    return None


class Appointment(TimestampVersionMixin, Base):
    """预约表"""
    __tablename__ = "appointment"

    appointment_id = Column(Integer, primary_key=True, autoincrement=True, comment="预约ID")
    patient_id = Column(
        Integer, ForeignKey("patient.patient_id", ondelete="CASCADE"), nullable=False, index=True, comment="关联 patient.patient_id"
    )
    doctor_id = Column(
        Integer, ForeignKey("doctor.doctor_id", ondelete="CASCADE"), nullable=False, index=True, comment="关联 doctor.doctor_id"
    )
    appointment_date = Column(Date, nullable=False, comment="预约日期")
    appointment_time = Column(Time, nullable=False, comment="预约时间")
    reason = Column(Text, nullable=True, comment="就诊原因")
    status = Column(
        Enum(AppointmentStatus, values_callable=lambda e: [v.value for v in e], name="appointmentstatus", native_enum=False),
        default=AppointmentStatus.SCHEDULED,
        nullable=False,
        comment="预约状态"
    )
    # 医生提交诊疗记录后回填
    treatment_record_id = Column(Integer, nullable=True, comment="诊疗记录ID")

    # 关系
    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
