from sqlalchemy import Column, Integer, Text, ForeignKey
from multihospital.db.base import Base
from multihospital.models.mixins import TimestampVersionMixin


class TreatmentRecord(TimestampVersionMixin, Base):
    """诊疗记录表, 每个预约至多一条"""
    __tablename__ = "treatment_record"

    treatment_record_id = Column(Integer, primary_key=True, autoincrement=True, comment="诊疗记录ID")
    appointment_id = Column(
        Integer,
        ForeignKey("appointment.appointment_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
        comment="关联 appointment.appointment_id",
    )
    diagnosis = Column(Text, nullable=False, comment="诊断")
    treatment = Column(Text, nullable=True, comment="治疗方案")
    prescription = Column(Text, nullable=True, comment="处方")
    notes = Column(Text, nullable=True, comment="备注")
