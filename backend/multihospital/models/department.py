from sqlalchemy import Column, Integer, String, Text, LargeBinary, ForeignKey
from sqlalchemy.orm import relationship
from multihospital.db.base import Base
from multihospital.models.mixins import TimestampVersionMixin


class Department(TimestampVersionMixin, Base):
    """科室表, 隶属于某个医院"""
    __tablename__ = "department"

    department_id = Column(Integer, primary_key=True, autoincrement=True, comment="科室唯一 ID")
    hospital_id = Column(
        Integer,
        ForeignKey("hospital.hospital_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="外键，关联 hospital.hospital_id",
    )
    name = Column(String(100), nullable=False, comment="科室名称")
    description = Column(Text, nullable=True, comment="科室描述")
    image = Column(LargeBinary, nullable=True, comment="科室图片(原始字节)")

    # 关系字段
    hospital = relationship("Hospital", back_populates="departments")
    # 医生行随科室一起由数据库级联删除
    doctors = relationship("Doctor", back_populates="department", passive_deletes="all")
