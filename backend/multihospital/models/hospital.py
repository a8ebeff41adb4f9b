from sqlalchemy import Column, Integer, String, LargeBinary
from sqlalchemy.orm import relationship
from multihospital.db.base import Base
from multihospital.models.mixins import TimestampVersionMixin


class Hospital(TimestampVersionMixin, Base):
    """医院信息表"""
    __tablename__ = "hospital"

    hospital_id = Column(Integer, primary_key=True, autoincrement=True, comment="医院唯一 ID")
    name = Column(String(100), nullable=False, comment="医院名称")
    address = Column(String(255), nullable=True, comment="医院地址")
    phone = Column(String(25), nullable=True, comment="联系电话")
    email = Column(String(255), nullable=True, comment="联系邮箱")
    image = Column(LargeBinary, nullable=True, comment="医院图片(原始字节)")

    # 关系字段
    # 删除医院时由数据库 ON DELETE CASCADE 处理科室, ORM 不逐条加载/置空
    departments = relationship("Department", back_populates="hospital", passive_deletes="all")
    doctors = relationship("Doctor", back_populates="hospital", passive_deletes="all")
