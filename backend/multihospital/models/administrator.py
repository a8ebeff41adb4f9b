from sqlalchemy import Column, Integer, String
from multihospital.db.base import Base
from multihospital.models.mixins import TimestampVersionMixin


class Administrator(TimestampVersionMixin, Base):
    """管理员详细信息表"""
    __tablename__ = "administrator"

    admin_id = Column(Integer, primary_key=True, autoincrement=True, comment="管理员业务 ID")
    name = Column(String(50), nullable=False, comment="真实姓名")
    email = Column(String(255), nullable=False, index=True, comment="登录邮箱(账号软关联)")
