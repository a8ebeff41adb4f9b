from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from multihospital.core.datetime_utils import get_now_naive


from multihospital.db.base import IdentityBase


#用户日志数据库表(账号库)
class UserAccessLog(IdentityBase):
    __tablename__ = "user_access_log"
    __table_args__ = {"sqlite_autoincrement": True}

    user_access_log_id = Column(Integer, primary_key=True, autoincrement=True, comment="主键ID")
    user_id = Column(Integer, ForeignKey("user.user_id", ondelete="SET NULL"), nullable=True, comment="用户ID,未登录为NULL")
    ip = Column(String(45), nullable=False, comment="访问IP地址")
    ua = Column(Text, nullable=True, comment="User-Agent请求头")
    url = Column(Text, nullable=False, comment="请求的完整URL地址")
    method = Column(String(10), nullable=False, comment="请求方法")
    status_code = Column(Integer, nullable=False, comment="HTTP响应状态码")
    response_code = Column(Integer, nullable=True, comment="业务返回码")
    access_time = Column(DateTime, default=get_now_naive, comment="访问时间")
    duration_ms = Column(Integer, nullable=False, comment="请求耗时（毫秒）")

    #与user表为多对一的关系
    user = relationship("User", back_populates = "user_access_logs")
