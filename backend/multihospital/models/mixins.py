from sqlalchemy import Column, Integer, DateTime

from multihospital.core.datetime_utils import get_now_naive


class TimestampVersionMixin:
    """实体公共字段: 创建/更新时间 + 乐观锁版本号

    - created_at 插入时写入一次, 之后不再修改
    - updated_at 插入时写入, 每次 UPDATE 自动刷新
    - version_id 由 ORM 维护, 写入时若行已被他人修改会抛出 StaleDataError
    """
    created_at = Column(DateTime, nullable=False, default=get_now_naive, comment="创建时间")
    updated_at = Column(DateTime, nullable=False, default=get_now_naive, onupdate=get_now_naive, comment="最后更新时间")
    version_id = Column(Integer, nullable=False, default=1, comment="乐观锁版本号")

    # SQLite 下主键单调递增, 删除后不复用
    __table_args__ = {"sqlite_autoincrement": True}
    __mapper_args__ = {"version_id_col": version_id}
