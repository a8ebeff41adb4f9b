"""时间处理工具

所有时间戳统一按 UTC 存储，数据库字段不带时区信息。
"""
from datetime import datetime, timezone


def get_now() -> datetime:
    """获取当前 UTC 时间（带时区信息）。"""
    return datetime.now(timezone.utc)


def get_now_naive() -> datetime:
    """获取当前 UTC 时间（不带时区信息）。

    用作 ORM 字段的 default / onupdate，与不支持时区的数据库字段兼容。
    """
    return get_now().replace(tzinfo=None)
