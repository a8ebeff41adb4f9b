from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import NullPool
from redis.asyncio import Redis

from multihospital.core.config import settings


def _engine_options(url: str) -> dict:
    """按数据库类型生成引擎参数(SQLite 不支持连接池参数)"""
    if url.startswith("sqlite"):
        return {"echo": settings.DB_ECHO, "poolclass": NullPool}
    return {
        "echo": settings.DB_ECHO,
        "pool_pre_ping": True,        # 每次从连接池获取连接时先 ping 测试是否有效
        "pool_recycle": 3600,          # 连接回收时间（秒），避免使用超时的连接
        "pool_size": 10,               # 连接池大小
        "max_overflow": 20,            # 超出 pool_size 后最多再创建的连接数
        "pool_timeout": 30,            # 获取连接的超时时间（秒）
        "connect_args": {
            "connect_timeout": 10      # MySQL 连接超时（秒）
        },
    }


def _enable_sqlite_foreign_keys(engine):
    # SQLite 默认不执行外键约束, ON DELETE CASCADE 依赖此开关
    if engine.url.get_backend_name() != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


#实体库异步引擎(医院/科室/医生/管理员/患者/预约)
engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))
_enable_sqlite_foreign_keys(engine)

#账号库异步引擎(登录账号/角色/访问日志), 与实体库之间只有邮箱这一软关联
identity_engine = create_async_engine(
    settings.identity_database_url, **_engine_options(settings.identity_database_url)
)
_enable_sqlite_foreign_keys(identity_engine)

#事务处理
AsyncSessionLocal = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
IdentitySessionLocal = sessionmaker(identity_engine, class_=AsyncSession, expire_on_commit=False)

#全局Base
Base = declarative_base()
IdentityBase = declarative_base()

#Redis数据库连接(token 会话)
redis = Redis(
    host=settings.REDIS_HOST,
    port=settings.REDIS_PORT,
    decode_responses=True,
    password=settings.REDIS_PASSWORD,
)

#引用表类(****十分重要)

from multihospital.models.user import User, UserRole    # noqa
from multihospital.models.user_access_log import UserAccessLog # noqa
from multihospital.models.hospital import Hospital # noqa
from multihospital.models.department import Department # noqa
from multihospital.models.doctor import Doctor # noqa
from multihospital.models.administrator import Administrator # noqa
from multihospital.models.patient import Patient # noqa
from multihospital.models.appointment import Appointment # noqa
from multihospital.models.treatment_record import TreatmentRecord # noqa


async def create_all_tables():
    """初始化两个库的表结构（必要时）"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    async with identity_engine.begin() as conn:
        await conn.run_sync(IdentityBase.metadata.create_all)


async def dispose_engines():
    await engine.dispose()
    await identity_engine.dispose()


#异步获取事务函数
async def get_db():
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def get_identity_db():
    async with IdentitySessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
