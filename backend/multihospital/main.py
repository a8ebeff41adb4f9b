from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
from contextlib import asynccontextmanager
import asyncio
import os
import sys

from multihospital.api import auth, hospital, department, doctor, admin, patient, appointment
from multihospital.core.exception_handler import register_exception_handlers
from multihospital.core.log_middleware import LogMiddleware
from multihospital.core.config import settings
from multihospital.db.base import redis, create_all_tables, dispose_engines

# 确保 logs 文件夹存在
os.makedirs(settings.LOG_DIR, exist_ok=True)

# 配置日志
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    handlers=[
        logging.FileHandler(os.path.join(settings.LOG_DIR, "app.log"), encoding="utf-8"),  # 写入到文件
        logging.StreamHandler()  # 控制台同时输出
    ]
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        # 测试 Redis 连接, token 会话依赖 Redis
        try:
            await asyncio.wait_for(redis.ping(), timeout=2)
            logger.info(" Redis connected successfully")
        except Exception as e:
            logger.critical(f" Redis connection failed: {e}")
            sys.exit(1)

        # 初始化实体库与账号库的表结构（必要时）
        await create_all_tables()

        logger.info(" Application startup complete")
        yield  # 应用正常运行

    except Exception as e:
        logger.critical(f" Application startup failed: {e}")
        sys.exit(1)

    finally:
        # 清理 Redis
        try:
            await asyncio.wait_for(redis.aclose(), timeout=3)
            logger.info(" Redis connection closed")
        except asyncio.TimeoutError:
            logger.warning(" Redis close timed out")
        except Exception as e:
            logger.error(f"Redis close failed: {e}")

        # 关闭两个数据库引擎
        try:
            await dispose_engines()
            logger.info("DB engines disposed")
        except Exception as e:
            logger.warning(f"DB engine dispose failed: {e}")

        logger.info("Application shutdown complete")

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# 注册全局异常处理器
register_exception_handlers(app)

app.add_middleware(
    LogMiddleware
)

#中间件解决跨域
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


#引用子路由
try:
    app.include_router(router=auth.router, prefix="/auth", tags=["authentication"])
    app.include_router(router=hospital.router, prefix="/hospitals", tags=["hospital"])
    app.include_router(router=department.router, prefix="/departments", tags=["department"])
    app.include_router(router=doctor.router, prefix="/doctors", tags=["doctor"])
    app.include_router(router=admin.router, prefix="/admins", tags=["admin"])
    app.include_router(router=patient.router, prefix="/patients", tags=["patient"])
    app.include_router(router=appointment.router, prefix="/appointments", tags=["appointment"])
    logger.info("All routers registered successfully")
except Exception as e:
    logger.error(f"Failed to register routers: {e}", exc_info=True)
    raise

#默认
@app.get("/")
async def root():
    return {"message": "Welcome to MultiHospital API"}
