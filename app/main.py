from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from app.core.config import settings
from app.core.redis import redis_manager
from app.core.database import init_database, close_database, create_tables
from app.api.health import router as health_router
from app.api.discounts import router as discounts_router
from app.api.orders import router as orders_router
from app.api.notifications import router as notifications_router
from app.api.exceptions import (
    validation_exception_handler,
    http_exception_handler,
    database_exception_handler,
    general_exception_handler,
    business_exception_handler,
    value_error_handler,
    BusinessException
)

# 简化日志配置
import logging

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("正在启动订单核心服务")

    try:
        await init_database()
        logger.info("数据库初始化成功")

        if not settings.is_production:
            await create_tables()

        if settings.enable_redis_notifications:
            await redis_manager.init_redis()
            logger.info("Redis初始化成功")

        logger.info("应用启动完成")

    except Exception as e:
        logger.error(f"应用启动失败: {e}")
        raise

    yield

    logger.info("正在关闭应用")
    await close_database()
    await redis_manager.close_redis()
    logger.info("应用关闭完成")


def create_app() -> FastAPI:
    """创建FastAPI应用"""
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="手机商城订单核心 - 优惠码账本、订单状态机与库存守卫",
        debug=settings.debug,
        lifespan=lifespan
    )

    # CORS中间件
    application.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 注册路由
    application.include_router(health_router)
    application.include_router(discounts_router, prefix=settings.api_prefix)
    application.include_router(orders_router, prefix=settings.api_prefix)
    application.include_router(notifications_router, prefix=settings.api_prefix)

    # 注册异常处理器
    application.add_exception_handler(RequestValidationError, validation_exception_handler)
    application.add_exception_handler(StarletteHTTPException, http_exception_handler)
    application.add_exception_handler(SQLAlchemyError, database_exception_handler)
    application.add_exception_handler(BusinessException, business_exception_handler)
    application.add_exception_handler(ValueError, value_error_handler)
    application.add_exception_handler(Exception, general_exception_handler)

    @application.get("/")
    async def root():
        """根路径"""
        return {
            "message": f"欢迎使用 {settings.app_name}",
            "version": settings.app_version,
            "docs": "/docs",
            "health": "/health",
        }

    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )
