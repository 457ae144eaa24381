from fastapi import APIRouter, HTTPException
import logging

from app.core.config import settings
from app.core.redis import redis_manager
from app.core.database import database_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["健康检查"])


@router.get("")
async def health_check():
    """基础健康检查接口"""
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment
    }


@router.get("/database")
async def database_health():
    """数据库和Redis连接健康检查"""
    health_status = {
        "database": False,
        "redis": False,
        "overall": False,
        "details": {}
    }

    try:
        db_status = await database_service.health_check()
        health_status["database"] = db_status["status"] == "healthy"
        health_status["details"]["database"] = db_status["message"]

        # Redis只在启用通知发布时才是必需的
        redis_required = settings.enable_redis_notifications
        if redis_manager.redis_pool:
            if await redis_manager.ping():
                health_status["redis"] = True
                health_status["details"]["redis"] = "连接正常"
            else:
                health_status["details"]["redis"] = "连接失败"
        else:
            health_status["details"]["redis"] = "连接池未初始化"

        health_status["overall"] = health_status["database"] and (
            health_status["redis"] or not redis_required
        )

        if not health_status["overall"]:
            logger.warning(f"连接检查部分失败: {health_status['details']}")
            return health_status

        logger.info("连接检查全部通过")
        return health_status

    except Exception as e:
        logger.error(f"数据库健康检查异常: {str(e)}")
        raise HTTPException(
            status_code=503,
            detail={
                "error": "数据库连接失败",
                "message": str(e),
                "status": health_status
            }
        )
