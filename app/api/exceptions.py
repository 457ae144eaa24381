"""
API异常处理器
业务异常按 kind 输出统一的错误结构
"""

import logging

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import BusinessException

logger = logging.getLogger(__name__)

__all__ = [
    "BusinessException",
    "business_exception_handler",
    "value_error_handler",
    "validation_exception_handler",
    "http_exception_handler",
    "database_exception_handler",
    "general_exception_handler",
]


async def business_exception_handler(request: Request, exc: BusinessException) -> JSONResponse:
    """业务异常"""
    logger.info(f"业务异常 {request.method} {request.url.path}: {exc.kind.value} {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_dict())
    )


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """服务层参数校验失败"""
    logger.info(f"参数错误 {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": "InvalidArgument",
            "message": str(exc),
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """请求参数验证失败"""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "success": False,
            "error": "ValidationError",
            "message": "请求参数验证失败",
            "details": {"errors": jsonable_encoder(exc.errors())}
        }
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "success": False,
            "error": "HTTPError",
            "message": exc.detail if isinstance(exc.detail, str) else "请求失败",
            "details": exc.detail if isinstance(exc.detail, dict) else {}
        }
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """数据库异常"""
    logger.error(f"数据库异常 {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "StorageError",
            "message": "数据库操作失败",
            "details": {}
        }
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """未处理的异常"""
    logger.exception(f"未处理的异常 {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "InternalError",
            "message": "服务器内部错误",
            "details": {}
        }
    )
