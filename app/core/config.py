from pydantic_settings import BaseSettings
from typing import Optional
from decimal import Decimal
from enum import Enum


class Environment(str, Enum):

    """运行环境枚举"""
    TESTING = "testing"
    PRODUCTION = "production"


class Settings(BaseSettings):

    # 应用基础配置
    app_name: str = "Scamphone Order Core"
    app_version: str = "1.0.0"
    environment: Environment = Environment.TESTING
    debug: bool = True
    api_prefix: str = "/api/v1"

    # 数据库配置
    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "scamphone_db"
    db_user: str = "scamphone_user"
    db_password: str = "scamphone_password"

    # Redis配置 (订单事件发布)
    redis_url: Optional[str] = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    # 运费配置
    shipping_fee: Decimal = Decimal("30000")
    free_shipping_threshold: Decimal = Decimal("500000")

    # 通知配置
    notification_channel: str = "order_events"
    enable_db_notifications: bool = True
    enable_redis_notifications: bool = False

    # 日志配置
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def database_url_computed(self) -> str:
        """计算数据库URL"""
        if self.database_url:
            return self.database_url
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def redis_url_computed(self) -> str:
        """计算Redis URL"""
        if self.redis_url:
            return self.redis_url
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    class Config:
        env_file = ".env"
        case_sensitive = False


# 全局配置实例
settings = Settings()
