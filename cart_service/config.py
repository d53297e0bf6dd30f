"""Cart Service Configuration"""

from pydantic_settings import BaseSettings
from functools import lru_cache


class ServiceSettings(BaseSettings):
    """Service settings loaded from environment"""

    app_name: str = "Cart Service"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8001

    class Config:
        env_prefix = "CART_SERVICE_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache()
def get_service_settings() -> ServiceSettings:
    """Get cached settings instance"""
    return ServiceSettings()


service_settings = get_service_settings()
