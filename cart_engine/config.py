"""Cart Engine Configuration"""

from decimal import Decimal
from typing import Optional
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Engine settings loaded from environment"""

    # Pricing
    tax_rate: Decimal = Decimal("0.10")  # flat storefront rate
    currency: str = "USD"
    minor_unit: Decimal = Decimal("0.01")

    # Local persistence
    storage_key: str = "cart"
    storage_dir: Optional[str] = None  # None keeps snapshots in memory

    # Remote Cart Service
    cart_service_url: str = "http://localhost:8001"
    request_timeout: float = 30.0

    # Write-through retry policy
    sync_max_attempts: int = 5
    sync_backoff_base: float = 1.0
    sync_backoff_max: float = 60.0
    sync_interval: float = 15.0

    debug: bool = False

    class Config:
        env_prefix = "CART_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"

    @property
    def file_storage_enabled(self) -> bool:
        """Check if snapshots go to disk"""
        return bool(self.storage_dir)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
