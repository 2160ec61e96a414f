"""
Back Office Application Configuration
Loads settings from .env file using Pydantic v2 with BaseSettings
"""
from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # ==================== Project Info ====================
    PROJECT_NAME: str = "Apartment Back Office API"
    PROJECT_DESCRIPTION: str = "Units, tenants, leases and rental request workflow"
    VERSION: str = "1.0.0"

    # ==================== Database ====================
    DATABASE_URL: str = "sqlite:///./backoffice.db"
    DATABASE_POOL_SIZE: int = 5
    DATABASE_MAX_OVERFLOW: int = 10
    DATABASE_POOL_RECYCLE: int = 3600

    # ==================== Security & Authentication ====================
    SECRET_KEY: str = "change-this-secret-key-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 1440  # 1 day

    # Password given to accounts provisioned on rental request approval
    DEFAULT_ACCOUNT_PASSWORD: str = "defaultPassword123"

    # ==================== CORS ====================
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # ==================== Server ====================
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # ==================== Lease Lifecycle ====================
    LEASE_SWEEP_ENABLED: bool = True
    LEASE_SWEEP_INTERVAL_SECONDS: int = 3600
    DEFAULT_TERMINATION_REASON: str = "Terminated by system"
    ENDING_SOON_DEFAULT_DAYS: int = 30

    # ==================== Maintenance ====================
    LOW_STOCK_THRESHOLD: int = 10
    # Fallbacks when the apartment_settings rows are missing or unparsable
    DEFAULT_ELECTRICITY_RATE: Decimal = Decimal("4.00")
    DEFAULT_WATER_RATE: Decimal = Decimal("20.00")

    # ==================== Pagination ====================
    DEFAULT_PAGE_SIZE: int = 20
    MAX_PAGE_SIZE: int = 100

    # ==================== Features ====================
    DEBUG: bool = False
    TESTING: bool = False
    LOG_LEVEL: str = "INFO"

    # ==================== Configuration Loading ====================
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="allow",
        validate_default=True,
    )

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")


# ==================== Settings Singleton ====================
@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
