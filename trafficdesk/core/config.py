"""
Configuration management using environment variables
"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables"""

    ENVIRONMENT: str = "development"

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./trafficdesk.db"
    DATABASE_ECHO: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"

    # Listing
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100
    RECENT_VIOLATIONS_LIMIT: int = 10

    # Cases & payments
    CASE_PAYMENT_DUE_DAYS: int = 30
    DEFAULT_CURRENCY: str = "USD"

    # Object storage
    STORAGE_PROVIDER: str = "mock"
    STORAGE_BASE_URL: str = "https://mock-cloud-storage.com"
    STORAGE_DEFAULT_FOLDER: str = "violations"
    MAX_ATTACHMENT_SIZE_MB: int = 25

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    @property
    def max_attachment_size_bytes(self) -> int:
        """Convert MB to bytes"""
        return self.MAX_ATTACHMENT_SIZE_MB * 1024 * 1024


@lru_cache()
def get_settings() -> Settings:
    """Cached settings instance"""
    return Settings()


settings = get_settings()
