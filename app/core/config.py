# Pydantic settings

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import os


class Settings(BaseSettings):
    """Application settings"""

    # App
    app_name: str = "Event Query API"
    debug: bool = False

    # MongoDB
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "events"
    events_collection: str = "events"
    mongodb_max_pool_size: int = 100
    mongodb_min_pool_size: int = 5
    mongodb_connect_timeout_ms: int = 10000

    # Query engine
    query_timeout_seconds: float = 30.0
    strict_validation: bool = True
    bucket_timezone: str = "UTC"

    # Redis
    redis_url: str = "redis://localhost:6379/0"
    use_queue: bool = False

    model_config = SettingsConfigDict(
        # Use .env.local if it exists (for local dev), otherwise .env (for Docker)
        env_file=".env.local" if os.path.exists(".env.local") else ".env",
        case_sensitive=False
    )

    @field_validator("query_timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("query timeout must be positive")
        return v

    @field_validator("mongodb_max_pool_size", "mongodb_min_pool_size", "mongodb_connect_timeout_ms")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v < 0:
            raise ValueError("value cannot be negative")
        return v

    @property
    def query_timeout_ms(self) -> int:
        return int(self.query_timeout_seconds * 1000)


settings = Settings()


def get_settings() -> Settings:
    """Dependency returning the process settings"""
    return settings
