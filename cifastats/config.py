"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database (SQLite for local, PostgreSQL in production)
    DATABASE_URL: str = "sqlite:///./cifastats.db"

    # Request cache
    # 0 disables the bound: entries live until explicit invalidation
    CACHE_TTL_SECONDS: float = 0.0
    CACHE_MAX_ENTRIES: int = 0

    # Rankings
    RANKING_DEFAULT_LIMIT: int = 5
    RANKING_MAX_LIMIT: int = 50
    TOP_SCORERS_DEFAULT_LIMIT: int = 10

    # Stats aggregation
    # False: a completed fixture with a missing score counts as 0 for that side
    STATS_SKIP_UNSCORED_FIXTURES: bool = False

    # Observability
    LOG_LEVEL: str = "INFO"
    METRICS_ENABLED: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def cache_ttl(self) -> Optional[float]:
        return self.CACHE_TTL_SECONDS if self.CACHE_TTL_SECONDS > 0 else None

    @property
    def cache_max_entries(self) -> Optional[int]:
        return self.CACHE_MAX_ENTRIES if self.CACHE_MAX_ENTRIES > 0 else None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
