"""
Configuration module for the VoteBeats ranking service
Loads environment variables and provides settings
"""
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_ENV: str = "development"
    APP_DEBUG: bool = False
    API_KEY: str = "internal-api-key"

    # Database
    DATABASE_URL: str = "sqlite:///./votebeats.db"

    # Snapshot refresh ticker (seconds between sweeps of stale events)
    RANKING_REFRESH_INTERVAL_SEC: float = 10.0
    RECOMPUTE_MAX_ATTEMPTS: int = 3

    # Per-event ranked-choice defaults, used when an event row leaves them unset
    DEFAULT_RANKING_DEPTH: int = 10
    DEFAULT_MIN_PARTICIPANTS: int = 3
    DEFAULT_GAP_THRESHOLD: int = 3
    DEFAULT_GEM_DISCOVERY_FRACTION: float = 0.5
    DEFAULT_PRIMARY_MODE: str = "consensus"

    # Celery
    CELERY_BROKER_URL: str = "redis://redis:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://redis:6379/0"
    PRUNE_SWEEP_INTERVAL_SEC: float = 60.0

    class Config:
        env_file = ".env"
        extra = "allow"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


settings = get_settings()
