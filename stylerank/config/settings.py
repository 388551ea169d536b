"""
Configuration settings for StyleRank
Loads from .env file
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Debug mode forces DEBUG logging
    debug: bool = False

    # Logging
    log_level: str = "INFO"

    # Embedding cache storage
    cache_backend: Literal["file", "redis", "memory"] = "file"
    cache_dir: Path = Path("data/embedding_cache")

    # Redis (only used when cache_backend == "redis")
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 1
    redis_password: str = ""

    class Config:
        env_file = ".env"
        env_prefix = "STYLERANK_"
        case_sensitive = False
        extra = "ignore"  # Ignore extra fields in .env file


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


def configure_logging(level: str = None) -> None:
    """Configure root logging with the application format."""
    settings = get_settings()
    logging.basicConfig(
        level=(level or ("DEBUG" if settings.debug else settings.log_level)).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
