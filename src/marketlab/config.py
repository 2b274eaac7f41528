"""Simple configuration management for the market experiment engine."""

from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # App info
    app_name: str = Field(default="Market Lab")
    version: str = Field(default="0.1.0")
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO", pattern="^(DEBUG|INFO|WARNING|ERROR)$")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000, ge=1, le=65535)
    cors_origins: List[str] = Field(default=["*"])

    # Experiments
    max_firms: int = Field(default=10, ge=2, le=100)
    max_rounds: int = Field(default=1000, ge=1, le=10000)
    max_replications: int = Field(default=100, ge=1, le=1000)
    default_seed: Optional[int] = Field(
        default=None, description="Seed for the parameter randomizer"
    )

    # Decision providers
    decision_timeout_seconds: float = Field(default=60.0, gt=0, le=3600)
    timeout_policy: str = Field(
        default="abort",
        pattern="^(abort|pause)$",
        description="What a failed round does to the experiment",
    )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "MARKETLAB_"
        case_sensitive = False


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


def reload_settings() -> Settings:
    """Reload settings (clears cache)."""
    get_settings.cache_clear()
    return get_settings()
