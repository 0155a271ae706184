"""Centralized settings configuration for the PalletFlow service"""
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from PALLETFLOW_* environment variables"""

    # Application settings
    app_name: str = "PalletFlow API"
    app_version: str = "1.0.0"
    debug: bool = False

    # Simulation settings
    default_speed_multiplier: float = 1.0
    max_tick_delta_ms: float = 10_000.0   # Largest delta_time accepted per step
    max_steps_per_request: int = 1_000    # Largest steps value per tick request
    max_sessions: int = 32                # Concurrent in-memory sessions

    # CORS settings
    cors_origins: list = ["*"]
    cors_allow_credentials: bool = True
    cors_allow_methods: list = ["*"]
    cors_allow_headers: list = ["*"]

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        env_prefix = "PALLETFLOW_"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Global settings instance for convenience
settings = get_settings()
