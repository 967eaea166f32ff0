"""Centralized engine settings using pydantic-settings.

All environment variable reads are consolidated here. Import `get_settings`
from this module rather than reading os.environ directly.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from xmrspc.utils import constants


class Settings(BaseSettings):
    """Engine settings loaded from environment variables.

    All env vars are prefixed with XMRSPC_ (case-insensitive).
    """

    model_config = SettingsConfigDict(
        env_prefix="XMRSPC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Rendering gate
    minimum_points: int = Field(default=constants.MINIMUM_POINTS, ge=2)

    # Violation rules
    running_points_length: int = Field(default=constants.RUNNING_POINTS_LENGTH, ge=2)

    # Outlier-robust locking
    auto_lock_max_outlier_fraction: float = Field(
        default=constants.AUTO_LOCK_MAX_OUTLIER_FRACTION, gt=0.0, le=1.0
    )
    lock_max_iterations: int = Field(default=constants.MAX_LOCK_ITERATIONS, ge=1)
    lock_min_retained_points: int = Field(default=constants.MIN_RETAINED_POINTS, ge=3)

    # Logging
    log_format: str = "console"
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Return the cached engine settings singleton."""
    return Settings()
