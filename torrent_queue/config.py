"""
Application settings loaded from the environment (prefix ``TRANSMISSION_``)
or a ``.env`` file.
"""

from datetime import timedelta
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import ScopeConfig, SeedingLimits


class Settings(BaseSettings):
    """Per-client connection and scope settings plus process-wide seeding policy."""

    model_config = SettingsConfigDict(
        env_prefix="TRANSMISSION_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Connection
    host: str = "localhost"
    port: int = 9091
    url_base: str = "/transmission/"
    use_ssl: bool = False
    username: Optional[str] = None
    password: Optional[str] = None
    request_timeout: float = 30.0

    # Scope
    movie_directory: Optional[str] = None
    movie_category: Optional[str] = None

    # Global seeding policy
    seed_ratio_limit: Optional[float] = None
    seed_idle_limit: Optional[int] = None  # minutes

    # Monitor
    poll_interval: float = 60.0

    # Retry settings
    retry_max_attempts: int = 3
    retry_initial_delay: float = 1.0
    retry_max_delay: float = 60.0

    # Circuit breaker settings
    circuit_failure_threshold: int = 5
    circuit_reset_timeout: float = 60.0

    # Logging settings
    log_level: str = "INFO"
    log_file: Optional[str] = None
    log_format: str = "text"  # "text" or "json"
    log_max_size_mb: int = 10
    log_backup_count: int = 5

    @field_validator("movie_directory", "movie_category", "username", "password", mode="before")
    @classmethod
    def _blank_is_none(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("seed_ratio_limit", "seed_idle_limit", mode="before")
    @classmethod
    def _negative_is_unset(cls, value):
        if value is None or (isinstance(value, str) and not value.strip()):
            return None
        try:
            if float(value) < 0:
                return None
        except (TypeError, ValueError):
            return None
        return value

    def seeding_limits(self) -> SeedingLimits:
        idle = None
        if self.seed_idle_limit is not None:
            try:
                idle = timedelta(minutes=self.seed_idle_limit)
            except OverflowError:
                idle = None
        return SeedingLimits(ratio_limit=self.seed_ratio_limit, idle_limit=idle)

    def scope(self) -> ScopeConfig:
        return ScopeConfig(directory=self.movie_directory, category=self.movie_category)
