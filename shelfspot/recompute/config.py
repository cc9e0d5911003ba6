"""
Recompute trigger configuration.

All settings can be overridden via environment variables prefixed with
RECOMPUTE_.

Example:
    RECOMPUTE_MAX_PENDING=50000
    RECOMPUTE_POLL_TIMEOUT_SECONDS=0.5
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RecomputeConfig(BaseSettings):
    """Configuration for the score invalidation queue and its worker."""

    model_config = SettingsConfigDict(
        env_prefix="RECOMPUTE_",
        case_sensitive=False,
        extra="ignore",
    )

    max_pending: int = Field(
        default=10_000,
        ge=1,
        description="Distinct item ids that may wait for recompute before invalidations are dropped",
    )
    poll_timeout_seconds: float = Field(
        default=1.0,
        gt=0.0,
        le=60.0,
        description="How long the worker blocks on an empty queue before re-checking for stop",
    )
