"""Configuration for importance score queries and bulk recomputation.

All settings can be overridden via ``SCORING_*`` environment variables.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScoringConfig(BaseSettings):
    """Configuration for the scoring service."""

    model_config = SettingsConfigDict(
        env_prefix="SCORING_",
        case_sensitive=False,
        extra="ignore",
    )

    top_items_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Breakdowns returned by a full recalculation.",
    )
    default_top_limit: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Default size of the top-items query.",
    )
    critical_max_quantity: int = Field(
        default=5,
        ge=0,
        description="Default stock ceiling for the critical-items query.",
    )
    critical_limit: int = Field(
        default=20,
        ge=1,
        le=500,
        description="Maximum number of critical items returned.",
    )
