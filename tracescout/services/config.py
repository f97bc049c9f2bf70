"""Configuration for the pipeline controller."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PipelineConfig(BaseSettings):
    """
    Settings for one pipeline run.

    Settings can be overridden via environment variables prefixed with PIPELINE_.

    Example:
        PIPELINE_FETCH_CEILINGS=[60,120,200]
        PIPELINE_FETCHERS=["myfeeds.hn:HackerNewsFetcher","myfeeds.gh:create"]
        PIPELINE_RANK_ENABLED=false
    """

    model_config = SettingsConfigDict(
        env_prefix="PIPELINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    fetch_ceilings: list[int] = Field(
        default_factory=lambda: [60, 120],
        description="Per-source item ceilings, tried in order while too few items survive dedup",
    )
    fetchers: list[str] = Field(
        default_factory=list,
        description="Fetcher plugins as 'module:factory' import paths",
    )
    refine_enabled: bool = Field(
        default=True,
        description="Re-score low-confidence demand/gap judgments",
    )
    rank_enabled: bool = Field(
        default=True,
        description="Apply the relative ranking adjustment to the top candidates",
    )
    plan_enabled: bool = Field(
        default=True,
        description="Generate localized MVP plans for the top pass candidates",
    )

    @field_validator("fetch_ceilings")
    @classmethod
    def check_ceilings(cls, v: list[int]) -> list[int]:
        if not v:
            raise ValueError("at least one fetch ceiling is required")
        if any(c <= 0 for c in v):
            raise ValueError("fetch ceilings must be positive")
        return v
