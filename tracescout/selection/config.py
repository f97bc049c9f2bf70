"""Configuration for diversity selection."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class SelectionConfig(BaseSettings):
    """
    Settings for the candidate set handed to the evaluator.

    Settings can be overridden via environment variables prefixed with SELECTION_.

    Example:
        SELECTION_TARGET=40
        SELECTION_MAX_PER_CATEGORY=10
    """

    model_config = SettingsConfigDict(
        env_prefix="SELECTION_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    target: int = Field(
        default=30,
        ge=1,
        description="Number of items selected for evaluation",
    )
    min_per_category: int = Field(
        default=2,
        ge=0,
        description="Slots reserved per category before filling by score",
    )
    max_per_category: int = Field(
        default=8,
        ge=1,
        description="Cap on any one category, lifted only when the target is otherwise unreachable",
    )
