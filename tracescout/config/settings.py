"""Process-wide settings for tracescout, read from the environment and `.env`."""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Settings shared by every component of a trace run.

    Unprefixed so the usual names work (LOG_LEVEL, ENVIRONMENT). Tuning for
    a single stage lives next to it: PIPELINE_* in services, SELECTION_* in
    selection and SCORING_* in scoring.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    # "auto" renders JSON in production and the console format elsewhere
    log_format: Literal["auto", "json", "console"] = "auto"
    debug: bool = False

    # Fetched source results are reused across runs for this long
    cache_ttl_seconds: float = Field(default=300.0, gt=0.0)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def json_logs(self) -> bool:
        if self.log_format == "auto":
            return self.is_production
        return self.log_format == "json"


@lru_cache
def get_settings() -> Settings:
    """Load settings once; tests reset with ``get_settings.cache_clear()``."""
    return Settings()
