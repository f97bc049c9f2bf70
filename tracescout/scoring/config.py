"""Configuration for evaluation, refinement, ranking and trace plans.

Provides Pydantic settings for the LLM API key, model selection, per-task
token budgets, batching, the reliability threshold, ranker tuning and the
number of planned candidates. All settings can be overridden via SCORING_*
environment variables.
"""

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScoringConfig(BaseSettings):
    """Configuration for the LLM evaluation stages.

    Settings can be overridden via environment variables prefixed with SCORING_.

    Example:
        SCORING_OPENAI_API_KEY=sk-...
        SCORING_OPENAI_MODEL=gpt-4o-mini
        SCORING_BATCH_COUNT=3
    """

    model_config = SettingsConfigDict(
        env_prefix="SCORING_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # LLM access
    openai_api_key: SecretStr | None = Field(
        default=None,
        description="OpenAI API key for the evaluator",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="Chat model used for every evaluation task",
    )
    llm_timeout: float = Field(
        default=60.0,
        ge=5.0,
        le=300.0,
        description="Timeout in seconds for one LLM call",
    )
    judge_max_tokens: int = Field(default=4096, ge=256)
    refine_max_tokens: int = Field(default=2048, ge=256)
    rank_max_tokens: int = Field(default=2048, ge=256)
    plan_max_tokens: int = Field(default=3072, ge=256)

    # Prompt content
    target_market: str = Field(
        default="Japan",
        description="Market the products would be traced into",
    )
    max_user_context: int = Field(
        default=500,
        ge=0,
        description="Max characters of free-text evaluator context",
    )
    description_chars: int = Field(
        default=400,
        ge=50,
        description="Item description characters sent to the evaluator",
    )
    max_tags: int = Field(default=8, ge=0)

    # Orchestration
    batch_count: int = Field(
        default=2,
        ge=1,
        le=10,
        description="Parallel evaluator batches per run",
    )
    failure_rate_threshold: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Fallback fraction above which results are flagged unreliable",
    )

    # Relative ranking
    rank_top_n: int = Field(default=10, ge=2)
    rank_min_candidates: int = Field(default=3, ge=2)
    rank_max_bonus: float = Field(
        default=2.0,
        ge=0.0,
        description="Adjustment for rank 1 (the last rank gets the negative)",
    )

    # Trace plans
    plan_top_n: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Top pass candidates that get a localized MVP plan",
    )
