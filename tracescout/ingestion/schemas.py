"""
Item schemas for the ingestion side of the trace pipeline.

RawItem is what a fetch adapter hands over; NormalizedItem is what survives
deduplication, carrying the canonical key, the merged tags, the per-source
popularity score and the market category. Both are frozen: downstream stages
build Candidates around them instead of editing them.
"""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class Source(str, Enum):
    """Content feeds the pipeline knows how to rank."""

    HACKERNEWS = "hackernews"
    GITHUB = "github"
    PRODUCTHUNT = "producthunt"
    INDIEHACKERS = "indiehackers"
    BETALIST = "betalist"
    REDDIT = "reddit"


# Dedup tie-break: higher wins. Ordered by how trustworthy and score-rich
# each feed's metadata is.
SOURCE_PRIORITY: dict[str, int] = {
    Source.HACKERNEWS.value: 6,
    Source.GITHUB.value: 5,
    Source.PRODUCTHUNT.value: 4,
    Source.INDIEHACKERS.value: 3,
    Source.BETALIST.value: 2,
    Source.REDDIT.value: 1,
}


def source_priority(source: str) -> int:
    """Priority of a source name; unknown feeds rank below every known one."""
    if isinstance(source, Source):
        source = source.value
    return SOURCE_PRIORITY.get(source, 0)


class MarketCategory(str, Enum):
    """Target-market category assigned by keyword classification."""

    EC_OPTIMIZE = "ec-optimize"
    ANALOG_DX = "analog-dx"
    INFO_GAP_AI = "info-gap-ai"
    MARKETPLACE = "marketplace"
    VERTICAL_SAAS = "vertical-saas"
    DEVTOOL = "devtool"
    AI_TOOL = "ai-tool"
    OTHER = "other"


class RawItem(BaseModel):
    """
    One entry as produced by a fetch adapter.

    ``source_score`` is the feed's native popularity number (points, stars,
    upvotes) and is only comparable within the same source.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1, description="Feed-unique id, e.g. hn-123")
    source: str = Field(..., min_length=1, description="Source name (see Source)")
    title: str = Field(..., min_length=1)
    description: str = ""
    url: str = ""
    tags: tuple[str, ...] = ()
    published_at: datetime = Field(default_factory=_utc_now)
    source_score: float | None = None
    category_hint: str | None = None

    @field_validator("source", mode="before")
    @classmethod
    def source_name(cls, v: object) -> str:
        """Store Source members as their plain string value."""
        if isinstance(v, Enum):
            return str(v.value)
        return str(v).strip().lower()

    @field_validator("title", "description")
    @classmethod
    def collapse_whitespace(cls, v: str) -> str:
        return " ".join(v.split())

    @field_validator("tags", mode="before")
    @classmethod
    def clean_tags(cls, v: object) -> tuple[str, ...]:
        if v is None:
            return ()
        tags = []
        for tag in v:  # type: ignore[union-attr]
            t = str(tag).strip()
            if t:
                tags.append(t)
        return tuple(tags)


class NormalizedItem(RawItem):
    """A deduplicated item ready for diversity selection."""

    dedup_key: str
    overseas_popularity: float = Field(default=0.0, ge=0.0, le=1.0)
    market_category: MarketCategory = MarketCategory.OTHER
