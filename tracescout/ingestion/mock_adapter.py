"""
Mock fetcher for testing and development.

Generates synthetic product launches that look like real feed entries.
Useful for:
- Running the pipeline without network access or feed plugins
- Exercising dedup (mock feeds share part of their URL space)
- Development and debugging
"""

import random
from datetime import datetime, timedelta, timezone
from typing import Any

from tracescout.ingestion.base_adapter import BaseFetcher
from tracescout.ingestion.schemas import RawItem, Source

# (name stem, description, tags)
PRODUCT_TEMPLATES = [
    ("ShopPulse", "Cart abandonment recovery for Shopify merchants", ["ecommerce", "shopify"]),
    ("StockSage", "Inventory management with demand forecasting for small retailers", ["retail"]),
    ("CrewBoard", "Scheduling and digitized daily reports for construction crews", ["construction"]),
    ("ChairTime", "Online booking and reminders for salons and barbers", ["booking"]),
    ("TableTurn", "Waitlist and table management for restaurants", ["restaurant"]),
    ("FormFlow", "No-code form builder for small business owners", ["no-code"]),
    ("EasyAgent", "AI helps small teams automate customer email without code", ["automation"]),
    ("GigLink", "Marketplace connecting freelance designers with clients", ["freelance"]),
    ("SkillSwap", "Peer-to-peer tutoring matching platform", ["education"]),
    ("LedgerLite", "Bookkeeping and tax tool for solo founders", ["accounting"]),
    ("HireLoop", "Lightweight ATS for startups hiring their first 10 people", ["recruiting"]),
    ("Deployly", "Open-source deploy previews for every pull request", ["devops", "ci-cd"]),
    ("LogLens", "Self-hosted log monitoring with zero config", ["observability"]),
    ("SchemaPilot", "Database migration linter for developers", ["database"]),
    ("PromptDesk", "Prompt management and versioning for LLM apps", ["llm"]),
    ("ClipForge", "Generate short video clips from long podcasts with AI", ["video", "ai"]),
    ("ChatDocs", "Chatbot over your internal docs using RAG", ["rag", "chatbot"]),
    ("FocusNote", "Minimal journaling app with weekly reflections", ["productivity"]),
    ("HabitHive", "Social habit tracker for friends", ["habits"]),
    ("PackRight", "Travel packing lists that learn from your trips", ["travel"]),
]

_BASE_URLS = {
    Source.HACKERNEWS.value: "https://news.ycombinator.com/item?id={n}",
    Source.GITHUB.value: "https://github.com/mock/{slug}",
    Source.PRODUCTHUNT.value: "https://www.producthunt.com/posts/{slug}",
    Source.INDIEHACKERS.value: "https://www.indiehackers.com/product/{slug}",
    Source.BETALIST.value: "https://betalist.com/startups/{slug}",
    Source.REDDIT.value: "https://www.reddit.com/r/SaaS/comments/{n}",
}

# Popularity ranges per source, mimicking each feed's native scale
_SCORE_RANGES = {
    Source.HACKERNEWS.value: (5, 900),
    Source.GITHUB.value: (10, 6000),
    Source.PRODUCTHUNT.value: (20, 1200),
    Source.INDIEHACKERS.value: (1, 150),
    Source.BETALIST.value: (0, 0),
    Source.REDDIT.value: (1, 400),
}


class MockFetcher(BaseFetcher):
    """
    Fetcher that fabricates product launches for one source.

    About a third of the generated items link to the shared product site
    (``https://{slug}.example.com``) instead of the feed page, so items
    from different mock feeds collide during dedup, as real cross-posts do.
    """

    def __init__(
        self,
        source: Source = Source.HACKERNEWS,
        items_per_fetch: int | None = None,
        seed: int | None = None,
    ):
        """
        Initialize mock fetcher.

        Args:
            source: Which feed to mimic
            items_per_fetch: Cap on generated items (defaults to the limit)
            seed: Random seed for reproducible output
        """
        super().__init__()
        self._source = source
        self._items_per_fetch = items_per_fetch
        self._random = random.Random(seed)
        self._fetch_count = 0

    @property
    def name(self) -> str:
        return self._source.value

    @property
    def fetch_count(self) -> int:
        """Number of times the feed was actually hit."""
        return self._fetch_count

    async def _fetch_raw(self, limit: int) -> list[dict[str, Any]]:
        """Generate mock raw records."""
        self._fetch_count += 1
        count = limit if self._items_per_fetch is None else min(limit, self._items_per_fetch)
        now = datetime.now(timezone.utc)
        low, high = _SCORE_RANGES[self._source.value]

        records = []
        for n in range(count):
            stem, description, tags = PRODUCT_TEMPLATES[n % len(PRODUCT_TEMPLATES)]
            variant = n // len(PRODUCT_TEMPLATES)
            slug = f"{stem.lower()}-{variant}" if variant else stem.lower()
            shared = self._random.random() < 0.33
            url = (
                f"https://www.{slug}.example.com/?utm_source={self._source.value}"
                if shared
                else _BASE_URLS[self._source.value].format(n=100000 + n, slug=slug)
            )
            records.append({
                "native_id": f"{slug}-{n}",
                "title": stem if not variant else f"{stem} {variant + 1}",
                "description": description,
                "url": url,
                "tags": tags,
                "score": self._random.randint(low, high) if high else None,
                "published": now - timedelta(hours=self._random.randint(1, 72)),
            })
        return records

    def _transform(self, raw: dict[str, Any]) -> RawItem | None:
        """Convert a mock record to a RawItem."""
        return RawItem(
            id=f"{self._source.value}-{raw['native_id']}",
            source=self._source,
            title=raw["title"],
            description=raw["description"],
            url=raw["url"],
            tags=raw["tags"],
            published_at=raw["published"],
            source_score=raw["score"],
        )


def create_mock_fetchers(
    items_per_fetch: int | None = None,
    seed: int | None = None,
) -> list[MockFetcher]:
    """
    Create one mock fetcher per known source.

    Args:
        items_per_fetch: Cap on items per source per fetch
        seed: Base random seed (each source gets seed + offset)

    Returns:
        List of mock fetchers
    """
    return [
        MockFetcher(
            source=source,
            items_per_fetch=items_per_fetch,
            seed=None if seed is None else seed + offset,
        )
        for offset, source in enumerate(Source)
    ]
