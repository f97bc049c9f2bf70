"""
Fetcher interface shared by every content feed.

Scraping individual feeds happens outside the core pipeline; anything that
satisfies the ``Fetcher`` protocol can be plugged in. ``BaseFetcher`` is a
convenience base class that adds transform-error isolation, limit
enforcement, and per-run stats logging around a subclass's raw fetch.
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from tracescout.ingestion.schemas import RawItem

logger = logging.getLogger(__name__)


@runtime_checkable
class Fetcher(Protocol):
    """A per-source fetch capability.

    ``fetch`` may raise; retries are the pipeline's job, via its ceiling
    ladder, not the fetcher's.
    """

    name: str

    async def fetch(self, limit: int) -> list[RawItem]:
        ...


@dataclass
class FetcherStats:
    """Statistics for one fetch call."""

    items_fetched: int = 0
    items_filtered: int = 0
    errors: int = 0
    start_time: float = field(default_factory=time.monotonic)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time


class BaseFetcher(ABC):
    """
    Abstract base class for feed fetchers.

    Subclasses must implement:
        - name: Source name, also used in cache keys
        - _fetch_raw(limit): Raw feed records (dicts)
        - _transform(raw): Convert one record to a RawItem (or None to skip)

    A record that fails to transform is logged and skipped; a failure of
    ``_fetch_raw`` itself propagates so the pipeline can count the whole
    source as failed.
    """

    def __init__(self) -> None:
        self._stats = FetcherStats()

    @property
    @abstractmethod
    def name(self) -> str:
        """Source name (e.g. ``hackernews``)."""
        ...

    @abstractmethod
    async def _fetch_raw(self, limit: int) -> list[dict[str, Any]]:
        """Fetch up to ``limit`` raw records from the feed."""
        ...

    @abstractmethod
    def _transform(self, raw: dict[str, Any]) -> RawItem | None:
        """
        Transform a raw record to a RawItem.

        This method should NOT raise exceptions - return None for records
        that should be skipped.
        """
        ...

    async def fetch(self, limit: int) -> list[RawItem]:
        """
        Fetch and transform items from the feed.

        Args:
            limit: Item-count ceiling for this attempt.

        Returns:
            At most ``limit`` RawItems.
        """
        self._stats = FetcherStats()
        items: list[RawItem] = []

        try:
            for raw in await self._fetch_raw(limit):
                try:
                    item = self._transform(raw)
                except Exception as e:
                    self._stats.errors += 1
                    logger.error("Error transforming record in %s: %s", self.name, e, exc_info=True)
                    continue
                if item is None:
                    self._stats.items_filtered += 1
                    continue
                items.append(item)
                if len(items) >= limit:
                    break
        except Exception as e:
            self._stats.errors += 1
            logger.warning("Fetch failed for %s: %s", self.name, e)
            raise
        finally:
            self._stats.items_fetched = len(items)
            logger.info(
                "%s completed: fetched=%d, filtered=%d, errors=%d, elapsed=%.2fs",
                self.name,
                self._stats.items_fetched,
                self._stats.items_filtered,
                self._stats.errors,
                self._stats.elapsed_seconds,
            )

        return items

    @property
    def stats(self) -> FetcherStats:
        """Get statistics for the most recent fetch."""
        return self._stats
