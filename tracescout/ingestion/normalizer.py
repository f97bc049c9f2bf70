"""
Item normalization: dedup, per-source popularity scaling, categorization.

Raw popularity numbers are not comparable across feeds (a 300-point HN
story and a 300-star repo mean very different things), so each source is
min-max scaled on its own before items compete for selection slots.
"""

import logging
from collections import defaultdict
from collections.abc import Sequence

from tracescout.ingestion.categories import classify_market_category
from tracescout.ingestion.deduplication import deduplicate
from tracescout.ingestion.schemas import NormalizedItem, RawItem

logger = logging.getLogger(__name__)

# Score given to every scored item of a source whose scores are all equal
FLAT_POPULARITY = 0.5


def normalize_popularity(items: Sequence[RawItem]) -> list[float]:
    """
    Min-max scale ``source_score`` into [0, 1] within each source.

    Items without a score do not take part in the min/max computation and
    score 0.0. A source whose scored items all share one value gets
    FLAT_POPULARITY for each of them.

    Args:
        items: Items from any mix of sources.

    Returns:
        One popularity value per input item, in input order.
    """
    bounds: dict[str, tuple[float, float]] = {}
    by_source: dict[str, list[float]] = defaultdict(list)
    for item in items:
        if item.source_score is not None:
            by_source[item.source].append(float(item.source_score))
    for source, scores in by_source.items():
        bounds[source] = (min(scores), max(scores))

    result: list[float] = []
    for item in items:
        if item.source_score is None:
            result.append(0.0)
            continue
        low, high = bounds[item.source]
        if high == low:
            result.append(FLAT_POPULARITY)
        else:
            result.append((float(item.source_score) - low) / (high - low))
    return result


class ItemNormalizer:
    """Turns one fetch attempt's raw items into NormalizedItems.

    Usage:
        items = ItemNormalizer().normalize(raw_items)
    """

    def normalize(self, raw_items: Sequence[RawItem]) -> list[NormalizedItem]:
        """
        Deduplicate, score and categorize raw items.

        Popularity is computed after the merge so that only surviving items
        define each source's range.

        Returns:
            One NormalizedItem per canonical URL key.
        """
        dedup = deduplicate(raw_items)
        survivors = [item for _, item in dedup.items]
        popularity = normalize_popularity(survivors)

        normalized = []
        for (key, item), score in zip(dedup.items, popularity):
            category = classify_market_category(
                item.title, item.description, item.tags, item.category_hint,
            )
            normalized.append(
                NormalizedItem(
                    **item.model_dump(),
                    dedup_key=key,
                    overseas_popularity=score,
                    market_category=category,
                )
            )

        logger.info(
            "Normalized %d raw items into %d unique (%d duplicates)",
            len(raw_items), len(normalized), dedup.duplicates,
        )
        return normalized
