"""Category-balanced candidate selection.

Picks a fixed-size evaluation set from the normalized pool. Taking the top
N by popularity alone hands most slots to whichever category dominates the
feeds that day (usually AI tools), so selection runs in phases:

  RESERVE: up to ``min_per_category`` best items from every category
  FILL:    best remaining items by popularity, per-category cap enforced
  RELAX:   cap lifted, best remaining items until the target is met

The phases form an explicit state machine so that each one's edge cases
(empty categories, under-supply) can be tested in isolation.
"""

import enum
import logging
from collections import Counter, defaultdict
from collections.abc import Sequence
from dataclasses import dataclass, field

from tracescout.ingestion.schemas import MarketCategory, NormalizedItem, source_priority
from tracescout.selection.config import SelectionConfig

logger = logging.getLogger(__name__)


class SelectionPhase(enum.Enum):
    """Phases of diversity selection."""

    RESERVE = "reserve"
    FILL = "fill"
    RELAX = "relax"
    DONE = "done"


@dataclass
class SelectionResult:
    """Selected items plus how they were chosen.

    Attributes:
        items: Selected items, in selection order.
        final_phase: Last phase that added items (RESERVE, FILL or RELAX).
        category_counts: Number of selected items per category.
        phase_counts: Number of items added by each phase.
    """

    items: list[NormalizedItem]
    final_phase: SelectionPhase
    category_counts: dict[MarketCategory, int] = field(default_factory=dict)
    phase_counts: dict[SelectionPhase, int] = field(default_factory=dict)


def _rank_key(item: NormalizedItem) -> tuple[float, int, str]:
    return (-item.overseas_popularity, -source_priority(item.source), item.id)


class DiversitySelector:
    """Selects a category-balanced, score-aware candidate set.

    Args:
        config: Selection settings. Defaults to SelectionConfig().
    """

    def __init__(self, config: SelectionConfig | None = None) -> None:
        self._config = config or SelectionConfig()

    @property
    def target(self) -> int:
        return self._config.target

    def select(self, items: Sequence[NormalizedItem]) -> SelectionResult:
        """
        Select ``min(target, len(items))`` items.

        Args:
            items: Deduplicated pool.

        Returns:
            SelectionResult; never contains items that were not in the pool.
        """
        target = self._config.target
        cap = self._config.max_per_category

        pool = sorted(items, key=_rank_key)
        selected: list[NormalizedItem] = []
        chosen: set[str] = set()
        counts: Counter[MarketCategory] = Counter()
        phase_counts: Counter[SelectionPhase] = Counter()
        final_phase = SelectionPhase.RESERVE

        def take(item: NormalizedItem, phase: SelectionPhase) -> None:
            selected.append(item)
            chosen.add(item.dedup_key)
            counts[item.market_category] += 1
            phase_counts[phase] += 1

        phase = SelectionPhase.RESERVE
        while phase is not SelectionPhase.DONE:
            before = len(selected)

            if phase is SelectionPhase.RESERVE:
                by_category: dict[MarketCategory, list[NormalizedItem]] = defaultdict(list)
                for item in pool:
                    by_category[item.market_category].append(item)
                quota = min(self._config.min_per_category, cap)
                for category in MarketCategory:
                    for item in by_category.get(category, [])[:quota]:
                        if len(selected) >= target:
                            break
                        take(item, phase)
                next_phase = SelectionPhase.FILL

            elif phase is SelectionPhase.FILL:
                for item in pool:
                    if len(selected) >= target:
                        break
                    if item.dedup_key in chosen or counts[item.market_category] >= cap:
                        continue
                    take(item, phase)
                next_phase = SelectionPhase.RELAX

            else:  # RELAX
                for item in pool:
                    if len(selected) >= target:
                        break
                    if item.dedup_key not in chosen:
                        take(item, phase)
                next_phase = SelectionPhase.DONE

            if len(selected) > before:
                final_phase = phase
            if len(selected) >= target or len(selected) == len(pool):
                next_phase = SelectionPhase.DONE
            phase = next_phase

        if phase_counts[SelectionPhase.RELAX]:
            logger.info(
                "Category cap lifted: %d items added past cap %d",
                phase_counts[SelectionPhase.RELAX], cap,
            )
        logger.info(
            "Selected %d of %d items across %d categories",
            len(selected), len(pool), len(counts),
        )

        return SelectionResult(
            items=selected,
            final_phase=final_phase,
            category_counts=dict(counts),
            phase_counts=dict(phase_counts),
        )
