"""Relative ranking of the top candidates.

Absolute scores from separate batches are not directly comparable, so the
best candidates are compared against each other in one call and the
resulting order is folded back into their totals as a bounded, symmetric
adjustment: rank 1 gets +max_bonus, the last usable rank gets -max_bonus,
linear in between.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from tracescout.scoring.config import ScoringConfig
from tracescout.scoring.evaluator import EvaluationTask, Evaluator, PayloadError, unwrap_items
from tracescout.scoring.schemas import Candidate, RankJudgment

logger = logging.getLogger(__name__)


@dataclass
class RankingResult:
    """Outcome of a ranking pass."""

    considered: int = 0
    ranked_ids: list[str] = field(default_factory=list)
    skipped: bool = False
    errors: list[str] = field(default_factory=list)


def rank_adjustment(position: int, count: int, max_bonus: float) -> float:
    """
    Adjustment for the 0-based ``position`` among ``count`` ranked candidates.

    Example:
        >>> [rank_adjustment(p, 3, 2.0) for p in range(3)]
        [2.0, 0.0, -2.0]
    """
    if count < 2:
        return 0.0
    return max_bonus - 2 * max_bonus * position / (count - 1)


def select_ranking_pool(candidates: list[Candidate], top_n: int) -> list[Candidate]:
    """The ``top_n`` non-fail candidates with a positive total, best first."""
    eligible = [c for c in candidates if not c.is_fail and c.total_score > 0]
    eligible.sort(key=lambda c: c.total_score, reverse=True)
    return eligible[:top_n]


class RelativeRanker:
    """Adjusts the totals of the top candidates from one comparative call."""

    def __init__(self, evaluator: Evaluator, config: ScoringConfig | None = None) -> None:
        self._evaluator = evaluator
        self._config = config or ScoringConfig()

    def _item_payload(self, candidate: Candidate) -> dict[str, Any]:
        return {
            "id": candidate.id,
            "title": candidate.localized_title or candidate.title,
            "description": candidate.localized_description[: self._config.description_chars],
            "total_score": candidate.total_score,
            "competitors": candidate.competitors,
        }

    async def rank(
        self,
        candidates: list[Candidate],
        context: str | None = None,
    ) -> RankingResult:
        """
        Rank the top candidates relative to each other.

        Only ``total_score`` and the ``rank_*`` fields of the selected
        candidates change. Fewer than two usable rankings leaves every
        candidate untouched.

        Args:
            candidates: All candidates of the run (updated in place).
            context: Optional free-text context passed to the evaluator.

        Returns:
            RankingResult describing what was applied.
        """
        pool = select_ranking_pool(candidates, self._config.rank_top_n)
        result = RankingResult(considered=len(pool))
        if len(pool) < self._config.rank_min_candidates:
            result.skipped = True
            return result

        try:
            payload = await self._evaluator.evaluate(
                EvaluationTask.RANK,
                [self._item_payload(c) for c in pool],
                context,
            )
            raw_items = unwrap_items(payload)
        except PayloadError as e:
            logger.warning("Unusable ranking payload: %s", e)
            result.errors.append(f"Ranking response could not be parsed: {e}")
            return result
        except Exception as e:
            logger.warning("Ranking call failed: %s", e)
            result.errors.append(f"Ranking failed: {e}")
            return result

        by_id = {c.id: c for c in pool}
        usable: list[RankJudgment] = []
        seen: set[str] = set()
        for raw in raw_items:
            try:
                judgment = RankJudgment.model_validate(raw)
            except ValidationError:
                continue
            if judgment.id in by_id and judgment.id not in seen:
                seen.add(judgment.id)
                usable.append(judgment)

        if len(usable) < 2:
            result.errors.append(f"Ranking returned {len(usable)} usable entries; totals unchanged")
            return result

        usable.sort(key=lambda j: j.rank)
        for position, judgment in enumerate(usable):
            adjustment = rank_adjustment(position, len(usable), self._config.rank_max_bonus)
            by_id[judgment.id].apply_rank(position + 1, adjustment, judgment.reason)
            result.ranked_ids.append(judgment.id)

        logger.info("Applied relative ranking to %d of %d candidates", len(usable), len(pool))
        return result
