"""Confidence-gated refinement of demand and gap scores.

Candidates whose demand or gap was judged with low confidence get one more,
deeper look. Only those two axes are replaced; trace_speed, risk_low, gate
and localization stay as the main pass left them.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from tracescout.scoring.config import ScoringConfig
from tracescout.scoring.evaluator import EvaluationTask, Evaluator, PayloadError, unwrap_items
from tracescout.scoring.schemas import Candidate, RefinementJudgment

logger = logging.getLogger(__name__)


@dataclass
class RefinementResult:
    """Outcome of a refinement pass."""

    targeted: int = 0
    refined_ids: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def refined(self) -> int:
        return len(self.refined_ids)


def select_refinement_targets(candidates: list[Candidate]) -> list[Candidate]:
    """Non-fail candidates with a low-confidence demand or gap score."""
    return [
        c for c in candidates
        if not c.is_fail and c.scores is not None and c.scores.needs_refinement
    ]


class ConfidenceRefiner:
    """Re-scores low-confidence candidates in a single evaluator call.

    Candidates are updated in place. Any failure of the call or the envelope
    leaves every candidate untouched and is reported as an error string.
    """

    def __init__(self, evaluator: Evaluator, config: ScoringConfig | None = None) -> None:
        self._evaluator = evaluator
        self._config = config or ScoringConfig()

    def _item_payload(self, candidate: Candidate) -> dict[str, Any]:
        scores = candidate.scores
        return {
            "id": candidate.id,
            "title": candidate.title,
            "description": candidate.item.description[: self._config.description_chars],
            "current_demand": scores.demand.model_dump(mode="json") if scores else None,
            "current_gap": scores.gap.model_dump(mode="json") if scores else None,
            "competitors": candidate.competitors,
        }

    async def refine(
        self,
        candidates: list[Candidate],
        context: str | None = None,
    ) -> RefinementResult:
        targets = select_refinement_targets(candidates)
        result = RefinementResult(targeted=len(targets))
        if not targets:
            return result

        try:
            payload = await self._evaluator.evaluate(
                EvaluationTask.REFINE,
                [self._item_payload(c) for c in targets],
                context,
            )
            raw_items = unwrap_items(payload)
        except PayloadError as e:
            logger.warning("Unusable refinement payload: %s", e)
            result.errors.append(f"Refinement response could not be parsed: {e}")
            return result
        except Exception as e:
            logger.warning("Refinement call failed: %s", e)
            result.errors.append(f"Refinement failed: {e}")
            return result

        by_id = {c.id: c for c in targets}
        invalid = 0
        for raw in raw_items:
            try:
                judgment = RefinementJudgment.model_validate(raw)
            except ValidationError:
                invalid += 1
                continue
            candidate = by_id.pop(judgment.id, None)
            if candidate is None:
                continue
            candidate.update_market_scores(judgment.demand, judgment.gap)
            result.refined_ids.append(candidate.id)

        if invalid:
            result.errors.append(f"{invalid} refinement judgments failed validation")

        logger.info("Refined %d of %d low-confidence candidates", result.refined, result.targeted)
        return result
