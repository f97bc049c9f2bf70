"""Localized MVP plans for the strongest candidates.

After scoring, the top pass candidates get a concrete plan for launching a
localized version: who it is for, what to adapt, how to build and launch it
and how to charge for it. Plans are an extra on top of the ranked list; a
failed planning call costs the plans and nothing else.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from tracescout.scoring.config import ScoringConfig
from tracescout.scoring.evaluator import EvaluationTask, Evaluator, PayloadError, unwrap_items
from tracescout.scoring.schemas import Candidate, GateOutcome, TracePlan

logger = logging.getLogger(__name__)


@dataclass
class PlanningResult:
    """Outcome of a planning pass."""

    targeted: int = 0
    plans: list[TracePlan] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)


def select_plan_targets(candidates: list[Candidate], top_n: int) -> list[Candidate]:
    """
    Pick the candidates worth planning.

    Only a clear "pass" qualifies ("maybe" does not). Ties keep input order.
    """
    passed = [
        c for c in candidates
        if c.gate.result is GateOutcome.PASS and c.scores is not None
    ]
    return sorted(passed, key=lambda c: c.total_score, reverse=True)[:top_n]


class TracePlanner:
    """Requests one trace plan per top candidate in a single evaluator call."""

    def __init__(self, evaluator: Evaluator, config: ScoringConfig | None = None) -> None:
        self._evaluator = evaluator
        self._config = config or ScoringConfig()

    def _item_payload(self, candidate: Candidate) -> dict[str, Any]:
        return {
            "id": candidate.id,
            "title": candidate.title,
            "description": candidate.item.description[: self._config.description_chars],
            "url": candidate.item.url,
            "source": candidate.item.source,
            "total_score": candidate.total_score,
            "competitors": candidate.competitors,
        }

    def targets(self, candidates: list[Candidate]) -> list[Candidate]:
        return select_plan_targets(candidates, self._config.plan_top_n)

    async def plan(
        self,
        candidates: list[Candidate],
        context: str | None = None,
    ) -> PlanningResult:
        """
        Generate plans for the top pass candidates.

        Args:
            candidates: Scored (and possibly ranked) candidates.
            context: Optional free-text evaluator context.

        Returns:
            PlanningResult with plans in target order. Entries for unknown
            ids or repeated ids are ignored; invalid entries are counted.
        """
        targets = self.targets(candidates)
        result = PlanningResult(targeted=len(targets))
        if not targets:
            return result

        try:
            payload = await self._evaluator.evaluate(
                EvaluationTask.PLAN,
                [self._item_payload(c) for c in targets],
                context,
            )
            raw_items = unwrap_items(payload)
        except PayloadError as e:
            logger.warning("Unusable plan payload: %s", e)
            result.errors.append(f"Trace plan response could not be parsed: {e}")
            return result
        except Exception as e:
            logger.warning("Trace plan call failed: %s", e)
            result.errors.append(f"Trace planning failed: {e}")
            return result

        by_id = {c.id: c for c in targets}
        plans: dict[str, TracePlan] = {}
        invalid = 0
        for raw in raw_items:
            try:
                plan = TracePlan.model_validate(raw)
            except ValidationError:
                invalid += 1
                continue
            candidate = by_id.get(plan.id)
            if candidate is None or plan.id in plans:
                continue
            if not plan.original_url:
                plan = plan.model_copy(update={"original_url": candidate.item.url})
            plans[plan.id] = plan

        if invalid:
            result.errors.append(f"{invalid} trace plans failed validation")

        result.plans = [plans[c.id] for c in targets if c.id in plans]
        logger.info("Planned %d of %d top candidates", len(result.plans), result.targeted)
        return result
