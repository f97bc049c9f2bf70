"""Main evaluation pass: gate, score and localize the selected items.

The selected set is split into contiguous batches that are evaluated
concurrently, which bounds both latency and per-call payload size. Every
input item comes out as exactly one Candidate, in input order. Items the
evaluator failed to judge (batch failure, invalid judgment, no match) get
a fallback candidate instead of disappearing.
"""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from pydantic import ValidationError

from tracescout.ingestion.schemas import NormalizedItem
from tracescout.scoring.config import ScoringConfig
from tracescout.scoring.evaluator import EvaluationTask, Evaluator, PayloadError, unwrap_items
from tracescout.scoring.schemas import Candidate, Judgment

logger = logging.getLogger(__name__)

# Validation errors quoted per batch in the run error list
MAX_SAMPLE_ERRORS = 2


@dataclass
class BatchResult:
    """Outcome of one evaluator batch."""

    candidates: list[Candidate]
    errors: list[str] = field(default_factory=list)
    dropped: int = 0
    positional: bool = False
    failed: bool = False


@dataclass
class EvaluationResult:
    """Outcome of the main evaluation pass.

    Attributes:
        candidates: One per input item, in input order.
        errors: Recoverable problems, in batch order.
        reliability_warning: True when the fallback fraction exceeded the
            configured threshold.
        dropped_judgments: Judgments rejected by schema validation.
        positional_batches: Batches matched by position instead of index.
        failed_batches: Batches whose evaluator call or envelope failed.
    """

    candidates: list[Candidate]
    errors: list[str] = field(default_factory=list)
    reliability_warning: bool = False
    dropped_judgments: int = 0
    positional_batches: int = 0
    failed_batches: int = 0

    @property
    def fallback_count(self) -> int:
        return sum(1 for c in self.candidates if c.is_fallback)


def split_batches(items: Sequence[NormalizedItem], count: int) -> list[tuple[int, list[NormalizedItem]]]:
    """
    Split items into ``count`` contiguous, near-equal batches.

    Returns:
        (index offset, batch) pairs; empty batches are omitted.
    """
    size = -(-len(items) // count) if items else 0
    batches = []
    for offset in range(0, len(items), max(size, 1)):
        batches.append((offset, list(items[offset:offset + size])))
    return batches


class EvaluationOrchestrator:
    """Runs the batched main evaluation pass.

    Args:
        evaluator: Evaluator capability (e.g. LLMClient).
        config: Scoring configuration. Defaults to ScoringConfig().
    """

    def __init__(self, evaluator: Evaluator, config: ScoringConfig | None = None) -> None:
        self._evaluator = evaluator
        self._config = config or ScoringConfig()

    def _item_payload(self, item: NormalizedItem, index: int) -> dict[str, Any]:
        return {
            "index": index,
            "title": item.title,
            "description": item.description[: self._config.description_chars],
            "tags": list(item.tags[: self._config.max_tags]),
            "source": item.source,
        }

    async def evaluate_all(
        self,
        items: Sequence[NormalizedItem],
        context: str | None = None,
    ) -> EvaluationResult:
        """
        Evaluate every item, falling back per item where judgment failed.

        Args:
            items: Selected items.
            context: Optional free-text context passed to the evaluator.

        Returns:
            EvaluationResult with exactly one candidate per input item.
        """
        batches = split_batches(items, self._config.batch_count)
        results = await asyncio.gather(*[
            self._evaluate_batch(batch, offset, context) for offset, batch in batches
        ])

        result = EvaluationResult(candidates=[])
        for batch_result in results:
            result.candidates.extend(batch_result.candidates)
            result.errors.extend(batch_result.errors)
            result.dropped_judgments += batch_result.dropped
            result.positional_batches += int(batch_result.positional)
            result.failed_batches += int(batch_result.failed)

        fallback = result.fallback_count
        if items and fallback / len(items) > self._config.failure_rate_threshold:
            result.reliability_warning = True
            result.errors.append(
                f"High evaluation failure rate: {fallback}/{len(items)} items "
                f"({round(100 * fallback / len(items))}%). Results may be unreliable."
            )
            logger.warning("Evaluation failure rate %d/%d exceeds threshold", fallback, len(items))

        logger.info(
            "Evaluated %d items in %d batches: %d fallback, %d dropped judgments",
            len(items), len(batches), fallback, result.dropped_judgments,
        )
        return result

    async def _evaluate_batch(
        self,
        items: list[NormalizedItem],
        offset: int,
        context: str | None,
    ) -> BatchResult:
        """Evaluate one batch; any failure degrades to fallback candidates."""
        payload_items = [self._item_payload(item, offset + i) for i, item in enumerate(items)]

        try:
            payload = await self._evaluator.evaluate(EvaluationTask.JUDGE, payload_items, context)
            raw_items = unwrap_items(payload)
        except PayloadError as e:
            logger.warning("Unusable evaluator payload for batch at %d: %s", offset, e)
            return BatchResult(
                candidates=[Candidate.fallback(item) for item in items],
                errors=[f"Evaluator response could not be parsed: {e}"],
                failed=True,
            )
        except Exception as e:
            logger.warning("Evaluator call failed for batch at %d: %s", offset, e)
            return BatchResult(
                candidates=[Candidate.fallback(item) for item in items],
                errors=[f"Evaluator call failed: {e}"],
                failed=True,
            )

        errors: list[str] = []
        judgments: list[Judgment] = []
        samples: list[str] = []
        for raw in raw_items:
            try:
                judgments.append(Judgment.model_validate(raw))
            except ValidationError as e:
                if len(samples) < MAX_SAMPLE_ERRORS:
                    samples.append(str(e.errors()[:3]))
        dropped = len(raw_items) - len(judgments)
        if dropped:
            errors.append(
                f"{dropped} of {len(raw_items)} judgments failed validation "
                f"(fallback applied). Examples: {' | '.join(samples)}"
            )

        by_index: dict[int, Judgment] = {}
        for judgment in judgments:
            if judgment.index is not None:
                by_index.setdefault(judgment.index, judgment)

        matched = [by_index.get(offset + i) for i in range(len(items))]
        positional = not any(matched) and len(judgments) == len(items) and bool(items)
        if positional:
            matched = list(judgments)
            errors.append("Evaluator returned shifted or missing indices; matched by position")
            logger.info("Positional matching for batch at %d", offset)

        candidates = [
            Candidate.from_judgment(item, judgment) if judgment else Candidate.fallback(item)
            for item, judgment in zip(items, matched)
        ]
        return BatchResult(candidates=candidates, errors=errors, dropped=dropped, positional=positional)
