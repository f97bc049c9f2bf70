"""
Pipeline service - sequences one trace-discovery run.

Stages:
    fetching -> fetched -> evaluating -> evaluated -> refining -> refined
    -> ranking -> planning -> planned -> done

with ``error`` as the terminal event of a run that found nothing to
evaluate. A cancelled run stops quietly: no further events, and ``run``
returns a RunResult with ``aborted=True``.

Features:
- Ceiling ladder: fetch with a small per-source ceiling first and refetch
  with the next ceiling only when too few items survive dedup
- All sources of an attempt fetched concurrently through the result cache;
  failed sources are reported, not fatal
- Cooperative cancellation that also cancels in-flight fetch and evaluator
  calls
- Per-run structured log context (``run_id``)
"""

import asyncio
import functools
import time
import uuid
from collections import Counter
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

import structlog

from tracescout.cache.result_cache import ResultCache, cache_key
from tracescout.config.settings import get_settings
from tracescout.ingestion.base_adapter import Fetcher
from tracescout.ingestion.normalizer import ItemNormalizer
from tracescout.ingestion.schemas import NormalizedItem, RawItem
from tracescout.observability.logging import bind_context, clear_context
from tracescout.scoring.config import ScoringConfig
from tracescout.scoring.evaluator import Evaluator
from tracescout.scoring.orchestrator import EvaluationOrchestrator
from tracescout.scoring.planner import TracePlanner
from tracescout.scoring.ranker import RelativeRanker
from tracescout.scoring.refiner import ConfidenceRefiner
from tracescout.scoring.schemas import Candidate, TracePlan
from tracescout.selection.diversity import DiversitySelector
from tracescout.services.cancellation import CancellationToken, PipelineCancelled
from tracescout.services.config import PipelineConfig
from tracescout.services.progress import PipelineStage, ProgressEvent, ProgressObserver

logger = structlog.get_logger(__name__)

T = TypeVar("T")

NO_ITEMS_MESSAGE = "No items could be fetched from any source"


@dataclass
class RunResult:
    """
    Final outcome of a pipeline run.

    Attributes:
        candidates: Every evaluated candidate, sorted by total score desc.
        top_plans: Localized MVP plans for the top pass candidates.
        errors: Recoverable problems collected along the way.
        reliability_warning: Too many items fell back to "evaluation failed".
        aborted: The run was cancelled.
        final_stage: DONE, ERROR or ABORTED.
        stats: Counters describing the run.
    """

    candidates: list[Candidate]
    top_plans: list[TracePlan] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    reliability_warning: bool = False
    aborted: bool = False
    final_stage: PipelineStage = PipelineStage.DONE
    stats: dict[str, Any] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.final_stage is PipelineStage.ERROR


@dataclass
class FetchAttempt:
    """One rung of the ceiling ladder."""

    number: int
    ceiling: int
    raw_count: int
    items: list[NormalizedItem]
    source_status: list[dict[str, Any]]
    errors: list[str]
    cached: bool


class _Emitter:
    """Delivers progress events, enforcing cancellation and terminal order.

    Every emit first checks the token, so nothing reaches the observer once
    a run is cancelled. Events after the terminal one are dropped.
    """

    def __init__(self, observer: ProgressObserver | None, token: CancellationToken) -> None:
        self._observer = observer
        self._token = token
        self._closed = False

    def __call__(self, stage: PipelineStage, message: str, payload: dict[str, Any] | None = None) -> None:
        self._token.raise_if_cancelled()
        if self._closed:
            return
        if stage.is_terminal:
            self._closed = True
        if self._observer is not None:
            self._observer(ProgressEvent(stage=stage, message=message, payload=payload or {}))


async def guard(awaitable: Awaitable[T], token: CancellationToken) -> T:
    """
    Await ``awaitable`` unless ``token`` fires first.

    When the token wins, the underlying task is cancelled and awaited
    before PipelineCancelled is raised, so no upstream call is left running.
    """
    task = asyncio.ensure_future(awaitable)
    if token.is_cancelled:
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise PipelineCancelled(token.reason)

    waiter = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if not task.done():
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise PipelineCancelled(token.reason)
    return task.result()


class TracePipeline:
    """
    Runs fetch, normalization, selection and the evaluation stages.

    Usage:
        pipeline = TracePipeline(fetchers, LLMClient(), cache=ResultCache())
        result = await pipeline.run(observer=print)
    """

    def __init__(
        self,
        fetchers: Sequence[Fetcher],
        evaluator: Evaluator,
        cache: ResultCache | None = None,
        selector: DiversitySelector | None = None,
        normalizer: ItemNormalizer | None = None,
        config: PipelineConfig | None = None,
        scoring_config: ScoringConfig | None = None,
    ):
        """
        Initialize the pipeline.

        Args:
            fetchers: One fetcher per source
            evaluator: Evaluator used by every evaluation stage
            cache: Shared result cache (or a private one using CACHE_TTL_SECONDS)
            selector: Diversity selector (or default SELECTION_* settings)
            normalizer: Item normalizer
            config: Pipeline settings (or PIPELINE_* env)
            scoring_config: Scoring settings (or SCORING_* env)
        """
        if not fetchers:
            raise ValueError("TracePipeline needs at least one fetcher")

        self._fetchers = list(fetchers)
        self._cache = cache or ResultCache(ttl_seconds=get_settings().cache_ttl_seconds)
        self._selector = selector or DiversitySelector()
        self._normalizer = normalizer or ItemNormalizer()
        self._config = config or PipelineConfig()

        scoring_config = scoring_config or ScoringConfig()
        self._orchestrator = EvaluationOrchestrator(evaluator, scoring_config)
        self._refiner = ConfidenceRefiner(evaluator, scoring_config)
        self._ranker = RelativeRanker(evaluator, scoring_config)
        self._planner = TracePlanner(evaluator, scoring_config)

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def source_names(self) -> list[str]:
        return [f.name for f in self._fetchers]

    async def run(
        self,
        observer: ProgressObserver | None = None,
        cancel: CancellationToken | None = None,
        context: str | None = None,
    ) -> RunResult:
        """
        Execute one run.

        Args:
            observer: Called with every ProgressEvent, in order
            cancel: Token that stops the run cooperatively
            context: Optional free-text evaluator context

        Returns:
            RunResult. Never raises for upstream or evaluator failures;
            those end up in ``errors``.
        """
        token = cancel or CancellationToken()
        emit = _Emitter(observer, token)
        run_id = uuid.uuid4().hex[:12]
        errors: list[str] = []
        stats: dict[str, Any] = {"run_id": run_id}
        started = time.monotonic()

        bind_context(run_id=run_id)
        logger.info("Pipeline run started", sources=self.source_names)
        try:
            result = await self._run_stages(emit, token, context, errors, stats)
        except PipelineCancelled:
            logger.info("Pipeline run aborted", reason=token.reason)
            result = RunResult(
                candidates=[],
                errors=errors,
                aborted=True,
                final_stage=PipelineStage.ABORTED,
                stats=stats,
            )
        finally:
            stats["elapsed_seconds"] = round(time.monotonic() - started, 3)
            clear_context()
        return result

    async def _run_stages(
        self,
        emit: _Emitter,
        token: CancellationToken,
        context: str | None,
        errors: list[str],
        stats: dict[str, Any],
    ) -> RunResult:
        attempt = await self._fetch_with_ladder(emit, token, errors, stats)
        if attempt is None:
            errors.append(NO_ITEMS_MESSAGE)
            logger.error("Pipeline run failed", errors=errors)
            emit(PipelineStage.ERROR, NO_ITEMS_MESSAGE, {"errors": list(errors)})
            return RunResult(candidates=[], errors=errors, final_stage=PipelineStage.ERROR, stats=stats)

        # Select
        selection = self._selector.select(attempt.items)
        stats["selected"] = len(selection.items)
        stats["selection_phase"] = selection.final_phase.value
        emit(
            PipelineStage.FETCHED,
            f"Selected {len(selection.items)} of {len(attempt.items)} unique items",
            {
                "raw_items": attempt.raw_count,
                "unique_items": len(attempt.items),
                "selected": len(selection.items),
                "ceiling": attempt.ceiling,
                "categories": {c.value: n for c, n in selection.category_counts.items()},
            },
        )

        # Evaluate
        emit(PipelineStage.EVALUATING, f"Evaluating {len(selection.items)} items")
        evaluation = await guard(self._orchestrator.evaluate_all(selection.items, context), token)
        candidates = evaluation.candidates
        errors.extend(evaluation.errors)
        gates = Counter(c.gate.result.value for c in candidates)
        stats["fallback"] = evaluation.fallback_count
        stats["dropped_judgments"] = evaluation.dropped_judgments
        emit(
            PipelineStage.EVALUATED,
            f"Evaluated {len(candidates)} items ({gates['pass']} pass, "
            f"{gates['maybe']} maybe, {gates['fail']} fail)",
            {
                "gates": dict(gates),
                "fallback": evaluation.fallback_count,
                "reliability_warning": evaluation.reliability_warning,
            },
        )

        # Refine
        if self._config.refine_enabled:
            emit(PipelineStage.REFINING, "Re-checking low-confidence demand/gap scores")
            refinement = await guard(self._refiner.refine(candidates, context), token)
            errors.extend(refinement.errors)
            stats["refined"] = refinement.refined
            emit(
                PipelineStage.REFINED,
                f"Refined {refinement.refined} of {refinement.targeted} candidates",
                {"refined_ids": refinement.refined_ids},
            )

        # Rank
        if self._config.rank_enabled:
            emit(PipelineStage.RANKING, "Ranking top candidates against each other")
            ranking = await guard(self._ranker.rank(candidates, context), token)
            errors.extend(ranking.errors)
            stats["ranked"] = len(ranking.ranked_ids)

        # Plan
        top_plans: list[TracePlan] = []
        if self._config.plan_enabled and self._planner.targets(candidates):
            emit(PipelineStage.PLANNING, "Writing trace plans for the top candidates")
            planning = await guard(self._planner.plan(candidates, context), token)
            errors.extend(planning.errors)
            top_plans = planning.plans
            stats["planned"] = len(top_plans)
            emit(
                PipelineStage.PLANNED,
                f"Planned {len(top_plans)} of {planning.targeted} top candidates",
                {"plan_ids": [p.id for p in top_plans]},
            )

        ordered = sorted(candidates, key=lambda c: c.total_score, reverse=True)
        result = RunResult(
            candidates=ordered,
            top_plans=top_plans,
            errors=errors,
            reliability_warning=evaluation.reliability_warning,
            stats=stats,
        )
        stats["cache"] = self._cache.get_stats()
        logger.info(
            "Pipeline run complete",
            candidates=len(ordered),
            errors=len(errors),
            reliability_warning=result.reliability_warning,
        )
        emit(PipelineStage.DONE, f"Done: {len(ordered)} candidates", {"result": result})
        return result

    async def _fetch_with_ladder(
        self,
        emit: _Emitter,
        token: CancellationToken,
        errors: list[str],
        stats: dict[str, Any],
    ) -> FetchAttempt | None:
        """
        Walk the ceiling ladder until enough unique items exist.

        A later attempt replaces an earlier one, except that an attempt with
        no items never replaces one that had some.

        Returns:
            The attempt to continue with, or None if no attempt found items.
        """
        ceilings = self._config.fetch_ceilings
        target = self._selector.target
        kept: FetchAttempt | None = None
        last: FetchAttempt | None = None

        number = 0
        while number < len(ceilings):
            ceiling = ceilings[number]
            number += 1
            last = await self._fetch_attempt(number, ceiling, emit, token)

            if last.items:
                kept = last
            elif kept is not None:
                logger.warning(
                    "Refetch returned no items, keeping previous attempt",
                    ceiling=ceiling,
                    kept_ceiling=kept.ceiling,
                )

            if kept is not None and len(kept.items) >= target:
                break
            if number < len(ceilings):
                logger.info(
                    "Too few unique items, refetching",
                    unique=len(kept.items) if kept else 0,
                    target=target,
                    next_ceiling=ceilings[number],
                )

        stats["fetch_attempts"] = number
        if kept is None:
            errors.extend(last.errors if last else [])
            return None

        errors.extend(kept.errors)
        stats["ceiling"] = kept.ceiling
        stats["raw_items"] = kept.raw_count
        stats["unique_items"] = len(kept.items)
        return kept

    async def _fetch_attempt(
        self,
        number: int,
        ceiling: int,
        emit: _Emitter,
        token: CancellationToken,
    ) -> FetchAttempt:
        """Fetch every source at one ceiling and normalize the union."""
        keys = [cache_key(f.name, ceiling) for f in self._fetchers]
        cached = all(self._cache.is_cached(key) for key in keys)
        emit(
            PipelineStage.FETCHING,
            f"Fetching up to {ceiling} items from {len(keys)} sources" + (" (cached)" if cached else ""),
            {"attempt": number, "ceiling": ceiling, "cached": cached},
        )

        results = await guard(
            asyncio.gather(
                *[
                    self._cache.get_or_compute(key, functools.partial(fetcher.fetch, ceiling))
                    for fetcher, key in zip(self._fetchers, keys)
                ],
                return_exceptions=True,
            ),
            token,
        )

        raw: list[RawItem] = []
        status: list[dict[str, Any]] = []
        errors: list[str] = []
        for fetcher, result in zip(self._fetchers, results):
            if isinstance(result, BaseException):
                logger.warning("Source fetch failed", source=fetcher.name, ceiling=ceiling, error=str(result))
                errors.append(f"{fetcher.name}: fetch failed ({result})")
                status.append({"source": fetcher.name, "count": 0, "error": str(result)})
            else:
                raw.extend(result)
                status.append({"source": fetcher.name, "count": len(result), "error": None})

        succeeded = sum(1 for s in status if s["error"] is None)
        emit(
            PipelineStage.FETCH_SOURCE_STATUS,
            f"{succeeded}/{len(status)} sources responded",
            {"attempt": number, "ceiling": ceiling, "sources": status},
        )

        items = self._normalizer.normalize(raw)
        logger.info(
            "Fetch attempt complete",
            attempt=number,
            ceiling=ceiling,
            raw_items=len(raw),
            unique_items=len(items),
            failed_sources=len(status) - succeeded,
        )
        return FetchAttempt(
            number=number,
            ceiling=ceiling,
            raw_count=len(raw),
            items=items,
            source_status=status,
            errors=errors,
            cached=cached,
        )
