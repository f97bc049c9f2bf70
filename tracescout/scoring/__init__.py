"""Evaluation: judgment, confidence-gated refinement, relative ranking and trace plans."""

from tracescout.scoring.config import ScoringConfig
from tracescout.scoring.evaluator import (
    EvaluationTask,
    Evaluator,
    EvaluatorError,
    PayloadError,
    UnvalidatedPayload,
    unwrap_items,
)
from tracescout.scoring.orchestrator import EvaluationOrchestrator, EvaluationResult
from tracescout.scoring.planner import PlanningResult, TracePlanner
from tracescout.scoring.ranker import RankingResult, RelativeRanker
from tracescout.scoring.refiner import ConfidenceRefiner, RefinementResult
from tracescout.scoring.schemas import (
    Candidate,
    Confidence,
    GateOutcome,
    GateResult,
    Judgment,
    ScoreEntry,
    Scores,
    TracePlan,
    compute_total_score,
)

__all__ = [
    "Candidate",
    "Confidence",
    "ConfidenceRefiner",
    "EvaluationOrchestrator",
    "EvaluationResult",
    "EvaluationTask",
    "Evaluator",
    "EvaluatorError",
    "GateOutcome",
    "GateResult",
    "Judgment",
    "PayloadError",
    "PlanningResult",
    "RankingResult",
    "RefinementResult",
    "RelativeRanker",
    "ScoreEntry",
    "Scores",
    "ScoringConfig",
    "TracePlan",
    "TracePlanner",
    "UnvalidatedPayload",
    "compute_total_score",
    "unwrap_items",
]
