"""Data models for candidate evaluation.

Two families live here:

- Wire schemas (``Judgment``, ``RefinementJudgment``, ``RankJudgment``,
  ``TracePlan``): the strict shapes an evaluator response must satisfy,
  item by item, before anything from it is used.
- ``Candidate``: a normalized item plus its gate verdict and scores. The
  orchestrator creates one per selected item; the refiner and ranker update
  it in place.

Each of the four axes is an integer 0-5 with a confidence:
- trace_speed: how fast a solo developer can ship a localized clone
- demand: whether the target market has the same problem
- gap: competitive whitespace in the target market
- risk_low: absence of regulatory, platform and technical risk
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from tracescout.ingestion.schemas import MarketCategory, NormalizedItem

FALLBACK_REASON = "evaluation failed"


class GateOutcome(str, Enum):
    """Admissibility verdict applied before scoring."""

    PASS = "pass"
    MAYBE = "maybe"
    FAIL = "fail"


class Confidence(str, Enum):
    """Evaluator's confidence in a single score."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class GateResult(BaseModel):
    """Gate verdict with its rationale."""

    model_config = ConfigDict(extra="ignore")

    result: GateOutcome
    reason: str = ""

    @model_validator(mode="before")
    @classmethod
    def accept_boolean_gate(cls, data: Any) -> Any:
        """Map the older ``{"pass": bool}`` gate shape onto ``result``."""
        if isinstance(data, dict) and "result" not in data and isinstance(data.get("pass"), bool):
            data = {**data, "result": "pass" if data["pass"] else "fail"}
        return data


class ScoreEntry(BaseModel):
    """One 0-5 score with rationale and confidence."""

    model_config = ConfigDict(extra="ignore")

    score: int = Field(ge=0, le=5)
    reason: str = ""
    confidence: Confidence


class Scores(BaseModel):
    """The four scoring axes."""

    model_config = ConfigDict(extra="ignore")

    trace_speed: ScoreEntry
    demand: ScoreEntry
    gap: ScoreEntry
    risk_low: ScoreEntry

    @property
    def total(self) -> int:
        return compute_total_score(
            self.demand.score, self.gap.score, self.trace_speed.score, self.risk_low.score,
        )

    @property
    def needs_refinement(self) -> bool:
        """Demand or gap was judged with low confidence."""
        return Confidence.LOW in (self.demand.confidence, self.gap.confidence)


def compute_total_score(demand: int, gap: int, trace_speed: int, risk_low: int) -> int:
    """
    Composite score.

    Market size (demand x gap) is a precondition: when either is zero the
    product is not worth tracing, whatever its speed or risk.

    Returns:
        0 if demand * gap == 0, else demand * gap + trace_speed + risk_low.
    """
    market = demand * gap
    if market == 0:
        return 0
    return market + trace_speed + risk_low


# ── Wire schemas ─────────────────────────────────────────


class Judgment(BaseModel):
    """One item's verdict from the main evaluation pass.

    ``index`` echoes the item index sent to the evaluator; models sometimes
    drop it, so it is optional and matching falls back to position.
    """

    model_config = ConfigDict(extra="ignore")

    index: int | None = None
    localized_title: str = ""
    localized_description: str = ""
    gate: GateResult
    scores: Scores | None = None
    competitors: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def scores_follow_gate(self) -> "Judgment":
        if self.gate.result is GateOutcome.FAIL:
            self.scores = None
        elif self.scores is None:
            raise ValueError(f"gate '{self.gate.result.value}' requires scores")
        return self


class RefinementJudgment(BaseModel):
    """Reconsidered demand and gap scores for one candidate."""

    model_config = ConfigDict(extra="ignore")

    id: str
    demand: ScoreEntry
    gap: ScoreEntry


class RankJudgment(BaseModel):
    """One entry of the relative ranking (1 = best)."""

    model_config = ConfigDict(extra="ignore")

    id: str
    rank: int = Field(ge=1)
    reason: str = ""


class TracePlan(BaseModel):
    """Localized MVP plan for one top candidate.

    ``title`` is the proposed local product name, not the original title.
    ``original_url`` may be omitted by the evaluator; the planner fills it
    from the candidate.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    title: str = Field(min_length=1)
    original_url: str = ""
    target_users: str
    localization: str
    tech_approach: str
    launch_plan: str
    monetization: str


# ── Candidate ────────────────────────────────────────────


class Candidate(BaseModel):
    """A judged item.

    ``scores`` is present iff the gate is not FAIL. ``total_score`` is
    derived from the scores plus ``rank_adjustment`` and is only ever
    written through ``recompute_total``.
    """

    item: NormalizedItem
    localized_title: str = ""
    localized_description: str = ""
    gate: GateResult
    scores: Scores | None = None
    total_score: float = 0.0
    competitors: list[str] = Field(default_factory=list)
    deep_dived: bool = False
    rank_position: int | None = None
    rank_adjustment: float = 0.0
    rank_reason: str | None = None

    @model_validator(mode="after")
    def check_scores_match_gate(self) -> "Candidate":
        if (self.scores is None) != (self.gate.result is GateOutcome.FAIL):
            raise ValueError("scores must be present exactly when the gate is not 'fail'")
        return self

    @classmethod
    def from_judgment(cls, item: NormalizedItem, judgment: Judgment) -> "Candidate":
        candidate = cls(
            item=item,
            localized_title=judgment.localized_title or item.title,
            localized_description=judgment.localized_description or item.description,
            gate=judgment.gate,
            scores=judgment.scores,
            competitors=judgment.competitors[:3],
        )
        candidate.recompute_total()
        return candidate

    @classmethod
    def fallback(cls, item: NormalizedItem) -> "Candidate":
        """Placeholder for an item the evaluator failed to judge."""
        return cls(
            item=item,
            localized_title=item.title,
            localized_description=item.description,
            gate=GateResult(result=GateOutcome.FAIL, reason=FALLBACK_REASON),
        )

    @property
    def id(self) -> str:
        return self.item.id

    @property
    def title(self) -> str:
        return self.item.title

    @property
    def market_category(self) -> MarketCategory:
        return self.item.market_category

    @property
    def is_fail(self) -> bool:
        return self.gate.result is GateOutcome.FAIL

    @property
    def is_fallback(self) -> bool:
        return self.is_fail and self.gate.reason == FALLBACK_REASON

    @property
    def base_score(self) -> int:
        """Total before any rank adjustment."""
        return self.scores.total if self.scores else 0

    def recompute_total(self) -> float:
        self.total_score = max(0.0, self.base_score + self.rank_adjustment)
        return self.total_score

    def update_market_scores(self, demand: ScoreEntry, gap: ScoreEntry) -> None:
        """Replace demand and gap (refinement) and mark the candidate deep-dived."""
        if self.scores is None:
            raise ValueError(f"candidate {self.id} has no scores to refine")
        self.scores = self.scores.model_copy(update={"demand": demand, "gap": gap})
        self.deep_dived = True
        self.recompute_total()

    def apply_rank(self, position: int, adjustment: float, reason: str) -> None:
        self.rank_position = position
        self.rank_adjustment = adjustment
        self.rank_reason = reason
        self.recompute_total()
