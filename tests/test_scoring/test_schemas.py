"""Tests for scoring schemas and the composite formula."""

import itertools

import pytest
from pydantic import ValidationError

from tracescout.scoring.schemas import (
    FALLBACK_REASON,
    Candidate,
    Confidence,
    GateOutcome,
    GateResult,
    Judgment,
    ScoreEntry,
    compute_total_score,
)


# ── Composite score ──────────────────────────────────────


class TestComputeTotalScore:
    """Tests for compute_total_score()."""

    def test_example(self):
        # market = 3 * 4 = 12; total = 12 + 4 + 4
        assert compute_total_score(demand=3, gap=4, trace_speed=4, risk_low=4) == 20

    def test_maximum(self):
        assert compute_total_score(5, 5, 5, 5) == 35

    @pytest.mark.parametrize("demand,gap", [(0, 5), (5, 0), (0, 0)])
    def test_zero_market_zeroes_everything(self, demand, gap):
        assert compute_total_score(demand, gap, trace_speed=5, risk_low=5) == 0

    def test_monotone_in_each_axis(self):
        for demand, gap, speed, risk in itertools.product(range(6), repeat=4):
            base = compute_total_score(demand, gap, speed, risk)
            if demand < 5:
                assert compute_total_score(demand + 1, gap, speed, risk) >= base
            if gap < 5:
                assert compute_total_score(demand, gap + 1, speed, risk) >= base
            if speed < 5:
                assert compute_total_score(demand, gap, speed + 1, risk) >= base
            if risk < 5:
                assert compute_total_score(demand, gap, speed, risk + 1) >= base


# ── Wire schemas ─────────────────────────────────────────


class TestJudgment:
    """Strict validation of evaluator judgments."""

    def test_valid(self, make_judgment):
        judgment = Judgment.model_validate(make_judgment(3))

        assert judgment.index == 3
        assert judgment.gate.result is GateOutcome.PASS
        assert judgment.scores.total == 20

    def test_score_out_of_range(self, make_judgment):
        with pytest.raises(ValidationError):
            Judgment.model_validate(make_judgment(0, demand=6))

    def test_unknown_confidence(self, make_judgment):
        raw = make_judgment(0)
        raw["scores"]["gap"]["confidence"] = "very high"

        with pytest.raises(ValidationError):
            Judgment.model_validate(raw)

    def test_unknown_gate(self, make_judgment):
        with pytest.raises(ValidationError):
            Judgment.model_validate(make_judgment(0, gate="perhaps"))

    def test_pass_without_scores_is_invalid(self, make_judgment):
        raw = make_judgment(0)
        raw["scores"] = None

        with pytest.raises(ValidationError, match="requires scores"):
            Judgment.model_validate(raw)

    def test_fail_drops_scores(self, make_judgment):
        raw = make_judgment(0)
        raw["gate"]["result"] = "fail"

        assert Judgment.model_validate(raw).scores is None

    def test_boolean_gate_shape(self, make_judgment):
        raw = make_judgment(0)
        raw["gate"] = {"pass": True, "reason": "ok"}

        assert Judgment.model_validate(raw).gate.result is GateOutcome.PASS

    def test_index_optional(self, make_judgment):
        assert Judgment.model_validate(make_judgment(None)).index is None

    def test_non_dict_rejected(self):
        with pytest.raises(ValidationError):
            Judgment.model_validate("not a judgment")


# ── Candidate ────────────────────────────────────────────


class TestCandidate:
    """Tests for Candidate construction and updates."""

    def test_from_judgment(self, make_candidate):
        candidate = make_candidate("hn-7", competitors=["a", "b", "c", "d"])

        assert candidate.id == "hn-7"
        assert candidate.total_score == 20
        assert candidate.competitors == ["a", "b", "c"]
        assert candidate.localized_title == "Localized 0"
        assert not candidate.is_fallback

    def test_fallback(self, make_item):
        candidate = Candidate.fallback(make_item("hn-1"))

        assert candidate.is_fail
        assert candidate.is_fallback
        assert candidate.gate.reason == FALLBACK_REASON
        assert candidate.scores is None
        assert candidate.total_score == 0
        assert candidate.competitors == []

    def test_scores_must_match_gate(self, make_item):
        with pytest.raises(ValidationError):
            Candidate(item=make_item(), gate=GateResult(result=GateOutcome.PASS))

    def test_update_market_scores(self, make_candidate):
        candidate = make_candidate(demand=3, gap=4, demand_confidence="low")

        candidate.update_market_scores(
            ScoreEntry(score=5, confidence=Confidence.HIGH),
            ScoreEntry(score=5, confidence=Confidence.MEDIUM),
        )

        assert candidate.deep_dived
        assert candidate.scores.demand.score == 5
        assert candidate.scores.trace_speed.score == 4
        assert candidate.total_score == 25 + 4 + 4

    def test_refining_into_zero_market(self, make_candidate):
        candidate = make_candidate()

        candidate.update_market_scores(
            ScoreEntry(score=0, confidence=Confidence.HIGH),
            ScoreEntry(score=4, confidence=Confidence.HIGH),
        )

        assert candidate.total_score == 0

    def test_rank_adjustment_clamped_at_zero(self, make_candidate):
        candidate = make_candidate(demand=1, gap=1, trace_speed=0, risk_low=0)

        candidate.apply_rank(3, -2.0, "weakest")

        assert candidate.base_score == 1
        assert candidate.total_score == 0
        assert candidate.rank_position == 3

    def test_needs_refinement(self, make_candidate):
        assert make_candidate(gap_confidence="low").scores.needs_refinement
        assert not make_candidate().scores.needs_refinement
