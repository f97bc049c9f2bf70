"""Tests for EvaluationOrchestrator."""

import pytest

from tracescout.scoring.config import ScoringConfig
from tracescout.scoring.evaluator import EvaluationTask, EvaluatorError
from tracescout.scoring.orchestrator import EvaluationOrchestrator, split_batches
from tracescout.scoring.schemas import GateOutcome


class TestSplitBatches:
    def test_contiguous_near_equal(self, sample_items):
        batches = split_batches(sample_items, 3)

        assert [offset for offset, _ in batches] == [0, 4, 8]
        assert [len(batch) for _, batch in batches] == [4, 4, 2]

    def test_fewer_items_than_batches(self, sample_items):
        batches = split_batches(sample_items[:1], 2)

        assert len(batches) == 1

    def test_empty(self):
        assert split_batches([], 2) == []


class TestEvaluateAll:
    """Tests for evaluate_all()."""

    @pytest.mark.asyncio
    async def test_happy_path(self, scoring_config, sample_items, make_evaluator, judge_all):
        evaluator = make_evaluator({EvaluationTask.JUDGE: judge_all})
        orchestrator = EvaluationOrchestrator(evaluator, scoring_config)

        result = await orchestrator.evaluate_all(sample_items)

        assert [c.id for c in result.candidates] == [i.id for i in sample_items]
        assert all(c.gate.result is GateOutcome.PASS for c in result.candidates)
        assert result.errors == []
        assert not result.reliability_warning
        assert len(evaluator.calls) == 2

    @pytest.mark.asyncio
    async def test_indices_are_global(self, scoring_config, sample_items, make_evaluator, judge_all):
        evaluator = make_evaluator({EvaluationTask.JUDGE: judge_all})

        await EvaluationOrchestrator(evaluator, scoring_config).evaluate_all(sample_items)

        sent = [record["index"] for items in evaluator.calls_for(EvaluationTask.JUDGE) for record in items]
        assert sorted(sent) == list(range(10))

    @pytest.mark.asyncio
    async def test_item_records_are_trimmed(self, sample_items, make_item, make_evaluator, judge_all):
        config = ScoringConfig(openai_api_key="k", description_chars=50, max_tags=2, batch_count=1)
        item = make_item("long", description="x" * 500, tags=("a", "b", "c", "d"))
        evaluator = make_evaluator({EvaluationTask.JUDGE: judge_all})

        await EvaluationOrchestrator(evaluator, config).evaluate_all([item])

        record = evaluator.calls[0][1][0]
        assert len(record["description"]) == 50
        assert record["tags"] == ["a", "b"]
        assert record["source"] == "hackernews"

    @pytest.mark.asyncio
    async def test_context_is_forwarded(self, scoring_config, sample_items, make_evaluator, judge_all):
        evaluator = make_evaluator({EvaluationTask.JUDGE: judge_all})

        await EvaluationOrchestrator(evaluator, scoring_config).evaluate_all(sample_items, context="solo dev")

        assert all(context == "solo dev" for _, _, context in evaluator.calls)

    @pytest.mark.asyncio
    async def test_batch_failure_falls_back_for_that_batch(self, scoring_config, sample_items, make_evaluator, judge_all):
        def judge(items):
            if items[0]["index"] == 0:
                return EvaluatorError("timeout")
            return judge_all(items)

        evaluator = make_evaluator({EvaluationTask.JUDGE: judge})

        result = await EvaluationOrchestrator(evaluator, scoring_config).evaluate_all(sample_items)

        assert [c.is_fallback for c in result.candidates] == [True] * 5 + [False] * 5
        assert result.failed_batches == 1
        assert result.reliability_warning
        assert any("timeout" in e for e in result.errors)

    @pytest.mark.asyncio
    async def test_malformed_envelope_fails_batch(self, scoring_config, sample_items, make_evaluator):
        evaluator = make_evaluator({EvaluationTask.JUDGE: lambda items: "Sorry, I can't help with that."})

        result = await EvaluationOrchestrator(evaluator, scoring_config).evaluate_all(sample_items)

        assert all(c.is_fallback for c in result.candidates)
        assert result.failed_batches == 2

    @pytest.mark.asyncio
    async def test_every_item_survives_total_validation_failure(
        self, scoring_config, sample_items, make_evaluator, make_judgment,
    ):
        """Schema failure on every judgment still yields one candidate per item."""
        evaluator = make_evaluator({
            EvaluationTask.JUDGE: lambda items: {
                "items": [make_judgment(r["index"], demand=9) for r in items]
            },
        })

        result = await EvaluationOrchestrator(evaluator, scoring_config).evaluate_all(sample_items)

        assert [c.id for c in result.candidates] == [i.id for i in sample_items]
        assert all(c.is_fallback for c in result.candidates)
        assert result.dropped_judgments == 10
        assert result.reliability_warning
        assert any("failed validation" in e for e in result.errors)
        assert any("High evaluation failure rate: 10/10" in e for e in result.errors)

    @pytest.mark.asyncio
    async def test_invalid_judgments_dropped_individually(
        self, scoring_config, sample_items, make_evaluator, make_judgment,
    ):
        def judge(items):
            return {"items": [
                make_judgment(r["index"], gate="bogus") if r["index"] == 2 else make_judgment(r["index"])
                for r in items
            ]}

        evaluator = make_evaluator({EvaluationTask.JUDGE: judge})

        result = await EvaluationOrchestrator(evaluator, scoring_config).evaluate_all(sample_items)

        assert result.dropped_judgments == 1
        assert result.candidates[2].is_fallback
        assert sum(c.is_fallback for c in result.candidates) == 1
        assert not result.reliability_warning

    @pytest.mark.asyncio
    async def test_positional_fallback_when_indices_missing(
        self, scoring_config, sample_items, make_evaluator, make_judgment,
    ):
        evaluator = make_evaluator({
            EvaluationTask.JUDGE: lambda items: {"items": [make_judgment(None) for _ in items]},
        })

        result = await EvaluationOrchestrator(evaluator, scoring_config).evaluate_all(sample_items)

        assert not any(c.is_fallback for c in result.candidates)
        assert result.positional_batches == 2
        assert any("matched by position" in e for e in result.errors)

    @pytest.mark.asyncio
    async def test_shifted_indices_use_position(self, scoring_config, sample_items, make_evaluator, make_judgment):
        """Local 1-based indices match nothing but still line up by position."""
        evaluator = make_evaluator({
            EvaluationTask.JUDGE: lambda items: {
                "items": [make_judgment(1000 + i, demand=i % 5 + 1) for i, _ in enumerate(items)]
            },
        })

        result = await EvaluationOrchestrator(evaluator, scoring_config).evaluate_all(sample_items)

        assert result.positional_batches == 2
        assert [c.scores.demand.score for c in result.candidates[:5]] == [1, 2, 3, 4, 5]

    @pytest.mark.asyncio
    async def test_no_positional_match_when_counts_differ(
        self, scoring_config, sample_items, make_evaluator, make_judgment,
    ):
        evaluator = make_evaluator({
            EvaluationTask.JUDGE: lambda items: {"items": [make_judgment(None) for _ in items[:-1]]},
        })

        result = await EvaluationOrchestrator(evaluator, scoring_config).evaluate_all(sample_items)

        assert all(c.is_fallback for c in result.candidates)
        assert result.positional_batches == 0

    @pytest.mark.asyncio
    async def test_partial_index_match(self, scoring_config, sample_items, make_evaluator, make_judgment):
        """Judgments for some indices only; the rest fall back."""
        evaluator = make_evaluator({
            EvaluationTask.JUDGE: lambda items: {
                "items": [make_judgment(r["index"]) for r in items if r["index"] % 5 != 0]
            },
        })

        result = await EvaluationOrchestrator(evaluator, scoring_config).evaluate_all(sample_items)

        assert [c.is_fallback for c in result.candidates] == [True, False, False, False, False] * 2
        assert not result.reliability_warning

    @pytest.mark.asyncio
    async def test_gate_fail_judgment_is_not_a_fallback(
        self, scoring_config, sample_items, make_evaluator, make_judgment,
    ):
        evaluator = make_evaluator({
            EvaluationTask.JUDGE: lambda items: {"items": [make_judgment(r["index"], gate="fail") for r in items]},
        })

        result = await EvaluationOrchestrator(evaluator, scoring_config).evaluate_all(sample_items)

        assert all(c.is_fail and not c.is_fallback for c in result.candidates)
        assert not result.reliability_warning

    @pytest.mark.parametrize("fallbacks,warned", [(2, False), (3, True)])
    @pytest.mark.asyncio
    async def test_reliability_threshold(
        self, scoring_config, sample_items, make_evaluator, make_judgment, fallbacks, warned,
    ):
        evaluator = make_evaluator({
            EvaluationTask.JUDGE: lambda items: {
                "items": [make_judgment(r["index"]) for r in items if r["index"] >= fallbacks]
            },
        })

        result = await EvaluationOrchestrator(evaluator, scoring_config).evaluate_all(sample_items)

        assert result.reliability_warning is warned

    @pytest.mark.asyncio
    async def test_empty_input(self, scoring_config, make_evaluator, judge_all):
        evaluator = make_evaluator({EvaluationTask.JUDGE: judge_all})

        result = await EvaluationOrchestrator(evaluator, scoring_config).evaluate_all([])

        assert result.candidates == []
        assert evaluator.calls == []
