"""Pytest fixtures for tracescout tests."""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

from tracescout.config.settings import Settings
from tracescout.ingestion.schemas import MarketCategory, NormalizedItem, RawItem
from tracescout.scoring.config import ScoringConfig
from tracescout.scoring.evaluator import EvaluationTask, EvaluatorError, UnvalidatedPayload

Handler = Callable[[list[dict[str, Any]]], Any]


class ScriptedEvaluator:
    """Evaluator fake that answers each task from a scripted handler.

    A handler receives the item records of the call and returns the raw
    payload (any JSON-like value or text). Returning an exception instance
    makes the call raise it. Tasks without a handler raise EvaluatorError.
    """

    def __init__(self, handlers: dict[EvaluationTask, Handler] | None = None) -> None:
        self.handlers = dict(handlers or {})
        self.calls: list[tuple[EvaluationTask, list[dict[str, Any]], str | None]] = []

    async def evaluate(
        self,
        task: EvaluationTask,
        items: list[dict[str, Any]],
        context: str | None = None,
    ) -> UnvalidatedPayload:
        self.calls.append((task, items, context))
        handler = self.handlers.get(task)
        if handler is None:
            raise EvaluatorError(f"no script for {task.value}")
        raw = handler(items)
        if isinstance(raw, BaseException):
            raise raw
        return UnvalidatedPayload(task=task, raw=raw)

    def calls_for(self, task: EvaluationTask) -> list[list[dict[str, Any]]]:
        return [items for t, items, _ in self.calls if t is task]


def score(value: int, confidence: str = "high") -> dict[str, Any]:
    return {"score": value, "reason": "test", "confidence": confidence}


def judgment(
    index: int | None,
    gate: str = "pass",
    trace_speed: int = 4,
    demand: int = 3,
    gap: int = 4,
    risk_low: int = 4,
    demand_confidence: str = "high",
    gap_confidence: str = "high",
    competitors: list[str] | None = None,
) -> dict[str, Any]:
    """Build a raw judgment record as an evaluator would return it."""
    record: dict[str, Any] = {
        "localized_title": f"Localized {index}",
        "localized_description": "desc",
        "gate": {"result": gate, "reason": "test"},
        "scores": None if gate == "fail" else {
            "trace_speed": score(trace_speed),
            "demand": score(demand, demand_confidence),
            "gap": score(gap, gap_confidence),
            "risk_low": score(risk_low),
        },
        "competitors": competitors or [],
    }
    if index is not None:
        record["index"] = index
    return record


def judge_everything(items: list[dict[str, Any]]) -> dict[str, Any]:
    """Judge handler that passes every item with default scores."""
    return {"items": [judgment(item["index"]) for item in items]}


def trace_plan(item_id: str, **overrides: Any) -> dict[str, Any]:
    """Build a raw trace plan record as an evaluator would return it."""
    record: dict[str, Any] = {
        "id": item_id,
        "title": f"Local {item_id}",
        "original_url": f"https://example.com/{item_id}",
        "target_users": "small clinics",
        "localization": "local payments and invoices",
        "tech_approach": "Next.js and Postgres",
        "launch_plan": "Day 1-2 landing page, Day 3-7 MVP",
        "monetization": "monthly subscription",
    }
    record.update(overrides)
    return record


def plan_everything(items: list[dict[str, Any]]) -> dict[str, Any]:
    """Plan handler that returns one plan per requested item."""
    return {"items": [trace_plan(item["id"]) for item in items]}


@pytest.fixture
def test_settings() -> Settings:
    """Settings configured for testing."""
    return Settings(environment="development", log_level="DEBUG", cache_ttl_seconds=60.0)


@pytest.fixture
def scoring_config() -> ScoringConfig:
    """Scoring config with a dummy key and the default tuning."""
    return ScoringConfig(openai_api_key="test-openai-key")


@pytest.fixture
def make_raw_item() -> Callable[..., RawItem]:
    """Factory for RawItems with sensible defaults."""

    def factory(item_id: str = "hn-1", **overrides: Any) -> RawItem:
        fields: dict[str, Any] = {
            "id": item_id,
            "source": "hackernews",
            "title": f"Product {item_id}",
            "description": "A tool",
            "url": f"https://example.com/{item_id}",
            "tags": (),
            "published_at": datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc),
            "source_score": 10.0,
        }
        fields.update(overrides)
        return RawItem(**fields)

    return factory


@pytest.fixture
def make_item() -> Callable[..., NormalizedItem]:
    """Factory for NormalizedItems with sensible defaults."""

    def factory(
        item_id: str = "hn-1",
        category: MarketCategory = MarketCategory.OTHER,
        popularity: float = 0.5,
        **overrides: Any,
    ) -> NormalizedItem:
        fields: dict[str, Any] = {
            "id": item_id,
            "source": "hackernews",
            "title": f"Product {item_id}",
            "description": "A tool for small teams",
            "url": f"https://example.com/{item_id}",
            "dedup_key": f"https://example.com/{item_id}",
            "overseas_popularity": popularity,
            "market_category": category,
        }
        fields.update(overrides)
        return NormalizedItem(**fields)

    return factory


@pytest.fixture
def make_evaluator() -> Callable[..., ScriptedEvaluator]:
    """Factory for ScriptedEvaluator fakes."""
    return ScriptedEvaluator


@pytest.fixture
def make_judgment() -> Callable[..., dict[str, Any]]:
    return judgment


@pytest.fixture
def judge_all() -> Handler:
    return judge_everything


@pytest.fixture
def make_plan() -> Callable[..., dict[str, Any]]:
    return trace_plan


@pytest.fixture
def plan_all() -> Handler:
    return plan_everything
