"""Pytest fixtures for scoring tests."""

from collections.abc import Callable
from typing import Any

import pytest

from tracescout.ingestion.schemas import NormalizedItem
from tracescout.scoring.schemas import Candidate, Judgment


@pytest.fixture
def sample_items(make_item) -> list[NormalizedItem]:
    """Ten selected items."""
    return [make_item(f"hn-{n}", popularity=n / 10) for n in range(10)]


@pytest.fixture
def make_candidate(make_item, make_judgment) -> Callable[..., Candidate]:
    """Factory for judged candidates (keyword arguments go to make_judgment)."""

    def factory(item_id: str = "hn-1", **judgment_fields: Any) -> Candidate:
        judgment = Judgment.model_validate(make_judgment(0, **judgment_fields))
        return Candidate.from_judgment(make_item(item_id), judgment)

    return factory
