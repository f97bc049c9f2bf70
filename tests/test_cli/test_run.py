"""Tests for the tracescout CLI commands."""

import json
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from tracescout.cli import main
from tracescout.scoring.evaluator import EvaluationTask, UnvalidatedPayload


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def fake_llm_client(make_judgment, make_plan):
    """Stand-in for LLMClient that passes every item."""

    class FakeLLMClient:
        instances: list["FakeLLMClient"] = []

        def __init__(self, config=None):
            self.tasks: list[EvaluationTask] = []
            self.closed = False
            FakeLLMClient.instances.append(self)

        async def evaluate(self, task, items, context=None):
            self.tasks.append(task)
            if task is EvaluationTask.JUDGE:
                raw = {"items": [make_judgment(r["index"]) for r in items]}
            elif task is EvaluationTask.RANK:
                raw = {"items": [{"id": r["id"], "rank": n, "reason": "ok"} for n, r in enumerate(items, 1)]}
            elif task is EvaluationTask.PLAN:
                raw = {"items": [make_plan(r["id"]) for r in items]}
            else:
                raw = {"items": []}
            return UnvalidatedPayload(task=task, raw=raw)

        async def close(self):
            self.closed = True

    return FakeLLMClient


@pytest.fixture
def api_key(monkeypatch):
    monkeypatch.setenv("SCORING_OPENAI_API_KEY", "test-key")
    monkeypatch.delenv("PIPELINE_FETCHERS", raising=False)


class TestRunCommand:
    """Test the `run` CLI command."""

    def test_json_output(self, runner: CliRunner, api_key, fake_llm_client) -> None:
        with patch("tracescout.scoring.llm_client.LLMClient", fake_llm_client):
            result = runner.invoke(main, ["run", "--mock", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert len(data["candidates"]) == 30
        assert data["reliability_warning"] is False
        totals = [c["total_score"] for c in data["candidates"]]
        assert totals == sorted(totals, reverse=True)
        assert fake_llm_client.instances[-1].closed

    def test_json_includes_top_plans(self, runner: CliRunner, api_key, fake_llm_client) -> None:
        with patch("tracescout.scoring.llm_client.LLMClient", fake_llm_client):
            result = runner.invoke(main, ["run", "--mock", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert len(data["top_plans"]) == 3
        assert [p["id"] for p in data["top_plans"]] == [c["item"]["id"] for c in data["candidates"][:3]]
        assert data["top_plans"][0]["target_users"] == "small clinics"

    def test_table_shows_plans(self, runner: CliRunner, api_key, fake_llm_client) -> None:
        with patch("tracescout.scoring.llm_client.LLMClient", fake_llm_client):
            result = runner.invoke(main, ["run", "--mock"])

        assert result.exit_code == 0, result.output
        assert "[planning]" in result.stdout
        assert "Trace plans (3):" in result.stdout
        assert "Monetization: monthly subscription" in result.stdout

    def test_table_output_with_progress(self, runner: CliRunner, api_key, fake_llm_client) -> None:
        with patch("tracescout.scoring.llm_client.LLMClient", fake_llm_client):
            result = runner.invoke(main, ["run", "--mock"])

        assert result.exit_code == 0, result.output
        assert "[fetching]" in result.stdout
        assert "[done]" in result.stdout
        assert "Total" in result.stdout

    def test_limit(self, runner: CliRunner, api_key, fake_llm_client) -> None:
        with patch("tracescout.scoring.llm_client.LLMClient", fake_llm_client):
            result = runner.invoke(main, ["run", "--mock", "--json", "--limit", "5"])

        assert result.exit_code == 0, result.output
        assert len(json.loads(result.stdout)["candidates"]) == 5

    def test_skip_optional_stages(self, runner: CliRunner, api_key, fake_llm_client) -> None:
        with patch("tracescout.scoring.llm_client.LLMClient", fake_llm_client):
            result = runner.invoke(main, ["run", "--mock", "--no-refine", "--no-rank", "--no-plan"])

        assert result.exit_code == 0, result.output
        assert "[refining]" not in result.stdout
        assert "[ranking]" not in result.stdout
        assert "[planning]" not in result.stdout
        assert fake_llm_client.instances[-1].tasks == [EvaluationTask.JUDGE, EvaluationTask.JUDGE]

    def test_missing_api_key(self, runner: CliRunner, monkeypatch) -> None:
        monkeypatch.delenv("SCORING_OPENAI_API_KEY", raising=False)

        result = runner.invoke(main, ["run", "--mock"])

        assert result.exit_code == 1
        assert "SCORING_OPENAI_API_KEY" in result.output

    def test_bad_fetcher_plugin(self, runner: CliRunner, api_key, monkeypatch) -> None:
        monkeypatch.setenv("PIPELINE_FETCHERS", '["nowhere.module:factory"]')

        result = runner.invoke(main, ["run"])

        assert result.exit_code == 1
        assert "Cannot import fetcher" in result.output


class TestClassifyCommand:
    def test_classify(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["classify", "ShopPulse", "--description", "Cart recovery for Shopify"])

        assert result.exit_code == 0
        assert result.stdout.strip() == "ec-optimize"

    def test_classify_with_tags(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["classify", "Widget", "--tag", "devops"])

        assert result.stdout.strip() == "devtool"


class TestSourcesCommand:
    def test_mock_sources(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["sources", "--mock"])

        assert result.exit_code == 0
        assert "Fetchers (mock)" in result.stdout
        assert "hackernews" in result.stdout
        assert "reddit" in result.stdout

    def test_falls_back_to_mock_with_warning(self, runner: CliRunner, monkeypatch) -> None:
        monkeypatch.delenv("PIPELINE_FETCHERS", raising=False)

        result = runner.invoke(main, ["sources"])

        assert result.exit_code == 0
        assert "No PIPELINE_FETCHERS configured" in result.output
        assert "Fetchers (mock)" in result.stdout

    def test_plugin_sources(self, runner: CliRunner, monkeypatch) -> None:
        monkeypatch.setenv("PIPELINE_FETCHERS", '["tracescout.ingestion.mock_adapter:MockFetcher"]')

        result = runner.invoke(main, ["sources"])

        assert result.exit_code == 0, result.output
        assert "Fetchers (plugins)" in result.stdout
        assert "hackernews" in result.stdout
