"""
Command-line interface for tracescout.

Runs the trace-discovery pipeline and inspects its configuration.

Usage:
    tracescout run                # Full run with configured fetchers
    tracescout run --mock --json  # Mock feeds, JSON output
    tracescout classify "Salon booking app" --tag booking
    tracescout sources            # Show which fetchers a run would use
"""

import asyncio
import json
import signal
import sys
from typing import Any

import click

from tracescout.config.settings import get_settings
from tracescout.observability.logging import setup_logging

GATE_COLORS = {"pass": "green", "maybe": "yellow", "fail": "red"}


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Tracescout - find overseas products worth tracing into your market."""
    setup_logging("DEBUG" if debug else None)


def _resolve_fetchers(mock: bool) -> tuple[list[Any], str]:
    """Build the fetchers for a run and describe where they came from."""
    from tracescout.ingestion.loader import load_fetchers
    from tracescout.ingestion.mock_adapter import create_mock_fetchers
    from tracescout.services.config import PipelineConfig

    if mock:
        return create_mock_fetchers(), "mock"

    paths = PipelineConfig().fetchers
    if not paths:
        click.echo(
            click.style("No PIPELINE_FETCHERS configured, using mock fetchers", fg="yellow"),
            err=True,
        )
        return create_mock_fetchers(), "mock"
    return load_fetchers(paths), "plugins"


def _print_candidates(candidates: list[Any]) -> None:
    click.echo(f"\n{'#':>3}  {'Total':>5}  {'Gate':<5}  {'Category':<13}  Title")
    click.echo("-" * 72)
    for position, candidate in enumerate(candidates, start=1):
        gate = candidate.gate.result.value
        marker = "*" if candidate.deep_dived else " "
        click.echo(
            f"{position:>3}  {candidate.total_score:>5.1f}{marker} "
            + click.style(f"{gate:<5}", fg=GATE_COLORS[gate])
            + f"  {candidate.market_category.value:<13}  {candidate.localized_title}"
        )
        if candidate.competitors:
            click.echo(f"{'':>17}competitors: {', '.join(candidate.competitors)}")
    click.echo("-" * 72)
    click.echo("* = demand/gap re-checked after a low-confidence first pass")


def _print_plans(plans: list[Any]) -> None:
    click.echo(f"\nTrace plans ({len(plans)}):")
    for plan in plans:
        click.echo(click.style(f"\n  {plan.title}", bold=True) + f"  ({plan.original_url})")
        for label, text in (
            ("Target users", plan.target_users),
            ("Localization", plan.localization),
            ("Tech", plan.tech_approach),
            ("Launch", plan.launch_plan),
            ("Monetization", plan.monetization),
        ):
            click.echo(f"    {label + ':':<14}{text}")


@main.command()
@click.option("--mock", is_flag=True, help="Use mock fetchers")
@click.option("--context", default=None, help="Free-text context about you, passed to the evaluator")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
@click.option("--no-refine", is_flag=True, help="Skip confidence-gated refinement")
@click.option("--no-rank", is_flag=True, help="Skip relative ranking")
@click.option("--no-plan", is_flag=True, help="Skip trace plans for the top candidates")
@click.option("--limit", default=None, type=click.IntRange(min=1), help="Show only the top N candidates")
def run(
    mock: bool,
    context: str | None,
    as_json: bool,
    no_refine: bool,
    no_rank: bool,
    no_plan: bool,
    limit: int | None,
) -> None:
    """Run the trace-discovery pipeline once."""
    from tracescout.cache.result_cache import ResultCache
    from tracescout.ingestion.loader import FetcherLoadError
    from tracescout.scoring.config import ScoringConfig
    from tracescout.scoring.llm_client import LLMClient
    from tracescout.services.cancellation import CancellationToken
    from tracescout.services.config import PipelineConfig
    from tracescout.services.pipeline_service import TracePipeline
    from tracescout.services.progress import ProgressEvent

    scoring_config = ScoringConfig()
    if scoring_config.openai_api_key is None:
        click.echo(click.style("SCORING_OPENAI_API_KEY is not set", fg="red"), err=True)
        sys.exit(1)

    try:
        fetchers, _ = _resolve_fetchers(mock)
    except FetcherLoadError as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        sys.exit(1)

    config = PipelineConfig()
    if no_refine:
        config.refine_enabled = False
    if no_rank:
        config.rank_enabled = False
    if no_plan:
        config.plan_enabled = False

    def show_progress(event: ProgressEvent) -> None:
        if not as_json:
            click.echo(f"[{event.stage.value}] {event.message}")

    async def execute():
        client = LLMClient(scoring_config)
        pipeline = TracePipeline(
            fetchers,
            client,
            cache=ResultCache(ttl_seconds=get_settings().cache_ttl_seconds),
            config=config,
            scoring_config=scoring_config,
        )
        token = CancellationToken()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, token.cancel, "interrupted")

        try:
            return await pipeline.run(observer=show_progress, cancel=token, context=context)
        finally:
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.remove_signal_handler(sig)
            await client.close()

    result = asyncio.run(execute())

    if result.aborted:
        click.echo(click.style("Run aborted", fg="yellow"), err=True)
        sys.exit(130)

    candidates = result.candidates[:limit] if limit else result.candidates

    if as_json:
        click.echo(json.dumps(
            {
                "candidates": [c.model_dump(mode="json") for c in candidates],
                "top_plans": [p.model_dump(mode="json") for p in result.top_plans],
                "errors": result.errors,
                "reliability_warning": result.reliability_warning,
                "stats": result.stats,
            },
            indent=2,
            ensure_ascii=False,
            default=str,
        ))
    else:
        if candidates:
            _print_candidates(candidates)
        if result.top_plans:
            _print_plans(result.top_plans)
        if result.reliability_warning:
            click.echo(click.style("Warning: many items could not be evaluated; results may be unreliable", fg="yellow"))
        if result.errors:
            click.echo(f"\nErrors ({len(result.errors)}):")
            for error in result.errors:
                click.echo(f"  - {error}")

    if result.failed:
        sys.exit(1)


@main.command()
@click.argument("title")
@click.option("--description", default="", help="Item description")
@click.option("--tag", "tags", multiple=True, help="Item tag (repeatable)")
def classify(title: str, description: str, tags: tuple[str, ...]) -> None:
    """Print the market category an item would be filed under."""
    from tracescout.ingestion.categories import classify_market_category

    click.echo(classify_market_category(title, description, tags).value)


@main.command()
@click.option("--mock", is_flag=True, help="Show the mock fetchers")
def sources(mock: bool) -> None:
    """List the fetchers a run would use."""
    from tracescout.ingestion.loader import FetcherLoadError

    try:
        fetchers, origin = _resolve_fetchers(mock)
    except FetcherLoadError as e:
        click.echo(click.style(str(e), fg="red"), err=True)
        sys.exit(1)

    click.echo(f"Fetchers ({origin}):")
    for fetcher in fetchers:
        click.echo(f"  {fetcher.name}")


if __name__ == "__main__":
    main()
