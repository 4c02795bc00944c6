"""
CLI interface for Caption Engine.

Provides command-line access to routing, generation, usage and history.
"""

import asyncio
import logging
import sys
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from caption_engine.config.loader import EngineConfig, load_engine_config
from caption_engine.core.errors import OrchestrationError, QuotaExceeded
from caption_engine.core.orchestrator import GenerationOrchestrator, GenerationResult
from caption_engine.core.plans import Subscription, parse_plan
from caption_engine.core.quota import QuotaChecker
from caption_engine.core.request import GenerationRequest, InvalidRequestError
from caption_engine.core.routing import estimated_cost, select_provider
from caption_engine.providers.openai_adapter import OpenAIProviderAdapter
from caption_engine.providers.template import TemplateProviderAdapter
from caption_engine.storage.ledger import SQLiteUsageLedger, billing_period_key
from caption_engine.storage.repository import HistoryRepository, initialize_schema

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1

CONFIG_OPTION = typer.Option(None, "--config", "-c", help="Path to engine YAML config")


def _load_config(config_path: Optional[str]) -> EngineConfig:
    config = load_engine_config(config_path)
    logging.basicConfig(
        level=config.log_level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True
    )
    return config


def _build_request(mood, description, goal, tone, platform, media_type) -> GenerationRequest:
    return GenerationRequest.from_selections(
        mood=mood,
        media_description=description,
        goal=goal,
        tone=tone,
        platform=platform,
        media_type=media_type
    )


def _subscription(plan: str, status: str) -> Subscription:
    return Subscription(plan=parse_plan(plan), status=status)


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context):
    """Caption Engine CLI."""
    if ctx.invoked_subcommand is None:
        console.print("Caption Engine - Use --help to see available commands")


@app.command()
def init(config_path: Optional[str] = CONFIG_OPTION):
    """Initialize the Caption Engine database."""
    try:
        config = _load_config(config_path)
        initialize_schema(config.database_path)
        console.print(f"[green]✓[/] Database initialized at {config.database_path}")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


@app.command()
def route(
    mood: str = typer.Option(..., "--mood", "-m", help="Mood of the post"),
    tone: str = typer.Option(..., "--tone", "-t", help="Tone of voice"),
    goal: str = typer.Option(..., "--goal", "-g", help="Goal of the post"),
    description: str = typer.Option(..., "--description", "-d", help="What the media shows"),
    platform: str = typer.Option("instagram", "--platform", "-p", help="Target platform"),
    media_type: str = typer.Option("photo", "--media-type", help="photo or video"),
    config_path: Optional[str] = CONFIG_OPTION,
):
    """Show which provider a request would be routed to and what it costs."""
    try:
        config = _load_config(config_path)
        request = _build_request(mood, description, goal, tone, platform, media_type)
    except (InvalidRequestError, ValueError, FileNotFoundError) as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    provider = select_provider(request)
    cost = estimated_cost(request, provider, config.cost_table())
    console.print(f"[bold]Provider:[/bold] {provider.value} ({config.models()[provider]})")
    console.print(f"[bold]Estimated cost:[/bold] {_format_currency(cost)}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def generate(
    user: str = typer.Option(..., "--user", "-u", help="User identity"),
    mood: str = typer.Option(..., "--mood", "-m", help="Mood of the post"),
    tone: str = typer.Option(..., "--tone", "-t", help="Tone of voice"),
    goal: str = typer.Option(..., "--goal", "-g", help="Goal of the post"),
    description: str = typer.Option(..., "--description", "-d", help="What the media shows"),
    platform: str = typer.Option("instagram", "--platform", "-p", help="Target platform"),
    media_type: str = typer.Option("photo", "--media-type", help="photo or video"),
    plan: str = typer.Option("free", "--plan", help="Subscription plan"),
    status: str = typer.Option("active", "--status", help="Subscription status"),
    offline: bool = typer.Option(
        False,
        "--offline",
        help="Use built-in templates instead of calling OpenAI"
    ),
    config_path: Optional[str] = CONFIG_OPTION,
):
    """Generate ranked captions for one request, consuming one quota unit."""
    try:
        config = _load_config(config_path)
        request = _build_request(mood, description, goal, tone, platform, media_type)
        subscription = _subscription(plan, status)
        initialize_schema(config.database_path)
        adapter = (
            TemplateProviderAdapter() if offline
            else OpenAIProviderAdapter(models=config.models())
        )
        orchestrator = GenerationOrchestrator(
            ledger=SQLiteUsageLedger(config.database_path),
            adapter=adapter,
            history=HistoryRepository(config.database_path),
            policy=config.plan_policy(),
            cost_table=config.cost_table(),
            provider_timeout=config.provider_timeout_seconds
        )
        result = asyncio.run(orchestrator.submit_generation(request, user, subscription))
    except QuotaExceeded as e:
        console.print(f"[yellow]{e.message}[/]")
        console.print("Upgrade your plan to keep generating captions.")
        sys.exit(EXIT_CODE_FAIL)
    except OrchestrationError as e:
        hint = " (retryable)" if e.retryable else ""
        console.print(f"[red]Generation failed{hint}:[/] {e.message}")
        sys.exit(EXIT_CODE_FAIL)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    _display_result(result)
    sys.exit(EXIT_CODE_PASS)


@app.command()
def usage(
    user: str = typer.Option(..., "--user", "-u", help="User identity"),
    plan: str = typer.Option("free", "--plan", help="Subscription plan"),
    status: str = typer.Option("active", "--status", help="Subscription status"),
    config_path: Optional[str] = CONFIG_OPTION,
):
    """Show a user's usage for the current billing period."""
    try:
        config = _load_config(config_path)
        subscription = _subscription(plan, status)
        initialize_schema(config.database_path)
        checker = QuotaChecker(SQLiteUsageLedger(config.database_path), config.plan_policy())
        summary = checker.summary(user, subscription, billing_period_key())
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    policy = config.plan_policy()
    console.print(f"\n[bold]Plan:[/bold] {policy.display_name(summary.plan)}")
    console.print(f"Period: {summary.period_key}")
    console.print(f"Used: {summary.used}/{summary.limit} ({summary.usage_fraction:.0%})")
    console.print(f"Remaining: {summary.remaining}")
    console.print(f"Features: {', '.join(policy.features_for(summary.plan))}")
    if summary.should_offer_upgrade:
        console.print("[yellow]Limit reached - upgrade to keep generating.[/]")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def history(
    user: str = typer.Option(..., "--user", "-u", help="User identity"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of captions to show"),
    config_path: Optional[str] = CONFIG_OPTION,
):
    """List a user's most recent captions."""
    try:
        config = _load_config(config_path)
        initialize_schema(config.database_path)
        records = HistoryRepository(config.database_path).recent(user, limit=limit)
    except Exception as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if not records:
        console.print("[dim]No captions saved yet.[/]")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title=f"Recent captions for {user}")
    table.add_column("When")
    table.add_column("Platform")
    table.add_column("Caption")
    for record in records:
        table.add_row(
            record.created_at.strftime("%Y-%m-%d %H:%M"),
            record.request.get("platform", ""),
            record.variant.get("caption", "")
        )
    console.print(table)
    sys.exit(EXIT_CODE_PASS)


def _format_currency(amount: float) -> str:
    """Dollar amount with four decimals, e.g. $0.0100."""
    return f"${abs(amount):,.4f}"


def _display_result(result: GenerationResult):
    """Display ranked variants, best first."""
    table = Table(title="Generated Captions")
    table.add_column("#", justify="right")
    table.add_column("Quality")
    table.add_column("Caption")
    table.add_column("Hashtags")

    for position, variant in enumerate(result.variants, start=1):
        table.add_row(
            str(position),
            f"{variant.quality_percentage}% {variant.quality_rating.value}",
            variant.caption,
            " ".join(f"#{tag}" for tag in variant.hashtags)
        )

    console.print(table)
    console.print(
        f"Provider: {result.provider_used.value} | "
        f"Time: {result.processing_time:.2f}s | "
        f"Est. cost: {_format_currency(result.estimated_cost)} | "
        f"Remaining: {result.remaining_quota}"
    )


if __name__ == "__main__":
    app()
