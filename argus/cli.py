"""Argus CLI — Command-line interface for the portfolio scoring engine.

Provides commands for running the scoring batch, benchmarking a user against
their cohort, viewing score history and live analytics, scoring an ad-hoc
portfolio, and serving the HTTP API.  Uses
Typer for argument parsing and Rich for formatted terminal output.

Usage::

    python -m argus.cli --help
    python -m argus.cli run
    python -m argus.cli benchmark --user-id 550e8400-e29b-41d4-a716-446655440000
    python -m argus.cli history --user-id 550e8400-e29b-41d4-a716-446655440000
    python -m argus.cli analytics --user-id 550e8400-e29b-41d4-a716-446655440000
    python -m argus.cli score --age 25 --total-premium 1000 --total-coverage 600000 --policies 3
    python -m argus.cli serve --port 8002
"""

from __future__ import annotations

import asyncio
import logging
import sys
from decimal import Decimal
from typing import Any, Coroutine, Optional
from uuid import UUID

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich import box

from argus.config import settings

# ---------------------------------------------------------------------------
# App & console setup
# ---------------------------------------------------------------------------

app = typer.Typer(
    name="argus",
    help="Argus CLI — portfolio performance scoring, history and cohort benchmarks.",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()
err_console = Console(stderr=True, style="bold red")

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger("argus.cli")

_RATING_COLORS = {
    "excellent": "green",
    "very good": "green",
    "good": "cyan",
    "satisfactory": "yellow",
    "needs improvement": "red",
}

# ---------------------------------------------------------------------------
# Async bridge
# ---------------------------------------------------------------------------


def _run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Execute a coroutine from synchronous CLI context."""
    return asyncio.run(coro)


async def _with_engine(coro: Coroutine[Any, Any, Any]) -> Any:
    """Await ``coro`` and dispose the connection pool before the loop closes."""
    from argus.db import engine

    try:
        return await coro
    finally:
        await engine.dispose()


def _parse_user_id(raw: str) -> UUID:
    try:
        return UUID(raw)
    except ValueError:
        err_console.print(f"Invalid UUID: {raw}")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: run
# ---------------------------------------------------------------------------


@app.command("run")
def run_batch() -> None:
    """Score every user with active policies, snapshot, and raise alerts.

    Examples:

      argus run
    """
    console.print(Panel("[bold cyan]Performance Monitor[/bold cyan]", title="Run", expand=False))

    try:
        from argus.tasks import run_performance_monitor_async

        with console.status("[bold green]Scoring portfolios...[/bold green]"):
            summary = _run(run_performance_monitor_async())

        table = Table(box=box.SIMPLE)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", justify="right", style="bold")
        table.add_row("Users processed", str(summary.users_processed))
        table.add_row("Users scored", str(summary.users_scored))
        table.add_row("Users skipped", str(summary.users_skipped))
        table.add_row("Users failed", str(summary.users_failed))
        table.add_row("Alerts created", str(summary.alerts_created))
        table.add_row("Duration (s)", f"{summary.duration_seconds:.1f}")
        console.print(table)

    except Exception as exc:
        err_console.print(f"Run failed: {exc}")
        logger.exception("CLI run command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: benchmark
# ---------------------------------------------------------------------------


@app.command("benchmark")
def benchmark(
    user_id: str = typer.Option(..., "--user-id", "-u", help="User UUID"),
    tips: bool = typer.Option(False, "--tips", help="Also generate AI tips"),
) -> None:
    """Show where a user stands against their age cohort.

    Examples:

      argus benchmark --user-id 550e8400-e29b-41d4-a716-446655440000 --tips
    """
    uid = _parse_user_id(user_id)

    try:
        from argus.benchmarking import CohortBenchmarkingEngine, TipsGenerator
        from argus.db import async_session
        from argus.stores import SqlPolicyReader, SqlSnapshotStore

        cohort_engine = CohortBenchmarkingEngine(
            SqlPolicyReader(async_session),
            SqlSnapshotStore(async_session),
            TipsGenerator() if tips else None,
        )
        with console.status("[bold green]Computing benchmark...[/bold green]"):
            report = _run(_with_engine(cohort_engine.benchmark_user(uid)))

        stats = report.statistics
        console.print(
            Panel(
                f"Score: [bold]{report.user_score}[/bold]  "
                f"Percentile: [bold]{report.percentile}[/bold]  "
                f"Cohort: [yellow]{report.cohort_scope}[/yellow] "
                f"({stats.total_users} users)\n"
                f"Average: {stats.average}  Median: {stats.median}  "
                f"Min: {stats.min}  Max: {stats.max}",
                title="Benchmark",
                expand=False,
            )
        )

        table = Table(title="Score distribution", box=box.ROUNDED)
        table.add_column("Range", style="cyan")
        table.add_column("Users", justify="right")
        table.add_column("", style="magenta")
        for b in report.distribution:
            marker = "◀ you" if b.min <= report.user_score <= b.max else ""
            table.add_row(b.range, str(b.count), marker)
        console.print(table)

        if report.ai_tips:
            console.print(Panel(report.ai_tips, title="Tips", expand=False))

    except Exception as exc:
        err_console.print(f"Benchmark failed: {exc}")
        logger.exception("CLI benchmark command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: history
# ---------------------------------------------------------------------------


@app.command("history")
def history(
    user_id: str = typer.Option(..., "--user-id", "-u", help="User UUID"),
    limit: int = typer.Option(12, "--limit", "-n", help="Number of snapshots"),
) -> None:
    """List a user's most recent performance snapshots, newest first."""
    uid = _parse_user_id(user_id)

    try:
        from argus.db import async_session
        from argus.stores import SqlSnapshotStore

        store = SqlSnapshotStore(async_session)
        snapshots = _run(_with_engine(store.recent(uid, limit)))

        if not snapshots:
            console.print("[yellow]No snapshots recorded for this user.[/yellow]")
            return

        table = Table(title=f"Performance history ({len(snapshots)})", box=box.ROUNDED)
        table.add_column("Computed", style="dim")
        table.add_column("Score", justify="right")
        table.add_column("Rating")
        table.add_column("Prem/Cov/Pol", justify="right")
        table.add_column("Policies", justify="right")
        table.add_column("Total premium", justify="right")

        for s in snapshots:
            color = _RATING_COLORS.get(s.performance_rating, "white")
            table.add_row(
                s.created_at.strftime("%Y-%m-%d %H:%M"),
                str(s.performance_score),
                f"[{color}]{s.performance_rating}[/{color}]",
                f"{s.premium_score}/{s.coverage_score}/{s.policy_score}",
                str(s.total_policies),
                f"{s.total_premium:,.2f}",
            )
        console.print(table)

    except Exception as exc:
        err_console.print(f"History failed: {exc}")
        logger.exception("CLI history command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: analytics
# ---------------------------------------------------------------------------


@app.command("analytics")
def analytics(
    user_id: str = typer.Option(..., "--user-id", "-u", help="User UUID"),
) -> None:
    """Show a user's live portfolio KPIs, benchmark comparison and providers.

    Examples:

      argus analytics --user-id 550e8400-e29b-41d4-a716-446655440000
    """
    uid = _parse_user_id(user_id)

    try:
        from argus.analytics import PortfolioAnalyticsService
        from argus.db import async_session
        from argus.errors import EmptyPortfolioError
        from argus.stores import SqlPolicyReader

        service = PortfolioAnalyticsService(SqlPolicyReader(async_session))
        try:
            view = _run(_with_engine(service.current(uid)))
        except EmptyPortfolioError:
            console.print("[yellow]No active policies for this user.[/yellow]")
            return

        color = _RATING_COLORS.get(view.performance_rating, "white")
        console.print(
            Panel(
                f"Score: [bold]{view.performance_score}[/bold]  "
                f"Rating: [{color}]{view.performance_rating}[/{color}]\n"
                f"Policies: {view.total_policies}  "
                f"Premium: {view.total_premium:,.2f}  "
                f"Coverage: {view.total_coverage:,.0f}  ROI: {view.roi}%\n"
                f"Age {view.age} ([yellow]{view.age_group}[/yellow])  "
                f"vs market: premium {view.premium_vs_market:+.1f}%  "
                f"coverage {view.coverage_vs_market:+.1f}%  "
                f"policies {view.policies_vs_market:+.1f}%",
                title="Portfolio analytics",
                expand=False,
            )
        )

        table = Table(title="Providers", box=box.ROUNDED)
        table.add_column("Provider", style="cyan")
        table.add_column("Policies", justify="right")
        table.add_column("Total premium", justify="right")
        table.add_column("Avg premium", justify="right")
        table.add_column("Total coverage", justify="right")
        for row in view.providers:
            table.add_row(
                row.provider,
                str(row.policy_count),
                f"{row.total_premium:,.2f}",
                f"{row.avg_premium:,.2f}",
                f"{row.total_coverage:,.0f}",
            )
        console.print(table)

    except Exception as exc:
        err_console.print(f"Analytics failed: {exc}")
        logger.exception("CLI analytics command failed")
        raise typer.Exit(1)


# ---------------------------------------------------------------------------
# Command: score
# ---------------------------------------------------------------------------


@app.command("score")
def score(
    age: int = typer.Option(..., "--age", help="Portfolio owner's age"),
    total_premium: float = typer.Option(..., "--total-premium", help="Sum of monthly premiums"),
    total_coverage: float = typer.Option(..., "--total-coverage", help="Sum of coverage amounts"),
    policies: int = typer.Option(..., "--policies", help="Number of active policies"),
) -> None:
    """Score an ad-hoc portfolio without touching the database."""
    from argus.scoring import PortfolioAggregates, calculate_score, load_benchmark_table

    if policies <= 0:
        err_console.print("--policies must be at least 1")
        raise typer.Exit(1)

    bench = load_benchmark_table(settings.benchmark_table).benchmark_for(age)
    result = calculate_score(
        PortfolioAggregates(
            total_premium=Decimal(str(total_premium)),
            total_coverage=Decimal(str(total_coverage)),
            policy_count=policies,
        ),
        bench,
    )

    table = Table(box=box.SIMPLE)
    table.add_column("Component", style="cyan")
    table.add_column("Diff vs benchmark", justify="right")
    table.add_column("Points", justify="right", style="bold")
    table.add_row("Premium", f"{result.premium_diff_pct:+.1f}%", f"{result.premium_score:.1f} / 40")
    table.add_row("Coverage", f"{result.coverage_diff_pct:+.1f}%", f"{result.coverage_score:.1f} / 40")
    table.add_row("Policies", f"{result.policies_diff_pct:+.1f}%", f"{result.policy_score:.1f} / 20")
    console.print(table)

    color = _RATING_COLORS.get(result.rating, "white")
    console.print(
        f"Composite: [bold]{result.score}[/bold]  Rating: [{color}]{result.rating}[/{color}]"
    )


# ---------------------------------------------------------------------------
# Command: benchmarks
# ---------------------------------------------------------------------------


@app.command("benchmarks")
def benchmarks() -> None:
    """Print the active age-band benchmark table."""
    from argus.scoring import load_benchmark_table

    table_data = load_benchmark_table(settings.benchmark_table)
    table = Table(title="Market benchmarks by age", box=box.ROUNDED)
    table.add_column("Ages", style="cyan")
    table.add_column("Avg premium", justify="right")
    table.add_column("Avg coverage", justify="right")
    table.add_column("Avg policies", justify="right")

    lower = 0
    for band in table_data.bands:
        label = f"{lower}+" if band.upper_age is None else f"{lower}-{band.upper_age - 1}"
        table.add_row(
            label,
            f"{band.avg_premium:,.0f}",
            f"{band.avg_coverage:,.0f}",
            f"{band.avg_policies:.1f}",
        )
        if band.upper_age is not None:
            lower = band.upper_age
    console.print(table)


# ---------------------------------------------------------------------------
# Command: serve
# ---------------------------------------------------------------------------


@app.command("serve")
def serve(
    host: Optional[str] = typer.Option(None, "--host", help="Bind address (default: ARGUS_API_HOST)"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Port (default: ARGUS_API_PORT)"),
) -> None:
    """Run the HTTP API under uvicorn."""
    import uvicorn

    uvicorn.run(
        "argus.api.routes:app",
        host=host or settings.argus_api_host,
        port=port or settings.argus_api_port,
        log_level=settings.log_level.lower(),
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    app()
