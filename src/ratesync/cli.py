"""Click-based CLI for ratesync.

Thin wrapper around the sync orchestrator. Zero business logic: every
command delegates to SyncOrchestrator and only formats the result.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from datetime import datetime, timedelta

import click
from rich.console import Console
from rich.table import Table

console = Console(stderr=True)

_DIRECTION_STYLE = {"up": "green", "down": "red", "stable": "dim"}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code.

    Domain errors become a red one-line message and exit status 1.
    """
    from ratesync.core.exceptions import RateSyncError

    try:
        return asyncio.run(coro)
    except RateSyncError as e:
        console.print(f"[red]{type(e).__name__}: {e}[/red]")
        raise SystemExit(1) from e


def _load_config(ctx: click.Context):
    """Load config lazily, caching on first call."""
    if "config" not in ctx.obj:
        from ratesync.core import load_config

        ctx.obj["config"] = load_config(config_path=ctx.obj.get("config_path"))
    return ctx.obj["config"]


async def _create_orchestrator_async(ctx: click.Context):
    """Build an orchestrator honoring the --demo / --offline flags."""
    from ratesync.sources.provider import StaticConnectivity
    from ratesync.sync.orchestrator import create_orchestrator

    config = _load_config(ctx)
    return await create_orchestrator(
        config,
        demo=ctx.obj.get("demo", False),
        connectivity=StaticConnectivity(not ctx.obj.get("offline", False)),
    )


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="RATESYNC_CONFIG",
    default=None,
    help="Path to ratesync.yml config file.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
@click.option(
    "--demo",
    is_flag=True,
    default=False,
    help="Use the built-in fake rate source instead of the network.",
)
@click.option(
    "--offline",
    is_flag=True,
    default=False,
    help="Behave as if the network were unavailable.",
)
@click.version_option(package_name="ratesync")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool, demo: bool, offline: bool) -> None:
    """ratesync: schedule-aware exchange rates with local caching."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["demo"] = demo
    ctx.obj["offline"] = offline
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# rates / refresh
# ---------------------------------------------------------------------------


def _output_rates(snapshot, output_format: str) -> None:
    if output_format == "json":
        click.echo(
            json.dumps(
                {"base": snapshot.base, "as_of": snapshot.as_of.isoformat(), "rates": snapshot.rates},
                indent=2,
                sort_keys=True,
            )
        )
        return

    table = Table(title=f"Rates vs {snapshot.base} as of {snapshot.as_of}")
    table.add_column("Currency", style="bold")
    table.add_column("Rate", justify="right")
    for code in sorted(snapshot.rates):
        table.add_row(code, f"{snapshot.rates[code]:.6f}")
    console.print(table)


@cli.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def rates(ctx: click.Context, output_format: str) -> None:
    """Show current rates (cache, then store, then network when due)."""
    async def _run():
        orchestrator = await _create_orchestrator_async(ctx)
        try:
            snapshot = await orchestrator.load_current_rates()
        finally:
            await orchestrator.close()
        _output_rates(snapshot, output_format)

    _run_async(_run())


@cli.command()
@click.option(
    "--force",
    is_flag=True,
    default=False,
    help="Fetch even if the source cannot have published anything new.",
)
@click.pass_context
def refresh(ctx: click.Context, force: bool) -> None:
    """Fetch the latest rates from the remote source."""
    async def _run():
        orchestrator = await _create_orchestrator_async(ctx)
        try:
            if force:
                snapshot = await orchestrator.trigger_refresh()
            else:
                due = await orchestrator.should_fetch()
                snapshot = await orchestrator.refresh_if_due()
                if not due:
                    console.print("[dim]Source has not published since the last fetch.[/dim]")
            last = await orchestrator.get_last_fetch_timestamp()
        finally:
            await orchestrator.close()
        console.print(
            f"[green]Rates as of {snapshot.as_of}[/green] "
            f"({len(snapshot.rates)} currencies, last fetch {last or 'never'})"
        )

    _run_async(_run())


# ---------------------------------------------------------------------------
# history
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("currency")
@click.option(
    "--start",
    "-s",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Start date (YYYY-MM-DD). Default: 30 days before end.",
)
@click.option(
    "--end",
    "-e",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="End date (YYYY-MM-DD). Default: today.",
)
@click.option("--base", "-b", type=str, default=None, help="Express rates against this currency.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def history(
    ctx: click.Context,
    currency: str,
    start: datetime | None,
    end: datetime | None,
    base: str | None,
    output_format: str,
) -> None:
    """Show daily rates for CURRENCY over a date range."""
    async def _run():
        from ratesync.analytics import RangeAnalyzer

        orchestrator = await _create_orchestrator_async(ctx)
        try:
            end_day = end.date() if end else orchestrator.policy.today(orchestrator.now())
            start_day = start.date() if start else end_day - timedelta(days=30)
            points = await orchestrator.load_historical_range(
                currency, start_day, end_day, base=base
            )
        finally:
            await orchestrator.close()

        if output_format == "json":
            click.echo(
                json.dumps(
                    [{"day": p.day.isoformat(), "rate": p.rate} for p in points],
                    indent=2,
                )
            )
            return

        if not points:
            console.print(f"[yellow]No {currency.upper()} rates for {start_day}..{end_day}.[/yellow]")
            return

        label = f"{currency.upper()}/{(base or orchestrator.base_currency).upper()}"
        table = Table(title=f"{label} {start_day} → {end_day}")
        table.add_column("Date")
        table.add_column("Rate", justify="right")
        for p in points:
            table.add_row(p.day.isoformat(), f"{p.rate:.6f}")
        console.print(table)

        stats = RangeAnalyzer().summarize(points)
        console.print(
            f"high {stats.highest:.6f}  low {stats.lowest:.6f}  avg {stats.average:.6f}  "
            f"change {stats.change_percent:+.2f}%  volatility {stats.volatility:.2f}%"
        )

    _run_async(_run())


# ---------------------------------------------------------------------------
# trends
# ---------------------------------------------------------------------------


@cli.command()
@click.option(
    "--recompute",
    is_flag=True,
    default=False,
    help="Recompute from stored history instead of using saved trends.",
)
@click.pass_context
def trends(ctx: click.Context, recompute: bool) -> None:
    """Show percentage change over the trailing trend window."""
    async def _run():
        from ratesync.core.exceptions import InsufficientDataError

        orchestrator = await _create_orchestrator_async(ctx)
        try:
            if recompute:
                records = await orchestrator.compute_trends()
            else:
                records = await orchestrator.load_trends()
        except InsufficientDataError as e:
            console.print(f"[yellow]Trends not yet available: {e}[/yellow]")
            return
        finally:
            await orchestrator.close()

        table = Table(title="Trends")
        table.add_column("Currency", style="bold")
        table.add_column("Change %", justify="right")
        table.add_column("Direction")
        table.add_column("Window")
        for code in sorted(records):
            r = records[code]
            style = _DIRECTION_STYLE.get(str(r.direction), "")
            table.add_row(
                code,
                f"{r.change_percent:+.3f}",
                f"[{style}]{r.direction}[/{style}]" if style else str(r.direction),
                f"{r.window_start} → {r.window_end}",
            )
        console.print(table)

    _run_async(_run())


# ---------------------------------------------------------------------------
# convert
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("amount", type=float)
@click.argument("from_currency")
@click.argument("to_currency")
@click.pass_context
def convert(ctx: click.Context, amount: float, from_currency: str, to_currency: str) -> None:
    """Convert AMOUNT from FROM_CURRENCY to TO_CURRENCY."""
    async def _run():
        orchestrator = await _create_orchestrator_async(ctx)
        try:
            result = await orchestrator.convert(amount, from_currency, to_currency)
        finally:
            await orchestrator.close()
        click.echo(f"{amount:,.2f} {from_currency.upper()} = {result:,.4f} {to_currency.upper()}")

    _run_async(_run())


# ---------------------------------------------------------------------------
# status / clear
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show fetch schedule state and stored coverage."""
    async def _run():
        config = _load_config(ctx)
        orchestrator = await _create_orchestrator_async(ctx)
        try:
            info = await orchestrator.status()
        finally:
            await orchestrator.close()

        table = Table(title="ratesync Status")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")

        table.add_row("Storage backend", config.storage.backend.value)
        table.add_row("Database path", config.storage.sqlite_path)
        table.add_section()
        table.add_row("Today (publication tz)", info["today"])
        table.add_row("Last fetch", info["last_fetch"] or "never")
        table.add_row("Fetch due", "yes" if info["should_fetch"] else "no")
        table.add_row("Latest publication", info["latest_publication_day"])
        table.add_section()
        store = info["store"]
        table.add_row("Snapshots", str(store["snapshots"]))
        table.add_row("Historical days", str(store["historical_days"]))
        table.add_row(
            "History range",
            f"{store['earliest_date']} → {store['latest_date']}"
            if store["historical_days"]
            else "N/A",
        )
        table.add_row("Trend records", str(store["trend_records"]))
        console.print(table)

    _run_async(_run())


@cli.command()
@click.confirmation_option(prompt="Delete all stored rates, trends and the fetch cursor?")
@click.pass_context
def clear(ctx: click.Context) -> None:
    """Wipe cached and stored data."""
    async def _run():
        orchestrator = await _create_orchestrator_async(ctx)
        try:
            await orchestrator.clear_all()
        finally:
            await orchestrator.close()
        console.print("[green]All rate data cleared.[/green]")

    _run_async(_run())


# ---------------------------------------------------------------------------
# serve
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--host", type=str, default=None, help="Bind address. Default: from config.")
@click.option("--port", "-p", type=int, default=None, help="Port number. Default: from config.")
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the REST API server."""
    import uvicorn

    from ratesync.api.app import create_app

    config = _load_config(ctx)
    host = host or config.api.host
    port = port or config.api.port

    console.print(f"Starting ratesync API on [bold]{host}:{port}[/bold]")
    console.print(f"API docs: http://{host}:{port}/docs")

    uvicorn.run(create_app(config=config, demo=ctx.obj.get("demo", False)), host=host, port=port)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
