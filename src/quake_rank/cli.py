"""Command line entrypoint: ``quake-rank ingest|rank|watch|serve``."""

from __future__ import annotations

import asyncio
import logging
import time

import click
from rich.console import Console
from rich.table import Table

from quake_rank.config import Settings
from quake_rank.logging_config import configure_logging
from quake_rank.models import RankedRegion
from quake_rank.pipeline import DEFAULT_COUNT, DEFAULT_DAYS, get_most_dangerous, run_ingest
from quake_rank.regions import REGION_TYPES
from quake_rank.store import JsonFileStore
from quake_rank.usgs_client import FeedError

logger = logging.getLogger(__name__)
console = Console()


@click.group()
@click.option("--store", "store_path", default=None, help="Path of the JSON summary store.")
@click.pass_context
def cli(ctx: click.Context, store_path: str | None) -> None:
    """Rank regions by seismic energy from the USGS earthquake feed."""
    try:
        settings = Settings.from_env()
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc
    configure_logging(settings.log_level_value)
    ctx.obj = {
        "settings": settings,
        "store": JsonFileStore(store_path or settings.store_path),
    }


@cli.command()
@click.pass_obj
def ingest(obj: dict) -> None:
    """Fetch the feed once and store new summaries."""
    try:
        result = asyncio.run(run_ingest(obj["store"], obj["settings"]))
    except FeedError as exc:
        raise click.ClickException(str(exc)) from exc
    click.echo(
        f"Ingested {result['new']} new of {result['fetched']} fetched event(s) "
        f"across {len(result['dates'])} date(s); watermark {result['watermark']}"
    )
    if result["failed_dates"]:
        click.echo(f"Failed dates: {', '.join(result['failed_dates'])}", err=True)


@cli.command()
@click.option("--count", default=DEFAULT_COUNT, type=click.IntRange(min=1), show_default=True)
@click.option("--days", default=DEFAULT_DAYS, type=click.IntRange(min=1), show_default=True)
@click.option("--region-type", default="country", type=click.Choice(REGION_TYPES), show_default=True)
@click.pass_obj
def rank(obj: dict, count: int, days: int, region_type: str) -> None:
    """Show the most dangerous regions."""
    ranked = asyncio.run(get_most_dangerous(
        obj["store"], count=count, days=days, region_type=region_type, settings=obj["settings"],
    ))
    _print_ranking(ranked, days)


@cli.command()
@click.option("--interval", default=900, type=click.IntRange(min=1), show_default=True,
              help="Seconds between ingest runs.")
@click.pass_obj
def watch(obj: dict, interval: int) -> None:
    """Run ingest periodically until interrupted."""
    click.echo(f"Watching feed - ingesting every {interval}s")
    try:
        while True:
            try:
                asyncio.run(run_ingest(obj["store"], obj["settings"]))
            except Exception as exc:
                logger.error("Ingest cycle failed: %s", exc, exc_info=True)
            time.sleep(interval)
    except KeyboardInterrupt:
        click.echo("\nStopped.")


@cli.command()
@click.option("--host", default="0.0.0.0", show_default=True)
@click.option("--port", default=8080, type=int, show_default=True)
@click.pass_obj
def serve(obj: dict, host: str, port: int) -> None:
    """Serve /regions, /ingest and /health over HTTP."""
    from quake_rank.service import create_app

    app = create_app(obj["store"], obj["settings"])
    app.run(host=host, port=port, debug=False)


def _print_ranking(ranked: list[RankedRegion], days: int) -> None:
    if not ranked:
        console.print("[yellow]No earthquakes recorded for this period.[/]")
        return

    table = Table(title=f"Most dangerous regions, last {days} day(s)")
    table.add_column("#", justify="right")
    table.add_column("Region")
    table.add_column("Earthquakes", justify="right")
    table.add_column("Energy (M)", justify="right")
    for i, region in enumerate(ranked, start=1):
        color = "red" if region.total_magnitude >= 6.0 else "yellow" if region.total_magnitude >= 4.0 else "green"
        table.add_row(
            str(i),
            region.name,
            str(region.earthquake_count),
            f"[bold {color}]{region.total_magnitude:.2f}[/]",
        )
    console.print(table)
