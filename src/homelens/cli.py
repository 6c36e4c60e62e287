"""Command-line interface for HomeLens."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import click
import structlog
from rich.console import Console
from rich.table import Table

from homelens import __version__
from homelens.config import Config, load_config
from homelens.container import DependencyContainer
from homelens.errors import ConfigurationError, FetchError, HomeLensError, ListingURLError
from homelens.extractor.cascade import DateCascade
from homelens.extractor.models import PriceHistoryResult, TimeOnMarketRecord
from homelens.observability import configure_logging
from homelens.price_history import PriceHistoryExtractor, analyze_price_history
from homelens.security.validation import validate_listing_url
from homelens.time_on_market import analyze_listing

logger = structlog.get_logger(__name__)


def _parse_fetched_at(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise click.BadParameter(f"not an ISO-8601 timestamp: {value!r}")
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


def _config(ctx: click.Context) -> Config:
    return ctx.obj["config"]  # type: ignore[no-any-return]


def _read_html(path: str) -> str:
    return Path(path).read_text(encoding="utf-8", errors="replace")


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", type=click.Path(exists=True, dir_okay=False), help="Configuration file path")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Logging level (overrides the configuration file)",
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], log_level: Optional[str]) -> None:
    """HomeLens - time on market and price history for property listings."""
    ctx.ensure_object(dict)
    config_path = Path(config) if config else None
    try:
        loaded = load_config(config_path)
    except (ConfigurationError, FileNotFoundError) as e:
        raise click.ClickException(str(e))

    if log_level:
        loaded.monitoring.log_level = log_level
    configure_logging(loaded.monitoring)

    ctx.obj["config_path"] = config_path
    ctx.obj["config"] = loaded


def _render_added_table(records: Sequence[TimeOnMarketRecord]) -> None:
    table = Table(title="Time on market")
    table.add_column("URL", overflow="fold")
    table.add_column("Added on")
    table.add_column("Source")
    table.add_column("Days", justify="right")
    for record in records:
        days = record.time_on_market_days
        table.add_row(
            record.url,
            record.portal_added_on or "-",
            record.source.value,
            "-" if days is None else str(days),
        )
    Console().print(table)


def _render_price_table(result: PriceHistoryResult) -> None:
    table = Table(title=f"Price history ({result.data_quality.value})")
    table.add_column("Date")
    table.add_column("Price", justify="right")
    table.add_column("Event")
    for entry in result.entries:
        table.add_row(entry.date, f"£{int(entry.price):,}", entry.event)
    Console().print(table)


async def _scrape_added(
    config: Config, config_path: Optional[Path], urls: Sequence[str], concurrency: int
) -> List[Any]:
    container = DependencyContainer(config_path, config)
    async with container.lifecycle():
        scraper = await container.get_time_on_market_scraper()
        return await scraper.scrape_many(urls, concurrency)


@cli.command()
@click.argument("urls", nargs=-1, required=True)
@click.option("--html", "html_file", type=click.Path(exists=True, dir_okay=False), help="Read the page from a saved HTML file instead of fetching it")
@click.option("--fetched-at", callback=_parse_fetched_at, help="Fetch timestamp (ISO-8601) used with --html")
@click.option("--concurrency", type=click.IntRange(min=1), default=None, help="Concurrent fetches for several URLs")
@click.option("--table", is_flag=True, help="Print a summary table instead of JSON")
@click.pass_context
def added(
    ctx: click.Context,
    urls: tuple[str, ...],
    html_file: Optional[str],
    fetched_at: Optional[datetime],
    concurrency: Optional[int],
    table: bool,
) -> None:
    """Report when listings were added and how long they have been on the market."""
    config = _config(ctx)

    if html_file:
        if len(urls) != 1:
            raise click.UsageError("--html takes exactly one URL")
        try:
            url = validate_listing_url(urls[0])
        except ListingURLError as e:
            raise click.ClickException(str(e))
        record = analyze_listing(
            url,
            _read_html(html_file),
            fetched_at or datetime.now(timezone.utc),
            DateCascade.from_settings(config.extraction),
        )
        outcomes: List[Any] = [record]
    else:
        outcomes = asyncio.run(
            _scrape_added(config, ctx.obj["config_path"], urls, concurrency or config.fetch.max_concurrency)
        )

    records = [outcome for outcome in outcomes if isinstance(outcome, TimeOnMarketRecord)]
    failures = [outcome for outcome in outcomes if isinstance(outcome, HomeLensError)]

    if table:
        _render_added_table(records)
    else:
        payload: List[Dict[str, Any]] = []
        for url, outcome in zip(urls, outcomes):
            if isinstance(outcome, TimeOnMarketRecord):
                payload.append(outcome.to_dict())
            else:
                payload.append({"url": url, "ok": False, "error": str(outcome)})
        _echo_json(payload[0] if len(payload) == 1 else payload)

    if failures:
        for failure in failures:
            click.echo(f"Error: {failure}", err=True)
        ctx.exit(1)


async def _scrape_price_history(config: Config, config_path: Optional[Path], url: str) -> PriceHistoryResult:
    container = DependencyContainer(config_path, config)
    async with container.lifecycle():
        scraper = await container.get_price_history_scraper()
        return await scraper.scrape(url)


@cli.command("price-history")
@click.argument("url")
@click.option("--html", "html_file", type=click.Path(exists=True, dir_okay=False), help="Read the page from a saved HTML file instead of fetching it")
@click.option("--fetched-at", callback=_parse_fetched_at, help="Fetch timestamp (ISO-8601) used with --html")
@click.option("--table", is_flag=True, help="Print a summary table instead of JSON")
@click.pass_context
def price_history(
    ctx: click.Context, url: str, html_file: Optional[str], fetched_at: Optional[datetime], table: bool
) -> None:
    """Extract the sale and price-change history of a listing."""
    config = _config(ctx)
    try:
        if html_file:
            result = analyze_price_history(
                validate_listing_url(url),
                _read_html(html_file),
                fetched_at or datetime.now(timezone.utc),
                PriceHistoryExtractor.from_settings(config.price_history),
            )
        else:
            result = asyncio.run(_scrape_price_history(config, ctx.obj["config_path"], url))
    except (ListingURLError, FetchError) as e:
        raise click.ClickException(str(e))

    if table:
        _render_price_table(result)
    else:
        _echo_json(result.to_dict())


@cli.command()
@click.option("--host", default=None, help="Host to bind (defaults to the configured host)")
@click.option("--port", type=int, default=None, help="Port to bind (defaults to the configured port)")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]) -> None:
    """Run the HTTP API."""
    from homelens.web.main import run_web_server

    config = _config(ctx)
    run_web_server(
        host or config.web.host,
        port or config.web.port,
        container=DependencyContainer(ctx.obj["config_path"], config),
    )


def main() -> None:
    cli(prog_name="homelens")


if __name__ == "__main__":
    main()
