"""Command-line interface for perpmovers.

Usage
-----
After installation, the CLI is available as `perpmovers`:

    $ perpmovers run
    $ perpmovers run --mode poll --interval 5m --interval 1h
    $ perpmovers universe
    $ perpmovers snapshot --sort 1h-desc --limit 20
    $ perpmovers test-telegram

Or run as a module:

    $ python -m perpmovers.cli run
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Any

import click

from .config import MonitorConfig, Settings
from .constants import INTERVAL_LABELS, LONG_INTERVAL_LABELS
from .directory import SymbolDirectory
from .exceptions import FetchError
from .fetch_queue import RateLimitedFetchQueue
from .logging import setup_service_logging
from .models import Interval
from .monitor import MarketMonitor
from .rest import ExchangeClient
from .seeding import seed_universe
from .store import MarketStateStore

logger = logging.getLogger(__name__)


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.version_option(package_name="perpmovers")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Track percent moves of USDT perpetuals and alert on threshold crossings."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _config_overrides(**options: Any) -> dict[str, Any]:  # noqa: ANN401
    """Keep only the options given on the command line."""
    return {k: v for k, v in options.items() if v not in (None, ())}


@cli.command()
@click.option("--mode", type=click.Choice(["stream", "poll"]), default=None,
              help="Ingestion mode (default: stream)")
@click.option("--interval", "-i", "intervals", multiple=True,
              type=click.Choice(list(INTERVAL_LABELS)),
              help="Interval to track; repeat for several")
@click.option("--long-intervals", is_flag=True,
              help="Also track 8h, 12h, 1d, 1w and 1M once started")
@click.option("--no-alerts", is_flag=True, help="Track moves without alerting")
@click.option("--no-seed", is_flag=True, help="Skip the REST seeding pass")
@click.option("--verbose", is_flag=True, help="DEBUG on stderr")
@click.pass_context
def run(
    ctx: click.Context,
    mode: str | None,
    intervals: tuple[str, ...],
    long_intervals: bool,
    no_alerts: bool,
    no_seed: bool,
    verbose: bool,
) -> None:
    """Run the monitor until interrupted."""
    verbose = verbose or ctx.obj.get("verbose", False)
    overrides = _config_overrides(mode=mode, intervals=list(intervals))
    if no_alerts:
        overrides["alerts_enabled"] = False
    if no_seed:
        overrides["seed_on_startup"] = False
    if verbose:
        overrides["verbose"] = True

    try:
        config = MonitorConfig(**overrides)
    except ValueError as e:
        click.echo(f"Error: invalid configuration: {e}", err=True)
        sys.exit(2)

    setup_service_logging("monitor", verbose=config.verbose)
    asyncio.run(_run_monitor(config, long_intervals=long_intervals))


async def _run_monitor(config: MonitorConfig, *, long_intervals: bool) -> None:
    monitor = MarketMonitor(config)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda: asyncio.ensure_future(monitor.close()))

    try:
        await monitor.start()
        if long_intervals and monitor.initialized:
            await monitor.extend_intervals(LONG_INTERVAL_LABELS)
        await monitor.run_forever()
    finally:
        await monitor.close()


@cli.command()
@click.option("--quote", default=None, help="Quote asset (default: USDT)")
def universe(quote: str | None) -> None:
    """Print the tradable universe."""
    config = MonitorConfig(**_config_overrides(quote_asset=quote))

    async def _resolve() -> list[str]:
        async with ExchangeClient(config.rest_base_url, timeout_s=config.http_timeout_s) as client:
            return await SymbolDirectory(client, config.quote_asset).resolve_universe()

    try:
        symbols = asyncio.run(_resolve())
    except FetchError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    for symbol in symbols:
        click.echo(symbol)
    click.echo(f"{len(symbols)} {config.quote_asset} pair(s) trading", err=True)


@cli.command()
@click.option("--sort", "sort_by", default="symbol",
              help="symbol, symbol-desc, <interval> or <interval>-desc")
@click.option("--interval", "-i", "intervals", multiple=True,
              type=click.Choice(list(INTERVAL_LABELS)),
              help="Interval to fetch; repeat for several")
@click.option("--limit", "-n", type=int, default=None, help="Show only the first N rows")
def snapshot(sort_by: str, intervals: tuple[str, ...], limit: int | None) -> None:
    """Seed once from REST and print the percent-change table."""
    config = MonitorConfig(**_config_overrides(intervals=list(intervals)))

    try:
        store = asyncio.run(_fetch_snapshot(config))
        rows = store.sorted_rows(sort_by)
    except FetchError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)

    labels = [Interval(v) for v in config.intervals]
    click.echo(f"{'SYMBOL':<16}" + "".join(f"{iv.value:>9}" for iv in labels) + f"{'PRICE':>14}")
    click.echo("-" * (16 + 9 * len(labels) + 14))
    for symbol, row in rows[:limit]:
        cells = "".join(f"{row.changes[iv] or '-':>9}" for iv in labels)
        price = f"{row.last_price:g}" if row.last_price is not None else "-"
        click.echo(f"{symbol:<16}{cells}{price:>14}")


async def _fetch_snapshot(config: MonitorConfig) -> MarketStateStore:
    async with ExchangeClient(config.rest_base_url, timeout_s=config.http_timeout_s) as client:
        symbols = await SymbolDirectory(client, config.quote_asset).resolve_universe()
        store = MarketStateStore(symbols)
        queue = RateLimitedFetchQueue(config.fetch_batch_size, config.fetch_batch_interval_s)
        try:
            await seed_universe(
                queue, client, symbols, config.intervals,
                lambda candle: store.apply_update(candle.symbol, candle),
                limit=config.seed_limit,
            )
        finally:
            await queue.close()
    return store


@cli.command()
def test_telegram() -> None:
    """Send a test Telegram notification."""
    from .notify.telegram import is_configured, send_telegram

    notify = Settings.get().notify
    if not is_configured(notify):
        click.echo(
            "Error: Telegram not configured. "
            "Set TELEGRAM_TOKEN and TELEGRAM_CHAT_ID environment variables.",
            err=True,
        )
        sys.exit(1)

    success = send_telegram(
        "<b>perpmovers CLI Test</b>\n\n"
        "If you see this, crossing alerts will reach this chat.",
        config=notify,
    )
    if success:
        click.echo("Test notification sent successfully")
    else:
        click.echo("Failed to send test notification", err=True)
        sys.exit(1)


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
