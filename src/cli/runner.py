# src/cli/runner.py

"""Headless entry points: daemon, one-shot run, subscribe, history, health."""

import asyncio
import logging
from decimal import Decimal

from rich.console import Console
from rich.table import Table

from src.config.email_config import EmailConfig
from src.errors import ConfigError
from src.models.price_observation import PriceObservation
from src.models.product import Product
from src.scrapers.myntra_scraper import MyntraScraper
from src.services.pipeline import Pipeline
from src.services.subscription_service import SubscriptionService
from src.storage.database import Database
from src.storage.price_store import PriceStore
from src.storage.subscription_store import SubscriptionStore

logger = logging.getLogger("price_tracker.cli")

# Stderr console for status messages
_err = Console(stderr=True)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def _load_email_config() -> EmailConfig | None:
    """Resolve relay settings, reporting a fatal error if incomplete."""
    try:
        return EmailConfig.from_env()
    except ConfigError as exc:
        logger.critical("Startup aborted: %s", exc)
        _err.print(f"[red]Configuration error: {exc}[/red]")
        return None


async def run_daemon() -> int:
    """Run the scrape and notification loops until interrupted."""
    config = _load_email_config()
    if config is None:
        return EXIT_CONFIG

    pipeline = Pipeline.from_config(config)
    _err.print(
        "[bold]Price tracker running[/bold] "
        f"[dim](relay={config.host}:{config.port})[/dim]"
    )
    try:
        await pipeline.run_forever()
    except asyncio.CancelledError:
        logger.info("Daemon cancelled")
    finally:
        pipeline.close()
    return EXIT_OK


async def run_once() -> int:
    """Run a single scrape cycle and a single evaluation cycle."""
    config = _load_email_config()
    if config is None:
        return EXIT_CONFIG

    pipeline = Pipeline.from_config(config)
    try:
        scrape, evaluation = await pipeline.run_once()
    finally:
        pipeline.close()

    _err.print(
        f"[green]Scraped {len(scrape.succeeded)} ok, "
        f"{len(scrape.failed)} failed; "
        f"notified {len(evaluation.sent)}, "
        f"skipped {len(evaluation.skipped)}, "
        f"failed {len(evaluation.failed)}[/green]"
    )
    return EXIT_FAILURE if scrape.failed or evaluation.failed else EXIT_OK


async def cli_subscribe(
    product_id: int,
    email: str,
    interval_hours: int,
    price_threshold: str,
    notify_on_lowest: bool,
    notify_on_highest: bool,
) -> int:
    """Queue a subscription, print the acknowledgement, wait for it."""
    database = Database()
    price_store = PriceStore(database)
    subscription_store = SubscriptionStore(database)
    service = SubscriptionService(
        database, MyntraScraper(), price_store, subscription_store,
    )
    try:
        try:
            ack = service.request(
                product_id,
                email,
                interval_hours,
                price_threshold,
                notify_on_lowest,
                notify_on_highest,
            )
        except ValueError as exc:
            _err.print(f"[red]{exc}[/red]")
            return EXIT_FAILURE

        _err.print(ack)
        await service.drain()
        created = subscription_store.find(product_id, email.strip())
    finally:
        database.close()

    if created is None:
        _err.print(
            "[yellow]Subscription could not be completed; "
            "see the log file for details.[/yellow]"
        )
        return EXIT_FAILURE
    _err.print(
        f"[green]✓ Subscription {created.preference_id} active[/green]"
    )
    return EXIT_OK


def _fmt(price: Decimal) -> str:
    """Format a price for display."""
    return f"₹{price:,.2f}"


def _print_history(
    product: Product,
    history: list[PriceObservation],
    summary: dict[str, object] | None,
) -> None:
    """Render aggregate state and the history table to stdout."""
    console = Console()
    console.print(
        f"[bold]Product {product.product_id}[/bold]  "
        f"current [green]{_fmt(product.current_price)}[/green]  "
        f"high [red]{_fmt(product.highest_price)}[/red]  "
        f"low [cyan]{_fmt(product.lowest_price)}[/cyan]  "
        f"[dim]updated {product.last_updated:%Y-%m-%d %H:%M}[/dim]"
    )
    if summary:
        console.print(
            f"[dim]{summary['count']} observations, "
            f"average {summary['avg']}[/dim]"
        )

    table = Table(
        title="Price History",
        show_lines=False,
        title_style="bold cyan",
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("Recorded", style="dim")
    table.add_column("Price", justify="right", style="green")

    for idx, obs in enumerate(history, 1):
        table.add_row(
            str(idx),
            obs.recorded_at.strftime("%Y-%m-%d %H:%M"),
            _fmt(obs.price),
        )
    console.print(table)


def show_history(product_id: int) -> int:
    """Print a product's aggregate and its history, newest first."""
    database = Database()
    try:
        store = PriceStore(database)
        product = store.get_aggregate(product_id)
        if product is None:
            _err.print(
                f"[yellow]Product {product_id} is not tracked yet.[/yellow]"
            )
            return EXIT_FAILURE
        history = store.get_history(product_id)
        summary = store.get_trend_summary(product_id)
    finally:
        database.close()

    _print_history(product, history, summary)
    return EXIT_OK


async def run_health_check() -> int:
    """Check the storefront and print a one-row status table."""
    from src.services.health_checker import HealthChecker

    _err.print("[bold]Running storefront health check...[/bold]")
    result = await HealthChecker().check()

    table = Table(
        title="Storefront Health Check",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("URL", style="bold")
    table.add_column("Status", justify="center")
    table.add_column("Latency", justify="right")
    table.add_column("Notes", style="dim")

    if result.status == "ok":
        status = "[green]✅ OK[/green]"
    elif result.status == "slow":
        status = "[yellow]⚠️  SLOW[/yellow]"
    else:
        status = "[red]❌ DOWN[/red]"

    latency = (
        f"{result.latency_ms:.0f}ms"
        if result.latency_ms > 0
        else "—"
    )
    table.add_row(result.url, status, latency, result.message)

    Console().print(table)
    return EXIT_FAILURE if result.status == "down" else EXIT_OK
