# main.py

"""Entry point for the price_tracker daemon and its helper commands."""

import argparse
import asyncio
import logging
import sys

from src.config.logging_config import setup_logging
from src.config.settings import Settings

logger = logging.getLogger("price_tracker.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="price_tracker",
        description=(
            "Track Myntra product prices and email price-history "
            "updates to subscribers."
        ),
        epilog="With no options, runs the scrape and notification loops.",
    )
    parser.add_argument(
        "--subscribe",
        type=int,
        default=None,
        metavar="PRODUCT_ID",
        help="Subscribe --email to a product's price updates.",
    )
    parser.add_argument(
        "--email",
        default=None,
        help="Recipient address for --subscribe.",
    )
    parser.add_argument(
        "--interval-hours",
        type=int,
        default=Settings.DEFAULT_INTERVAL_HOURS,
        dest="interval_hours",
        help=(
            "Minimum hours between notifications "
            f"(default: {Settings.DEFAULT_INTERVAL_HOURS})."
        ),
    )
    parser.add_argument(
        "--threshold",
        default="0",
        help="Price threshold stored with the subscription (default: 0).",
    )
    parser.add_argument(
        "--notify-on-lowest",
        action="store_true",
        default=False,
        dest="notify_on_lowest",
        help="Flag the subscription for lowest-price alerts.",
    )
    parser.add_argument(
        "--notify-on-highest",
        action="store_true",
        default=False,
        dest="notify_on_highest",
        help="Flag the subscription for highest-price alerts.",
    )
    parser.add_argument(
        "--history",
        type=int,
        default=None,
        metavar="PRODUCT_ID",
        help="Print the stored price history of a product.",
    )
    parser.add_argument(
        "--run-once",
        action="store_true",
        default=False,
        dest="run_once",
        help="Run one scrape cycle and one notification cycle, then exit.",
    )
    parser.add_argument(
        "--health",
        action="store_true",
        default=False,
        help="Run a connectivity health check on the storefront.",
    )
    return parser


def _run_daemon() -> None:
    """Run both background loops until interrupted."""
    from src.cli.runner import run_daemon

    try:
        exit_code = asyncio.run(run_daemon())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        exit_code = 0
    except Exception:
        logger.critical("Fatal error in daemon", exc_info=True)
        raise
    finally:
        logger.info("price_tracker daemon shutting down")
    sys.exit(exit_code)


def _run_subscribe(
    parser: argparse.ArgumentParser, args: argparse.Namespace,
) -> None:
    """Create a subscription from the command line."""
    from src.cli.runner import cli_subscribe

    if not args.email:
        parser.error("--subscribe requires --email")

    exit_code = asyncio.run(
        cli_subscribe(
            product_id=args.subscribe,
            email=args.email,
            interval_hours=args.interval_hours,
            price_threshold=args.threshold,
            notify_on_lowest=args.notify_on_lowest,
            notify_on_highest=args.notify_on_highest,
        )
    )
    sys.exit(exit_code)


def _run_history(product_id: int) -> None:
    """Print a product's stored history."""
    from src.cli.runner import show_history

    sys.exit(show_history(product_id))


def _run_once() -> None:
    """Single scrape + notification pass."""
    from src.cli.runner import run_once

    sys.exit(asyncio.run(run_once()))


def _run_health_check() -> None:
    """Run storefront connectivity health check."""
    from src.cli.runner import run_health_check

    exit_code = asyncio.run(run_health_check())
    sys.exit(exit_code)


def main() -> None:
    """Route to the daemon (no options) or a one-shot command."""
    log_file = setup_logging()
    logger.info("price_tracker starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    if args.subscribe is not None:
        _run_subscribe(parser, args)
    elif args.history is not None:
        _run_history(args.history)
    elif args.health:
        _run_health_check()
    elif args.run_once:
        _run_once()
    else:
        _run_daemon()


if __name__ == "__main__":
    main()
