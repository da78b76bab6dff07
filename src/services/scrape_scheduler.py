# src/services/scrape_scheduler.py

"""Recurring scrape cycle feeding the price store."""

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

from src.errors import FetchError, StoreError
from src.services.scheduler import Clock, utc_now
from src.storage.price_store import PriceStore
from src.storage.subscription_store import SubscriptionStore

logger = logging.getLogger("price_tracker.scrape")


class PriceFetcher(Protocol):
    """Anything that can turn a product id into a price."""

    async def fetch(self, product_id: int | str) -> Decimal: ...


@dataclass
class ScrapeReport:
    """Outcome of one scrape cycle."""

    succeeded: list[int] = field(
        default_factory=lambda: list[int]()
    )
    failed: list[int] = field(
        default_factory=lambda: list[int]()
    )


class ScrapeScheduler:
    """Scrapes every subscribed product once per cycle, one at a time."""

    def __init__(
        self,
        fetcher: PriceFetcher,
        price_store: PriceStore,
        subscription_store: SubscriptionStore,
        clock: Clock = utc_now,
    ) -> None:
        self._fetcher = fetcher
        self._prices = price_store
        self._subscriptions = subscription_store
        self._clock = clock

    async def run_cycle(self) -> ScrapeReport:
        """Fetch and record a price for each subscribed product.

        A failure for one product is logged and never stops the others;
        the next cycle retries it.
        """
        report = ScrapeReport()
        try:
            product_ids = await asyncio.to_thread(
                self._subscriptions.list_product_ids,
            )
        except StoreError as exc:
            logger.error("Could not list subscribed products: %s", exc)
            return report

        logger.info("Scrape cycle: %d products", len(product_ids))
        for product_id in product_ids:
            try:
                price = await self._fetcher.fetch(product_id)
                await asyncio.to_thread(
                    self._prices.upsert_observation,
                    product_id,
                    price,
                    self._clock(),
                )
            except FetchError as exc:
                logger.warning("Fetch failed: %s", exc)
                report.failed.append(product_id)
                continue
            except StoreError as exc:
                logger.error(
                    "Could not store price for product %s: %s",
                    product_id,
                    exc,
                    exc_info=True,
                )
                report.failed.append(product_id)
                continue
            except Exception as exc:
                logger.error(
                    "Unexpected error scraping product %s: %s",
                    product_id,
                    exc,
                    exc_info=True,
                )
                report.failed.append(product_id)
                continue
            report.succeeded.append(product_id)

        logger.info(
            "Scrape cycle done: %d ok, %d failed",
            len(report.succeeded),
            len(report.failed),
        )
        return report
