# src/services/subscription_service.py

"""Accept subscription requests and complete them in the background."""

import asyncio
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from email.utils import parseaddr

from src.config.settings import Settings
from src.services.scheduler import Clock, utc_now
from src.services.scrape_scheduler import PriceFetcher
from src.storage.database import Database
from src.storage.price_store import PriceStore
from src.storage.subscription_store import SubscriptionStore

logger = logging.getLogger("price_tracker.subscriptions")

ACCEPTED_MESSAGE = (
    "⏳ Your request is being processed. You will receive email "
    "notifications once setup is complete."
)


class SubscriptionService:
    """Front door for new subscriptions.

    ``request()`` validates input and returns at once; the seed scrape
    and the database writes happen in a background task, and their
    failures only reach the log.
    """

    def __init__(
        self,
        database: Database,
        fetcher: PriceFetcher,
        price_store: PriceStore,
        subscription_store: SubscriptionStore,
        clock: Clock = utc_now,
    ) -> None:
        self._db = database
        self._fetcher = fetcher
        self._prices = price_store
        self._subscriptions = subscription_store
        self._clock = clock
        self._pending: set[asyncio.Task[int | None]] = set()

    @staticmethod
    def validate(
        product_id: int,
        email: str,
        interval_hours: int,
        price_threshold: Decimal | float | str,
    ) -> Decimal:
        """Reject obviously bad input; returns the threshold as Decimal."""
        if product_id <= 0:
            raise ValueError("Please provide a valid product id")
        address = email.strip()
        if (
            "@" not in address
            or address.startswith("@")
            or address.endswith("@")
            or any(ch.isspace() or not ch.isprintable() for ch in address)
            or parseaddr(address)[1] != address
        ):
            raise ValueError("Please provide a valid email address")
        if interval_hours <= 0:
            raise ValueError("Interval must be at least one hour")
        try:
            threshold = Decimal(str(price_threshold))
        except InvalidOperation as exc:
            raise ValueError("Invalid price threshold") from exc
        if not threshold.is_finite() or threshold < 0:
            raise ValueError("Invalid price threshold")
        return threshold

    def request(
        self,
        product_id: int,
        email: str,
        interval_hours: int = Settings.DEFAULT_INTERVAL_HOURS,
        price_threshold: Decimal | float | str = Decimal("0"),
        notify_on_lowest: bool = False,
        notify_on_highest: bool = False,
    ) -> str:
        """Queue a subscription and return the acknowledgement.

        Must be called from inside a running event loop. Raises
        ``ValueError`` for invalid input.
        """
        threshold = self.validate(
            product_id, email, interval_hours, price_threshold,
        )
        task = asyncio.create_task(
            self.create(
                product_id,
                email.strip(),
                interval_hours,
                threshold,
                notify_on_lowest,
                notify_on_highest,
            ),
            name=f"subscribe-{product_id}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return ACCEPTED_MESSAGE

    async def create(
        self,
        product_id: int,
        email: str,
        interval_hours: int,
        price_threshold: Decimal,
        notify_on_lowest: bool,
        notify_on_highest: bool,
    ) -> int | None:
        """Seed the product if new, then store the subscription.

        Product insert and subscription insert share one transaction.
        Returns the new preference id, or None on any failure.
        """
        try:
            seed_price: Decimal | None = None
            if not await asyncio.to_thread(self._prices.exists, product_id):
                seed_price = await self._fetcher.fetch(product_id)

            preference_id = await asyncio.to_thread(
                self._store,
                product_id,
                email,
                interval_hours,
                price_threshold,
                notify_on_lowest,
                notify_on_highest,
                seed_price,
                self._clock(),
            )
        except Exception as exc:
            logger.error(
                "Subscription for product %s (%s) not created: %s",
                product_id,
                email,
                exc,
                exc_info=True,
            )
            return None
        return preference_id

    def _store(
        self,
        product_id: int,
        email: str,
        interval_hours: int,
        price_threshold: Decimal,
        notify_on_lowest: bool,
        notify_on_highest: bool,
        seed_price: Decimal | None,
        now: datetime,
    ) -> int:
        """Insert-product-if-absent plus insert-subscription, atomically."""
        with self._db.transaction():
            if seed_price is not None:
                created = self._prices.insert_product_if_absent(
                    product_id, seed_price, now,
                )
                if created:
                    logger.info(
                        "Product %s created at %s", product_id, seed_price,
                    )
            return self._subscriptions.add(
                product_id,
                email,
                interval_hours,
                price_threshold,
                notify_on_lowest,
                notify_on_highest,
                now,
            )

    async def drain(self) -> None:
        """Wait for every queued creation to finish."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
