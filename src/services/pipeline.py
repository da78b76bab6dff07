# src/services/pipeline.py

"""Wires stores, fetcher and notifier into the two background loops."""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from src.config.email_config import EmailConfig
from src.config.settings import Settings
from src.scrapers.myntra_scraper import MyntraScraper
from src.services.notification_evaluator import (
    EvaluationReport,
    NotificationEvaluator,
    Notifier,
)
from src.services.notifier import EmailNotifier
from src.services.scheduler import add_periodic_job, build_scheduler
from src.services.scrape_scheduler import (
    PriceFetcher,
    ScrapeReport,
    ScrapeScheduler,
)
from src.services.subscription_service import SubscriptionService
from src.storage.database import Database
from src.storage.price_store import PriceStore
from src.storage.subscription_store import SubscriptionStore

logger = logging.getLogger("price_tracker.pipeline")


@dataclass
class Pipeline:
    """Every long-lived collaborator of the tracking pipeline."""

    database: Database
    price_store: PriceStore
    subscription_store: SubscriptionStore
    scraper: ScrapeScheduler
    evaluator: NotificationEvaluator
    subscriptions: SubscriptionService

    @classmethod
    def build(
        cls,
        notifier: Notifier,
        fetcher: PriceFetcher | None = None,
        db_path: Path | None = None,
    ) -> "Pipeline":
        """Assemble the pipeline around one shared database."""
        database = Database(db_path)
        price_store = PriceStore(database)
        subscription_store = SubscriptionStore(database)
        fetcher = fetcher or MyntraScraper()
        return cls(
            database=database,
            price_store=price_store,
            subscription_store=subscription_store,
            scraper=ScrapeScheduler(
                fetcher, price_store, subscription_store,
            ),
            evaluator=NotificationEvaluator(
                price_store, subscription_store, notifier,
            ),
            subscriptions=SubscriptionService(
                database, fetcher, price_store, subscription_store,
            ),
        )

    @classmethod
    def from_config(
        cls, email_config: EmailConfig, db_path: Path | None = None,
    ) -> "Pipeline":
        """Production wiring: Myntra scraper and SMTP notifier."""
        return cls.build(EmailNotifier(email_config), db_path=db_path)

    async def run_once(self) -> tuple[ScrapeReport, EvaluationReport]:
        """One scrape cycle followed by one evaluation cycle."""
        scrape_report = await self.scraper.run_cycle()
        evaluation_report = await self.evaluator.run_cycle()
        return scrape_report, evaluation_report

    async def run_forever(
        self,
        scrape_interval: float | None = None,
        notify_interval: float | None = None,
        stop: asyncio.Event | None = None,
    ) -> None:
        """Run both cycles on their fixed periods until *stop* or cancellation.

        Both jobs fire once immediately, then on their own period grid.
        """
        scheduler = build_scheduler()
        add_periodic_job(
            scheduler,
            "scrape",
            self.scraper.run_cycle,
            scrape_interval or Settings.SCRAPE_INTERVAL_SECONDS,
        )
        add_periodic_job(
            scheduler,
            "notify",
            self.evaluator.run_cycle,
            notify_interval or Settings.NOTIFY_INTERVAL_SECONDS,
        )
        stop = stop or asyncio.Event()
        scheduler.start()
        try:
            await stop.wait()
        finally:
            # Cancels any cycle still in flight
            scheduler.shutdown(wait=False)
            await self.subscriptions.drain()
            logger.info("Background jobs stopped")

    def close(self) -> None:
        """Release the database connection."""
        self.database.close()
