# tests/test_scrape_scheduler.py

"""Tests for the recurring scrape cycle."""

import shutil
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

from src.errors import FetchError, StoreError
from src.services.scrape_scheduler import ScrapeScheduler
from src.storage.database import Database
from src.storage.price_store import PriceStore
from src.storage.subscription_store import SubscriptionStore

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


class FakeFetcher:
    """Returns canned prices; raises for ids mapped to an exception."""

    def __init__(self, prices: dict[int, Decimal | Exception]) -> None:
        self.prices = prices
        self.calls: list[int] = []

    async def fetch(self, product_id: int | str) -> Decimal:
        self.calls.append(int(product_id))
        value = self.prices[int(product_id)]
        if isinstance(value, Exception):
            raise value
        return value


class TestScrapeScheduler(unittest.IsolatedAsyncioTestCase):
    """run_cycle against real stores."""

    def setUp(self) -> None:
        self.tmp_dir = tempfile.mkdtemp()
        self.db = Database(db_path=Path(self.tmp_dir) / "test.db")
        self.prices = PriceStore(self.db)
        self.subs = SubscriptionStore(self.db)
        self.now = T0 + timedelta(hours=1)
        for pid in (1, 2, 3):
            self.prices.insert_product_if_absent(pid, Decimal("100"), T0)
            self.subs.add(pid, f"u{pid}@x.com", 24, Decimal("0"),
                          False, False, T0)
        # Second subscriber to product 1 must not cause a second scrape
        self.subs.add(1, "other@x.com", 24, Decimal("0"), False, False, T0)

    def tearDown(self) -> None:
        self.db.close()
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def _scheduler(self, fetcher: FakeFetcher) -> ScrapeScheduler:
        return ScrapeScheduler(
            fetcher, self.prices, self.subs, clock=lambda: self.now,
        )

    async def test_each_product_scraped_once(self) -> None:
        """Distinct subscribed products are fetched once per cycle."""
        fetcher = FakeFetcher({
            1: Decimal("90"), 2: Decimal("110"), 3: Decimal("100"),
        })
        report = await self._scheduler(fetcher).run_cycle()

        self.assertEqual(sorted(fetcher.calls), [1, 2, 3])
        self.assertEqual(sorted(report.succeeded), [1, 2, 3])
        self.assertEqual(report.failed, [])

        p1 = self.prices.get_aggregate(1)
        assert p1 is not None
        self.assertEqual(p1.current_price, Decimal("90"))
        self.assertEqual(p1.lowest_price, Decimal("90"))
        self.assertEqual(p1.last_updated, self.now)
        self.assertEqual(len(self.prices.get_history(2)), 1)

    async def test_fetch_failure_is_isolated(self) -> None:
        """A failing product leaves others updated and itself untouched."""
        fetcher = FakeFetcher({
            1: Decimal("80"),
            2: FetchError(2, "price element not found"),
            3: Decimal("120"),
        })
        with self.assertLogs("price_tracker.scrape", "WARNING"):
            report = await self._scheduler(fetcher).run_cycle()

        self.assertEqual(report.failed, [2])
        self.assertEqual(sorted(report.succeeded), [1, 3])
        self.assertEqual(self.prices.get_history(2), [])
        p2 = self.prices.get_aggregate(2)
        assert p2 is not None
        self.assertEqual(p2.last_updated, T0)
        p3 = self.prices.get_aggregate(3)
        assert p3 is not None
        self.assertEqual(p3.highest_price, Decimal("120"))

    async def test_unexpected_error_is_isolated(self) -> None:
        """Non-fetch exceptions are logged and the cycle continues."""
        fetcher = FakeFetcher({
            1: RuntimeError("browser crashed"),
            2: Decimal("100"),
            3: Decimal("100"),
        })
        with self.assertLogs("price_tracker.scrape", "ERROR"):
            report = await self._scheduler(fetcher).run_cycle()
        self.assertEqual(report.failed, [1])
        self.assertEqual(sorted(report.succeeded), [2, 3])

    async def test_store_failure_is_isolated(self) -> None:
        """A storage error on one product does not stop the cycle."""
        fetcher = FakeFetcher({
            1: Decimal("1"), 2: Decimal("2"), 3: Decimal("3"),
        })
        store = MagicMock(wraps=self.prices)
        store.upsert_observation.side_effect = [
            StoreError("disk full"),
            self.prices.get_aggregate(2),
            self.prices.get_aggregate(3),
        ]
        scheduler = ScrapeScheduler(
            fetcher, store, self.subs, clock=lambda: self.now,
        )
        with self.assertLogs("price_tracker.scrape", "ERROR"):
            report = await scheduler.run_cycle()
        self.assertEqual(report.failed, [1])
        self.assertEqual(len(report.succeeded), 2)

    async def test_no_subscriptions_no_fetches(self) -> None:
        """An empty subscription table means an empty cycle."""
        with self.db.transaction() as conn:
            conn.execute("DELETE FROM notification_preferences")
        fetcher = FakeFetcher({})
        report = await self._scheduler(fetcher).run_cycle()
        self.assertEqual(fetcher.calls, [])
        self.assertEqual(report.succeeded, [])

    async def test_listing_failure_returns_empty_report(self) -> None:
        """If subscriptions cannot be listed, nothing is fetched."""
        subs = MagicMock()
        subs.list_product_ids.side_effect = StoreError("locked")
        fetcher = FakeFetcher({})
        scheduler = ScrapeScheduler(fetcher, self.prices, subs)
        with self.assertLogs("price_tracker.scrape", "ERROR"):
            report = await scheduler.run_cycle()
        self.assertEqual(fetcher.calls, [])
        self.assertEqual(report.failed, [])


if __name__ == "__main__":
    unittest.main()
