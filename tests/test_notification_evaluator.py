# tests/test_notification_evaluator.py

"""Tests for the notification evaluation cycle."""

import shutil
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock

from src.models.subscription import NotificationPayload, Subscription
from src.services.notification_evaluator import NotificationEvaluator
from src.services.notifier import DeliveryResult
from src.storage.database import Database
from src.storage.price_store import PriceStore
from src.storage.subscription_store import SubscriptionStore

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


class RecordingNotifier:
    """Collects deliveries; fails for recipients listed in ``failing``."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.failing = failing or set()
        self.sent: list[tuple[str, NotificationPayload]] = []

    async def deliver(
        self, recipient: str, payload: NotificationPayload,
    ) -> DeliveryResult:
        if recipient in self.failing:
            return DeliveryResult(ok=False, reason="relay refused")
        self.sent.append((recipient, payload))
        return DeliveryResult(ok=True)


class TestNotificationEvaluator(unittest.IsolatedAsyncioTestCase):
    """run_cycle against real stores."""

    def setUp(self) -> None:
        self.tmp_dir = tempfile.mkdtemp()
        self.db = Database(db_path=Path(self.tmp_dir) / "test.db")
        self.prices = PriceStore(self.db)
        self.subs = SubscriptionStore(self.db)
        self.notifier = RecordingNotifier()
        self.evaluator = NotificationEvaluator(
            self.prices, self.subs, self.notifier,
        )
        self.now = T0 + timedelta(hours=25)
        self.prices.upsert_observation(42, Decimal("100.00"), T0)
        self.prices.upsert_observation(
            42, Decimal("90.00"), T0 + timedelta(hours=12),
        )

    def tearDown(self) -> None:
        self.db.close()
        shutil.rmtree(self.tmp_dir, ignore_errors=True)

    def _subscribe(
        self,
        email: str = "a@x.com",
        product_id: int = 42,
        last_notified: datetime = T0,
    ) -> int:
        return self.subs.add(
            product_id, email, 24, Decimal("0"), True, False, last_notified,
        )

    async def test_eligible_subscription_is_notified_once(self) -> None:
        """25h after the last send: one email, then throttled 1h later."""
        pid = self._subscribe()

        report = await self.evaluator.run_cycle(now=self.now)
        self.assertEqual(report.sent, [pid])
        self.assertEqual(len(self.notifier.sent), 1)

        recipient, payload = self.notifier.sent[0]
        self.assertEqual(recipient, "a@x.com")
        self.assertEqual(payload.current_price, Decimal("90.00"))
        self.assertEqual(payload.highest_price, Decimal("100.00"))
        self.assertEqual(payload.lowest_price, Decimal("90.00"))
        self.assertEqual(
            [o.price for o in payload.history],
            [Decimal("90.00"), Decimal("100.00")],
        )

        sub = self.subs.get(pid)
        assert sub is not None
        self.assertEqual(sub.last_notified, self.now)

        again = await self.evaluator.run_cycle(
            now=self.now + timedelta(hours=1),
        )
        self.assertEqual(again.skipped, [pid])
        self.assertEqual(len(self.notifier.sent), 1)

    async def test_not_yet_due_is_skipped(self) -> None:
        """Less than one interval since the last send means no email."""
        pid = self._subscribe(last_notified=self.now - timedelta(hours=23))
        report = await self.evaluator.run_cycle(now=self.now)
        self.assertEqual(report.skipped, [pid])
        self.assertEqual(self.notifier.sent, [])

    async def test_failed_delivery_is_retried_next_cycle(self) -> None:
        """A failed send leaves last_notified so the next cycle retries."""
        pid = self._subscribe()
        self.notifier.failing.add("a@x.com")

        report = await self.evaluator.run_cycle(now=self.now)
        self.assertEqual(report.failed, [pid])
        sub = self.subs.get(pid)
        assert sub is not None
        self.assertEqual(sub.last_notified, T0)

        self.notifier.failing.clear()
        later = self.now + timedelta(minutes=5)
        retry = await self.evaluator.run_cycle(now=later)
        self.assertEqual(retry.sent, [pid])
        sub = self.subs.get(pid)
        assert sub is not None
        self.assertEqual(sub.last_notified, later)

    async def test_one_failure_does_not_block_others(self) -> None:
        """Each subscription is evaluated independently."""
        bad = self._subscribe("bad@x.com")
        good = self._subscribe("good@x.com")
        self.notifier.failing.add("bad@x.com")

        report = await self.evaluator.run_cycle(now=self.now)
        self.assertEqual(report.failed, [bad])
        self.assertEqual(report.sent, [good])

    async def test_write_back_is_per_subscription(self) -> None:
        """Notifying one subscriber leaves a throttled peer unchanged."""
        due = self._subscribe("due@x.com")
        recent = self._subscribe(
            "recent@x.com", last_notified=self.now - timedelta(hours=1),
        )

        await self.evaluator.run_cycle(now=self.now)

        recent_sub = self.subs.get(recent)
        due_sub = self.subs.get(due)
        assert recent_sub is not None and due_sub is not None
        self.assertEqual(
            recent_sub.last_notified, self.now - timedelta(hours=1),
        )
        self.assertEqual(due_sub.last_notified, self.now)

    async def test_threshold_does_not_gate_delivery(self) -> None:
        """A threshold travels in the payload without suppressing sends."""
        pid = self.subs.add(
            42, "t@x.com", 24, Decimal("10.00"), False, True, T0,
        )
        report = await self.evaluator.run_cycle(now=self.now)
        self.assertEqual(report.sent, [pid])
        payload = self.notifier.sent[0][1]
        self.assertEqual(payload.price_threshold, Decimal("10.00"))
        self.assertTrue(payload.notify_on_highest)

    async def test_unexpected_error_counted_as_failed(self) -> None:
        """A raising notifier is contained to its subscription."""
        first = self._subscribe("a@x.com")
        second = self._subscribe("b@x.com")

        class Exploding(RecordingNotifier):
            async def deliver(
                self, recipient: str, payload: NotificationPayload,
            ) -> DeliveryResult:
                if recipient == "a@x.com":
                    raise RuntimeError("boom")
                return await super().deliver(recipient, payload)

        notifier = Exploding()
        evaluator = NotificationEvaluator(self.prices, self.subs, notifier)
        with self.assertLogs("price_tracker.evaluator", "ERROR"):
            report = await evaluator.run_cycle(now=self.now)
        self.assertEqual(report.failed, [first])
        self.assertEqual(report.sent, [second])

    async def test_missing_product_is_skipped(self) -> None:
        """A subscription whose product has no aggregate is skipped."""
        sub = Subscription(
            preference_id=7,
            product_id=999,
            email="a@x.com",
            interval_hours=24,
            price_threshold=Decimal("0"),
            notify_on_lowest=False,
            notify_on_highest=False,
            last_notified=T0,
            created_at=T0,
            updated_at=T0,
        )
        subs = MagicMock()
        subs.list_all.return_value = [sub]
        evaluator = NotificationEvaluator(self.prices, subs, self.notifier)

        report = await evaluator.run_cycle(now=self.now)
        self.assertEqual(report.skipped, [7])
        self.assertEqual(self.notifier.sent, [])
        subs.update_last_notified.assert_not_called()

    async def test_uses_clock_when_now_omitted(self) -> None:
        """run_cycle() without *now* asks the injected clock."""
        pid = self._subscribe()
        evaluator = NotificationEvaluator(
            self.prices, self.subs, self.notifier, clock=lambda: self.now,
        )
        report = await evaluator.run_cycle()
        self.assertEqual(report.sent, [pid])


if __name__ == "__main__":
    unittest.main()
