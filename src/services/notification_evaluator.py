# src/services/notification_evaluator.py

"""Recurring evaluation of subscriptions and notification delivery."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from src.errors import StoreError
from src.models.subscription import (
    NotificationDecision,
    NotificationPayload,
    Subscription,
)
from src.services.notifier import DeliveryResult
from src.services.scheduler import Clock, utc_now
from src.storage.price_store import PriceStore
from src.storage.subscription_store import SubscriptionStore

logger = logging.getLogger("price_tracker.evaluator")


class Notifier(Protocol):
    """Delivery side of the evaluator."""

    async def deliver(
        self, recipient: str, payload: NotificationPayload,
    ) -> DeliveryResult: ...


@dataclass
class EvaluationReport:
    """Preference ids grouped by what happened to them in one cycle."""

    sent: list[int] = field(
        default_factory=lambda: list[int]()
    )
    skipped: list[int] = field(
        default_factory=lambda: list[int]()
    )
    failed: list[int] = field(
        default_factory=lambda: list[int]()
    )


class NotificationEvaluator:
    """Sends at most one notification per time-eligible subscription per cycle.

    Only the interval throttle gates delivery. ``price_threshold`` and
    the lowest/highest flags travel with the payload but are not
    evaluated.
    """

    def __init__(
        self,
        price_store: PriceStore,
        subscription_store: SubscriptionStore,
        notifier: Notifier,
        clock: Clock = utc_now,
    ) -> None:
        self._prices = price_store
        self._subscriptions = subscription_store
        self._notifier = notifier
        self._clock = clock

    async def run_cycle(
        self, now: datetime | None = None,
    ) -> EvaluationReport:
        """Evaluate every subscription against the state at *now*."""
        now = now or self._clock()
        report = EvaluationReport()
        try:
            subscriptions = await asyncio.to_thread(
                self._subscriptions.list_all,
            )
        except StoreError as exc:
            logger.error("Could not load subscriptions: %s", exc)
            return report

        for sub in subscriptions:
            try:
                outcome = await self._evaluate_one(sub, now)
            except Exception as exc:
                logger.error(
                    "Subscription %d failed: %s",
                    sub.preference_id,
                    exc,
                    exc_info=True,
                )
                outcome = "failed"
            getattr(report, outcome).append(sub.preference_id)

        logger.info(
            "Evaluation cycle done: %d sent, %d skipped, %d failed",
            len(report.sent),
            len(report.skipped),
            len(report.failed),
        )
        return report

    async def _evaluate_one(
        self, sub: Subscription, now: datetime,
    ) -> str:
        """Return ``"sent"``, ``"skipped"`` or ``"failed"``."""
        decision = NotificationDecision.evaluate(sub, now)
        if not decision.eligible:
            logger.debug(
                "Subscription %d throttled (%s of %s elapsed)",
                sub.preference_id,
                decision.elapsed,
                sub.poll_interval,
            )
            return "skipped"

        product = await asyncio.to_thread(
            self._prices.get_aggregate, sub.product_id,
        )
        if product is None:
            logger.debug(
                "Subscription %d waiting on first scrape of %s",
                sub.preference_id,
                sub.product_id,
            )
            return "skipped"

        history = await asyncio.to_thread(
            self._prices.get_history, sub.product_id,
        )
        payload = NotificationPayload.build(product, history, sub)

        result = await self._notifier.deliver(sub.email, payload)
        if not result.ok:
            # last_notified untouched: next cycle retries
            return "failed"

        await asyncio.to_thread(
            self._subscriptions.update_last_notified,
            sub.preference_id,
            now,
        )
        return "sent"
