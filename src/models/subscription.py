# src/models/subscription.py

"""Notification preference records and the values derived from them."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from src.models.price_observation import PriceObservation
from src.models.product import Product

HISTORY_DATE_FORMAT = "%Y-%m-%d %H:%M"


@dataclass
class Subscription:
    """A persisted notification preference row."""

    preference_id: int
    product_id: int
    email: str
    interval_hours: int
    price_threshold: Decimal
    notify_on_lowest: bool
    notify_on_highest: bool
    last_notified: datetime
    created_at: datetime
    updated_at: datetime

    @property
    def poll_interval(self) -> timedelta:
        """Minimum spacing between two notifications."""
        return timedelta(hours=self.interval_hours)


@dataclass
class NotificationDecision:
    """Per-cycle eligibility verdict for one subscription."""

    subscription: Subscription
    evaluated_at: datetime
    elapsed: timedelta
    eligible: bool

    @classmethod
    def evaluate(
        cls, subscription: Subscription, now: datetime,
    ) -> "NotificationDecision":
        """Apply the time throttle.

        Eligible once a full ``poll_interval`` has passed since the last
        notification. Threshold fields do not take part.
        """
        elapsed = now - subscription.last_notified
        return cls(
            subscription=subscription,
            evaluated_at=now,
            elapsed=elapsed,
            eligible=elapsed >= subscription.poll_interval,
        )


@dataclass
class NotificationPayload:
    """Content handed to the notifier for one delivery."""

    product_id: int
    current_price: Decimal
    highest_price: Decimal
    lowest_price: Decimal
    history: list[PriceObservation] = field(
        default_factory=lambda: list[PriceObservation]()
    )
    price_threshold: Decimal = Decimal("0")
    notify_on_lowest: bool = False
    notify_on_highest: bool = False

    @classmethod
    def build(
        cls,
        product: Product,
        history: list[PriceObservation],
        subscription: Subscription,
    ) -> "NotificationPayload":
        """Combine aggregate state, history and the rule's carried fields."""
        return cls(
            product_id=product.product_id,
            current_price=product.current_price,
            highest_price=product.highest_price,
            lowest_price=product.lowest_price,
            history=list(history),
            price_threshold=subscription.price_threshold,
            notify_on_lowest=subscription.notify_on_lowest,
            notify_on_highest=subscription.notify_on_highest,
        )

    def to_template_context(self) -> dict[str, object]:
        """Flatten into the dictionary the email template consumes."""
        return {
            "product_name": str(self.product_id),
            "current_price": str(self.current_price),
            "highest_price": str(self.highest_price),
            "lowest_price": str(self.lowest_price),
            "price_history": [
                {
                    "date": obs.recorded_at.strftime(HISTORY_DATE_FORMAT),
                    "price": str(obs.price),
                }
                for obs in self.history
            ],
        }
