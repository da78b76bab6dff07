# src/models/price_observation.py

"""Temporal price observation model for the history time series."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass
class PriceObservation:
    """A single scraped price for a product at a point in time."""

    product_id: int
    price: Decimal
    recorded_at: datetime
