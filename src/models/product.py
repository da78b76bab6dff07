# src/models/product.py

"""Tracked product aggregate state."""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal


@dataclass
class Product:
    """Current, highest and lowest observed price for one catalog item."""

    product_id: int
    current_price: Decimal
    highest_price: Decimal
    lowest_price: Decimal
    last_updated: datetime

    @classmethod
    def seed(
        cls, product_id: int, price: Decimal, at: datetime,
    ) -> "Product":
        """First observation sets all three price fields."""
        return cls(
            product_id=product_id,
            current_price=price,
            highest_price=price,
            lowest_price=price,
            last_updated=at,
        )

    def apply(self, price: Decimal, at: datetime) -> "Product":
        """Return the aggregate after observing *price* at *at*."""
        return Product(
            product_id=self.product_id,
            current_price=price,
            highest_price=max(self.highest_price, price),
            lowest_price=min(self.lowest_price, price),
            last_updated=at,
        )
