# src/storage/price_store.py

"""SQLite-backed product aggregates and append-only price history."""

import logging
import sqlite3
from datetime import datetime
from decimal import Decimal

from src.errors import StoreError
from src.models.price_observation import PriceObservation
from src.models.product import Product
from src.storage.database import (
    Database,
    decode_decimal,
    decode_timestamp,
    encode_timestamp,
)

logger = logging.getLogger("price_tracker.price_store")

_SELECT_PRODUCT = (
    "SELECT product_id, current_price, highest_price, "
    "       lowest_price, last_updated "
    "FROM products WHERE product_id = ?"
)


def _row_to_product(row: tuple[object, ...]) -> Product:
    """Convert a ``products`` row into a Product."""
    return Product(
        product_id=int(str(row[0])),
        current_price=decode_decimal(row[1]),
        highest_price=decode_decimal(row[2]),
        lowest_price=decode_decimal(row[3]),
        last_updated=decode_timestamp(str(row[4])),
    )


class PriceStore:
    """Aggregate price state and history time series, keyed by product id.

    History rows are the source of truth; the aggregate columns on
    ``products`` are a derived cache maintained on every observation.
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    # ── Recording ────────────────────────────────────────

    def upsert_observation(
        self,
        product_id: int,
        price: Decimal,
        recorded_at: datetime,
    ) -> Product | None:
        """Append one history row and fold *price* into the aggregate.

        Unknown products are created with all three price fields set to
        *price*. Known products always take the new current price and
        timestamp; the extremes move only when exceeded.

        Raises ``StoreError`` when the history row cannot be written.
        If the aggregate update fails afterwards, the history row is
        still committed, the failure is logged and ``None`` is returned.
        """
        ts = encode_timestamp(recorded_at)
        try:
            with self._db.transaction() as conn:
                conn.execute(
                    "INSERT OR IGNORE INTO products "
                    "(product_id, current_price, highest_price, "
                    " lowest_price, last_updated) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (product_id, str(price), str(price), str(price), ts),
                )
                conn.execute(
                    "INSERT INTO price_history "
                    "(product_id, price, recorded_at) "
                    "VALUES (?, ?, ?)",
                    (product_id, str(price), ts),
                )
                product = self._update_aggregate(
                    product_id, price, recorded_at,
                )
        except sqlite3.Error as exc:
            raise StoreError(
                f"Failed to record price for product {product_id}: {exc}"
            ) from exc

        logger.info(
            "Recorded price %s for product %s at %s",
            price,
            product_id,
            ts,
        )
        return product

    def _update_aggregate(
        self,
        product_id: int,
        price: Decimal,
        recorded_at: datetime,
    ) -> Product | None:
        """Fold *price* into the aggregate inside a savepoint."""
        try:
            with self._db.savepoint() as conn:
                row = conn.execute(
                    _SELECT_PRODUCT, (product_id,),
                ).fetchone()
                if row is None:
                    raise StoreError(
                        f"Product {product_id} vanished mid-update"
                    )
                updated = _row_to_product(row).apply(price, recorded_at)
                conn.execute(
                    "UPDATE products SET current_price = ?, "
                    "       highest_price = ?, lowest_price = ?, "
                    "       last_updated = ? "
                    "WHERE product_id = ?",
                    (
                        str(updated.current_price),
                        str(updated.highest_price),
                        str(updated.lowest_price),
                        encode_timestamp(updated.last_updated),
                        product_id,
                    ),
                )
                return updated
        except (sqlite3.Error, StoreError) as exc:
            logger.error(
                "Aggregate update failed for product %s, "
                "history row kept: %s",
                product_id,
                exc,
                exc_info=True,
            )
            return None

    def insert_product_if_absent(
        self,
        product_id: int,
        price: Decimal,
        at: datetime,
    ) -> bool:
        """Seed a product row; returns False if it already existed.

        Joins the caller's transaction when one is open.
        """
        try:
            with self._db.transaction() as conn:
                cur = conn.execute(
                    "INSERT OR IGNORE INTO products "
                    "(product_id, current_price, highest_price, "
                    " lowest_price, last_updated) "
                    "VALUES (?, ?, ?, ?, ?)",
                    (
                        product_id,
                        str(price),
                        str(price),
                        str(price),
                        encode_timestamp(at),
                    ),
                )
                return cur.rowcount == 1
        except sqlite3.Error as exc:
            raise StoreError(
                f"Failed to insert product {product_id}: {exc}"
            ) from exc

    # ── Querying ─────────────────────────────────────────

    def get_aggregate(self, product_id: int) -> Product | None:
        """Return the product's aggregate state, or None if unknown."""
        row = self._db.fetch_one(_SELECT_PRODUCT, (product_id,))
        return _row_to_product(row) if row else None

    def exists(self, product_id: int) -> bool:
        """Check whether the product has an aggregate row."""
        row = self._db.fetch_one(
            "SELECT 1 FROM products WHERE product_id = ?",
            (product_id,),
        )
        return row is not None

    def get_history(
        self,
        product_id: int,
        newest_first: bool = True,
    ) -> list[PriceObservation]:
        """Return every observation for a product, newest first by default."""
        order = "DESC" if newest_first else "ASC"
        rows = self._db.fetch_all(
            "SELECT product_id, price, recorded_at "
            "FROM price_history WHERE product_id = ? "
            f"ORDER BY recorded_at {order}, history_id {order}",
            (product_id,),
        )
        return [
            PriceObservation(
                product_id=int(r[0]),
                price=decode_decimal(r[1]),
                recorded_at=decode_timestamp(r[2]),
            )
            for r in rows
        ]

    def get_trend_summary(
        self, product_id: int,
    ) -> dict[str, object] | None:
        """Compute min / max / avg / latest price from the history rows."""
        history = self.get_history(product_id)
        if not history:
            return None
        prices = [obs.price for obs in history]
        avg = sum(prices, Decimal("0")) / len(prices)
        return {
            "min": min(prices),
            "max": max(prices),
            "avg": avg.quantize(Decimal("0.01")),
            "count": len(prices),
            "latest": prices[0],
        }
