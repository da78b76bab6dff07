# src/errors.py

"""Exception taxonomy for the tracking pipeline."""


class PriceTrackerError(Exception):
    """Base class for all pipeline errors."""


class FetchError(PriceTrackerError):
    """A product page failed to load or yielded no parsable price."""

    def __init__(self, product_id: int | str, reason: str) -> None:
        super().__init__(f"product {product_id}: {reason}")
        self.product_id = product_id
        self.reason = reason


class StoreError(PriceTrackerError):
    """A persistence operation failed."""


class DeliveryError(PriceTrackerError):
    """A notification could not be rendered or transmitted."""


class ConfigError(PriceTrackerError):
    """Required configuration is missing or invalid."""
