# src/scrapers/myntra_scraper.py

"""Price scraper for myntra.com product detail pages."""

from src.scrapers.base_scraper import BaseScraper


class MyntraScraper(BaseScraper):
    """Scraper for Myntra product pages.

    Myntra serves ``/<product_id>`` as a redirect to the canonical
    slugged URL, and renders the selling price client-side inside
    ``span.pdp-price`` (e.g. ``<strong>₹1,299</strong>``).
    """

    def __init__(self) -> None:
        super().__init__("myntra")

    def product_url(self, product_id: int | str) -> str:
        """Return the Myntra URL for a style id."""
        return self.settings.PRODUCT_URL_TEMPLATE.format(
            product_id=product_id,
        )

    @property
    def price_selector(self) -> str:
        """The selling-price span on the product page."""
        return self.settings.PRICE_SELECTOR
