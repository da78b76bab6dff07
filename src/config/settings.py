# src/config/settings.py

"""Central configuration for the price_tracker pipeline."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    """Read a positive integer from the environment, else *default*."""
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


class Settings:
    """Central configuration for the price_tracker pipeline."""

    # --- Scheduling ---
    SCRAPE_INTERVAL_SECONDS: int = _env_int(
        "SCRAPE_INTERVAL_SECONDS", 3600
    )
    NOTIFY_INTERVAL_SECONDS: int = _env_int(
        "NOTIFY_INTERVAL_SECONDS", 3600
    )
    DEFAULT_INTERVAL_HOURS: int = 24    # Subscription throttle default

    # --- Fetching ---
    FETCH_DELAY_MIN: float = 2.0        # Randomised pre-navigation pause
    FETCH_DELAY_MAX: float = 5.0
    SCROLL_PAUSE: float = 1.0           # Gap between the two scrolls
    NAVIGATION_TIMEOUT_MS: int = 30_000
    PRODUCT_URL_TEMPLATE: str = "https://www.myntra.com/{product_id}"
    HOMEPAGE_URL: str = "https://www.myntra.com/"
    PRICE_SELECTOR: str = "span.pdp-price"
    CURRENCY_TOKENS: list[str] = ["MRP", "Rs.", "INR", "₹"]

    # --- Browser Impersonation ---
    USER_AGENT: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/131.0.0.0 Safari/537.36"
    )
    VIEWPORT: dict[str, int] = {"width": 1920, "height": 1080}
    BROWSER_ARGS: list[str] = [
        "--disable-blink-features=AutomationControlled",
        "--disable-gpu",
        "--no-sandbox",
    ]
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "same-origin",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }
    HEALTH_TIMEOUT: int = 10            # Seconds per health check
    HEALTH_SLOW_MS: float = 5000.0

    # --- Email ---
    EMAIL_SUBJECT: str = "Price History Update"
    DEFAULT_SENDER: str = "no-reply@affinity.com"
    DEFAULT_SMTP_PORT: int = 587
    SMTP_TIMEOUT: int = 20

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    LOGS_DIR: Path = BASE_DIR / "logs"
    LOG_FILE_NAME: str = "price_tracker.log"
    LOG_BACKUP_DAYS: int = _env_int("LOG_BACKUP_DAYS", 14)
    PRICE_DB_PATH: Path = Path(
        os.environ.get("PRICE_DB_PATH", str(DATA_DIR / "price_tracker.db"))
    )
