# src/services/health_checker.py

"""Connectivity check for the scraped storefront."""

import asyncio
import logging
import time
from dataclasses import dataclass

from curl_cffi import requests as curl_requests

from src.config.settings import Settings

logger = logging.getLogger("price_tracker.health")


@dataclass
class HealthResult:
    """Result of a single site health check."""

    url: str
    status: str  # "ok", "slow", "down"
    latency_ms: float
    message: str


def check_site(
    url: str, session: curl_requests.Session | None = None,
) -> HealthResult:
    """GET *url* with a Chrome-impersonating session and classify it.

    A session created here is closed before returning; a caller's
    session is left open.
    """
    if session is None:
        with curl_requests.Session(
            impersonate=Settings.IMPERSONATE_BROWSER,
        ) as owned:
            return _classify(url, owned)
    return _classify(url, session)


def _classify(url: str, session: curl_requests.Session) -> HealthResult:
    settings = Settings()
    start = time.monotonic()
    try:
        resp = session.get(
            url,
            headers=dict(settings.DEFAULT_HEADERS),
            timeout=settings.HEALTH_TIMEOUT,
        )
        elapsed_ms = (time.monotonic() - start) * 1000

        if resp.status_code != 200:
            return HealthResult(
                url=url,
                status="down",
                latency_ms=elapsed_ms,
                message=f"HTTP {resp.status_code}",
            )

        if elapsed_ms > settings.HEALTH_SLOW_MS:
            return HealthResult(
                url=url,
                status="slow",
                latency_ms=elapsed_ms,
                message="High latency",
            )

        return HealthResult(
            url=url,
            status="ok",
            latency_ms=elapsed_ms,
            message="",
        )

    except Exception as exc:
        elapsed_ms = (time.monotonic() - start) * 1000
        return HealthResult(
            url=url,
            status="down",
            latency_ms=elapsed_ms,
            message=str(exc)[:80],
        )


class HealthChecker:
    """Checks the storefront homepage without launching a browser."""

    def __init__(self, url: str | None = None) -> None:
        self.url = url or Settings.HOMEPAGE_URL

    async def check(self) -> HealthResult:
        """Run the blocking check off the event loop."""
        result = await asyncio.to_thread(check_site, self.url)
        logger.info(
            "Health check %s: %s (%.0fms) %s",
            result.url,
            result.status,
            result.latency_ms,
            result.message,
        )
        return result
