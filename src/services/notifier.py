# src/services/notifier.py

"""Email delivery of price-history notifications via SMTP.

Supports STARTTLS (587) or implicit SSL (465). Relay credentials come
from an ``EmailConfig`` built once at startup.
"""

import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage

from src.config.email_config import EmailConfig
from src.config.settings import Settings
from src.errors import DeliveryError
from src.models.subscription import NotificationPayload
from src.services.email_template import Renderer, render_price_history

logger = logging.getLogger("price_tracker.notifier")


@dataclass
class DeliveryResult:
    """Whether a notification reached the relay, and why not if it didn't."""

    ok: bool
    reason: str = ""


class EmailNotifier:
    """Renders a payload and sends it through the configured relay."""

    def __init__(
        self,
        config: EmailConfig,
        renderer: Renderer = render_price_history,
    ) -> None:
        self._config = config
        self._render = renderer

    def build_message(
        self, recipient: str, payload: NotificationPayload,
    ) -> EmailMessage:
        """Render the body and wrap it in an HTML email."""
        try:
            body = self._render(payload.to_template_context())
        except Exception as exc:
            raise DeliveryError(f"template rendering failed: {exc}") from exc

        msg = EmailMessage()
        try:
            msg["Subject"] = Settings.EMAIL_SUBJECT
            msg["From"] = self._config.sender
            msg["To"] = recipient
            msg.set_content(body, subtype="html")
        except (ValueError, UnicodeError) as exc:
            raise DeliveryError(
                f"invalid message for {recipient!r}: {exc}"
            ) from exc
        return msg

    def _send(self, msg: EmailMessage) -> None:
        """Transmit over an encrypted, authenticated SMTP session."""
        cfg = self._config
        context = ssl.create_default_context()
        try:
            if cfg.use_ssl:
                with smtplib.SMTP_SSL(
                    cfg.host, cfg.port, context=context, timeout=cfg.timeout,
                ) as s:
                    s.login(cfg.username, cfg.password)
                    s.send_message(msg)
            else:
                with smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout) as s:
                    s.ehlo()
                    s.starttls(context=context)
                    s.login(cfg.username, cfg.password)
                    s.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(f"SMTP send failed: {exc}") from exc

    def send(
        self, recipient: str, payload: NotificationPayload,
    ) -> None:
        """Blocking render-and-send; raises ``DeliveryError``."""
        msg = self.build_message(recipient, payload)
        self._send(msg)

    async def deliver(
        self, recipient: str, payload: NotificationPayload,
    ) -> DeliveryResult:
        """Send one notification without retrying.

        Rendering and transport errors come back as a failed result.
        """
        try:
            await asyncio.to_thread(self.send, recipient, payload)
        except DeliveryError as exc:
            logger.warning(
                "Delivery to %s for product %s failed: %s",
                recipient,
                payload.product_id,
                exc,
            )
            return DeliveryResult(ok=False, reason=str(exc))

        logger.info(
            "Price history for product %s sent to %s",
            payload.product_id,
            recipient,
        )
        return DeliveryResult(ok=True)
