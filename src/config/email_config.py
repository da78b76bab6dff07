# src/config/email_config.py

"""Outbound mail relay configuration, resolved once at startup."""

import os
from collections.abc import Mapping
from dataclasses import dataclass, field

from src.config.settings import Settings
from src.errors import ConfigError

_REQUIRED_KEYS: tuple[str, ...] = (
    "SMTP_HOST",
    "SMTP_USERNAME",
    "SMTP_PASSWORD",
)


@dataclass(frozen=True)
class EmailConfig:
    """Immutable SMTP relay credentials passed explicitly to the notifier."""

    host: str
    username: str
    password: str = field(repr=False)
    port: int = Settings.DEFAULT_SMTP_PORT
    sender: str = Settings.DEFAULT_SENDER
    timeout: int = Settings.SMTP_TIMEOUT

    @property
    def use_ssl(self) -> bool:
        """Implicit TLS on 465; everything else negotiates STARTTLS."""
        return self.port == 465

    @classmethod
    def from_env(
        cls, env: Mapping[str, str] | None = None,
    ) -> "EmailConfig":
        """Build the config from the environment (``.env`` already loaded).

        Raises ``ConfigError`` naming every missing key.
        """
        source = os.environ if env is None else env
        missing = [
            key for key in _REQUIRED_KEYS
            if not (source.get(key) or "").strip()
        ]
        if missing:
            raise ConfigError(
                f"Missing mail relay configuration: {', '.join(missing)}"
            )

        raw_port = (source.get("SMTP_PORT") or "").strip()
        try:
            port = int(raw_port) if raw_port else Settings.DEFAULT_SMTP_PORT
        except ValueError as exc:
            raise ConfigError(f"Invalid SMTP_PORT: {raw_port!r}") from exc

        return cls(
            host=source["SMTP_HOST"].strip(),
            username=source["SMTP_USERNAME"].strip(),
            password=source["SMTP_PASSWORD"],
            port=port,
            sender=(
                (source.get("SMTP_SENDER") or "").strip()
                or Settings.DEFAULT_SENDER
            ),
        )
