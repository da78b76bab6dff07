# tests/test_email_config.py

"""Tests for mail relay configuration resolution."""

import unittest
from dataclasses import FrozenInstanceError

from src.config.email_config import EmailConfig
from src.errors import ConfigError

_FULL_ENV: dict[str, str] = {
    "SMTP_HOST": "smtp.example.com",
    "SMTP_USERNAME": "mailer",
    "SMTP_PASSWORD": "s3cret",
}


class TestEmailConfig(unittest.TestCase):
    """EmailConfig.from_env behaviour."""

    def test_resolves_required_keys(self) -> None:
        """Host, username and password are read; defaults fill the rest."""
        cfg = EmailConfig.from_env(_FULL_ENV)
        self.assertEqual(cfg.host, "smtp.example.com")
        self.assertEqual(cfg.username, "mailer")
        self.assertEqual(cfg.password, "s3cret")
        self.assertEqual(cfg.port, 587)
        self.assertEqual(cfg.sender, "no-reply@affinity.com")
        self.assertFalse(cfg.use_ssl)

    def test_each_missing_key_is_fatal(self) -> None:
        """Dropping any one of the three keys raises ConfigError."""
        for key in _FULL_ENV:
            with self.subTest(key=key):
                env = {k: v for k, v in _FULL_ENV.items() if k != key}
                with self.assertRaises(ConfigError) as ctx:
                    EmailConfig.from_env(env)
                self.assertIn(key, str(ctx.exception))

    def test_blank_value_counts_as_missing(self) -> None:
        """Whitespace-only values are rejected."""
        env = {**_FULL_ENV, "SMTP_HOST": "   "}
        with self.assertRaises(ConfigError):
            EmailConfig.from_env(env)

    def test_port_465_uses_ssl(self) -> None:
        """An explicit 465 port selects implicit TLS."""
        cfg = EmailConfig.from_env({**_FULL_ENV, "SMTP_PORT": "465"})
        self.assertEqual(cfg.port, 465)
        self.assertTrue(cfg.use_ssl)

    def test_invalid_port_is_config_error(self) -> None:
        """Non-numeric ports are rejected at startup."""
        with self.assertRaises(ConfigError):
            EmailConfig.from_env({**_FULL_ENV, "SMTP_PORT": "abc"})

    def test_custom_sender(self) -> None:
        """SMTP_SENDER overrides the default From address."""
        cfg = EmailConfig.from_env(
            {**_FULL_ENV, "SMTP_SENDER": "alerts@example.com"},
        )
        self.assertEqual(cfg.sender, "alerts@example.com")

    def test_config_is_immutable(self) -> None:
        """The resolved config cannot be mutated after startup."""
        cfg = EmailConfig.from_env(_FULL_ENV)
        with self.assertRaises(FrozenInstanceError):
            cfg.host = "other"  # type: ignore[misc]

    def test_password_hidden_from_repr(self) -> None:
        """repr() does not leak the password."""
        cfg = EmailConfig.from_env(_FULL_ENV)
        self.assertNotIn("s3cret", repr(cfg))


if __name__ == "__main__":
    unittest.main()
