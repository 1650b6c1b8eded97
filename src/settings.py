"""Configuration loading for launchwatch.

Non-secret settings live in a single flat config.json for quick edits without
touching Python; every value can be overridden from the environment (a .env
file is honoured via python-dotenv). Secrets such as the bot token are only
read from the environment.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from dotenv import load_dotenv

from core.config import DEFAULT_MARKET_CAP_THRESHOLD, FeedConfig, NotificationConfig
from core.errors import ConfigurationError

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# config.json sits at the project root unless LAUNCHWATCH_CONFIG points elsewhere.
DEFAULT_CONFIG_PATH = os.path.join(PROJECT_ROOT, "config.json")

# Ledger file lives under a local data directory by default.
DEFAULT_LEDGER_PATH = os.path.join("data", "ledger.json")


@dataclass(frozen=True)
class Settings:
    """Validated runtime settings."""

    feed: FeedConfig
    poll_interval_minutes: float
    market_cap_threshold: float
    ledger_path: str
    bot_token: Optional[str]
    chat_id: Optional[str]
    logging: Mapping[str, Any] = field(default_factory=dict)

    def notification_config(self) -> NotificationConfig:
        """Return the notifier settings, failing if delivery is not configured."""

        if not self.bot_token:
            raise ConfigurationError("TELEGRAM_BOT_TOKEN is required to send notifications")
        if not self.chat_id:
            raise ConfigurationError(
                "TELEGRAM_CHAT_ID (or notifications.chat_id in config.json) is required"
            )
        return NotificationConfig(bot_token=self.bot_token, chat_id=self.chat_id)


def _load_json_config(path: str) -> dict:
    """Load config.json; a missing file means "environment only"."""

    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Cannot read config file {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must hold a JSON object")
    return data


def _pick(env: Mapping[str, str], env_key: str, section: Mapping[str, Any], key: str, default: Any) -> Any:
    value = env.get(env_key)
    if value not in (None, ""):
        return value
    value = section.get(key)
    if value is None:
        return default
    return value


def _positive(name: str, value: Any, cast: Callable[[Any], Any] = float) -> Any:
    try:
        number = cast(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from exc
    if number <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value!r}")
    return number


def load_settings(
    config_path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build ``Settings`` from config.json plus environment overrides.

    Raises ``ConfigurationError`` when the feed address is missing or any
    value is invalid.
    """

    if env is None:
        load_dotenv()
        env = os.environ
    config_path = config_path or env.get("LAUNCHWATCH_CONFIG") or DEFAULT_CONFIG_PATH
    config = _load_json_config(config_path)

    feed_section = config.get("feed", {}) or {}
    notifications = config.get("notifications", {}) or {}

    base_url = str(_pick(env, "FEED_BASE_URL", feed_section, "base_url", "")).strip()
    if not base_url:
        raise ConfigurationError("FEED_BASE_URL (or feed.base_url in config.json) is required")
    if not base_url.startswith(("http://", "https://")):
        raise ConfigurationError(f"Feed base URL must be http(s), got {base_url!r}")

    feed = FeedConfig(
        base_url=base_url,
        timeout_seconds=_positive(
            "feed timeout", _pick(env, "FEED_TIMEOUT_SECONDS", feed_section, "timeout_seconds", 30)
        ),
        max_retries=int(
            _positive("feed max_retries", _pick(env, "FEED_MAX_RETRIES", feed_section, "max_retries", 3), int)
        ),
    )

    ledger_path = str(_pick(env, "LEDGER_PATH", config, "ledger_path", DEFAULT_LEDGER_PATH))
    if not os.path.isabs(ledger_path):
        ledger_path = os.path.join(PROJECT_ROOT, ledger_path)

    # Log level from the environment wins over the file; the rest of the
    # logging block (file handler, redaction) stays file-only.
    logging_config = dict(config.get("logging", {}) or {})
    if env.get("LOG_LEVEL"):
        logging_config["level"] = env["LOG_LEVEL"]

    chat_id = _pick(env, "TELEGRAM_CHAT_ID", notifications, "chat_id", None)

    return Settings(
        feed=feed,
        poll_interval_minutes=_positive(
            "poll interval", _pick(env, "POLL_INTERVAL_MINUTES", config, "poll_interval_minutes", 5)
        ),
        market_cap_threshold=_positive(
            "market cap threshold",
            _pick(env, "MARKET_CAP_THRESHOLD", config, "market_cap_threshold", DEFAULT_MARKET_CAP_THRESHOLD),
        ),
        ledger_path=ledger_path,
        bot_token=env.get("TELEGRAM_BOT_TOKEN") or None,
        chat_id=str(chat_id) if chat_id not in (None, "") else None,
        logging=logging_config,
    )
