"""Telegram Bot API notification adapter.

Uses the Bot API for delivery so notifications can be routed to a channel or
group the bot is a member of.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import requests

from core.config import NotificationConfig
from core.models import CanonicalToken

LOGGER = logging.getLogger(__name__)

# Telegram rejects photo captions above this length.
PHOTO_CAPTION_LIMIT = 1024


class DeliveryError(Exception):
    """A single Bot API call did not succeed."""


class TelegramBotNotifier:
    """Notifier adapter that sends messages via the Telegram Bot API."""

    def __init__(self, config: NotificationConfig, session: requests.Session) -> None:
        self._config = config
        self._session = session

    def _endpoint(self, method: str) -> str:
        # The Bot API endpoint is deterministic and derived from the token.
        return f"https://api.telegram.org/bot{self._config.bot_token}/{method}"

    def _call(self, method: str, payload: dict[str, Any]) -> None:
        try:
            response = self._session.post(
                self._endpoint(method),
                json=payload,
                timeout=self._config.timeout_seconds,
            )
        except requests.RequestException as exc:
            raise DeliveryError(f"{method} request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not response.ok or not body.get("ok", False):
            description = body.get("description") or response.text[:200]
            raise DeliveryError(f"Bot API error {response.status_code} on {method}: {description}")

    def _send_text(self, caption: str) -> None:
        self._call(
            "sendMessage",
            {
                "chat_id": self._config.chat_id,
                "text": caption,
                "parse_mode": "HTML",
                "disable_web_page_preview": False,
            },
        )

    def _send_photo(self, caption: str, image: str) -> None:
        self._call(
            "sendPhoto",
            {
                "chat_id": self._config.chat_id,
                "photo": image,
                "caption": caption,
                "parse_mode": "HTML",
            },
        )

    def deliver(self, token: CanonicalToken, caption: str, image: Optional[str] = None) -> bool:
        """Blocking delivery; falls back to text when the photo send fails."""

        if image and len(caption) <= PHOTO_CAPTION_LIMIT:
            try:
                self._send_photo(caption, image)
                return True
            except DeliveryError as exc:
                LOGGER.warning("Image send failed for %s, sending text only: %s", token.symbol, exc)

        try:
            self._send_text(caption)
        except DeliveryError as exc:
            LOGGER.error("Notification failed for %s: %s", token.symbol, exc)
            return False
        return True

    async def notify(self, token: CanonicalToken, caption: str, image: Optional[str] = None) -> bool:
        """Send the caption for ``token``; True once any delivery succeeds."""

        # requests is blocking, so the call runs off the event loop to keep
        # manual triggers responsive while a cycle is sending.
        return await asyncio.to_thread(self.deliver, token, caption, image)
