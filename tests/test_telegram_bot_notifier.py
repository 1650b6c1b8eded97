from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Any, Optional

import requests

from adapters.telegram_bot_notifier import PHOTO_CAPTION_LIMIT, TelegramBotNotifier
from core.config import NotificationConfig
from core.models import CanonicalToken

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class DummyResponse:
    def __init__(self, ok: bool, description: str = "") -> None:
        self.ok = ok
        self.status_code = 200 if ok else 400
        self.text = description
        self._body = {"ok": ok, "description": description}

    def json(self) -> Any:
        return self._body


class DummySession:
    """Answers Bot API methods from a per-method script."""

    def __init__(self, outcomes: dict[str, Any]) -> None:
        self._outcomes = outcomes
        self.calls: list[tuple[str, dict]] = []

    def post(self, url: str, json: Optional[dict] = None, timeout: Optional[float] = None) -> DummyResponse:
        method = url.rsplit("/", 1)[-1]
        self.calls.append((method, json))
        outcome = self._outcomes.get(method, True)
        if isinstance(outcome, Exception):
            raise outcome
        return DummyResponse(ok=outcome, description="" if outcome else "Bad Request: wrong file")


def _token() -> CanonicalToken:
    return CanonicalToken(
        id="Mint1",
        name="Alpha",
        symbol="ALP",
        contract_address="Mint1",
        creation_timestamp=NOW,
        qualification_timestamp=NOW,
        qualification_source="now",
    )


def _notifier(session: DummySession) -> TelegramBotNotifier:
    return TelegramBotNotifier(NotificationConfig(bot_token="123:abc", chat_id="@chan"), session)


def test_photo_delivery_when_image_works() -> None:
    session = DummySession({"sendPhoto": True})
    delivered = asyncio.run(_notifier(session).notify(_token(), "caption", "https://img/1.png"))
    assert delivered
    assert [method for method, _ in session.calls] == ["sendPhoto"]
    assert session.calls[0][1]["photo"] == "https://img/1.png"
    assert session.calls[0][1]["chat_id"] == "@chan"


def test_falls_back_to_text_when_photo_rejected() -> None:
    session = DummySession({"sendPhoto": False, "sendMessage": True})
    delivered = asyncio.run(_notifier(session).notify(_token(), "caption", "https://img/broken.png"))
    assert delivered
    assert [method for method, _ in session.calls] == ["sendPhoto", "sendMessage"]
    assert session.calls[1][1]["text"] == "caption"


def test_falls_back_to_text_when_photo_request_errors() -> None:
    session = DummySession({"sendPhoto": requests.ConnectionError("reset"), "sendMessage": True})
    assert asyncio.run(_notifier(session).notify(_token(), "caption", "https://img/1.png"))


def test_text_only_without_image() -> None:
    session = DummySession({})
    assert asyncio.run(_notifier(session).notify(_token(), "caption"))
    assert [method for method, _ in session.calls] == ["sendMessage"]


def test_long_caption_skips_photo() -> None:
    session = DummySession({})
    caption = "x" * (PHOTO_CAPTION_LIMIT + 1)
    assert asyncio.run(_notifier(session).notify(_token(), caption, "https://img/1.png"))
    assert [method for method, _ in session.calls] == ["sendMessage"]


def test_reports_failure_when_text_also_fails() -> None:
    session = DummySession({"sendPhoto": False, "sendMessage": False})
    assert not asyncio.run(_notifier(session).notify(_token(), "caption", "https://img/1.png"))
