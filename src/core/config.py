"""Core configuration dataclasses.

We keep config parsing outside the core, but these dataclasses define the
shape the core and adapters expect so the app layer can build them safely.
"""

from __future__ import annotations

from dataclasses import dataclass

# Most launchpad tokens mint a fixed 1B supply; used to approximate market cap
# from price when the feed omits it.
ASSUMED_SUPPLY = 1_000_000_000

DEFAULT_MARKET_CAP_THRESHOLD = 100_000.0

FEED_RESOURCE_PATH = "/api/v1/token-launch/leaderboard"


@dataclass(frozen=True)
class FeedConfig:
    """Upstream feed settings consumed by the feed adapter."""

    base_url: str
    timeout_seconds: float = 30.0
    max_retries: int = 3
    resource_path: str = FEED_RESOURCE_PATH

    @property
    def url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.resource_path}"


@dataclass(frozen=True)
class NotificationConfig:
    """Delivery settings consumed by notifier adapters."""

    bot_token: str
    chat_id: str
    timeout_seconds: float = 15.0
