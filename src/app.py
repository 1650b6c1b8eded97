"""Application entry point for the launchwatch poller."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import signal
from logging.handlers import RotatingFileHandler
from typing import Any, Mapping, Optional

from art import tprint

import settings as settings_module
from adapters.feed_client import HttpFeedFetcher
from adapters.json_ledger import JsonLedgerStore
from adapters.notification_formatting import format_caption
from adapters.telegram_bot_notifier import TelegramBotNotifier
from client import build_session
from core.errors import ConfigurationError, PersistenceError
from core.orchestrator import CycleOrchestrator
from settings import Settings

NAME = "LAUNCHWATCH"
FONT = "tarty-1"

LOGGER = logging.getLogger(__name__)


def _print_banner() -> None:
    tprint(NAME, FONT, space=1)


class _RedactingFormatter(logging.Formatter):
    def __init__(self, secrets: list[str], fmt: str, datefmt: Optional[str] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self._secrets = [secret for secret in secrets if secret]

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for secret in self._secrets:
            message = message.replace(secret, "***")
        return message


def _collect_redaction_values(config: Mapping[str, Any]) -> list[str]:
    # The bot token ends up in Bot API URLs, so it is masked unless disabled.
    redact_cfg = config.get("redact", {}) if config else {}
    if not redact_cfg.get("enabled", True):
        return []
    values = []
    for name in redact_cfg.get("patterns", ["TELEGRAM_BOT_TOKEN"]):
        value = os.getenv(name)
        if value:
            values.append(value)
    return sorted(set(values), key=len, reverse=True)


def _configure_logging(config: Mapping[str, Any]) -> None:
    if not config.get("enabled", True):
        return

    level_name = str(config.get("level", "INFO")).upper()
    level = getattr(logging, level_name, logging.INFO)

    fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    secrets = _collect_redaction_values(config)
    formatter = _RedactingFormatter(secrets, fmt=fmt, datefmt=datefmt)

    handlers: list[logging.Handler] = []

    if config.get("console", True):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    file_cfg = config.get("file", {})
    if file_cfg.get("enabled", False):
        path = file_cfg.get("path", "logs/launchwatch.log")
        if not os.path.isabs(path):
            path = os.path.join(settings_module.PROJECT_ROOT, path)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        max_bytes = int(file_cfg.get("max_bytes", 5 * 1024 * 1024))
        backup_count = int(file_cfg.get("backup_count", 5))
        file_handler = RotatingFileHandler(
            path,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    if not handlers:
        return

    logging.basicConfig(level=level, handlers=handlers, force=True)
    # urllib3 logs full request URLs at DEBUG, which would include the bot token.
    logging.getLogger("urllib3").setLevel(max(level, logging.INFO))


def _load_settings_or_exit() -> Settings:
    try:
        return settings_module.load_settings()
    except ConfigurationError as exc:
        _configure_logging({})
        LOGGER.error("Configuration error: %s", exc)
        raise SystemExit(1) from exc


def _build(settings: Settings) -> tuple[JsonLedgerStore, CycleOrchestrator]:
    """Wire the adapters into one orchestrator; exits on fatal startup errors."""

    try:
        notification_config = settings.notification_config()
    except ConfigurationError as exc:
        LOGGER.error("Configuration error: %s", exc)
        raise SystemExit(1) from exc

    ledger = JsonLedgerStore(settings.ledger_path)
    try:
        ledger.initialize()
    except PersistenceError as exc:
        LOGGER.error("Ledger storage unusable: %s", exc)
        raise SystemExit(1) from exc

    session = build_session(settings.feed.max_retries)
    orchestrator = CycleOrchestrator(
        feed=HttpFeedFetcher(settings.feed, session),
        ledger=ledger,
        notifier=TelegramBotNotifier(notification_config, session),
        render_caption=format_caption,
        threshold=settings.market_cap_threshold,
    )
    return ledger, orchestrator


async def _serve(orchestrator: CycleOrchestrator, interval_minutes: float) -> None:
    """Run a cycle now and then every interval until SIGINT/SIGTERM.

    SIGUSR1 fires a manual cycle; it is coalesced if one is already running.
    """

    loop = asyncio.get_running_loop()
    stop = asyncio.Event()
    manual_tasks: set[asyncio.Task] = set()

    def _manual_trigger() -> None:
        task = loop.create_task(orchestrator.run_cycle("manual"))
        manual_tasks.add(task)
        task.add_done_callback(manual_tasks.discard)

    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, stop.set)
        except (NotImplementedError, RuntimeError):
            pass
    if hasattr(signal, "SIGUSR1"):
        try:
            loop.add_signal_handler(signal.SIGUSR1, _manual_trigger)
        except (NotImplementedError, RuntimeError):
            pass

    while not stop.is_set():
        await orchestrator.run_cycle("scheduled")
        try:
            await asyncio.wait_for(stop.wait(), timeout=interval_minutes * 60)
        except asyncio.TimeoutError:
            continue

    if manual_tasks:
        await asyncio.gather(*manual_tasks)
    LOGGER.info("Stop requested, shutting down")


def _run() -> None:
    _print_banner()
    settings = _load_settings_or_exit()
    _configure_logging(settings.logging)

    LOGGER.info("Starting launchwatch")
    LOGGER.info("Feed: %s", settings.feed.url)
    LOGGER.info("Poll interval: %s minutes", settings.poll_interval_minutes)
    LOGGER.info("Market cap threshold: %s", f"{settings.market_cap_threshold:,.0f}")

    ledger, orchestrator = _build(settings)
    try:
        asyncio.run(_serve(orchestrator, settings.poll_interval_minutes))
    finally:
        ledger.close()
    LOGGER.info("launchwatch stopped")


def _check() -> None:
    settings = _load_settings_or_exit()
    _configure_logging(settings.logging)

    ledger, orchestrator = _build(settings)
    report = asyncio.run(orchestrator.run_cycle("manual"))
    stats = ledger.stats()
    print(
        f"fetched={report.fetched} qualified={report.qualified} new={report.new} "
        f"notified={report.notified} failures={len(report.failures)}"
    )
    print(
        f"ledger total={stats.total} today={stats.qualified_today} "
        f"last_7_days={stats.qualified_last_seven_days}"
    )


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="launchwatch")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("run", help="Start the polling loop")
    subparsers.add_parser("check", help="Run a single cycle now and exit")

    args = parser.parse_args(argv)
    if args.command == "check":
        _check()
        return
    _run()


if __name__ == "__main__":
    main()
