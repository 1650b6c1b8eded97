"""Core polling-cycle orchestration.

This module is integration-agnostic. It only relies on ports for the feed,
ledger and notifications, so the same cycle serves the scheduler, a manual
trigger or a test harness.

Each cycle enforces a strict order:
1) Fetch raw records (in a worker thread, bounded by the feed timeout)
2) Normalize each record independently
3) Keep qualifying tokens
4) For each, in input order: identity check, then record, then notify
"""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from typing import Callable

from core.config import DEFAULT_MARKET_CAP_THRESHOLD
from core.errors import FailureKind, PersistenceError, StageFailure
from core.models import CanonicalToken, CycleReport, FetchResult
from core.normalizer import normalize_batch
from core.ports import FeedPort, LedgerPort, NotifierPort
from core.qualification import apply_qualification

LOGGER = logging.getLogger(__name__)

CaptionRenderer = Callable[[CanonicalToken], str]


class CycleOrchestrator:
    """Runs fetch, normalize, qualify, dedup, persist and notify as one unit."""

    def __init__(
        self,
        feed: FeedPort,
        ledger: LedgerPort,
        notifier: NotifierPort,
        render_caption: CaptionRenderer,
        threshold: float = DEFAULT_MARKET_CAP_THRESHOLD,
    ) -> None:
        self._feed = feed
        self._ledger = ledger
        self._notifier = notifier
        self._render_caption = render_caption
        self._threshold = threshold
        self._lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._lock.locked()

    async def run_cycle(self, trigger: str = "scheduled") -> CycleReport:
        """Run one cycle, or coalesce the trigger if a cycle is in progress.

        Never raises: every failure ends up in the returned report.
        """

        # No await between the check and the acquire, so this is atomic on
        # the event loop.
        if self._lock.locked():
            LOGGER.info("Cycle already running; %s trigger coalesced", trigger)
            return CycleReport(trigger=trigger, coalesced=True)

        async with self._lock:
            report = CycleReport(trigger=trigger)
            try:
                await self._run(report)
            except Exception:
                LOGGER.exception("Unexpected error during %s cycle", trigger)
            self._log_summary(report)
            return report

    async def _fetch(self) -> FetchResult:
        try:
            return await asyncio.to_thread(self._feed.fetch)
        except Exception as exc:
            LOGGER.warning("Feed fetch raised: %s", exc)
            return FetchResult(failure=StageFailure(FailureKind.TRANSIENT_FETCH, str(exc)))

    async def _run(self, report: CycleReport) -> None:
        fetched = await self._fetch()
        report.fetched = len(fetched.records)
        if fetched.failure:
            report.failures.append(fetched.failure)
        if not fetched.records:
            return

        batch = normalize_batch(fetched.records)
        report.normalized = len(batch.tokens)
        report.failures.extend(batch.failures)

        qualified = apply_qualification(batch.tokens, self._threshold)
        report.qualified = len(qualified)

        for token in qualified:
            if self._ledger.exists(token):
                continue
            report.new += 1

            try:
                self._ledger.record(token)
            except PersistenceError as exc:
                # The in-memory ledger already holds the token, so this process
                # will not notify it twice; a restart might.
                LOGGER.error("Ledger write failed for %s (%s): %s", token.symbol, token.id, exc)
                report.failures.append(StageFailure(FailureKind.PERSISTENCE, str(exc)))

            if await self._notify(token, report):
                report.notified += 1

    async def _notify(self, token: CanonicalToken, report: CycleReport) -> bool:
        try:
            caption = self._render_caption(token)
            delivered = await self._notifier.notify(token, caption, token.image)
        except Exception as exc:
            LOGGER.exception("Notifier raised for %s", token.symbol)
            delivered = False
            detail = f"{token.id}: {exc}"
        else:
            detail = f"{token.id}: delivery failed"

        if delivered:
            LOGGER.info("Notified %s (%s)", token.name, token.symbol)
            return True
        report.failures.append(StageFailure(FailureKind.NOTIFICATION, detail))
        return False

    @staticmethod
    def _log_summary(report: CycleReport) -> None:
        LOGGER.info(
            "Cycle (%s) complete: fetched=%s, normalized=%s, qualified=%s, new=%s, notified=%s",
            report.trigger,
            report.fetched,
            report.normalized,
            report.qualified,
            report.new,
            report.notified,
        )
        if not report.failures:
            return
        counts = Counter(failure.kind.value for failure in report.failures)
        LOGGER.warning(
            "Cycle (%s) absorbed failures: %s",
            report.trigger,
            ", ".join(f"{kind}={count}" for kind, count in sorted(counts.items())),
        )
