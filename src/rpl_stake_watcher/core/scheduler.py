"""
CheckScheduler - drives check cycles at a fixed interval.

Each tick fans out one task per validator and joins them all before the
next tick is scheduled, so ticks never overlap. A tick that overruns the
interval delays the next one instead of stacking work behind it.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence

from rpl_stake_watcher.monitoring.alerting import NotificationStatus

from .checker import CheckResult, CheckStatus, StakeChecker

logger = logging.getLogger(__name__)


@dataclass
class SchedulerConfig:
    """Configuration for the check scheduler."""

    interval_seconds: float = 300
    check_on_start: bool = True  # False waits one interval before the first tick


@dataclass
class CheckStats:
    """Runtime counters, cumulative since start."""

    ticks: int = 0
    checks: int = 0
    ok: int = 0
    under_minimum: int = 0
    not_enrolled: int = 0
    fetch_failures: int = 0
    alerts_sent: int = 0
    alerts_suppressed: int = 0
    delivery_failures: int = 0
    task_errors: int = 0
    last_tick_seconds: float = 0.0

    def record(self, result: CheckResult) -> None:
        self.checks += 1
        if result.status == CheckStatus.OK:
            self.ok += 1
        elif result.status == CheckStatus.UNDER_MINIMUM:
            self.under_minimum += 1
        elif result.status == CheckStatus.NOT_ENROLLED:
            self.not_enrolled += 1
        elif result.status == CheckStatus.FETCH_FAILED:
            self.fetch_failures += 1

        if result.notification is None:
            return
        if result.notification.status == NotificationStatus.SENT:
            self.alerts_sent += 1
        elif result.notification.status == NotificationStatus.SUPPRESSED:
            self.alerts_suppressed += 1
        elif result.notification.status == NotificationStatus.FAILED:
            self.delivery_failures += 1


class CheckScheduler:
    """
    Runs StakeChecker over every validator, once per interval.

    Usage:
        scheduler = CheckScheduler(
            checker=checker,
            validator_ids=["123456", "654321"],
            config=SchedulerConfig(interval_seconds=300),
        )
        await scheduler.start()
        # ... watcher runs ...
        await scheduler.stop()
    """

    def __init__(
        self,
        checker: StakeChecker,
        validator_ids: Sequence[str],
        config: Optional[SchedulerConfig] = None,
    ) -> None:
        self._checker = checker
        self._validator_ids = list(validator_ids)
        self._config = config or SchedulerConfig()
        if self._config.interval_seconds <= 0:
            raise ValueError(
                f"interval_seconds must be > 0, got {self._config.interval_seconds}"
            )

        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._stats = CheckStats()

    @property
    def is_running(self) -> bool:
        """Whether the scheduler loop is running."""
        return self._running

    @property
    def stats(self) -> CheckStats:
        return self._stats

    @property
    def validator_ids(self) -> List[str]:
        return list(self._validator_ids)

    async def start(self) -> None:
        """Start the periodic check loop in the background."""
        if self._running:
            logger.warning("CheckScheduler already running")
            return

        self._running = True
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop(), name="stake_check_loop")
        logger.info(
            f"Started stake check loop "
            f"(validators={len(self._validator_ids)}, "
            f"interval={self._config.interval_seconds}s)"
        )

    async def stop(self) -> None:
        """Stop the loop. A tick still in flight is abandoned."""
        if not self._running:
            return

        logger.info("Stopping stake check loop...")
        self._running = False
        self._stop_event.set()

        if self._task and not self._task.done():
            self._task.cancel()
        if self._task:
            await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Stake check loop stopped")

    async def run_once(self) -> List[CheckResult]:
        """
        Run one tick: check every validator concurrently and wait for all.

        A task that raises unexpectedly is logged and counted; it never stops
        the other validators in the tick.
        """
        started = time.monotonic()
        tasks = [
            asyncio.create_task(
                self._checker.check_validator(validator_id),
                name=f"check_{validator_id}",
            )
            for validator_id in self._validator_ids
        ]
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        results: List[CheckResult] = []
        for validator_id, outcome in zip(self._validator_ids, outcomes):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            if isinstance(outcome, BaseException):
                logger.error(f"Unexpected error checking validator {validator_id}: {outcome!r}")
                self._stats.task_errors += 1
                continue
            self._stats.record(outcome)
            results.append(outcome)

        self._stats.ticks += 1
        self._stats.last_tick_seconds = time.monotonic() - started
        self._log_stats()
        return results

    async def _run_loop(self) -> None:
        """Tick until stopped."""
        interval = self._config.interval_seconds
        delay = 0.0 if self._config.check_on_start else interval

        while self._running:
            try:
                if delay > 0:
                    # Wait for interval or stop
                    try:
                        await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                        break  # Stop requested
                    except asyncio.TimeoutError:
                        pass

                if not self._running:
                    break

                await self.run_once()

                overrun = self._stats.last_tick_seconds - interval
                if overrun > 0:
                    logger.warning(
                        f"Check cycle took {self._stats.last_tick_seconds:.1f}s, "
                        f"longer than the {interval}s interval"
                    )
                delay = max(0.0, interval - self._stats.last_tick_seconds)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in stake check loop: {e}")
                delay = interval

    def _log_stats(self) -> None:
        stats = self._stats
        logger.info(
            f"Stats: ticks={stats.ticks}, checks={stats.checks}, "
            f"under_minimum={stats.under_minimum}, fetch_failures={stats.fetch_failures}, "
            f"sent={stats.alerts_sent}, suppressed={stats.alerts_suppressed}, "
            f"delivery_failures={stats.delivery_failures}"
        )
