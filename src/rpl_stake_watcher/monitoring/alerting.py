"""
Notification throttling for validator alerts.

A validator that stays under-collateralized for many check cycles should
produce one message per cooldown window, not one per cycle. Failed
deliveries do not start the cooldown, so the next cycle tries again.
"""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional

from rpl_stake_watcher.errors import DeliveryError

from .notifier import NotificationSink

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 24 * 60 * 60


class NotificationStatus(str, Enum):
    """What happened to a candidate notification."""
    SENT = "sent"
    SUPPRESSED = "suppressed"
    FAILED = "failed"


@dataclass(frozen=True)
class NotificationOutcome:
    """Result of NotificationThrottle.maybe_notify."""

    status: NotificationStatus
    error: Optional[DeliveryError] = None

    @classmethod
    def sent(cls) -> "NotificationOutcome":
        return cls(NotificationStatus.SENT)

    @classmethod
    def suppressed(cls) -> "NotificationOutcome":
        return cls(NotificationStatus.SUPPRESSED)

    @classmethod
    def failed(cls, error: DeliveryError) -> "NotificationOutcome":
        return cls(NotificationStatus.FAILED, error)


@dataclass
class NotificationRecord:
    """Tracks when a validator was last notified."""

    validator_id: str
    last_sent: float  # Unix timestamp
    count: int = 1


class NotificationState:
    """
    Last-notified timestamps keyed by validator.

    Lives for the whole process and is owned by a single NotificationThrottle.
    Also hands out one asyncio.Lock per validator so the throttle can run its
    check-then-send sequence without racing itself.
    """

    def __init__(self) -> None:
        self._records: Dict[str, NotificationRecord] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def __contains__(self, validator_id: str) -> bool:
        return validator_id in self._records

    def __len__(self) -> int:
        return len(self._records)

    def last_sent(self, validator_id: str) -> Optional[float]:
        record = self._records.get(validator_id)
        return record.last_sent if record else None

    def record_sent(self, validator_id: str, sent_at: float) -> None:
        """Overwrite the last-sent time for a validator."""
        record = self._records.get(validator_id)
        if record:
            record.last_sent = sent_at
            record.count += 1
        else:
            self._records[validator_id] = NotificationRecord(
                validator_id=validator_id,
                last_sent=sent_at,
            )

    def lock_for(self, validator_id: str) -> asyncio.Lock:
        lock = self._locks.get(validator_id)
        if lock is None:
            lock = self._locks[validator_id] = asyncio.Lock()
        return lock

    def stats(self) -> Dict[str, int]:
        """Get statistics about sent notifications."""
        return {
            "validators_notified": len(self._records),
            "total_sent": sum(r.count for r in self._records.values()),
        }


class NotificationThrottle:
    """
    Rate-limits notifications per validator.

    Usage:
        throttle = NotificationThrottle(
            sink=DiscordNotifier(webhook_url="..."),
            cooldown_seconds=24 * 60 * 60,
        )
        outcome = await throttle.maybe_notify("123456", "Alert: ...")
    """

    def __init__(
        self,
        sink: NotificationSink,
        state: Optional[NotificationState] = None,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the throttle.

        Args:
            sink: Delivers the message (DiscordNotifier in production)
            state: Notification history (a fresh one if not provided)
            cooldown_seconds: Minimum time between two sends for one validator
            clock: Returns the current Unix time; injectable for tests
        """
        if cooldown_seconds < 0:
            raise ValueError(f"cooldown_seconds must be >= 0, got {cooldown_seconds}")

        self._sink = sink
        self._state = state if state is not None else NotificationState()
        self._cooldown = cooldown_seconds
        self._clock = clock

    @property
    def state(self) -> NotificationState:
        return self._state

    @property
    def cooldown_seconds(self) -> float:
        return self._cooldown

    def is_cooling_down(self, validator_id: str, now: Optional[float] = None) -> bool:
        """True if a notification for this validator would be suppressed."""
        last_sent = self._state.last_sent(validator_id)
        if last_sent is None:
            return False
        now = self._clock() if now is None else now
        return (now - last_sent) < self._cooldown

    async def maybe_notify(self, validator_id: str, message: str) -> NotificationOutcome:
        """
        Send a message unless this validator was notified within the cooldown.

        Args:
            validator_id: Throttle key
            message: Text to deliver

        Returns:
            NotificationOutcome: SENT, SUPPRESSED or FAILED (with the error)
        """
        async with self._state.lock_for(validator_id):
            now = self._clock()

            if self.is_cooling_down(validator_id, now):
                logger.info(
                    f"Suppressing Discord notification for validatorId: {validator_id} "
                    f"because the {self._cooldown / 3600:g}h cooldown has not passed "
                    f"since the last notification."
                )
                return NotificationOutcome.suppressed()

            logger.info(f"Sending Discord notification for validatorId: {validator_id}")
            try:
                await self._sink.send(message)
            except DeliveryError as e:
                logger.error(
                    f"Failed to send Discord notification for validatorId: "
                    f"{validator_id}. Error: {e}"
                )
                return NotificationOutcome.failed(e)
            except Exception as e:
                logger.error(
                    f"Failed to send Discord notification for validatorId: "
                    f"{validator_id}. Error: {e}"
                )
                error = DeliveryError(str(e))
                error.__cause__ = e
                return NotificationOutcome.failed(error)

            self._state.record_sent(validator_id, now)
            logger.info(f"Successfully sent Discord notification for validatorId: {validator_id}")
            return NotificationOutcome.sent()
