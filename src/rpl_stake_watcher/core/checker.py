"""
StakeChecker - one validator, one check cycle.

Fetch -> evaluate -> (maybe) notify. A failed fetch is itself alert-worthy:
the failure message goes through the same throttle as a low-stake alert, so
a broken API key or an outage shows up in Discord instead of only in the log.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Optional, Protocol

from .evaluator import StakeEvaluation, evaluate

if TYPE_CHECKING:
    from rpl_stake_watcher.ingestion.models import StakeRecord
    from rpl_stake_watcher.monitoring.alerting import (
        NotificationOutcome,
        NotificationThrottle,
    )

logger = logging.getLogger(__name__)


class StakeProvider(Protocol):
    """Source of stake snapshots (BeaconchainClient in production)."""

    async def get_stake_record(self, validator_id: str) -> Optional["StakeRecord"]:
        ...


class CheckStatus(str, Enum):
    """Outcome of a single validator check."""
    OK = "ok"
    UNDER_MINIMUM = "under_minimum"
    NOT_ENROLLED = "not_enrolled"
    FETCH_FAILED = "fetch_failed"


@dataclass(frozen=True)
class CheckResult:
    """
    What one check cycle found for one validator.

    Attributes:
        validator_id: Validator that was checked
        status: Check outcome
        evaluation: Stake evaluation, when stake data was available
        notification: Throttle outcome, when an alert was raised
        error: The fetch error, when status is FETCH_FAILED
    """
    validator_id: str
    status: CheckStatus
    evaluation: Optional[StakeEvaluation] = None
    notification: Optional["NotificationOutcome"] = None
    error: Optional[Exception] = None


def fetch_failure_message(validator_id: str, error: Exception) -> str:
    return f"Failed to fetch validator data for validatorId: {validator_id}. Error: {error}"


class StakeChecker:
    """
    Runs the per-validator check.

    Usage:
        checker = StakeChecker(provider=client, throttle=throttle)
        result = await checker.check_validator("123456")
    """

    def __init__(
        self,
        provider: StakeProvider,
        throttle: "NotificationThrottle",
    ) -> None:
        self._provider = provider
        self._throttle = throttle

    async def check_validator(self, validator_id: str) -> CheckResult:
        """
        Check one validator's stake and alert if it is below the minimum.

        Never raises for fetch or delivery problems; those are reported in
        the returned CheckResult.
        """
        try:
            record = await self._provider.get_stake_record(validator_id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            message = fetch_failure_message(validator_id, e)
            logger.error(message)
            notification = await self._throttle.maybe_notify(validator_id, message)
            return CheckResult(
                validator_id=validator_id,
                status=CheckStatus.FETCH_FAILED,
                notification=notification,
                error=e,
            )

        # 200 with empty data: not a Rocket Pool minipool, nothing to evaluate
        if record is None:
            logger.info(f"Validator {validator_id} is not a Rocketpool validator.")
            return CheckResult(validator_id=validator_id, status=CheckStatus.NOT_ENROLLED)

        evaluation = evaluate(record)
        logger.info(evaluation.summary)

        alert = evaluation.alert_message()
        if alert is None:
            logger.info(f"Validator {validator_id}: Stake is within acceptable range.")
            return CheckResult(
                validator_id=validator_id,
                status=CheckStatus.OK,
                evaluation=evaluation,
            )

        logger.warning(alert)
        notification = await self._throttle.maybe_notify(validator_id, alert)
        return CheckResult(
            validator_id=validator_id,
            status=CheckStatus.UNDER_MINIMUM,
            evaluation=evaluation,
            notification=notification,
        )
