"""
Core Layer - Stake evaluation and check orchestration.

This module provides:
    - evaluate / StakeEvaluation: exact Decimal comparison of stake vs minimum
    - format_amount: two-decimal display formatting
    - StakeChecker: fetch -> evaluate -> throttled notify for one validator
    - CheckResult / CheckStatus: what a single check found
    - CheckScheduler: fixed-interval ticks, one task per validator per tick
    - SchedulerConfig / CheckStats: scheduler configuration and counters

Data Flow:
    1. CheckScheduler starts a tick and fans out one task per validator
    2. StakeChecker fetches the StakeRecord from the provider
    3. evaluate() decides whether the node is under its minimum
    4. NotificationThrottle sends the alert unless the cooldown is active
    5. All tasks are joined before the next tick is scheduled
"""

from .evaluator import StakeEvaluation, evaluate, format_amount, wei_to_rpl
from .checker import (
    CheckResult,
    CheckStatus,
    StakeChecker,
    StakeProvider,
    fetch_failure_message,
)
from .scheduler import CheckScheduler, CheckStats, SchedulerConfig

__all__ = [
    # Evaluation
    "StakeEvaluation",
    "evaluate",
    "format_amount",
    "wei_to_rpl",
    # Checking
    "StakeChecker",
    "StakeProvider",
    "CheckResult",
    "CheckStatus",
    "fetch_failure_message",
    # Scheduling
    "CheckScheduler",
    "CheckStats",
    "SchedulerConfig",
]
