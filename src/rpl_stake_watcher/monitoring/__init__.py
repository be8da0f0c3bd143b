"""
Monitoring Layer - Alert delivery and throttling.

This module provides:
    - DiscordNotifier: posts alerts to a Discord webhook
    - NotificationSink: protocol the throttle delivers through
    - NotificationThrottle: per-validator cooldown around the sink
    - NotificationState: last-notified timestamps, one entry per validator
    - NotificationOutcome / NotificationStatus: SENT, SUPPRESSED or FAILED

Alert Throttling:
    - One message per validator per cooldown window (default 24 hours)
    - Failed deliveries do not start the cooldown
    - Different validators are tracked separately
"""

from .alerting import (
    DEFAULT_COOLDOWN_SECONDS,
    NotificationOutcome,
    NotificationRecord,
    NotificationState,
    NotificationStatus,
    NotificationThrottle,
)
from .notifier import DISCORD_MAX_CONTENT, DiscordNotifier, NotificationSink

__all__ = [
    # Delivery
    "DiscordNotifier",
    "NotificationSink",
    "DISCORD_MAX_CONTENT",
    # Throttling
    "NotificationThrottle",
    "NotificationState",
    "NotificationRecord",
    "NotificationOutcome",
    "NotificationStatus",
    "DEFAULT_COOLDOWN_SECONDS",
]
