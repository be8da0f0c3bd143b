"""
Exception hierarchy for the stake watcher.

None of these are fatal once the watcher is running: fetch and delivery
failures are isolated to one validator for one check cycle. Only ConfigError
stops the process, and only at startup.
"""

from __future__ import annotations

from typing import Optional


class StakeWatcherError(Exception):
    """Base exception for the stake watcher."""
    pass


class FetchError(StakeWatcherError):
    """Stake data provider unreachable, errored, or returned an unusable body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimitError(FetchError):
    """Provider rate limit exceeded (HTTP 429)."""
    pass


class DeliveryError(StakeWatcherError):
    """Notification sink rejected the message or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigError(StakeWatcherError):
    """Required configuration is missing or invalid."""
    pass
