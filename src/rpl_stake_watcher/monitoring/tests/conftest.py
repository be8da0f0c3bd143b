"""
Monitoring layer test fixtures.

Tests notification delivery and throttling. Discord is never contacted.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from rpl_stake_watcher.monitoring.alerting import NotificationState, NotificationThrottle

ONE_DAY = 24 * 60 * 60


class FakeClock:
    """Manually advanced replacement for time.time()."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_session(status: int = 204, text: str = ""):
    """aiohttp-like session whose post() yields a response with the given status."""
    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=text)

    request_ctx = MagicMock()
    request_ctx.__aenter__ = AsyncMock(return_value=response)
    request_ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.post = MagicMock(return_value=request_ctx)
    session.close = AsyncMock()
    return session


# =============================================================================
# Throttle Fixtures
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_sink():
    """Notification sink that accepts every message."""
    sink = MagicMock()
    sink.send = AsyncMock(return_value=None)
    return sink


@pytest.fixture
def state():
    return NotificationState()


@pytest.fixture
def throttle(mock_sink, state, clock):
    """Throttle with a 24 hour cooldown and a controllable clock."""
    return NotificationThrottle(
        sink=mock_sink,
        state=state,
        cooldown_seconds=ONE_DAY,
        clock=clock,
    )


# =============================================================================
# Notifier Fixtures
# =============================================================================

@pytest.fixture
def webhook_url():
    return "https://discord.com/api/webhooks/123/abc"


@pytest.fixture
def ok_session():
    return make_session(status=204)


@pytest.fixture
def session_factory():
    """Build a fake session with a chosen response status."""
    return make_session
