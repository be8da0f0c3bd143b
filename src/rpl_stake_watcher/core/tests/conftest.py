"""
Core layer test fixtures.

The stake provider and notification sink are always mocked.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from rpl_stake_watcher.core.checker import StakeChecker
from rpl_stake_watcher.ingestion.models import StakeRecord
from rpl_stake_watcher.monitoring.alerting import NotificationThrottle

WEI = 10 ** 18
VALIDATOR_ID = "test-validator"


class FakeClock:
    """Manually advanced replacement for time.time()."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# =============================================================================
# Record Fixtures
# =============================================================================

@pytest.fixture
def under_minimum_record():
    """9 RPL staked against a 10 RPL minimum."""
    return StakeRecord(VALIDATOR_ID, node_stake_wei=9 * WEI, min_stake_wei=10 * WEI)


@pytest.fixture
def above_minimum_record():
    """11 RPL staked against a 10 RPL minimum."""
    return StakeRecord(VALIDATOR_ID, node_stake_wei=11 * WEI, min_stake_wei=10 * WEI)


# =============================================================================
# Collaborator Fixtures
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mock_provider(under_minimum_record):
    """Stake provider returning an under-minimum record by default."""
    provider = MagicMock()
    provider.get_stake_record = AsyncMock(return_value=under_minimum_record)
    return provider


@pytest.fixture
def mock_sink():
    """Notification sink that accepts every message."""
    sink = MagicMock()
    sink.send = AsyncMock(return_value=None)
    return sink


@pytest.fixture
def throttle(mock_sink, clock):
    """Real throttle around the mocked sink, 24h cooldown."""
    return NotificationThrottle(sink=mock_sink, cooldown_seconds=24 * 3600, clock=clock)


@pytest.fixture
def checker(mock_provider, throttle):
    return StakeChecker(provider=mock_provider, throttle=throttle)
