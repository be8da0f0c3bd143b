"""
Test fixtures for ingestion layer.

IMPORTANT: All external API calls must be mocked.
Never hit the real beaconcha.in API in tests.
"""
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from rpl_stake_watcher.ingestion.client import BeaconchainClient


def make_session(status: int = 200, text: str = ""):
    """aiohttp-like session whose request() yields a response with the given body."""
    response = MagicMock()
    response.status = status
    response.text = AsyncMock(return_value=text)

    request_ctx = MagicMock()
    request_ctx.__aenter__ = AsyncMock(return_value=response)
    request_ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.request = MagicMock(return_value=request_ctx)
    session.close = AsyncMock()
    return session


# =============================================================================
# Payload Fixtures
# =============================================================================

@pytest.fixture
def rocketpool_payload():
    """Response for a Rocket Pool minipool below its minimum stake."""
    return {
        "status": "OK",
        "data": {
            "node_address": "0x0000000000000000000000000000000000000001",
            "node_rpl_stake": "9000000000000000000",
            "node_min_rpl_stake": "10000000000000000000",
            "node_max_rpl_stake": "150000000000000000000",
        },
    }


@pytest.fixture
def not_enrolled_payload():
    """Response for a validator that is not a Rocket Pool minipool."""
    return {"status": "OK", "data": {}}


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture
def session_factory():
    return make_session


@pytest.fixture
def client():
    """Client without a session; tests patch _request."""
    return BeaconchainClient(api_key="test-api-key", rate_limit=0)


@pytest.fixture
def json_session(rocketpool_payload):
    return make_session(status=200, text=json.dumps(rocketpool_payload))
