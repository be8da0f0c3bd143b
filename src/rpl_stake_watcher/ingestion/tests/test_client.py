"""
Tests for the beaconcha.in REST client.

These tests verify:
- Rocket Pool payload parsing into StakeRecord
- Empty data means "not a Rocket Pool validator", not an error
- HTTP, transport and body errors all surface as FetchError
- Large wei values survive JSON decoding without float rounding
"""
import asyncio
import json
from unittest.mock import AsyncMock, patch

import aiohttp
import pytest

from rpl_stake_watcher.errors import FetchError, RateLimitError
from rpl_stake_watcher.ingestion.client import BeaconchainClient
from rpl_stake_watcher.ingestion.models import StakeRecord


class TestPayloadParsing:
    """Tests for get_stake_record with a patched _request."""

    @pytest.mark.asyncio
    async def test_parses_rocketpool_record(self, client, rocketpool_payload):
        with patch.object(client, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = rocketpool_payload

            record = await client.get_stake_record("123456")

        assert record == StakeRecord(
            validator_id="123456",
            node_stake_wei=9 * 10 ** 18,
            min_stake_wei=10 * 10 ** 18,
        )

    @pytest.mark.asyncio
    async def test_requests_validator_endpoint_with_api_key(self, client, rocketpool_payload):
        with patch.object(client, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = rocketpool_payload

            await client.get_stake_record("123456")

        method, url = mock_request.call_args[0]
        assert method == "GET"
        assert url == "https://beaconcha.in/api/v1/rocketpool/validator/123456"
        assert mock_request.call_args[1]["headers"] == {"apikey": "test-api-key"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("data", [{}, [], None])
    async def test_empty_data_means_not_enrolled(self, client, data):
        with patch.object(client, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = {"status": "OK", "data": data}

            assert await client.get_stake_record("123456") is None

    @pytest.mark.asyncio
    async def test_error_status_in_body_raises(self, client):
        with patch.object(client, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = {"status": "ERROR: invalid apikey", "data": None}

            with pytest.raises(FetchError):
                await client.get_stake_record("123456")

    @pytest.mark.asyncio
    async def test_missing_stake_field_raises(self, client):
        with patch.object(client, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = {"status": "OK", "data": {"node_rpl_stake": "1"}}

            with pytest.raises(FetchError):
                await client.get_stake_record("123456")

    @pytest.mark.asyncio
    async def test_non_object_body_raises(self, client):
        with patch.object(client, "_request", new_callable=AsyncMock) as mock_request:
            mock_request.return_value = ["unexpected"]

            with pytest.raises(FetchError):
                await client.get_stake_record("123456")

    def test_custom_base_url(self):
        client = BeaconchainClient(api_key="k", base_url="http://localhost:8080/")

        assert client.validator_url("7") == "http://localhost:8080/api/v1/rocketpool/validator/7"


class TestRequest:
    """Tests for HTTP handling against a fake aiohttp session."""

    @pytest.mark.asyncio
    async def test_decodes_json_numbers_exactly(self, session_factory):
        """
        9e18 and 123456789012345678901 are not exactly representable as
        floats; they must reach StakeRecord intact.
        """
        body = (
            '{"status": "OK", "data": {"node_rpl_stake": 9e18, '
            '"node_min_rpl_stake": 123456789012345678901}}'
        )
        client = BeaconchainClient(api_key="k", session=session_factory(200, body), rate_limit=0)

        record = await client.get_stake_record("1")

        assert record.node_stake_wei == 9 * 10 ** 18
        assert record.min_stake_wei == 123456789012345678901

    @pytest.mark.asyncio
    async def test_string_payload(self, json_session):
        client = BeaconchainClient(api_key="k", session=json_session, rate_limit=0)

        record = await client.get_stake_record("1")

        assert record.node_stake_wei == 9 * 10 ** 18

    @pytest.mark.asyncio
    async def test_rate_limited_response(self, session_factory):
        client = BeaconchainClient(api_key="k", session=session_factory(429, "slow down"), rate_limit=0)

        with pytest.raises(RateLimitError) as exc_info:
            await client.get_stake_record("1")

        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 404, 500, 503])
    async def test_http_errors_raise_fetch_error(self, session_factory, status):
        client = BeaconchainClient(api_key="k", session=session_factory(status, "error"), rate_limit=0)

        with pytest.raises(FetchError) as exc_info:
            await client.get_stake_record("1")

        assert exc_info.value.status_code == status

    @pytest.mark.asyncio
    async def test_single_attempt_per_call(self, session_factory):
        """No retries: the next check cycle is the retry."""
        session = session_factory(500, "error")
        client = BeaconchainClient(api_key="k", session=session, rate_limit=0)

        with pytest.raises(FetchError):
            await client.get_stake_record("1")

        assert session.request.call_count == 1

    @pytest.mark.asyncio
    async def test_invalid_json_raises_fetch_error(self, session_factory):
        client = BeaconchainClient(api_key="k", session=session_factory(200, "<html>"), rate_limit=0)

        with pytest.raises(FetchError):
            await client.get_stake_record("1")

    @pytest.mark.asyncio
    async def test_transport_error_raises_fetch_error(self, json_session):
        json_session.request.side_effect = aiohttp.ClientConnectionError("refused")
        client = BeaconchainClient(api_key="k", session=json_session, rate_limit=0)

        with pytest.raises(FetchError):
            await client.get_stake_record("1")

    @pytest.mark.asyncio
    async def test_timeout_raises_fetch_error(self, json_session):
        json_session.request.side_effect = asyncio.TimeoutError()
        client = BeaconchainClient(api_key="k", session=json_session, rate_limit=0)

        with pytest.raises(FetchError):
            await client.get_stake_record("1")

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, json_session):
        json_session.request.side_effect = asyncio.CancelledError()
        client = BeaconchainClient(api_key="k", session=json_session, rate_limit=0)

        with pytest.raises(asyncio.CancelledError):
            await client.get_stake_record("1")

    @pytest.mark.asyncio
    async def test_does_not_close_injected_session(self, json_session):
        async with BeaconchainClient(api_key="k", session=json_session) as client:
            await client.get_stake_record("1")

        json_session.close.assert_not_awaited()


class TestRateLimit:
    """Tests for client-side rate limiting."""

    @pytest.mark.asyncio
    async def test_waits_when_window_is_full(self, json_session):
        client = BeaconchainClient(api_key="k", session=json_session, rate_limit=2)

        with patch("rpl_stake_watcher.ingestion.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            for _ in range(3):
                await client.get_stake_record("1")

        mock_sleep.assert_awaited_once()
        assert 0 < mock_sleep.call_args[0][0] <= 1.0

    @pytest.mark.asyncio
    async def test_disabled_rate_limit_never_waits(self, json_session):
        client = BeaconchainClient(api_key="k", session=json_session, rate_limit=0)

        with patch("rpl_stake_watcher.ingestion.client.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
            for _ in range(5):
                await client.get_stake_record("1")

        mock_sleep.assert_not_awaited()
