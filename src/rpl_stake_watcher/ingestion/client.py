"""
REST API client for beaconcha.in.

Provides async access to the Rocket Pool validator endpoint, which reports
a node's current RPL stake and the minimum stake it must hold.

Behaviour:
    - One attempt per call. The next scheduled check cycle is the retry.
    - Client-side rate limiting so a fan-out over many validators stays
      inside the API quota.
    - JSON numbers are decoded as Decimal so wei values keep full precision.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from decimal import Decimal
from functools import partial
from typing import Any, Optional

import aiohttp

from rpl_stake_watcher.errors import FetchError, RateLimitError

from .models import StakeRecord

logger = logging.getLogger(__name__)
http_logger = logging.getLogger("rpl_stake_watcher.http")

_decimal_loads = partial(json.loads, parse_float=Decimal)


def create_trace_config() -> aiohttp.TraceConfig:
    """
    Build a TraceConfig that logs every request and response at DEBUG.

    Enable with ``--log-level DEBUG`` (or LOG_LEVEL=DEBUG).
    """

    async def on_request_start(session, ctx, params: aiohttp.TraceRequestStartParams) -> None:
        http_logger.debug(f"Starting Request {params.method} {params.url}")

    async def on_request_end(session, ctx, params: aiohttp.TraceRequestEndParams) -> None:
        http_logger.debug(
            f"Response: {params.method} {params.url} -> {params.response.status}"
        )

    async def on_request_exception(
        session, ctx, params: aiohttp.TraceRequestExceptionParams
    ) -> None:
        http_logger.debug(
            f"Request failed: {params.method} {params.url}: {params.exception!r}"
        )

    trace_config = aiohttp.TraceConfig()
    trace_config.on_request_start.append(on_request_start)
    trace_config.on_request_end.append(on_request_end)
    trace_config.on_request_exception.append(on_request_exception)
    return trace_config


def create_session(timeout: float = 30.0) -> aiohttp.ClientSession:
    """Create the shared HTTP session used by the client and the notifier."""
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=timeout),
        trace_configs=[create_trace_config()],
    )


class BeaconchainClient:
    """
    Async REST client for the beaconcha.in Rocket Pool API.

    Usage:
        async with BeaconchainClient(api_key="...") as client:
            record = await client.get_stake_record("123456")
            if record is None:
                ...  # not a Rocket Pool validator
    """

    DEFAULT_BASE_URL = "https://beaconcha.in"
    VALIDATOR_PATH = "/api/v1/rocketpool/validator/{validator_id}"

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        session: Optional[aiohttp.ClientSession] = None,
        rate_limit: float = 10.0,  # requests per second
        timeout: float = 30.0,
    ):
        """
        Initialize the REST client.

        Args:
            api_key: beaconcha.in API key, sent in the ``apikey`` header
            base_url: API root, overridable for tests and mirrors
            session: Optional aiohttp session (created if not provided)
            rate_limit: Maximum requests per second
            timeout: Request timeout in seconds
        """
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._session = session
        self._owns_session = session is None
        self._rate_limit = rate_limit
        self._timeout = timeout

        # Rate limiting
        self._request_times: list[float] = []
        self._rate_lock = asyncio.Lock()

    async def __aenter__(self) -> "BeaconchainClient":
        """Async context manager entry."""
        if self._session is None:
            self._session = create_session(self._timeout)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the client session if this client created it."""
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    def validator_url(self, validator_id: str) -> str:
        return self._base_url + self.VALIDATOR_PATH.format(validator_id=validator_id)

    async def _rate_limit_wait(self) -> None:
        """Wait if necessary to respect rate limits."""
        if self._rate_limit <= 0:
            return

        async with self._rate_lock:
            now = time.time()

            # Remove old timestamps outside the 1-second window
            self._request_times = [t for t in self._request_times if now - t < 1.0]

            if len(self._request_times) >= self._rate_limit:
                wait_time = 1.0 - (now - self._request_times[0])
                if wait_time > 0:
                    await asyncio.sleep(wait_time)

            self._request_times.append(time.time())

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        """
        Make a single HTTP request.

        Returns:
            Parsed JSON response (numbers as int/Decimal)

        Raises:
            RateLimitError: On HTTP 429
            FetchError: On any other HTTP error, timeout, transport error or bad JSON
            asyncio.CancelledError: When task is cancelled (re-raised)
        """
        if self._session is None:
            self._session = create_session(self._timeout)
            self._owns_session = True

        await self._rate_limit_wait()

        try:
            async with self._session.request(method, url, **kwargs) as response:
                if response.status == 429:
                    raise RateLimitError("Rate limit exceeded", status_code=429)

                if response.status >= 400:
                    text = await response.text()
                    raise FetchError(
                        f"API error: {response.status} - {text[:200]}",
                        status_code=response.status,
                    )

                text = await response.text()
                try:
                    return _decimal_loads(text)
                except ValueError as e:
                    raise FetchError(f"Invalid JSON from API: {e}", status_code=response.status)

        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            raise FetchError("Request timed out")
        except aiohttp.ClientError as e:
            raise FetchError(f"Request failed: {e}")

    async def get_stake_record(self, validator_id: str) -> Optional[StakeRecord]:
        """
        Fetch the current stake snapshot for a validator.

        Args:
            validator_id: Validator index or pubkey

        Returns:
            StakeRecord, or None when the validator is not a Rocket Pool
            minipool (the API answers 200 with empty ``data``)

        Raises:
            FetchError: If the request fails or the payload is unusable
        """
        payload = await self._request(
            "GET",
            self.validator_url(validator_id),
            headers={"apikey": self._api_key},
        )
        return self._parse_payload(validator_id, payload)

    def _parse_payload(self, validator_id: str, payload: Any) -> Optional[StakeRecord]:
        if not isinstance(payload, dict):
            raise FetchError(f"Unexpected response body: {type(payload).__name__}")

        status = str(payload.get("status", "OK"))
        if not status.upper().startswith("OK"):
            raise FetchError(f"API returned status: {status}")

        data = payload.get("data")
        if not data:
            return None

        if not isinstance(data, dict):
            raise FetchError(f"Unexpected data field: {type(data).__name__}")

        return StakeRecord.from_api(validator_id, data)
