"""
Ingestion Layer - Stake data from the beaconcha.in API.

This module provides:
    - BeaconchainClient: async REST client for the Rocket Pool validator endpoint
    - StakeRecord: per-cycle stake snapshot in wei
    - create_session: shared aiohttp session with HTTP debug tracing

Usage:
    from rpl_stake_watcher.ingestion import BeaconchainClient

    async with BeaconchainClient(api_key="...") as client:
        record = await client.get_stake_record("123456")
"""

from .client import BeaconchainClient, create_session, create_trace_config
from .models import WEI_DECIMALS, StakeRecord, parse_wei

__all__ = [
    "BeaconchainClient",
    "create_session",
    "create_trace_config",
    "StakeRecord",
    "WEI_DECIMALS",
    "parse_wei",
]
