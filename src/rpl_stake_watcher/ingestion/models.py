"""
Data models for the ingestion layer.

These models represent stake data as returned by the beaconcha.in
Rocket Pool validator endpoint.

Note on precision:
    Wei amounts routinely exceed 2**53, so they are kept as Python ints.
    The client decodes JSON numbers as Decimal (never float) before they
    reach this module; anything that is not an exact non-negative integer
    is rejected.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping

from rpl_stake_watcher.errors import FetchError

# 1 RPL = 10**18 wei. Protocol constant, not configurable.
WEI_DECIMALS = 18

# Token balances are uint256 on chain
UINT256_MAX = 2 ** 256 - 1

NODE_STAKE_FIELD = "node_rpl_stake"
MIN_STAKE_FIELD = "node_min_rpl_stake"


def parse_wei(value: Any, field_name: str) -> int:
    """
    Convert an API wei value to an exact int.

    Accepts ints, integer strings ("9000000000000000000") and Decimals
    with no fractional part (JSON numbers such as 9e18).

    Raises:
        FetchError: If the value is missing, fractional, negative, above
            uint256 or not numeric
    """
    if value is None:
        raise FetchError(f"Missing {field_name} in stake data")

    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        raise FetchError(f"Invalid {field_name}: {value!r}")

    if isinstance(value, int):
        wei = value
    else:
        if isinstance(value, float):
            # Should not happen with the client's decoder, but a float here
            # has already lost precision and must not be trusted.
            raise FetchError(f"Invalid {field_name}: float value {value!r}")
        try:
            amount = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise FetchError(f"Invalid {field_name}: {value!r}")
        if not amount.is_finite():
            raise FetchError(f"Invalid {field_name}: {value!r}")
        # Checked before int() so "1e1000000" never becomes a huge int
        if amount > UINT256_MAX:
            raise FetchError(f"Invalid {field_name}: exceeds uint256 {value!r}")
        if amount != amount.to_integral_value():
            raise FetchError(f"Invalid {field_name}: {value!r}")
        wei = int(amount)

    if wei < 0:
        raise FetchError(f"Invalid {field_name}: negative value {value!r}")
    if wei > UINT256_MAX:
        raise FetchError(f"Invalid {field_name}: exceeds uint256 {value!r}")
    return wei


@dataclass(frozen=True)
class StakeRecord:
    """
    Stake snapshot for one validator, taken during one check cycle.

    Attributes:
        validator_id: Validator index or pubkey as configured
        node_stake_wei: Node's current RPL stake in wei
        min_stake_wei: Minimum RPL stake required for the node, in wei
    """
    validator_id: str
    node_stake_wei: int
    min_stake_wei: int

    def __post_init__(self):
        if self.node_stake_wei < 0 or self.min_stake_wei < 0:
            raise ValueError(
                f"Stake amounts must be non-negative, got "
                f"{self.node_stake_wei} / {self.min_stake_wei}"
            )
        if self.node_stake_wei > UINT256_MAX or self.min_stake_wei > UINT256_MAX:
            raise ValueError("Stake amounts must fit in uint256")

    @classmethod
    def from_api(cls, validator_id: str, data: Mapping[str, Any]) -> "StakeRecord":
        """Build a record from the ``data`` object of an API response."""
        return cls(
            validator_id=validator_id,
            node_stake_wei=parse_wei(data.get(NODE_STAKE_FIELD), NODE_STAKE_FIELD),
            min_stake_wei=parse_wei(data.get(MIN_STAKE_FIELD), MIN_STAKE_FIELD),
        )
