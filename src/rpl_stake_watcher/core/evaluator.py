"""
Stake evaluation - decides whether a node is under-collateralized.

Pure functions only. All arithmetic is Decimal with a precision wide enough
for uint256 wei values; floats never touch a stake amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Context, Decimal, localcontext
from typing import Optional

from rpl_stake_watcher.ingestion.models import WEI_DECIMALS, StakeRecord

# StakeRecord caps wei at uint256 (78 digits), so scaling and subtraction
# are exact; only the percentage division rounds
_CONTEXT = Context(prec=100)

_TWO_PLACES = Decimal("0.01")
_HUNDRED = Decimal(100)


def wei_to_rpl(wei: int) -> Decimal:
    """Scale a wei amount to RPL, exactly."""
    return Decimal(wei).scaleb(-WEI_DECIMALS, _CONTEXT)


def format_amount(value: Optional[Decimal]) -> str:
    """Render a stake figure with two decimal places, rounding half up."""
    if value is None:
        return "n/a"
    with localcontext(_CONTEXT):
        return f"{value.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP):f}"


@dataclass(frozen=True)
class StakeEvaluation:
    """
    Result of comparing a node's stake against its minimum.

    Attributes:
        validator_id: Validator the stake belongs to
        node_stake: Current stake in RPL
        min_stake: Minimum required stake in RPL
        difference: node_stake - min_stake (negative when short)
        difference_percentage: difference as a percentage of min_stake,
            None when min_stake is zero
        is_under_minimum: True when node_stake < min_stake
    """
    validator_id: str
    node_stake: Decimal
    min_stake: Decimal
    difference: Decimal
    difference_percentage: Optional[Decimal]
    is_under_minimum: bool

    @property
    def summary(self) -> str:
        """Diagnostic line written to the log on every check."""
        return (
            f"Validator {self.validator_id}: "
            f"Current stake = {format_amount(self.node_stake)}, "
            f"Minimum stake = {format_amount(self.min_stake)}, "
            f"Difference = {format_amount(self.difference)} "
            f"({format_amount(self.difference_percentage)}%)"
        )

    def alert_message(self) -> Optional[str]:
        """Alert text for an under-collateralized node, else None."""
        if not self.is_under_minimum:
            return None
        return (
            f"Alert: The node RPL stake for validator {self.validator_id} "
            f"is below the minimum. "
            f"Current stake: {format_amount(self.node_stake)}, "
            f"Minimum stake: {format_amount(self.min_stake)}"
        )


def evaluate(record: StakeRecord) -> StakeEvaluation:
    """
    Evaluate a stake snapshot.

    Args:
        record: Stake amounts in wei for one validator

    Returns:
        StakeEvaluation with RPL-scaled figures
    """
    with localcontext(_CONTEXT):
        node_stake = wei_to_rpl(record.node_stake_wei)
        min_stake = wei_to_rpl(record.min_stake_wei)
        difference = node_stake - min_stake

        difference_percentage: Optional[Decimal] = None
        if min_stake != 0:
            difference_percentage = difference / min_stake * _HUNDRED

    return StakeEvaluation(
        validator_id=record.validator_id,
        node_stake=node_stake,
        min_stake=min_stake,
        difference=difference,
        difference_percentage=difference_percentage,
        is_under_minimum=record.node_stake_wei < record.min_stake_wei,
    )
