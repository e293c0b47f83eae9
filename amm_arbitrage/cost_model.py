"""
Execution cost model: flash-loan premium, settlement cost and profit floor.
"""

from dataclasses import dataclass

from .amm.fixed_point import mul_div_up
from .utils import BPS_SCALE

# Aave V3 flash-loan premium
DEFAULT_LOAN_PREMIUM_BPS = 5


@dataclass(frozen=True)
class CostModel:
    """
    Costs charged against a cycle's gross output, in start-token units.

    Attributes:
        loan_premium_bps: Flash-loan premium on the borrowed amount
        settlement_cost: Flat settlement cost (gas converted to start token)
        min_profit_threshold: Minimum net profit for a plan to be emitted
    """

    loan_premium_bps: int = DEFAULT_LOAN_PREMIUM_BPS
    settlement_cost: int = 0
    min_profit_threshold: int = 1

    def __post_init__(self):
        if not 0 <= self.loan_premium_bps < BPS_SCALE:
            raise ValueError(
                f"loan_premium_bps must be in [0, {BPS_SCALE}): {self.loan_premium_bps}"
            )
        if self.settlement_cost < 0:
            raise ValueError("settlement_cost cannot be negative")
        if self.min_profit_threshold < 0:
            raise ValueError("min_profit_threshold cannot be negative")

    @property
    def premium_rate(self) -> float:
        return self.loan_premium_bps / BPS_SCALE

    def loan_premium(self, amount: int) -> int:
        """Premium owed on ``amount``, rounded up."""
        return mul_div_up(amount, self.loan_premium_bps, BPS_SCALE)

    def repayment(self, amount: int) -> int:
        return amount + self.loan_premium(amount)

    def required_output(self, amount: int) -> int:
        """Smallest final output that clears repayment, costs and the threshold."""
        return self.repayment(amount) + self.settlement_cost + self.min_profit_threshold


class StaticCostModelProvider:
    """Returns the same cost model on every call."""

    def __init__(self, cost_model: CostModel):
        self._cost_model = cost_model

    def current(self) -> CostModel:
        return self._cost_model
