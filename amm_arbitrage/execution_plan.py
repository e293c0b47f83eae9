"""
Atomic execution plans.

A plan is borrow, one swap per hop, repay, in that order, to be executed as
one unit. Every swap carries a minimum-output floor; the final swap's floor is
never below the loan repayment, so a filled plan can always repay.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple, Union

from .types import Token, TradePlan
from .utils import BPS_SCALE


@dataclass(frozen=True)
class BorrowStep:
    token: Token
    amount: int

    action = "borrow"

    def to_dict(self) -> Dict[str, Any]:
        return {"action": self.action, "token": self.token.symbol, "amount": self.amount}


@dataclass(frozen=True)
class SwapStep:
    hop_index: int
    pool_id: str
    dex: str
    token_in: Token
    token_out: Token
    amount_in: int
    expected_out: int
    min_out: int

    action = "swap"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action,
            "hop": self.hop_index,
            "pool": self.pool_id,
            "dex": self.dex,
            "token_in": self.token_in.symbol,
            "token_out": self.token_out.symbol,
            "amount_in": self.amount_in,
            "expected_out": self.expected_out,
            "min_out": self.min_out,
        }


@dataclass(frozen=True)
class RepayStep:
    token: Token
    amount: int

    action = "repay"

    def to_dict(self) -> Dict[str, Any]:
        return {"action": self.action, "token": self.token.symbol, "amount": self.amount}


Step = Union[BorrowStep, SwapStep, RepayStep]


@dataclass(frozen=True)
class ExecutionPlan:
    """
    Ordered steps for one atomic arbitrage.

    Attributes:
        trade: The validated trade plan this was built from
        steps: BorrowStep, SwapStep per hop, RepayStep
        slippage_tolerance_bps: Tolerance used for the min-out floors
        deadline: Unix time after which the plan must not be executed
        plan_id: Unique identifier for logs and receipts
    """

    trade: TradePlan
    steps: Tuple[Step, ...]
    slippage_tolerance_bps: int
    deadline: float
    atomic: bool = True
    plan_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def borrow(self) -> BorrowStep:
        return self.steps[0]

    @property
    def swaps(self) -> Tuple[SwapStep, ...]:
        return tuple(step for step in self.steps if isinstance(step, SwapStep))

    @property
    def repay(self) -> RepayStep:
        return self.steps[-1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan_id": self.plan_id,
            "atomic": self.atomic,
            "deadline": self.deadline,
            "slippage_tolerance_bps": self.slippage_tolerance_bps,
            "net_profit": self.trade.net_profit,
            "steps": [step.to_dict() for step in self.steps],
        }


def min_output(expected_out: int, slippage_tolerance_bps: int) -> int:
    """floor(expected_out * (10000 - tolerance) / 10000)."""
    return expected_out * (BPS_SCALE - slippage_tolerance_bps) // BPS_SCALE


def build_execution_plan(
    trade: TradePlan,
    slippage_tolerance_bps: int = 50,
    staleness_window_sec: float = 12.0,
) -> ExecutionPlan:
    """
    Build the borrow/swap/repay sequence for a validated trade.

    Args:
        trade: Validated trade plan
        slippage_tolerance_bps: Allowed shortfall per hop versus the quote
        staleness_window_sec: Sets the deadline relative to the snapshot time

    Returns:
        ExecutionPlan with per-hop minimum-output floors
    """
    if not 0 <= slippage_tolerance_bps < BPS_SCALE:
        raise ValueError(
            f"slippage_tolerance_bps must be in [0, {BPS_SCALE}): {slippage_tolerance_bps}"
        )

    last = len(trade.hops) - 1
    swaps = []
    for hop in trade.hops:
        floor = min_output(hop.expected_out, slippage_tolerance_bps)
        if hop.hop_index == last:
            floor = max(floor, trade.repayment)
        swaps.append(
            SwapStep(
                hop_index=hop.hop_index,
                pool_id=hop.pool_id,
                dex=hop.dex,
                token_in=hop.token_in,
                token_out=hop.token_out,
                amount_in=hop.amount_in,
                expected_out=hop.expected_out,
                min_out=floor,
            )
        )

    steps = (
        (BorrowStep(token=trade.token, amount=trade.amount_in),)
        + tuple(swaps)
        + (RepayStep(token=trade.token, amount=trade.repayment),)
    )
    return ExecutionPlan(
        trade=trade,
        steps=steps,
        slippage_tolerance_bps=slippage_tolerance_bps,
        deadline=trade.snapshot_taken_at + staleness_window_sec,
    )
