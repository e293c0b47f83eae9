"""
Opportunity validation.

Turns a sized cycle into either a ``TradePlan`` or a ``Rejected`` value with a
classified reason. Checks run in a fixed order and the first failure wins:

1. amount must be positive                         -> UNPROFITABLE
2. final output covers repayment, settlement cost
   and the profit threshold                         -> UNPROFITABLE
3. each hop's input within the liquidity cap        -> INSUFFICIENT_LIQUIDITY
4. snapshot younger than the staleness window       -> STALE_STATE

Quoting errors (Overflow, InvalidPool) are not rejections; they propagate.
"""

from typing import Optional, Union

from .amm import quoting
from .cost_model import CostModel
from .interfaces import SystemTimeProvider, TimeProvider
from .optimizer import simulate_hops
from .types import Cycle, HopQuote, RejectReason, Rejected, TradePlan
from .utils import fraction_floor, get_logger

logger = get_logger(__name__)


def validate(
    cycle: Cycle,
    amount: int,
    cost_model: CostModel,
    snapshot_taken_at: float,
    now: float,
    liquidity_cap_fraction: float = 0.9,
    staleness_window_sec: float = 12.0,
    snapshot_version: int = 0,
) -> Union[TradePlan, Rejected]:
    """
    Validate a sized opportunity against the snapshot it was detected on.

    Args:
        cycle: Candidate cycle (pools of the detection snapshot)
        amount: Start-token input chosen by the optimizer
        cost_model: Loan premium, settlement cost and profit threshold
        snapshot_taken_at: Observation time of the snapshot
        now: Current time from the time provider
        liquidity_cap_fraction: Max share of a hop's input reserve to consume
        staleness_window_sec: Max snapshot age
        snapshot_version: Recorded on the plan for traceability

    Returns:
        TradePlan when every check passes, Rejected otherwise
    """
    if amount <= 0:
        return Rejected(
            cycle=cycle,
            amount=amount,
            reason=RejectReason.UNPROFITABLE,
            detail="no positive input size is profitable",
        )

    hops = simulate_hops(cycle, amount)
    output = hops[-1][1]
    premium = cost_model.loan_premium(amount)
    repayment = amount + premium
    required = cost_model.required_output(amount)
    gross_profit = output - amount
    net_profit = output - repayment - cost_model.settlement_cost

    if output < required:
        return Rejected(
            cycle=cycle,
            amount=amount,
            reason=RejectReason.UNPROFITABLE,
            detail=(
                f"final output {output} below required {required} "
                f"(net profit {net_profit}, threshold {cost_model.min_profit_threshold})"
            ),
            details={
                "final_output": output,
                "required_output": required,
                "net_profit": net_profit,
            },
        )

    for index, (edge, (hop_in, _)) in enumerate(zip(cycle.edges, hops)):
        reserve_in = quoting.input_reserve(edge.pool, edge.token_in)
        limit = fraction_floor(reserve_in, liquidity_cap_fraction)
        if hop_in > limit:
            return Rejected(
                cycle=cycle,
                amount=amount,
                reason=RejectReason.INSUFFICIENT_LIQUIDITY,
                detail=(
                    f"hop {index} input {hop_in} exceeds cap {limit} "
                    f"of reserve {reserve_in} in {edge.pool_id}"
                ),
                details={
                    "hop_index": index,
                    "pool_id": edge.pool_id,
                    "hop_input": hop_in,
                    "cap": limit,
                },
            )

    age = now - snapshot_taken_at
    if age > staleness_window_sec:
        return Rejected(
            cycle=cycle,
            amount=amount,
            reason=RejectReason.STALE_STATE,
            detail=f"snapshot is {age:.2f}s old, window {staleness_window_sec}s",
            details={"age_sec": age},
        )

    quotes = tuple(
        HopQuote(
            hop_index=index,
            pool_id=edge.pool_id,
            dex=edge.pool.dex,
            token_in=edge.token_in,
            token_out=edge.token_out,
            amount_in=hop_in,
            expected_out=hop_out,
        )
        for index, (edge, (hop_in, hop_out)) in enumerate(zip(cycle.edges, hops))
    )
    return TradePlan(
        cycle=cycle,
        amount_in=amount,
        hops=quotes,
        final_output=output,
        loan_premium=premium,
        repayment=repayment,
        settlement_cost=cost_model.settlement_cost,
        gross_profit=gross_profit,
        net_profit=net_profit,
        snapshot_version=snapshot_version,
        snapshot_taken_at=snapshot_taken_at,
        created_at=now,
    )


class OpportunityValidator:
    """Applies ``validate`` with the engine's limits and a time provider."""

    def __init__(
        self,
        liquidity_cap_fraction: float = 0.9,
        staleness_window_sec: float = 12.0,
        time_provider: Optional[TimeProvider] = None,
    ):
        self.liquidity_cap_fraction = liquidity_cap_fraction
        self.staleness_window_sec = staleness_window_sec
        self.time_provider = time_provider or SystemTimeProvider()

    def validate(
        self,
        cycle: Cycle,
        amount: int,
        cost_model: CostModel,
        snapshot_taken_at: float,
        snapshot_version: int = 0,
    ) -> Union[TradePlan, Rejected]:
        result = validate(
            cycle,
            amount,
            cost_model,
            snapshot_taken_at=snapshot_taken_at,
            now=self.time_provider.current_timestamp(),
            liquidity_cap_fraction=self.liquidity_cap_fraction,
            staleness_window_sec=self.staleness_window_sec,
            snapshot_version=snapshot_version,
        )
        if isinstance(result, Rejected):
            logger.debug(
                f"Rejected {cycle.describe()} at {amount}: "
                f"{result.reason.value} ({result.detail})"
            )
        return result
