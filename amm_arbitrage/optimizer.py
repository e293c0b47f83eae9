"""
Trade-size optimization for arbitrage cycles.

Output of a cycle is concave in the input amount, so profit has a single
maximum where the marginal output equals 1 + loan premium rate.

Two-hop constant-product cycles have a closed-form optimum. Everything else
is solved with Brent's method on the marginal profit, bounded by the cycle's
liquidity cap, then refined to the best integer amount.
"""

import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

from scipy.optimize import brentq

from .amm import quoting
from .amm.fixed_point import FEE_SCALE, mul_div_up
from .exceptions import InvalidPool, MaxIterationsExceeded, NoBracket
from .types import Cycle, PoolKind
from .utils import BPS_SCALE, fraction_floor, get_logger

logger = get_logger(__name__)

METHOD_CLOSED_FORM = "closed_form"
METHOD_NUMERIC = "brent"
METHOD_CAPPED = "capped"

# Integer neighbors examined around a real-valued optimum
REFINE_RADIUS = 1


@dataclass(frozen=True)
class OptimizationResult:
    """
    Chosen input size for a cycle.

    Attributes:
        amount: Start-token input (0 when no positive size exists)
        profit: Integer profit at ``amount`` after the loan premium
        method: "closed_form", "brent" or "capped"
        iterations: Solver iterations (0 for closed form)
        cap: Liquidity cap the amount was clamped to
    """

    amount: int
    profit: int
    method: str
    iterations: int = 0
    cap: int = 0


def simulate_hops(cycle: Cycle, amount: int) -> List[Tuple[int, int]]:
    """Return (amount_in, amount_out) per hop, chaining integer quotes."""
    hops = []
    current = amount
    for edge in cycle.edges:
        out = quoting.quote_output(edge.pool, current, edge.token_in)
        hops.append((current, out))
        current = out
    return hops


def final_output(cycle: Cycle, amount: int) -> int:
    """Start-token amount received after trading ``amount`` around the cycle."""
    current = amount
    for edge in cycle.edges:
        current = quoting.quote_output(edge.pool, current, edge.token_in)
    return current


def profit(cycle: Cycle, amount: int, premium_bps: int = 0) -> int:
    """final_output - amount - loan premium. Can be negative."""
    premium = mul_div_up(amount, premium_bps, BPS_SCALE)
    return final_output(cycle, amount) - amount - premium


def _max_input_for_output(pool, out_bound: int, token_in) -> Optional[int]:
    """Largest input whose output stays <= out_bound, None when any input does."""
    try:
        return quoting.quote_input(pool, out_bound + 1, token_in) - 1
    except InvalidPool:
        return None


def liquidity_cap(cycle: Cycle, cap_fraction: float) -> int:
    """
    Largest start amount keeping every hop's input within its liquidity limit.

    The limit of hop i is floor(cap_fraction * reserve_in_i). Limits of later
    hops are carried back to the start token with inverse quotes.
    """
    limits = [
        fraction_floor(quoting.input_reserve(edge.pool, edge.token_in), cap_fraction)
        for edge in cycle.edges
    ]
    cap = limits[0]
    for i in range(1, len(cycle.edges)):
        bound: Optional[int] = limits[i]
        for j in range(i - 1, -1, -1):
            edge = cycle.edges[j]
            bound = _max_input_for_output(edge.pool, bound, edge.token_in)
            if bound is None:
                break
        if bound is not None:
            cap = min(cap, bound)
    return max(0, cap)


def _is_closed_form_cycle(cycle: Cycle) -> bool:
    return cycle.hops == 2 and all(
        pool.kind == PoolKind.CONSTANT_PRODUCT for pool in cycle.pools
    )


def closed_form_amount(cycle: Cycle, premium_bps: int = 0) -> int:
    """
    Real-valued optimum of a two-hop constant-product cycle, floored.

    For out(x) = a*x / (b + c*x) the optimum of out(x) - (1 + p)*x is
    x* = (sqrt(a*b / (1 + p)) - b) / c, with
    a = g1*g2*R1out*R2out, b = R1in*R2in, c = g1*(R2in + g2*R1out).
    Everything is scaled by FEE_SCALE so the computation stays in integers.
    """
    if not _is_closed_form_cycle(cycle):
        raise ValueError("Closed form needs a two-hop constant-product cycle")

    first, second = cycle.edges
    r1_in, r1_out = first.pool.reserves_for(first.token_in)
    r2_in, r2_out = second.pool.reserves_for(second.token_in)
    g1 = FEE_SCALE - first.pool.fee_bps
    g2 = FEE_SCALE - second.pool.fee_bps

    # The radicand outgrows uint256 for deep pools; only the resulting amount
    # goes through checked quoting
    radicand = g1 * g2 * r1_in * r1_out * r2_in * r2_out * FEE_SCALE**2 * BPS_SCALE
    root = math.isqrt(radicand // (BPS_SCALE + premium_bps))
    numerator = root - FEE_SCALE**2 * r1_in * r2_in
    if numerator <= 0:
        return 0
    return numerator // (g1 * (FEE_SCALE * r2_in + g2 * r1_out))


def _marginal_output(cycle: Cycle, x: float) -> float:
    """
    d(final_output)/dx by the chain rule over per-hop marginal rates.

    Each hop's rate is taken at the previous hop's unrounded output, so the
    marginal profit the solver sees is not quantized by integer quotes.
    """
    derivative = 1.0
    amount = x
    for edge in cycle.edges:
        derivative *= quoting.marginal_rate(edge.pool, amount, edge.token_in)
        amount = quoting.real_output(edge.pool, amount, edge.token_in)
    return derivative


def _refine(
    cycle: Cycle, center: int, cap: int, premium_bps: int, lower: int = 0
) -> Tuple[int, int]:
    """Best integer amount (and its profit) near ``center`` within [lower, cap]."""
    best_amount, best_profit = 0, 0
    start = max(lower, center - REFINE_RADIUS)
    stop = min(cap, center + REFINE_RADIUS)
    for candidate in range(start, stop + 1):
        value = profit(cycle, candidate, premium_bps)
        if value > best_profit:
            best_amount, best_profit = candidate, value
    return best_amount, best_profit


def numeric_amount(
    cycle: Cycle,
    cap: int,
    premium_bps: int = 0,
    tolerance: int = 1,
    max_iterations: int = 100,
    lower_bound: int = 1,
) -> OptimizationResult:
    """
    Solve marginal profit = 0 on [lower_bound, cap] with Brent's method.

    Raises:
        NoBracket: Marginal profit is not positive at the lower bound or the
            bracket is empty
        MaxIterationsExceeded: Brent's method did not converge
    """
    if cap < lower_bound:
        raise NoBracket(
            f"Empty search interval [{lower_bound}, {cap}]",
            lower=lower_bound,
            upper=cap,
        )

    hurdle = 1.0 + premium_bps / BPS_SCALE

    def marginal_profit(x: float) -> float:
        return _marginal_output(cycle, x) - hurdle

    at_lower = marginal_profit(float(lower_bound))
    if at_lower <= 0:
        raise NoBracket(
            f"Marginal profit {at_lower:.3e} <= 0 at lower bound {lower_bound}",
            lower=lower_bound,
            upper=cap,
        )

    at_cap = marginal_profit(float(cap))
    if at_cap > 0:
        amount, value = _refine(cycle, cap, cap, premium_bps, lower_bound)
        return OptimizationResult(amount, value, METHOD_CAPPED, 0, cap)

    root, result = brentq(
        marginal_profit,
        float(lower_bound),
        float(cap),
        xtol=float(tolerance),
        maxiter=max_iterations,
        full_output=True,
        disp=False,
    )
    if not result.converged:
        raise MaxIterationsExceeded(
            f"Brent's method stopped after {result.iterations} iterations: {result.flag}",
            iterations=result.iterations,
        )

    amount, value = _refine(cycle, int(math.floor(root)), cap, premium_bps, lower_bound)
    return OptimizationResult(amount, value, METHOD_NUMERIC, result.iterations, cap)


def optimal_amount(
    cycle: Cycle,
    cap: int,
    premium_bps: int = 0,
    tolerance: int = 1,
    max_iterations: int = 100,
    force_numeric: bool = False,
) -> OptimizationResult:
    """
    Profit-maximizing input for ``cycle`` clamped to [0, cap].

    Two-hop constant-product cycles use the closed form unless
    ``force_numeric`` is set; other cycles go through ``numeric_amount``.
    """
    if _is_closed_form_cycle(cycle) and not force_numeric:
        raw = closed_form_amount(cycle, premium_bps)
        center = min(raw, cap)
        if center <= 0:
            return OptimizationResult(0, 0, METHOD_CLOSED_FORM, 0, cap)
        amount, value = _refine(cycle, center, cap, premium_bps)
        return OptimizationResult(amount, value, METHOD_CLOSED_FORM, 0, cap)

    return numeric_amount(
        cycle,
        cap,
        premium_bps=premium_bps,
        tolerance=tolerance,
        max_iterations=max_iterations,
    )


class TradeSizeOptimizer:
    """Sizes cycles with the engine's cap fraction, premium and solver limits."""

    def __init__(
        self,
        liquidity_cap_fraction: float = 0.9,
        premium_bps: int = 0,
        tolerance: int = 1,
        max_iterations: int = 100,
        force_numeric: bool = False,
    ):
        self.liquidity_cap_fraction = liquidity_cap_fraction
        self.premium_bps = premium_bps
        self.tolerance = tolerance
        self.max_iterations = max_iterations
        self.force_numeric = force_numeric

    @classmethod
    def from_config(cls, config, premium_bps: int) -> "TradeSizeOptimizer":
        return cls(
            liquidity_cap_fraction=config.liquidity_cap_fraction,
            premium_bps=premium_bps,
            tolerance=config.optimizer_tolerance,
            max_iterations=config.max_optimizer_iterations,
        )

    def optimize(self, cycle: Cycle) -> OptimizationResult:
        cap = liquidity_cap(cycle, self.liquidity_cap_fraction)
        result = optimal_amount(
            cycle,
            cap,
            premium_bps=self.premium_bps,
            tolerance=self.tolerance,
            max_iterations=self.max_iterations,
            force_numeric=self.force_numeric,
        )
        logger.debug(
            f"Sized {cycle.describe()}: amount={result.amount} profit={result.profit} "
            f"method={result.method} cap={cap}"
        )
        return result
