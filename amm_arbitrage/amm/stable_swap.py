"""
Curve style two-coin StableSwap quoting.

Balances are normalized to 18 decimals before solving the invariant

    A*n^n*sum(x) + D = A*D*n^n + D^(n+1) / (n^n * prod(x))

with Newton's method in integer arithmetic. The fee is charged on the output.
Quotes ignore admin fees and A ramping, so they are approximate.
"""

import dataclasses
from typing import List, Tuple

from ..exceptions import InvalidPool, MaxIterationsExceeded
from ..types import StableSwapPool, Token
from .fixed_point import FEE_SCALE, checked_add, checked_mul, require_uint

N_COINS = 2
MAX_NEWTON_ROUNDS = 255
MAX_INVERSE_DOUBLINGS = 256


def validate(pool: StableSwapPool) -> None:
    if pool.balance0 < 0 or pool.balance1 < 0:
        raise InvalidPool(
            f"Negative balances in pool {pool.pool_id}", pool_id=pool.pool_id
        )
    if pool.amplification < 1:
        raise InvalidPool(
            f"Amplification must be >= 1 in pool {pool.pool_id}",
            pool_id=pool.pool_id,
        )
    for token in pool.tokens:
        if token.decimals > 18:
            raise InvalidPool(
                f"{token.symbol} has {token.decimals} decimals, at most 18 supported",
                pool_id=pool.pool_id,
            )


def is_empty(pool: StableSwapPool) -> bool:
    return pool.balance0 <= 0 or pool.balance1 <= 0


def _rate(token: Token) -> int:
    return 10 ** (18 - token.decimals)


def get_d(xp: List[int], amplification: int) -> int:
    """Solve the invariant for D given normalized balances."""
    total = sum(xp)
    if total == 0:
        return 0
    d = total
    ann = amplification * N_COINS
    for _ in range(MAX_NEWTON_ROUNDS):
        d_p = d
        for x in xp:
            d_p = checked_mul(d_p, d) // (x * N_COINS)
        d_prev = d
        numerator = checked_mul(ann * total + d_p * N_COINS, d)
        d = numerator // ((ann - 1) * d + (N_COINS + 1) * d_p)
        if abs(d - d_prev) <= 1:
            return d
    raise MaxIterationsExceeded(
        "StableSwap D did not converge", iterations=MAX_NEWTON_ROUNDS
    )


def get_y(x_new: int, d: int, amplification: int) -> int:
    """Solve for the other balance given one new normalized balance and D."""
    ann = amplification * N_COINS
    c = checked_mul(d, d) // (x_new * N_COINS)
    c = checked_mul(c, d) // (ann * N_COINS)
    b = x_new + d // ann
    y = d
    for _ in range(MAX_NEWTON_ROUNDS):
        y_prev = y
        y = checked_add(checked_mul(y, y), c) // (2 * y + b - d)
        if abs(y - y_prev) <= 1:
            return y
    raise MaxIterationsExceeded(
        "StableSwap y did not converge", iterations=MAX_NEWTON_ROUNDS
    )


def _normalized(pool: StableSwapPool, token_in: Token) -> Tuple[int, int, int, int]:
    token_out = pool.other_token(token_in)
    balance_in, balance_out = pool.balances_for(token_in)
    if balance_in <= 0 or balance_out <= 0:
        raise InvalidPool(
            f"Balances must be positive: in={balance_in}, out={balance_out}",
            pool_id=pool.pool_id,
        )
    rate_in, rate_out = _rate(token_in), _rate(token_out)
    return balance_in * rate_in, balance_out * rate_out, rate_in, rate_out


def quote_output(pool: StableSwapPool, amount_in: int, token_in: Token) -> int:
    require_uint(amount_in, "amount_in")
    xp_in, xp_out, rate_in, rate_out = _normalized(pool, token_in)
    if amount_in == 0:
        return 0
    d = get_d([xp_in, xp_out], pool.amplification)
    y = get_y(checked_add(xp_in, checked_mul(amount_in, rate_in)), d, pool.amplification)
    dy = xp_out - y - 1
    if dy <= 0:
        return 0
    fee = dy * pool.fee_bps // FEE_SCALE
    return (dy - fee) // rate_out


def quote_input(pool: StableSwapPool, amount_out: int, token_in: Token) -> int:
    """Minimal input reaching ``amount_out``, found by doubling then bisection."""
    require_uint(amount_out, "amount_out")
    balance_out = pool.balances_for(token_in)[1]
    if amount_out == 0:
        return 0
    if amount_out >= balance_out:
        raise InvalidPool(
            f"Requested output {amount_out} exhausts balance {balance_out}",
            pool_id=pool.pool_id,
        )

    low, high = 0, max(1, amount_out)
    for _ in range(MAX_INVERSE_DOUBLINGS):
        if quote_output(pool, high, token_in) >= amount_out:
            break
        low, high = high, high * 2
    else:
        raise MaxIterationsExceeded(
            "StableSwap inverse quote could not bracket the output",
            iterations=MAX_INVERSE_DOUBLINGS,
        )

    while high - low > 1:
        mid = (low + high) // 2
        if quote_output(pool, mid, token_in) >= amount_out:
            high = mid
        else:
            low = mid
    return high


def marginal_rate(pool: StableSwapPool, amount_in: float, token_in: Token) -> float:
    """Finite-difference derivative of the integer quote."""
    balance_in = pool.balances_for(token_in)[0]
    x = max(0, int(amount_in))
    step = max(1, balance_in // 1_000_000)
    gained = quote_output(pool, x + step, token_in) - quote_output(pool, x, token_in)
    return gained / step


def real_output(pool: StableSwapPool, amount_in: float, token_in: Token) -> float:
    """Integer quote at floor(amount_in), extended linearly over the fraction."""
    x = max(0, int(amount_in))
    base = quote_output(pool, x, token_in)
    fraction = max(0.0, amount_in - x)
    if fraction == 0:
        return float(base)
    return base + fraction * (quote_output(pool, x + 1, token_in) - base)


def apply_swap(
    pool: StableSwapPool, amount_in: int, token_in: Token
) -> StableSwapPool:
    amount_out = quote_output(pool, amount_in, token_in)
    if pool.side_of(token_in) == 0:
        return dataclasses.replace(
            pool,
            balance0=checked_add(pool.balance0, amount_in),
            balance1=pool.balance1 - amount_out,
        )
    return dataclasses.replace(
        pool,
        balance0=pool.balance0 - amount_out,
        balance1=checked_add(pool.balance1, amount_in),
    )


def input_reserve(pool: StableSwapPool, token_in: Token) -> int:
    return pool.balances_for(token_in)[0]
