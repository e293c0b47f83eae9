"""
Unit tests for checked uint256 arithmetic.
"""

import pytest

from amm_arbitrage.amm.fixed_point import (
    MAX_UINT256,
    checked_add,
    checked_mul,
    checked_sub,
    div_up,
    mul_div,
    mul_div_up,
    require_uint,
)
from amm_arbitrage.exceptions import ArbitrageEngineError, Overflow


class TestCheckedArithmetic:
    def test_add_within_range(self):
        assert checked_add(MAX_UINT256 - 1, 1) == MAX_UINT256

    def test_add_overflow(self):
        with pytest.raises(Overflow) as exc_info:
            checked_add(MAX_UINT256, 1)
        assert exc_info.value.operation == "add"

    def test_sub_underflow(self):
        with pytest.raises(Overflow):
            checked_sub(1, 2)

    def test_mul_overflow(self):
        with pytest.raises(Overflow):
            checked_mul(2**200, 2**100)

    def test_overflow_is_arithmetic_error(self):
        with pytest.raises(ArithmeticError):
            checked_mul(MAX_UINT256, 2)
        with pytest.raises(ArbitrageEngineError):
            checked_mul(MAX_UINT256, 2)

    def test_mul_div_rounding(self):
        assert mul_div(10, 10, 3) == 33
        assert mul_div_up(10, 10, 3) == 34
        assert mul_div_up(9, 10, 3) == 30

    def test_div_up(self):
        assert div_up(7, 2) == 4
        assert div_up(8, 2) == 4
        assert div_up(0, 5) == 0

    def test_zero_denominator(self):
        with pytest.raises(ZeroDivisionError):
            mul_div(1, 1, 0)

    @pytest.mark.parametrize("bps", [0, 1, 30, 9_999])
    def test_premium_rounding_never_below_floor(self, bps):
        amount = 123_456_789
        floor = mul_div(amount, bps, 10_000)
        assert floor <= mul_div_up(amount, bps, 10_000) <= floor + 1


class TestRequireUint:
    def test_accepts_zero_and_max(self):
        assert require_uint(0, "x") == 0
        assert require_uint(MAX_UINT256, "x") == MAX_UINT256

    def test_rejects_negative(self):
        with pytest.raises(ValueError):
            require_uint(-1, "amount_in")

    def test_rejects_too_large(self):
        with pytest.raises(Overflow):
            require_uint(MAX_UINT256 + 1, "amount_in")

    @pytest.mark.parametrize("value", [1.5, "10", True, None])
    def test_rejects_non_int(self, value):
        with pytest.raises(TypeError):
            require_uint(value, "amount_in")
