"""
Checked integer arithmetic in the uint256 domain.

Python integers never wrap, so range checks are explicit: every helper raises
``Overflow`` when a result leaves [0, MAX_UINT256], mirroring the checked math
an on-chain settlement contract would apply to the same numbers.
"""

from ..exceptions import Overflow

MAX_UINT256 = 2**256 - 1
Q96 = 2**96
FEE_SCALE = 10_000


def _check(value: int, operation: str) -> int:
    if value < 0 or value > MAX_UINT256:
        raise Overflow(
            f"{operation} result out of uint256 range",
            operation=operation,
            details={"bits": value.bit_length(), "negative": value < 0},
        )
    return value


def checked_add(a: int, b: int) -> int:
    return _check(a + b, "add")


def checked_sub(a: int, b: int) -> int:
    return _check(a - b, "sub")


def checked_mul(a: int, b: int) -> int:
    return _check(a * b, "mul")


def mul_div(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator) with the product range-checked."""
    if denominator <= 0:
        raise ZeroDivisionError("mul_div denominator must be positive")
    return checked_mul(a, b) // denominator


def mul_div_up(a: int, b: int, denominator: int) -> int:
    """ceil(a * b / denominator) with the product range-checked."""
    if denominator <= 0:
        raise ZeroDivisionError("mul_div_up denominator must be positive")
    product = checked_mul(a, b)
    return -(-product // denominator)


def div_up(numerator: int, denominator: int) -> int:
    if denominator <= 0:
        raise ZeroDivisionError("div_up denominator must be positive")
    return -(-numerator // denominator)


def require_uint(value: int, name: str) -> int:
    """Validate an input amount is a non-negative integer in range."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int, got {type(value).__name__}")
    if value < 0:
        raise ValueError(f"{name} must be non-negative: {value}")
    return _check(value, name)
