"""
erc6909x.safe_uint — checked uint256 arithmetic.

Amounts never wrap: results outside [0, U256_MAX] raise `ArithmeticOverflow`.
"""

from __future__ import annotations

from typing import Final

from .errors import ArithmeticOverflow

U256_MAX: Final[int] = (1 << 256) - 1
U48_MAX: Final[int] = (1 << 48) - 1


def require_uint(x: int, hi: int = U256_MAX, *, what: str = "value") -> int:
    """Return x if it is an int in [0, hi], else raise ArithmeticOverflow."""
    if isinstance(x, bool) or not isinstance(x, int):
        raise TypeError(f"{what} must be an int")
    if x < 0 or x > hi:
        raise ArithmeticOverflow(f"{what} out of range", value=x)
    return x


def u256_add(x: int, y: int) -> int:
    """Checked add: raise on overflow."""
    s = require_uint(x) + require_uint(y)
    if s > U256_MAX:
        raise ArithmeticOverflow("uint256 addition overflow", value=s)
    return s


def u256_sub(x: int, y: int) -> int:
    """Checked sub: raise on underflow (y > x)."""
    require_uint(x)
    require_uint(y)
    if y > x:
        raise ArithmeticOverflow("uint256 subtraction underflow", value=x - y)
    return x - y


__all__ = ["U256_MAX", "U48_MAX", "require_uint", "u256_add", "u256_sub"]
