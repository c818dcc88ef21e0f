"""
Numeric kernel - Decimal transcendental functions, linear solves, regression.

Provides:
- exp / ln / sqrt / pow_frac without binary floating point
- Gaussian elimination with partial pivoting
- Single-regressor OLS
"""

from .decimal_math import (
    LN2,
    LN_SENTINEL,
    to_decimal,
    clamp,
    exp,
    ln,
    sqrt,
    pow_frac,
)
from .linalg import solve_linear_system, solve_3x3
from .regression import RegressionResult, linear_regression

__all__ = [
    "LN2",
    "LN_SENTINEL",
    "to_decimal",
    "clamp",
    "exp",
    "ln",
    "sqrt",
    "pow_frac",
    "solve_linear_system",
    "solve_3x3",
    "RegressionResult",
    "linear_regression",
]
