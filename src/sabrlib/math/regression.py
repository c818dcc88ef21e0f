"""
Ordinary least squares for a single regressor, in Decimal arithmetic.

Used by hedge-effectiveness and beta-style analyses: y = intercept + slope * x.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Sequence

from ..errors import InsufficientDataError, InvalidInputError
from .decimal_math import to_decimal


@dataclass(frozen=True)
class RegressionResult:
    """
    Simple linear regression fit.

    Attributes:
        slope: Fitted slope (0 when x has no variance)
        intercept: Fitted intercept
        r_squared: Coefficient of determination (0 when x or y is constant)
        n_obs: Number of observations
    """
    slope: Decimal
    intercept: Decimal
    r_squared: Decimal
    n_obs: int

    def predict(self, x) -> Decimal:
        """Fitted value at x."""
        return self.intercept + self.slope * to_decimal(x)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slope": str(self.slope),
            "intercept": str(self.intercept),
            "r_squared": str(self.r_squared),
            "n_obs": self.n_obs,
        }


def linear_regression(x: Sequence, y: Sequence) -> RegressionResult:
    """
    Fit y = intercept + slope * x by ordinary least squares.

    Args:
        x: Regressor observations
        y: Response observations (same length as x)

    Returns:
        RegressionResult

    Raises:
        InvalidInputError: If x and y differ in length
        InsufficientDataError: If fewer than two observations are supplied
    """
    if len(x) != len(y):
        raise InvalidInputError("y", f"length {len(y)} does not match x length {len(x)}")
    if len(x) < 2:
        raise InsufficientDataError("linear regression needs at least two observations")

    xs = [to_decimal(v) for v in x]
    ys = [to_decimal(v) for v in y]
    n = Decimal(len(xs))

    mean_x = sum(xs, Decimal(0)) / n
    mean_y = sum(ys, Decimal(0)) / n

    ss_xy = Decimal(0)
    ss_xx = Decimal(0)
    ss_yy = Decimal(0)
    for xi, yi in zip(xs, ys):
        dx = xi - mean_x
        dy = yi - mean_y
        ss_xy += dx * dy
        ss_xx += dx * dx
        ss_yy += dy * dy

    slope = ss_xy / ss_xx if ss_xx != 0 else Decimal(0)
    intercept = mean_y - slope * mean_x

    if ss_xx == 0 or ss_yy == 0:
        r_squared = Decimal(0)
    else:
        r_squared = ss_xy * ss_xy / (ss_xx * ss_yy)

    return RegressionResult(
        slope=slope,
        intercept=intercept,
        r_squared=r_squared,
        n_obs=len(xs),
    )


__all__ = ["RegressionResult", "linear_regression"]
