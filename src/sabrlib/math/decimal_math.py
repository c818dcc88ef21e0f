"""
Decimal transcendental kernel.

Pure functions over ``decimal.Decimal`` with no binary floating point in the
call chain, so calibrations are bit-for-bit reproducible across platforms:
- exp: halving range reduction + incremental Taylor series
- ln: power-of-two range reduction into [1, 2] + Newton on exp(y) = m
- sqrt: Newton (Heron) iteration with a magnitude-aware starting point
- pow_frac: exact repeated multiplication for integral exponents,
  exp(e * ln(b)) otherwise

Iteration counts come from a KernelConfig. The defaults are tuned for
operands in the calibration range (strikes/forwards in [1, 1e6], vols in
[0.01, 5], exponents in [0, 1]) where the relative error stays well below
1e-6.

All arithmetic honours the active decimal context, so callers control the
working precision with ``decimal.localcontext()``.
"""

import numbers
from decimal import Decimal
from typing import Optional

from ..config import KernelConfig, DEFAULT_KERNEL_CONFIG

ZERO = Decimal(0)
ONE = Decimal(1)
TWO = Decimal(2)
TEN = Decimal(10)

# ln(2) to 40 significant digits; rounded to the context on use
LN2 = Decimal("0.6931471805599453094172321214581765680755")

# Returned by ln() for non-positive arguments instead of raising
LN_SENTINEL = Decimal(-999)


def to_decimal(value) -> Decimal:
    """
    Coerce a number or numeric string to a finite Decimal.

    Floats go through their shortest repr so 0.1 becomes Decimal("0.1"),
    not the 55-digit binary expansion.

    Raises:
        TypeError: For non-numeric types (including bool)
        ValueError: For malformed strings, NaN or infinity
    """
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool):
        raise TypeError("bool is not a valid numeric value")
    elif isinstance(value, numbers.Integral):
        result = Decimal(int(value))
    elif isinstance(value, numbers.Real):
        result = Decimal(repr(float(value)))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except ArithmeticError:
            raise ValueError(f"Not a decimal number: {value!r}") from None
    else:
        raise TypeError(f"Cannot convert {type(value).__name__} to Decimal")

    if not result.is_finite():
        raise ValueError(f"Value must be finite, got {value!r}")
    return result


def clamp(value: Decimal, lower: Decimal, upper: Decimal) -> Decimal:
    """Clamp value to [lower, upper]."""
    if value < lower:
        return lower
    if value > upper:
        return upper
    return value


def exp(x: Decimal, config: Optional[KernelConfig] = None) -> Decimal:
    """
    Exponential function.

    While |x| > 2 the argument is halved; the Taylor sum of the reduced
    argument is then squared once per halving. The series term is built
    incrementally (term *= x / n) and summation stops once a term no longer
    changes the total at the current precision.

    Args:
        x: Exponent
        config: Kernel accuracy settings

    Returns:
        e**x
    """
    cfg = config or DEFAULT_KERNEL_CONFIG
    if not isinstance(x, Decimal):
        x = to_decimal(x)

    halvings = 0
    while x > TWO or x < -TWO:
        x = x / TWO
        halvings += 1

    total = ONE
    term = ONE
    for n in range(1, cfg.taylor_terms + 1):
        term = term * x / n
        updated = total + term
        if updated == total:
            break
        total = updated

    for _ in range(halvings):
        total = total * total
    return total


def ln(x: Decimal, config: Optional[KernelConfig] = None) -> Decimal:
    """
    Natural logarithm.

    Non-positive arguments return LN_SENTINEL rather than raising; callers in
    this library never pass them, and the Hagan formula guards its own log
    arguments.

    The argument is scaled by powers of two into [1, 2], tracking k*ln(2),
    and Newton's method solves exp(y) = m via y <- y - 1 + m / exp(y).

    Args:
        x: Positive argument
        config: Kernel accuracy settings

    Returns:
        ln(x)
    """
    cfg = config or DEFAULT_KERNEL_CONFIG
    if not isinstance(x, Decimal):
        x = to_decimal(x)

    if x <= ZERO:
        return LN_SENTINEL
    if x == ONE:
        return ZERO

    k = 0
    m = x
    while m > TWO:
        m = m / TWO
        k += 1
    while m < ONE:
        m = m * TWO
        k -= 1

    # Pade start: 2(m-1)/(m+1) is within 4% of ln(m) on [1, 2]
    y = TWO * (m - ONE) / (m + ONE)
    for _ in range(cfg.ln_newton_iterations):
        step = m / exp(y, cfg) - ONE
        y = y + step
        if abs(step) < cfg.tolerance:
            break

    if k == 0:
        return y
    return y + k * LN2


def sqrt(x: Decimal, config: Optional[KernelConfig] = None) -> Decimal:
    """
    Square root by Newton's method.

    Starts from x/2, or from 10**(e//2) when x is outside [0.01, 100] (e being
    the decimal exponent of x) so very large or small inputs do not spend
    their iteration budget walking in by halves.

    Args:
        x: Argument; non-positive values return 0
        config: Kernel accuracy settings

    Returns:
        sqrt(x)
    """
    cfg = config or DEFAULT_KERNEL_CONFIG
    if not isinstance(x, Decimal):
        x = to_decimal(x)

    if x <= ZERO:
        return ZERO
    if x == ONE:
        return ONE

    if x > 100 or x < Decimal("0.01"):
        guess = TEN ** (x.adjusted() // 2)
    else:
        guess = x / TWO

    for _ in range(cfg.sqrt_newton_iterations):
        updated = (guess + x / guess) / TWO
        if abs(updated - guess) <= cfg.tolerance * updated:
            return updated
        guess = updated
    return guess


def pow_frac(base: Decimal, exponent: Decimal, config: Optional[KernelConfig] = None) -> Decimal:
    """
    base**exponent for a positive base and arbitrary Decimal exponent.

    Non-negative integral exponents are evaluated by repeated multiplication
    (exact, no transcendental calls); everything else goes through
    exp(exponent * ln(base)).

    Args:
        base: Base; non-positive values return 0
        exponent: Exponent
        config: Kernel accuracy settings

    Returns:
        base**exponent
    """
    if not isinstance(base, Decimal):
        base = to_decimal(base)
    if not isinstance(exponent, Decimal):
        exponent = to_decimal(exponent)

    if base <= ZERO:
        return ZERO
    if exponent == ZERO or base == ONE:
        return ONE

    if exponent > ZERO and exponent == exponent.to_integral_value():
        result = ONE
        for _ in range(int(exponent)):
            result = result * base
        return result

    return exp(exponent * ln(base, config), config)


__all__ = [
    "LN2",
    "LN_SENTINEL",
    "to_decimal",
    "clamp",
    "exp",
    "ln",
    "sqrt",
    "pow_frac",
]
