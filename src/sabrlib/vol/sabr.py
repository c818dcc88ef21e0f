"""
SABR stochastic volatility model.

Implements the SABR model in exact Decimal arithmetic:
- Hagan et al. lognormal (Black) implied volatility approximation
- ATM closed form, continuous with the general branch at K = F
- Smile, skew and backbone helpers

References:
- Hagan, P.S. et al. (2002). "Managing Smile Risk." Wilmott Magazine.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterable, Optional

from ..config import CalibrationConfig, DEFAULT_CONFIG
from ..errors import InvalidInputError
from ..math.decimal_math import to_decimal, ln, sqrt, pow_frac

ZERO = Decimal(0)
ONE = Decimal(1)
TWO = Decimal(2)
THREE = Decimal(3)
FOUR = Decimal(4)
TWENTY_FOUR = Decimal(24)
NINETEEN_TWENTY = Decimal(1920)

# Below this |z|, log argument or |x(z)|, z / x(z) is replaced by its limit 1
_Z_EPS = Decimal("0.00001")


@dataclass
class SabrParams:
    """
    SABR model parameters.

    Attributes:
        alpha: Initial volatility level (alpha > 0)
        beta: CEV exponent (0 = normal, 1 = lognormal, fixed during calibration)
        rho: Correlation between forward and vol (-1 < rho < 1)
        nu: Volatility of volatility (nu > 0)
    """
    alpha: Decimal
    beta: Decimal
    rho: Decimal
    nu: Decimal

    def __post_init__(self):
        """Coerce to Decimal and validate."""
        for name in ("alpha", "beta", "rho", "nu"):
            try:
                setattr(self, name, to_decimal(getattr(self, name)))
            except (TypeError, ValueError) as exc:
                raise InvalidInputError(name, str(exc)) from None

        if self.alpha <= 0:
            raise InvalidInputError("alpha", f"must be positive, got {self.alpha}")
        if not 0 <= self.beta <= 1:
            raise InvalidInputError("beta", f"must be in [0, 1], got {self.beta}")
        if not -1 < self.rho < 1:
            raise InvalidInputError("rho", f"must be in (-1, 1), got {self.rho}")
        if self.nu <= 0:
            raise InvalidInputError("nu", f"must be positive, got {self.nu}")

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary (Decimals as strings)."""
        return {
            "alpha": str(self.alpha),
            "beta": str(self.beta),
            "rho": str(self.rho),
            "nu": str(self.nu),
        }

    @classmethod
    def from_dict(cls, d: Dict) -> "SabrParams":
        """Create from dictionary."""
        return cls(alpha=d["alpha"], beta=d["beta"], rho=d["rho"], nu=d["nu"])


def _as_decimal(value) -> Decimal:
    return value if isinstance(value, Decimal) else to_decimal(value)


def _z_over_x(z: Decimal, rho: Decimal, config: CalibrationConfig) -> Decimal:
    """
    z / x(z) with x(z) = ln[(sqrt(1 - 2 rho z + z^2) + z - rho) / (1 - rho)].

    The removable singularity at z = 0 (and any degenerate log argument)
    maps to the limit value 1.
    """
    if abs(z) < _Z_EPS:
        return ONE

    disc = ONE - TWO * rho * z + z * z
    numerator = sqrt(abs(disc), config.kernel) + z - rho
    denominator = ONE - rho
    if denominator <= _Z_EPS or numerator <= _Z_EPS:
        return ONE

    x = ln(numerator / denominator, config.kernel)
    if abs(x) < _Z_EPS:
        return ONE
    return z / x


def hagan_black_vol(
    F: Decimal,
    K: Decimal,
    T: Decimal,
    alpha: Decimal,
    beta: Decimal,
    rho: Decimal,
    nu: Decimal,
    config: Optional[CalibrationConfig] = None
) -> Decimal:
    """
    Hagan et al. approximation for SABR Black implied volatility.

    Args:
        F: Forward price
        K: Strike
        T: Time to expiry (years)
        alpha: SABR alpha
        beta: CEV exponent
        rho: Correlation
        nu: Vol of vol
        config: Calibration config (ATM threshold, vol floor, kernel accuracy)

    Returns:
        Black implied volatility, never below config.vol_floor
    """
    cfg = config or DEFAULT_CONFIG
    F, K, T, alpha, beta, rho, nu = (
        _as_decimal(v) for v in (F, K, T, alpha, beta, rho, nu)
    )

    # ATM branch: relative distance below threshold
    if abs(F - K) / F < cfg.atm_threshold:
        return hagan_atm_vol(F, T, alpha, beta, rho, nu, cfg)

    kernel = cfg.kernel
    one_minus_beta = ONE - beta
    fk = F * K
    fk_mid = pow_frac(fk, one_minus_beta / TWO, kernel)  # (FK)^((1-beta)/2)
    fk_full = pow_frac(fk, one_minus_beta, kernel)  # (FK)^(1-beta)

    log_fk = ln(F / K, kernel)
    log_fk_sq = log_fk * log_fk
    log_fk_4 = log_fk_sq * log_fk_sq

    omb_sq = one_minus_beta * one_minus_beta
    omb_4 = omb_sq * omb_sq

    denom_corr = ONE + omb_sq / TWENTY_FOUR * log_fk_sq + omb_4 / NINETEEN_TWENTY * log_fk_4

    if alpha > _Z_EPS:
        z = nu / alpha * fk_mid * log_fk
    else:
        z = ZERO
    x_ratio = _z_over_x(z, rho, cfg)

    # Time correction
    term1 = omb_sq / TWENTY_FOUR * alpha * alpha / fk_full
    term2 = rho * beta * nu * alpha / (FOUR * fk_mid)
    term3 = (TWO - THREE * rho * rho) / TWENTY_FOUR * nu * nu
    time_adj = ONE + (term1 + term2 + term3) * T

    sigma_b = alpha / (fk_mid * denom_corr) * x_ratio * time_adj

    if sigma_b <= ZERO:
        return cfg.vol_floor
    return sigma_b


def hagan_atm_vol(
    F: Decimal,
    T: Decimal,
    alpha: Decimal,
    beta: Decimal,
    rho: Decimal,
    nu: Decimal,
    config: Optional[CalibrationConfig] = None
) -> Decimal:
    """ATM Black vol from the Hagan formula."""
    cfg = config or DEFAULT_CONFIG
    F, T, alpha, beta, rho, nu = (_as_decimal(v) for v in (F, T, alpha, beta, rho, nu))

    one_minus_beta = ONE - beta
    F_omb = pow_frac(F, one_minus_beta, cfg.kernel)
    F_2omb = pow_frac(F, TWO * one_minus_beta, cfg.kernel)

    term1 = one_minus_beta * one_minus_beta / TWENTY_FOUR * alpha * alpha / F_2omb
    term2 = rho * beta * nu * alpha / (FOUR * F_omb)
    term3 = (TWO - THREE * rho * rho) / TWENTY_FOUR * nu * nu

    sigma_atm = alpha / F_omb * (ONE + (term1 + term2 + term3) * T)

    if sigma_atm <= ZERO:
        return cfg.vol_floor
    return sigma_atm


class SabrModel:
    """
    SABR stochastic volatility model.

    Wraps the Hagan formulas with a fixed config and exposes:
    - Implied volatility at a strike, and ATM
    - Smile across a strike ladder
    - Skew (smile slope at the money) and backbone (dATM/dF)
    """

    def __init__(self, config: Optional[CalibrationConfig] = None):
        """Initialize SABR model."""
        self.config = config or DEFAULT_CONFIG

    def implied_vol(
        self,
        F: Decimal,
        K: Decimal,
        T: Decimal,
        params: SabrParams
    ) -> Decimal:
        """Black implied vol at strike K."""
        return hagan_black_vol(
            F, K, T, params.alpha, params.beta, params.rho, params.nu, self.config
        )

    def atm_vol(self, F: Decimal, T: Decimal, params: SabrParams) -> Decimal:
        """ATM Black implied vol."""
        return hagan_atm_vol(F, T, params.alpha, params.beta, params.rho, params.nu, self.config)

    def smile_at_strikes(
        self,
        F: Decimal,
        strikes: Iterable,
        T: Decimal,
        params: SabrParams
    ) -> Dict[Decimal, Decimal]:
        """
        Compute implied vol smile across strikes.

        Returns:
            Dict of {strike: implied_vol}
        """
        result = {}
        for K in strikes:
            K = _as_decimal(K)
            result[K] = self.implied_vol(F, K, T, params)
        return result

    def skew(self, F: Decimal, T: Decimal, params: SabrParams) -> Decimal:
        """
        Smile slope at the money.

        (sigma(F*(1+h)) - sigma(F*(1-h))) / (2*h*F) with h = config.skew_bump.
        """
        F = _as_decimal(F)
        h = self.config.skew_bump
        vol_up = self.implied_vol(F, F * (ONE + h), T, params)
        vol_dn = self.implied_vol(F, F * (ONE - h), T, params)
        return (vol_up - vol_dn) / (TWO * h * F)

    def backbone(self, F: Decimal, T: Decimal, params: SabrParams) -> Decimal:
        """
        Sensitivity of the ATM vol to the forward.

        (sigma_ATM(F+dF) - sigma_ATM(F-dF)) / (2*dF) with dF = F*config.backbone_bump.
        """
        F = _as_decimal(F)
        dF = F * self.config.backbone_bump
        vol_up = self.atm_vol(F + dF, T, params)
        vol_dn = self.atm_vol(F - dF, T, params)
        return (vol_up - vol_dn) / (TWO * dF)


__all__ = [
    "SabrParams",
    "SabrModel",
    "hagan_black_vol",
    "hagan_atm_vol",
]
