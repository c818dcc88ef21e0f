"""
Calibration and kernel configuration.

All configuration is immutable (frozen dataclasses) so a calibration run is
reproducible from its inputs plus the config it was handed.

Defaults:
- 40-term Taylor series for exp, 40 Newton steps for ln, 25 for sqrt
- Levenberg-Marquardt damping starts at 0.01, bounded to [1e-4, 100]
- 50 iterations max, converged when the squared step norm < 1e-9
"""

from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Any, Dict


@dataclass(frozen=True)
class KernelConfig:
    """
    Accuracy/speed trade-off of the Decimal transcendental kernel.

    Attributes:
        taylor_terms: Maximum number of Taylor terms summed by exp
        ln_newton_iterations: Maximum Newton steps used by ln
        sqrt_newton_iterations: Maximum Newton steps used by sqrt
        tolerance: Newton updates smaller than this stop the iteration early
    """
    taylor_terms: int = 40
    ln_newton_iterations: int = 40
    sqrt_newton_iterations: int = 25
    tolerance: Decimal = Decimal("1e-24")

    def __post_init__(self):
        for name in ("taylor_terms", "ln_newton_iterations", "sqrt_newton_iterations"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1, got {getattr(self, name)}")
        object.__setattr__(self, "tolerance", Decimal(str(self.tolerance)))


@dataclass(frozen=True)
class CalibrationConfig:
    """
    Tunable constants of the SABR calibration.

    Attributes:
        precision: Significant digits of the Decimal context used for a run
        max_iterations: Hard cap on Levenberg-Marquardt iterations
        convergence_threshold: Converged once |delta|^2 falls below this
        initial_damping: Starting lambda
        min_damping: Lambda floor (Gauss-Newton end)
        max_damping: Lambda cap (gradient-descent end)
        damping_decrease: Lambda multiplier after an accepted step
        damping_increase: Lambda multiplier after a rejected step
        jacobian_bump: Central-difference bump for alpha, rho and nu
        min_alpha: Alpha floor enforced every iteration
        min_nu: Nu floor enforced every iteration
        rho_bound: Rho is clamped to [-rho_bound, rho_bound]
        atm_threshold: |F-K|/F below this uses the ATM closed form
        vol_floor: Model vols that come out non-positive are replaced by this
        strike_match_tolerance: Target strike matches a market strike within this
        default_rho: Rho seed when the caller supplies none
        default_nu: Nu seed when the caller supplies none
        skew_bump: Relative strike offset for the skew finite difference
        backbone_bump: Relative forward offset for the backbone finite difference
        kernel: Kernel accuracy settings
    """
    precision: int = 28
    max_iterations: int = 50
    convergence_threshold: Decimal = Decimal("0.000000001")
    initial_damping: Decimal = Decimal("0.01")
    min_damping: Decimal = Decimal("0.0001")
    max_damping: Decimal = Decimal("100")
    damping_decrease: Decimal = Decimal("0.5")
    damping_increase: Decimal = Decimal("2")
    jacobian_bump: Decimal = Decimal("0.001")
    min_alpha: Decimal = Decimal("0.0001")
    min_nu: Decimal = Decimal("0.0001")
    rho_bound: Decimal = Decimal("0.999")
    atm_threshold: Decimal = Decimal("0.0001")
    vol_floor: Decimal = Decimal("0.001")
    strike_match_tolerance: Decimal = Decimal("0.0001")
    default_rho: Decimal = Decimal("-0.3")
    default_nu: Decimal = Decimal("0.4")
    skew_bump: Decimal = Decimal("0.01")
    backbone_bump: Decimal = Decimal("0.001")
    kernel: KernelConfig = field(default_factory=KernelConfig)

    def __post_init__(self):
        # Frozen dataclass: coerce via object.__setattr__
        for f in fields(self):
            value = getattr(self, f.name)
            if f.type is Decimal or f.type == "Decimal":
                object.__setattr__(self, f.name, Decimal(str(value)))

        if self.precision < 10:
            raise ValueError(f"precision must be at least 10 digits, got {self.precision}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be at least 1, got {self.max_iterations}")
        if not 0 < self.min_damping <= self.initial_damping <= self.max_damping:
            raise ValueError(
                "damping bounds must satisfy 0 < min_damping <= initial_damping <= max_damping"
            )
        if not 0 < self.rho_bound < 1:
            raise ValueError(f"rho_bound must be in (0, 1), got {self.rho_bound}")
        if self.jacobian_bump <= 0:
            raise ValueError(f"jacobian_bump must be positive, got {self.jacobian_bump}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a plain dictionary (Decimals rendered as strings)."""
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, KernelConfig):
                out[f.name] = {
                    "taylor_terms": value.taylor_terms,
                    "ln_newton_iterations": value.ln_newton_iterations,
                    "sqrt_newton_iterations": value.sqrt_newton_iterations,
                    "tolerance": str(value.tolerance),
                }
            elif isinstance(value, Decimal):
                out[f.name] = str(value)
            else:
                out[f.name] = value
        return out

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CalibrationConfig":
        """Create from dictionary; unknown keys are rejected."""
        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            raise ValueError(f"Unknown configuration options: {sorted(unknown)}")

        kwargs = dict(d)
        kernel = kwargs.get("kernel")
        if isinstance(kernel, dict):
            kwargs["kernel"] = KernelConfig(**kernel)
        return cls(**kwargs)


DEFAULT_KERNEL_CONFIG = KernelConfig()
DEFAULT_CONFIG = CalibrationConfig()


__all__ = [
    "KernelConfig",
    "CalibrationConfig",
    "DEFAULT_KERNEL_CONFIG",
    "DEFAULT_CONFIG",
]
