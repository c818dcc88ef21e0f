"""
SABR model calibration.

Calibrates SABR parameters from market vol quotes:
- beta is fixed by the caller; alpha, rho and nu are fitted
- Levenberg-Marquardt on the Hagan Black vol, all in Decimal arithmetic
- Reports RMS error, ATM vol, skew and backbone alongside the fit
"""

import logging
import time
from dataclasses import dataclass, field
from decimal import Decimal, localcontext
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from ..config import CalibrationConfig, DEFAULT_CONFIG
from ..envelope import ComputationOutput, with_metadata
from ..errors import InvalidInputError, InsufficientDataError
from ..math.decimal_math import to_decimal, sqrt, pow_frac
from .optimizer import levenberg_marquardt, model_residuals, sum_of_squares
from .quotes import VolatilityPoint, points_from_frame
from .sabr import SabrParams, SabrModel

logger = logging.getLogger(__name__)

METHODOLOGY = "SABR Stochastic Volatility Model"


def _coerce(field_name: str, value) -> Decimal:
    try:
        return to_decimal(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(field_name, str(exc)) from None


def _coerce_optional(field_name: str, value) -> Optional[Decimal]:
    return None if value is None else _coerce(field_name, value)


@dataclass
class CalibrationInput:
    """
    Inputs of a single-expiry SABR calibration.

    Attributes:
        forward_price: Forward of the underlying (> 0)
        expiry: Time to expiry in years (> 0)
        market_vols: Observed (strike, implied vol) points, at least one
        beta: Fixed CEV exponent in [0, 1]
        initial_alpha: Optional alpha seed (> 0)
        initial_rho: Optional rho seed in (-1, 1)
        initial_nu: Optional nu seed (> 0)
        target_strikes: Strikes to report model vols at (default: market strikes)
    """
    forward_price: Decimal
    expiry: Decimal
    market_vols: List[VolatilityPoint]
    beta: Decimal
    initial_alpha: Optional[Decimal] = None
    initial_rho: Optional[Decimal] = None
    initial_nu: Optional[Decimal] = None
    target_strikes: Optional[List[Decimal]] = None

    def __post_init__(self):
        """Coerce numeric fields to Decimal; range checks live in validate_input."""
        self.forward_price = _coerce("forward_price", self.forward_price)
        self.expiry = _coerce("expiry", self.expiry)
        self.beta = _coerce("beta", self.beta)
        self.initial_alpha = _coerce_optional("initial_alpha", self.initial_alpha)
        self.initial_rho = _coerce_optional("initial_rho", self.initial_rho)
        self.initial_nu = _coerce_optional("initial_nu", self.initial_nu)

        points = []
        for i, mv in enumerate(self.market_vols or []):
            try:
                points.append(VolatilityPoint.from_any(mv))
            except InvalidInputError as exc:
                raise InvalidInputError(f"market_vols[{i}].{exc.field}", exc.reason) from None
            except (TypeError, ValueError) as exc:
                raise InvalidInputError(f"market_vols[{i}]", str(exc)) from None
        self.market_vols = points

        if self.target_strikes is not None:
            self.target_strikes = [
                _coerce(f"target_strikes[{i}]", k) for i, k in enumerate(self.target_strikes)
            ]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (Decimals as strings)."""
        def opt(v):
            return None if v is None else str(v)

        return {
            "forward_price": str(self.forward_price),
            "expiry": str(self.expiry),
            "market_vols": [p.to_dict() for p in self.market_vols],
            "beta": str(self.beta),
            "initial_alpha": opt(self.initial_alpha),
            "initial_rho": opt(self.initial_rho),
            "initial_nu": opt(self.initial_nu),
            "target_strikes": None if self.target_strikes is None else [str(k) for k in self.target_strikes],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CalibrationInput":
        """Create from dictionary (e.g. a decoded JSON request)."""
        return cls(
            forward_price=d["forward_price"],
            expiry=d["expiry"],
            market_vols=list(d.get("market_vols") or []),
            beta=d["beta"],
            initial_alpha=d.get("initial_alpha"),
            initial_rho=d.get("initial_rho"),
            initial_nu=d.get("initial_nu"),
            target_strikes=d.get("target_strikes"),
        )


@dataclass
class ModelVol:
    """Model vol at one target strike, with the matched market vol if any."""
    strike: Decimal
    model_vol: Decimal
    market_vol: Optional[Decimal]
    error: Decimal

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            "strike": str(self.strike),
            "model_vol": str(self.model_vol),
            "market_vol": None if self.market_vol is None else str(self.market_vol),
            "error": str(self.error),
        }


@dataclass
class CalibrationResult:
    """Result of SABR calibration."""
    alpha: Decimal
    beta: Decimal
    rho: Decimal
    nu: Decimal
    calibration_error: Decimal
    model_vols: List[ModelVol]
    atm_vol: Decimal
    skew: Decimal
    backbone: Decimal
    convergence_iterations: int
    converged: bool = True
    boundary_hits: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def params(self) -> SabrParams:
        return SabrParams(alpha=self.alpha, beta=self.beta, rho=self.rho, nu=self.nu)

    @property
    def vol_errors(self) -> Dict[Decimal, Decimal]:
        """{strike: model - market} for target strikes with a market match."""
        return {mv.strike: mv.error for mv in self.model_vols if mv.market_vol is not None}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "alpha": str(self.alpha),
            "beta": str(self.beta),
            "rho": str(self.rho),
            "nu": str(self.nu),
            "calibration_error": str(self.calibration_error),
            "model_vols": [mv.to_dict() for mv in self.model_vols],
            "atm_vol": str(self.atm_vol),
            "skew": str(self.skew),
            "backbone": str(self.backbone),
            "convergence_iterations": self.convergence_iterations,
            "converged": self.converged,
            "boundary_hits": list(self.boundary_hits),
        }

    def to_frame(self) -> pd.DataFrame:
        """Model vols as a DataFrame indexed by strike (Decimal object columns)."""
        df = pd.DataFrame(
            {
                "strike": [mv.strike for mv in self.model_vols],
                "model_vol": [mv.model_vol for mv in self.model_vols],
                "market_vol": [mv.market_vol for mv in self.model_vols],
                "error": [mv.error for mv in self.model_vols],
            }
        )
        return df.set_index("strike")


def validate_input(inp: CalibrationInput) -> None:
    """
    Fail fast on invalid calibration inputs.

    Raises:
        InvalidInputError: Field-tagged range violation
        InsufficientDataError: No market vols supplied
    """
    if inp.forward_price <= 0:
        raise InvalidInputError("forward_price", "must be positive")
    if inp.expiry <= 0:
        raise InvalidInputError("expiry", "must be positive")
    if inp.beta < 0 or inp.beta > 1:
        raise InvalidInputError("beta", "must be in [0, 1]")
    if not inp.market_vols:
        raise InsufficientDataError("at least one market vol point is required")

    for i, mv in enumerate(inp.market_vols):
        if mv.strike <= 0:
            raise InvalidInputError(f"market_vols[{i}].strike", "must be positive")
        if mv.implied_vol <= 0:
            raise InvalidInputError(f"market_vols[{i}].implied_vol", "must be positive")

    if inp.initial_alpha is not None and inp.initial_alpha <= 0:
        raise InvalidInputError("initial_alpha", "must be positive")
    if inp.initial_rho is not None and not -1 < inp.initial_rho < 1:
        raise InvalidInputError("initial_rho", "must be in (-1, 1)")
    if inp.initial_nu is not None and inp.initial_nu <= 0:
        raise InvalidInputError("initial_nu", "must be positive")

    if inp.target_strikes is not None:
        for i, k in enumerate(inp.target_strikes):
            if k <= 0:
                raise InvalidInputError(f"target_strikes[{i}]", "must be positive")


def seed_parameters(
    inp: CalibrationInput,
    config: Optional[CalibrationConfig] = None
) -> Tuple[Decimal, Decimal, Decimal]:
    """
    Initial (alpha, rho, nu).

    alpha defaults to mean(market vols) * F^(1-beta), i.e. the alpha that
    reproduces the average quoted vol at the money; rho and nu default to
    priors typical of equity/FX smiles.
    """
    cfg = config or DEFAULT_CONFIG
    if inp.initial_alpha is not None:
        alpha = inp.initial_alpha
    else:
        total = sum((mv.implied_vol for mv in inp.market_vols), Decimal(0))
        avg_vol = total / len(inp.market_vols)
        alpha = avg_vol * pow_frac(inp.forward_price, Decimal(1) - inp.beta, cfg.kernel)

    rho = inp.initial_rho if inp.initial_rho is not None else cfg.default_rho
    nu = inp.initial_nu if inp.initial_nu is not None else cfg.default_nu
    return alpha, rho, nu


def _match_market_vol(
    strike: Decimal,
    market_vols: Sequence[VolatilityPoint],
    tolerance: Decimal
) -> Optional[Decimal]:
    for mv in market_vols:
        if abs(mv.strike - strike) < tolerance:
            return mv.implied_vol
    return None


def _run_calibration(
    inp: CalibrationInput,
    cfg: CalibrationConfig
) -> Tuple[CalibrationResult, List[str]]:
    F = inp.forward_price
    T = inp.expiry
    beta = inp.beta

    seed = seed_parameters(inp, cfg)
    state = levenberg_marquardt(F, T, beta, inp.market_vols, seed, cfg)

    params = SabrParams(alpha=state.alpha, beta=beta, rho=state.rho, nu=state.nu)
    model = SabrModel(cfg)
    atm_vol = model.atm_vol(F, T, params)

    targets = inp.target_strikes
    if targets is None:
        targets = [mv.strike for mv in inp.market_vols]

    model_vols = []
    total_sq = Decimal(0)
    matched = 0
    for K in targets:
        model_vol = model.implied_vol(F, K, T, params)
        market_vol = _match_market_vol(K, inp.market_vols, cfg.strike_match_tolerance)
        if market_vol is not None:
            error = model_vol - market_vol
            total_sq += error * error
            matched += 1
        else:
            error = Decimal(0)
        model_vols.append(ModelVol(strike=K, model_vol=model_vol, market_vol=market_vol, error=error))

    calibration_error = sqrt(total_sq / matched, cfg.kernel) if matched else Decimal(0)

    warnings = []
    if not state.converged:
        warnings.append(
            f"Calibration stopped at the iteration cap ({cfg.max_iterations}) without "
            f"meeting the convergence threshold; RMS error {calibration_error}"
        )
        logger.warning(
            "SABR calibration hit iteration cap %d (F=%s, T=%s, rms=%s)",
            cfg.max_iterations, F, T, calibration_error,
        )
    for name in sorted(state.boundary_hits):
        warnings.append(f"{name} was clamped to its admissible bound during calibration")
    if state.boundary_hits:
        logger.warning("SABR calibration clamped parameters: %s", sorted(state.boundary_hits))
    if matched == 0:
        warnings.append("No target strike matched a market strike; calibration_error is 0")

    result = CalibrationResult(
        alpha=state.alpha,
        beta=beta,
        rho=state.rho,
        nu=state.nu,
        calibration_error=calibration_error,
        model_vols=model_vols,
        atm_vol=atm_vol,
        skew=model.skew(F, T, params),
        backbone=model.backbone(F, T, params),
        convergence_iterations=state.iteration,
        converged=state.converged,
        boundary_hits=tuple(sorted(state.boundary_hits)),
    )
    return result, warnings


def calibrate_sabr(
    inp: CalibrationInput,
    config: Optional[CalibrationConfig] = None
) -> ComputationOutput:
    """
    Calibrate SABR (alpha, rho, nu) to a single-expiry smile.

    Args:
        inp: Calibration inputs
        config: Optional tuning (DEFAULT_CONFIG when omitted)

    Returns:
        ComputationOutput wrapping a CalibrationResult

    Raises:
        InvalidInputError, InsufficientDataError: On invalid inputs
    """
    start = time.perf_counter_ns()
    cfg = config or DEFAULT_CONFIG
    validate_input(inp)

    with localcontext() as ctx:
        ctx.prec = cfg.precision
        result, warnings = _run_calibration(inp, cfg)

    elapsed_us = (time.perf_counter_ns() - start) // 1000
    logger.info(
        "SABR calibrated in %d iterations (converged=%s): alpha=%s rho=%s nu=%s rms=%s",
        result.convergence_iterations, result.converged,
        result.alpha, result.rho, result.nu, result.calibration_error,
    )

    assumptions = {
        "model": "SABR (Hagan 2002)",
        "forward_price": str(inp.forward_price),
        "expiry": str(inp.expiry),
        "beta": str(inp.beta),
        "calibration_method": "Levenberg-Marquardt",
        "max_iterations": cfg.max_iterations,
    }
    return with_metadata(METHODOLOGY, assumptions, warnings, elapsed_us, result, cfg.precision)


class SabrCalibrator:
    """
    Calibrator for SABR parameters from market vol quotes.

    1. Fix beta (from market convention or historical analysis)
    2. Seed alpha from the average quoted vol, rho and nu from priors
    3. Fit alpha, rho and nu jointly by Levenberg-Marquardt
    """

    def __init__(
        self,
        beta=Decimal("0.5"),
        config: Optional[CalibrationConfig] = None
    ):
        """
        Initialize calibrator.

        Args:
            beta: Fixed CEV exponent (typically 0, 0.5, or 1)
            config: Calibration tuning
        """
        self.beta = _coerce("beta", beta)
        if not 0 <= self.beta <= 1:
            raise InvalidInputError("beta", f"must be in [0, 1], got {self.beta}")

        self.config = config or DEFAULT_CONFIG
        self.model = SabrModel(self.config)

    def calibrate(
        self,
        market_vols: Sequence,
        F,
        T,
        initial_alpha=None,
        initial_rho=None,
        initial_nu=None,
        target_strikes: Optional[Sequence] = None
    ) -> ComputationOutput:
        """
        Calibrate to a list of points and return the full envelope.

        Args:
            market_vols: VolatilityPoints, dicts or (strike, vol) pairs
            F: Forward
            T: Time to expiry in years
            initial_alpha, initial_rho, initial_nu: Optional seeds
            target_strikes: Strikes to report model vols at

        Returns:
            ComputationOutput wrapping a CalibrationResult
        """
        inp = CalibrationInput(
            forward_price=F,
            expiry=T,
            market_vols=list(market_vols),
            beta=self.beta,
            initial_alpha=initial_alpha,
            initial_rho=initial_rho,
            initial_nu=initial_nu,
            target_strikes=None if target_strikes is None else list(target_strikes),
        )
        return calibrate_sabr(inp, self.config)

    def fit(
        self,
        quotes_df: pd.DataFrame,
        F,
        T,
        initial_alpha=None,
        initial_rho=None,
        initial_nu=None,
        target_strikes: Optional[Sequence] = None
    ) -> CalibrationResult:
        """
        Fit SABR parameters to a quotes DataFrame.

        Args:
            quotes_df: DataFrame with columns [strike, vol] (or implied_vol)
            F: Forward
            T: Time to expiry in years

        Returns:
            CalibrationResult with fitted parameters
        """
        points = points_from_frame(quotes_df)
        output = self.calibrate(
            points, F, T,
            initial_alpha=initial_alpha,
            initial_rho=initial_rho,
            initial_nu=initial_nu,
            target_strikes=target_strikes,
        )
        return output.result

    def fit_error(
        self,
        params: SabrParams,
        quotes_df: pd.DataFrame,
        F,
        T
    ) -> Decimal:
        """
        Sum of squared vol differences for given parameters.

        Args:
            params: SABR parameters to evaluate (params.beta is used as is)
            quotes_df: Market quotes
            F: Forward
            T: Time to expiry

        Returns:
            Sum of (market - model)^2
        """
        points = points_from_frame(quotes_df)
        F = _coerce("F", F)
        T = _coerce("T", T)
        with localcontext() as ctx:
            ctx.prec = self.config.precision
            residuals = model_residuals(
                F, T, params.beta, points, (params.alpha, params.rho, params.nu), self.config
            )
            return sum_of_squares(residuals)


__all__ = [
    "METHODOLOGY",
    "CalibrationInput",
    "ModelVol",
    "CalibrationResult",
    "validate_input",
    "seed_parameters",
    "calibrate_sabr",
    "SabrCalibrator",
]
