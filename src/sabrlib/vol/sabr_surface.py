"""
SABR surface state and helpers.

Calibrates one SABR slice per expiry from a long-format quotes table and
keeps the fitted parameters together with per-slice diagnostics for
downstream reporting.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

import numpy as np
import pandas as pd

from ..config import CalibrationConfig, DEFAULT_CONFIG
from ..errors import InvalidInputError
from ..math.decimal_math import to_decimal
from .calibration import SabrCalibrator
from .sabr import SabrParams, SabrModel

logger = logging.getLogger(__name__)


@dataclass
class SabrSliceParams:
    """SABR parameters and diagnostics for a single expiry."""

    expiry: Decimal
    forward: Decimal
    alpha: Decimal
    beta: Decimal
    rho: Decimal
    nu: Decimal
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    def to_sabr_params(self) -> SabrParams:
        """Convert to SabrParams used by the Hagan formula."""
        return SabrParams(alpha=self.alpha, beta=self.beta, rho=self.rho, nu=self.nu)


@dataclass
class SabrSurfaceState:
    """
    SABR surface calibrated per expiry.

    Attributes:
        slices: Mapping of expiry (years) -> SabrSliceParams
        convention: Metadata such as beta policy and minimum quote count
        missing_slice_policy: "nearest" falls back to the closest expiry
    """

    slices: Dict[Decimal, SabrSliceParams]
    convention: Dict[str, Any] = field(default_factory=dict)
    missing_slice_policy: str = "nearest"

    def get_slice(
        self,
        expiry,
        allow_fallback: bool = True,
    ) -> Optional[SabrSliceParams]:
        """
        Retrieve the slice for an expiry.

        If no exact slice exists and allow_fallback=True, the nearest expiry
        is used and the substitution is recorded in its diagnostics.
        """
        key = to_decimal(expiry)
        if key in self.slices:
            return self.slices[key]

        if not allow_fallback or not self.slices:
            return None
        if self.missing_slice_policy != "nearest":
            return None

        best_key = min(self.slices, key=lambda k: abs(k - key))
        params = self.slices[best_key]
        params.diagnostics.setdefault("fallback_from", []).append(
            {"requested": str(key), "used": str(best_key)}
        )
        return params

    def implied_vol(self, expiry, strike, config: Optional[CalibrationConfig] = None) -> Decimal:
        """
        Model Black vol at (expiry, strike) from the matching slice.

        Raises:
            KeyError: If the surface has no usable slice
        """
        slice_params = self.get_slice(expiry)
        if slice_params is None:
            raise KeyError(f"No SABR slice available for expiry {expiry}")
        model = SabrModel(config)
        return model.implied_vol(
            slice_params.forward, to_decimal(strike), slice_params.expiry,
            slice_params.to_sabr_params(),
        )

    def diagnostics_table(self) -> Dict[Decimal, Dict[str, Any]]:
        """
        Return diagnostics keyed by expiry for downstream reporting.
        """
        table: Dict[Decimal, Dict[str, Any]] = {}
        for expiry, params in self.slices.items():
            table[expiry] = {
                "forward": params.forward,
                "alpha": params.alpha,
                "beta": params.beta,
                "rho": params.rho,
                "nu": params.nu,
                **params.diagnostics,
            }
        return table

    def to_frame(self) -> pd.DataFrame:
        """Slice parameters as a DataFrame sorted by expiry."""
        rows = []
        for expiry in sorted(self.slices):
            p = self.slices[expiry]
            rows.append({
                "expiry": expiry,
                "forward": p.forward,
                "alpha": p.alpha,
                "beta": p.beta,
                "rho": p.rho,
                "nu": p.nu,
                "rmse": p.diagnostics.get("rmse"),
                "converged": p.diagnostics.get("converged"),
            })
        return pd.DataFrame(rows, columns=[
            "expiry", "forward", "alpha", "beta", "rho", "nu", "rmse", "converged"
        ])


def _lookup_forward(forwards: Optional[Mapping], expiry, group: pd.DataFrame) -> Optional[Decimal]:
    if forwards:
        if expiry in forwards:
            return to_decimal(forwards[expiry])
        target = to_decimal(expiry)
        for k, v in forwards.items():
            if to_decimal(k) == target:
                return to_decimal(v)
    if "forward" in group.columns:
        return to_decimal(group["forward"].iloc[0])
    return None


def build_sabr_surface(
    quotes_df: pd.DataFrame,
    forwards: Optional[Mapping] = None,
    beta=Decimal("0.5"),
    min_quotes_per_slice: int = 3,
    config: Optional[CalibrationConfig] = None,
) -> SabrSurfaceState:
    """
    Calibrate SABR for multiple expiries.

    Args:
        quotes_df: DataFrame with columns [expiry, strike, vol] and optionally forward
        forwards: Dict of {expiry: forward}; overrides a forward column
        beta: Fixed beta for all slices
        min_quotes_per_slice: Slices with fewer quotes are skipped
        config: Calibration tuning shared by every slice

    Returns:
        SabrSurfaceState keyed by expiry in years
    """
    if "expiry" not in quotes_df.columns:
        raise InvalidInputError("quotes", "DataFrame must include an expiry column")

    cfg = config or DEFAULT_CONFIG
    calibrator = SabrCalibrator(beta=beta, config=cfg)
    slices: Dict[Decimal, SabrSliceParams] = {}

    for expiry, group in quotes_df.groupby("expiry"):
        if len(group) < min_quotes_per_slice:
            logger.warning(
                "Skipping expiry %s: %d quotes < minimum %d",
                expiry, len(group), min_quotes_per_slice,
            )
            continue

        F = _lookup_forward(forwards, expiry, group)
        if F is None:
            logger.warning("Skipping expiry %s: no forward supplied", expiry)
            continue

        T = to_decimal(expiry)
        quote_data = group.drop(columns=["expiry"])
        result = calibrator.fit(quote_data, F, T)

        errors = np.array([float(e) for e in result.vol_errors.values()])
        max_abs_error = float(np.max(np.abs(errors))) if len(errors) else 0.0

        slices[T] = SabrSliceParams(
            expiry=T,
            forward=F,
            alpha=result.alpha,
            beta=result.beta,
            rho=result.rho,
            nu=result.nu,
            diagnostics={
                "rmse": result.calibration_error,
                "max_abs_error": max_abs_error,
                "n_quotes": len(group),
                "iterations": result.convergence_iterations,
                "converged": result.converged,
                "boundary_hits": list(result.boundary_hits),
                "atm_vol": result.atm_vol,
                "skew": result.skew,
            },
        )

    logger.info("Calibrated SABR surface with %d slices", len(slices))
    return SabrSurfaceState(
        slices=slices,
        convention={
            "beta": str(calibrator.beta),
            "min_quotes_per_slice": min_quotes_per_slice,
            "vol_type": "LOGNORMAL",
        },
    )


__all__ = ["SabrSliceParams", "SabrSurfaceState", "build_sabr_surface"]
