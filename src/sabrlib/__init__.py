"""
SabrLib: SABR Stochastic Volatility Calibration in Decimal Arithmetic

A modular library for:
- Evaluating the Hagan et al. SABR Black volatility approximation
- Calibrating SABR (alpha, rho, nu) to a single-expiry smile
- Building per-expiry SABR surfaces from quote tables
- Decimal exp/ln/sqrt, small linear solves and OLS regression

All numerics run in ``decimal.Decimal`` so results are reproducible
bit-for-bit across platforms.
"""

__version__ = "0.1.0"

# Configuration & errors
from .config import CalibrationConfig, KernelConfig, DEFAULT_CONFIG
from .errors import SabrLibError, InvalidInputError, InsufficientDataError
from .envelope import ComputationOutput, ComputationMetadata, with_metadata

# Numeric kernel
from .math import (
    exp,
    ln,
    sqrt,
    pow_frac,
    solve_3x3,
    solve_linear_system,
    linear_regression,
    RegressionResult,
)

# Volatility (SABR)
from .vol import (
    SabrParams,
    SabrModel,
    hagan_black_vol,
    hagan_atm_vol,
    VolatilityPoint,
    points_from_frame,
    CalibrationInput,
    CalibrationResult,
    ModelVol,
    SabrCalibrator,
    calibrate_sabr,
    SabrSurfaceState,
    SabrSliceParams,
    build_sabr_surface,
)

__all__ = [
    # Configuration & errors
    "CalibrationConfig",
    "KernelConfig",
    "DEFAULT_CONFIG",
    "SabrLibError",
    "InvalidInputError",
    "InsufficientDataError",
    "ComputationOutput",
    "ComputationMetadata",
    "with_metadata",
    # Numeric kernel
    "exp",
    "ln",
    "sqrt",
    "pow_frac",
    "solve_3x3",
    "solve_linear_system",
    "linear_regression",
    "RegressionResult",
    # Volatility
    "SabrParams",
    "SabrModel",
    "hagan_black_vol",
    "hagan_atm_vol",
    "VolatilityPoint",
    "points_from_frame",
    "CalibrationInput",
    "CalibrationResult",
    "ModelVol",
    "SabrCalibrator",
    "calibrate_sabr",
    "SabrSurfaceState",
    "SabrSliceParams",
    "build_sabr_surface",
]
