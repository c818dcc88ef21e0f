"""
Volatility module - SABR model and calibration.

Provides:
- SABR stochastic volatility model
- Hagan implied volatility approximation
- Levenberg-Marquardt calibration from market vol quotes
- Per-expiry SABR surface
"""

from .sabr import (
    SabrParams,
    SabrModel,
    hagan_black_vol,
    hagan_atm_vol,
)
from .quotes import VolatilityPoint, points_from_arrays, points_from_frame, points_to_frame
from .optimizer import OptimizerState, levenberg_marquardt, sabr_jacobian
from .calibration import (
    CalibrationInput,
    CalibrationResult,
    ModelVol,
    SabrCalibrator,
    calibrate_sabr,
    validate_input,
)
from .sabr_surface import SabrSurfaceState, SabrSliceParams, build_sabr_surface

__all__ = [
    "SabrParams",
    "SabrModel",
    "hagan_black_vol",
    "hagan_atm_vol",
    "VolatilityPoint",
    "points_from_arrays",
    "points_from_frame",
    "points_to_frame",
    "OptimizerState",
    "levenberg_marquardt",
    "sabr_jacobian",
    "CalibrationInput",
    "CalibrationResult",
    "ModelVol",
    "SabrCalibrator",
    "calibrate_sabr",
    "validate_input",
    "SabrSurfaceState",
    "SabrSliceParams",
    "build_sabr_surface",
]
