#!/usr/bin/env python3
"""
SABR Calibration Demo Script

Demonstrates the complete SABR workflow:
1. Evaluate the Hagan smile for known parameters
2. Calibrate SABR to a single-expiry market smile
3. Inspect fit quality, skew and backbone
4. Build a per-expiry SABR surface from a quotes table
"""

import logging
import sys
from decimal import Decimal
from pathlib import Path

import pandas as pd

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from sabrlib import (
    CalibrationConfig,
    CalibrationInput,
    SabrCalibrator,
    SabrModel,
    SabrParams,
    VolatilityPoint,
    build_sabr_surface,
    calibrate_sabr,
)


def print_section(title: str):
    """Print section header."""
    print(f"\n{'='*60}")
    print(f" {title}")
    print('='*60)


def demo_sabr_basics():
    """Demonstrate basic SABR model usage."""
    print_section("1. SABR Model Basics")

    params = SabrParams(alpha=Decimal("2"), beta=Decimal("0.5"), rho=Decimal("-0.3"), nu=Decimal("0.4"))
    F = Decimal(100)
    T = Decimal(1)

    print("SABR Parameters:")
    print(f"  alpha = {params.alpha}")
    print(f"  beta  = {params.beta}")
    print(f"  rho   = {params.rho}")
    print(f"  nu    = {params.nu}")

    model = SabrModel()
    smile = model.smile_at_strikes(F, range(80, 125, 10), T, params)

    print(f"\nSABR Smile (F = {F}, T = {T}Y):")
    print("-" * 40)
    print(f"{'Strike':>10} {'Black Vol':>14}")
    for K, vol in smile.items():
        print(f"{K:>10} {float(vol):>13.4%}")

    print(f"\n  ATM vol  = {float(model.atm_vol(F, T, params)):.4%}")
    print(f"  Skew     = {float(model.skew(F, T, params)):.6f} per unit strike")
    print(f"  Backbone = {float(model.backbone(F, T, params)):.6f}")


def demo_calibration():
    """Calibrate to a market smile."""
    print_section("2. Calibration to Market Smile")

    market = [
        (80, "0.30"), (85, "0.27"), (90, "0.24"), (95, "0.21"), (100, "0.20"),
        (105, "0.205"), (110, "0.22"), (115, "0.24"), (120, "0.27"),
    ]
    inp = CalibrationInput(
        forward_price=Decimal(100),
        expiry=Decimal(1),
        market_vols=[VolatilityPoint(Decimal(k), Decimal(v)) for k, v in market],
        beta=Decimal("0.5"),
    )
    output = calibrate_sabr(inp)
    result = output.result

    print(f"Methodology: {output.methodology}")
    print(f"Iterations:  {result.convergence_iterations} (converged={result.converged})")
    print(f"alpha = {float(result.alpha):.6f}")
    print(f"rho   = {float(result.rho):.6f}")
    print(f"nu    = {float(result.nu):.6f}")
    print(f"RMS error = {float(result.calibration_error) * 10000:.2f} vol bps")

    print(f"\n{'Strike':>10} {'Market':>10} {'Model':>10} {'Error (bp)':>12}")
    print("-" * 46)
    for mv in result.model_vols:
        print(
            f"{mv.strike:>10} {float(mv.market_vol):>10.4f} "
            f"{float(mv.model_vol):>10.4f} {float(mv.error) * 10000:>12.2f}"
        )

    for warning in output.warnings:
        print(f"WARNING: {warning}")

    meta = output.metadata
    print(f"\nsabrlib {meta.version}, {meta.precision}, {meta.computation_time_us} us")


def demo_dataframe_fit():
    """Fit from a quotes DataFrame with a custom config."""
    print_section("3. DataFrame Fit with Custom Config")

    quotes = pd.DataFrame({
        "strike": [80, 90, 100, 110, 120],
        "vol": [0.30, 0.24, 0.20, 0.22, 0.27],
    })
    config = CalibrationConfig(max_iterations=25)
    calibrator = SabrCalibrator(beta=Decimal("0.5"), config=config)
    result = calibrator.fit(quotes, F=100, T=1)

    print(result.to_frame().to_string())
    print(f"\nSum of squared errors: {float(calibrator.fit_error(result.params, quotes, 100, 1)):.3e}")


def demo_surface():
    """Calibrate a surface across expiries."""
    print_section("4. SABR Surface")

    rows = []
    for expiry, shift in [(0.5, 0.02), (1.0, 0.0), (2.0, -0.01)]:
        for strike, vol in [(80, 0.30), (90, 0.24), (100, 0.20), (110, 0.22), (120, 0.27)]:
            rows.append({"expiry": expiry, "strike": strike, "vol": vol + shift, "forward": 100})
    quotes = pd.DataFrame(rows)

    surface = build_sabr_surface(quotes, beta=Decimal("0.5"), config=CalibrationConfig(max_iterations=20))
    print(surface.to_frame().to_string(index=False))

    vol = surface.implied_vol(Decimal("1.5"), Decimal(95))
    print(f"\n1.5Y / K=95 vol (nearest slice): {float(vol):.4%}")


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    print("\n" + "="*60)
    print(" SABR CALIBRATION DEMO")
    print("="*60)

    demo_sabr_basics()
    demo_calibration()
    demo_dataframe_fit()
    demo_surface()

    print("\nDemo complete.")


if __name__ == "__main__":
    main()
