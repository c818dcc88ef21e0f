"""
Levenberg-Marquardt fit of SABR (alpha, rho, nu) with beta held fixed.

Each iteration:
1. Residuals r_i = market_i - model_i and their sum of squares S
2. Central-difference Jacobian of the Hagan vol w.r.t. (alpha, rho, nu)
3. Normal equations (J'J + lambda I) delta = J'r, solved by pivoted elimination
4. Accept the trial point if it lowers S (lambda shrinks toward Gauss-Newton),
   otherwise keep the old point (lambda grows toward gradient descent)
5. Clamp alpha, nu to their floors and rho inside (-1, 1)

Terminates on |delta|^2 below the convergence threshold or at the iteration
cap; it never raises on a poor fit.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import List, Optional, Sequence, Set, Tuple

from ..config import CalibrationConfig, DEFAULT_CONFIG
from ..math.linalg import solve_3x3
from .quotes import VolatilityPoint
from .sabr import hagan_black_vol

logger = logging.getLogger(__name__)

PARAM_NAMES = ("alpha", "rho", "nu")

Params3 = Tuple[Decimal, Decimal, Decimal]


@dataclass
class OptimizerState:
    """
    Transient state of one calibration run.

    Attributes:
        alpha: Current alpha
        rho: Current rho
        nu: Current nu
        damping: Current Levenberg-Marquardt lambda
        iteration: Iterations performed so far
        converged: True once the step norm fell below the threshold
        step_norm_sq: Squared norm of the last solved step
        sum_sq: Sum of squared residuals at the current point
        boundary_hits: Parameters that were clamped at least once
    """
    alpha: Decimal
    rho: Decimal
    nu: Decimal
    damping: Decimal
    iteration: int = 0
    converged: bool = False
    step_norm_sq: Optional[Decimal] = None
    sum_sq: Optional[Decimal] = None
    boundary_hits: Set[str] = field(default_factory=set)

    @property
    def params(self) -> Params3:
        return (self.alpha, self.rho, self.nu)


def model_residuals(
    F: Decimal,
    T: Decimal,
    beta: Decimal,
    points: Sequence[VolatilityPoint],
    params: Params3,
    config: CalibrationConfig
) -> List[Decimal]:
    """Market minus model vol at each point."""
    alpha, rho, nu = params
    return [
        p.implied_vol - hagan_black_vol(F, p.strike, T, alpha, beta, rho, nu, config)
        for p in points
    ]


def sum_of_squares(residuals: Sequence[Decimal]) -> Decimal:
    total = Decimal(0)
    for r in residuals:
        total += r * r
    return total


def sabr_jacobian(
    F: Decimal,
    T: Decimal,
    beta: Decimal,
    points: Sequence[VolatilityPoint],
    params: Params3,
    config: Optional[CalibrationConfig] = None
) -> List[List[Decimal]]:
    """
    Central finite-difference gradients of the Hagan vol.

    Args:
        F: Forward
        T: Expiry in years
        beta: Fixed beta
        points: Market points
        params: (alpha, rho, nu)
        config: Supplies the bump size

    Returns:
        One [d/dalpha, d/drho, d/dnu] row per market point
    """
    cfg = config or DEFAULT_CONFIG
    bump = cfg.jacobian_bump
    two_bump = bump * 2

    jacobian = []
    for p in points:
        grad = []
        for j in range(3):
            up = list(params)
            up[j] += bump
            dn = list(params)
            dn[j] -= bump
            vol_up = hagan_black_vol(F, p.strike, T, up[0], beta, up[1], up[2], cfg)
            vol_dn = hagan_black_vol(F, p.strike, T, dn[0], beta, dn[1], dn[2], cfg)
            grad.append((vol_up - vol_dn) / two_bump)
        jacobian.append(grad)
    return jacobian


def normal_equations(
    jacobian: Sequence[Sequence[Decimal]],
    residuals: Sequence[Decimal]
) -> Tuple[List[List[Decimal]], List[Decimal]]:
    """Accumulate J'J (3x3) and J'r (3)."""
    zero = Decimal(0)
    jtj = [[zero] * 3 for _ in range(3)]
    jtr = [zero] * 3
    for grad, r in zip(jacobian, residuals):
        for j1 in range(3):
            jtr[j1] += grad[j1] * r
            for j2 in range(3):
                jtj[j1][j2] += grad[j1] * grad[j2]
    return jtj, jtr


def clamp_parameters(
    params: Params3,
    config: CalibrationConfig
) -> Tuple[Params3, Set[str]]:
    """
    Enforce alpha >= min_alpha, nu >= min_nu, |rho| <= rho_bound.

    Returns:
        (clamped params, names of parameters that were moved)
    """
    alpha, rho, nu = params
    hits = set()
    if alpha < config.min_alpha:
        alpha = config.min_alpha
        hits.add("alpha")
    if rho < -config.rho_bound:
        rho = -config.rho_bound
        hits.add("rho")
    elif rho > config.rho_bound:
        rho = config.rho_bound
        hits.add("rho")
    if nu < config.min_nu:
        nu = config.min_nu
        hits.add("nu")
    return (alpha, rho, nu), hits


def levenberg_marquardt(
    F: Decimal,
    T: Decimal,
    beta: Decimal,
    points: Sequence[VolatilityPoint],
    initial: Params3,
    config: Optional[CalibrationConfig] = None
) -> OptimizerState:
    """
    Fit (alpha, rho, nu) to the market points.

    Args:
        F: Forward
        T: Expiry in years
        beta: Fixed beta
        points: Market (strike, vol) points
        initial: Seed (alpha, rho, nu)
        config: Damping, thresholds and iteration cap

    Returns:
        Final OptimizerState
    """
    cfg = config or DEFAULT_CONFIG
    (alpha, rho, nu), hits = clamp_parameters(initial, cfg)
    state = OptimizerState(alpha=alpha, rho=rho, nu=nu, damping=cfg.initial_damping)
    state.boundary_hits.update(hits)

    for iteration in range(1, cfg.max_iterations + 1):
        state.iteration = iteration

        residuals = model_residuals(F, T, beta, points, state.params, cfg)
        total_sq = sum_of_squares(residuals)

        jacobian = sabr_jacobian(F, T, beta, points, state.params, cfg)
        jtj, jtr = normal_equations(jacobian, residuals)
        for j in range(3):
            jtj[j][j] += state.damping

        delta = solve_3x3(jtj, jtr)
        trial = (state.alpha + delta[0], state.rho + delta[1], state.nu + delta[2])
        trial_sq = sum_of_squares(model_residuals(F, T, beta, points, trial, cfg))

        if trial_sq < total_sq:
            candidate = trial
            state.sum_sq = trial_sq
            state.damping = max(state.damping * cfg.damping_decrease, cfg.min_damping)
            accepted = True
        else:
            candidate = state.params
            state.sum_sq = total_sq
            state.damping = min(state.damping * cfg.damping_increase, cfg.max_damping)
            accepted = False

        (state.alpha, state.rho, state.nu), hits = clamp_parameters(candidate, cfg)
        state.boundary_hits.update(hits)

        state.step_norm_sq = delta[0] * delta[0] + delta[1] * delta[1] + delta[2] * delta[2]
        logger.debug(
            "LM iter %d: S=%s trial=%s accepted=%s lambda=%s |delta|^2=%s",
            iteration, total_sq, trial_sq, accepted, state.damping, state.step_norm_sq,
        )

        if state.step_norm_sq < cfg.convergence_threshold:
            state.converged = True
            break

    return state


__all__ = [
    "OptimizerState",
    "PARAM_NAMES",
    "model_residuals",
    "sum_of_squares",
    "sabr_jacobian",
    "normal_equations",
    "clamp_parameters",
    "levenberg_marquardt",
]
