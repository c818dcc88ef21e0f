"""
Tests for calibration configuration.
"""

from decimal import Decimal

import pytest

from sabrlib.config import DEFAULT_CONFIG, CalibrationConfig, KernelConfig


class TestKernelConfig:
    """Tests for KernelConfig."""

    def test_defaults(self):
        cfg = KernelConfig()
        assert cfg.taylor_terms == 40
        assert cfg.ln_newton_iterations == 40
        assert cfg.sqrt_newton_iterations == 25

    def test_rejects_zero_iterations(self):
        with pytest.raises(ValueError):
            KernelConfig(taylor_terms=0)

    def test_tolerance_coerced(self):
        assert KernelConfig(tolerance="1e-20").tolerance == Decimal("1e-20")


class TestCalibrationConfig:
    """Tests for CalibrationConfig."""

    def test_defaults(self):
        assert DEFAULT_CONFIG.max_iterations == 50
        assert DEFAULT_CONFIG.convergence_threshold == Decimal("1e-9")
        assert DEFAULT_CONFIG.initial_damping == Decimal("0.01")
        assert DEFAULT_CONFIG.rho_bound == Decimal("0.999")
        assert DEFAULT_CONFIG.precision == 28

    def test_frozen(self):
        with pytest.raises(AttributeError):
            DEFAULT_CONFIG.max_iterations = 10

    def test_floats_coerced(self):
        cfg = CalibrationConfig(jacobian_bump=0.002)
        assert cfg.jacobian_bump == Decimal("0.002")

    @pytest.mark.parametrize("kwargs", [
        dict(max_iterations=0),
        dict(precision=5),
        dict(min_damping=Decimal("0.1")),
        dict(rho_bound=Decimal(1)),
        dict(jacobian_bump=Decimal(0)),
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            CalibrationConfig(**kwargs)

    def test_dict_round_trip(self):
        cfg = CalibrationConfig(max_iterations=20, kernel=KernelConfig(taylor_terms=30))
        again = CalibrationConfig.from_dict(cfg.to_dict())
        assert again == cfg
        assert again.kernel.taylor_terms == 30

    def test_from_dict_partial(self):
        cfg = CalibrationConfig.from_dict({"max_iterations": 5, "vol_floor": "0.002"})
        assert cfg.max_iterations == 5
        assert cfg.vol_floor == Decimal("0.002")
        assert cfg.min_alpha == DEFAULT_CONFIG.min_alpha

    def test_from_dict_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown configuration"):
            CalibrationConfig.from_dict({"max_iters": 5})
