"""
Tests for SABR volatility model.
"""

from decimal import Decimal

import pytest

from sabrlib.config import CalibrationConfig
from sabrlib.errors import InvalidInputError
from sabrlib.vol.sabr import (
    SabrParams,
    SabrModel,
    hagan_black_vol,
    hagan_atm_vol,
)

D = Decimal
F = D(100)
T = D(1)


@pytest.fixture
def skewed_params():
    return SabrParams(alpha=D(2), beta=D("0.5"), rho=D("-0.5"), nu=D("0.5"))


class TestSabrParams:
    """Tests for SabrParams dataclass."""

    def test_coerces_to_decimal(self):
        params = SabrParams(alpha=2, beta=0.5, rho="-0.3", nu=0.4)
        assert params.alpha == D(2)
        assert params.beta == D("0.5")
        assert params.rho == D("-0.3")
        assert params.nu == D("0.4")

    @pytest.mark.parametrize("field,kwargs", [
        ("alpha", dict(alpha=0, beta=0.5, rho=0, nu=0.4)),
        ("beta", dict(alpha=2, beta=1.5, rho=0, nu=0.4)),
        ("rho", dict(alpha=2, beta=0.5, rho=1, nu=0.4)),
        ("nu", dict(alpha=2, beta=0.5, rho=0, nu=-0.1)),
    ])
    def test_invalid_values(self, field, kwargs):
        with pytest.raises(InvalidInputError) as exc:
            SabrParams(**kwargs)
        assert exc.value.field == field

    def test_non_numeric(self):
        with pytest.raises(InvalidInputError) as exc:
            SabrParams(alpha="two", beta=0.5, rho=0, nu=0.4)
        assert exc.value.field == "alpha"

    def test_dict_round_trip(self, skewed_params):
        assert SabrParams.from_dict(skewed_params.to_dict()) == skewed_params


class TestHaganFormulas:
    """Tests for Hagan SABR approximation."""

    def test_atm_vol_positive(self):
        vol = hagan_atm_vol(F, T, D(2), D("0.5"), D("-0.3"), D("0.4"))
        assert vol > 0

    def test_atm_vol_reasonable(self):
        """ATM vol is roughly alpha / F^(1-beta)."""
        vol = hagan_atm_vol(F, T, D(2), D("0.5"), D("-0.3"), D("0.4"))
        assert D("0.15") < vol < D("0.25")

    def test_atm_branch_matches_closed_form(self):
        args = (D(2), D("0.5"), D("-0.3"), D("0.4"))
        assert hagan_black_vol(F, F, T, *args) == hagan_atm_vol(F, T, *args)

    @pytest.mark.parametrize("alpha,beta,rho,nu", [
        ("2", "0.5", "-0.3", "0.4"),
        ("0.2", "1", "0.4", "0.9"),
        ("25", "0", "-0.7", "0.2"),
        ("0.5", "0.7", "0", "1.5"),
    ])
    def test_atm_continuity(self, alpha, beta, rho, nu):
        """General branch just outside the ATM threshold agrees with the ATM form."""
        args = (D(alpha), D(beta), D(rho), D(nu))
        atm = hagan_atm_vol(F, T, *args)
        near = hagan_black_vol(F, F * D("1.0002"), T, *args)
        assert abs(near - atm) < D("0.001")

    def test_smile_sign_negative_rho(self, skewed_params):
        """Put wing above call wing for rho < 0."""
        p = skewed_params
        low = hagan_black_vol(F, D(80), T, p.alpha, p.beta, p.rho, p.nu)
        high = hagan_black_vol(F, D(120), T, p.alpha, p.beta, p.rho, p.nu)
        assert low > high

    def test_smile_has_curvature(self):
        """With rho = 0, both wings sit above ATM for beta = 1."""
        args = (D("0.2"), D(1), D(0), D("0.8"))
        atm = hagan_atm_vol(F, T, *args)
        assert hagan_black_vol(F, D(80), T, *args) > atm
        assert hagan_black_vol(F, D(120), T, *args) > atm

    def test_flat_smile_limit_lognormal(self):
        """nu -> 0 with beta = 1 collapses the smile to the ATM vol."""
        args = (D("0.2"), D(1), D(0), D("0.0001"))
        atm = hagan_atm_vol(F, T, *args)
        for K in (D(80), D(90), D(110), D(120)):
            vol = hagan_black_vol(F, K, T, *args)
            assert abs(vol - atm) / atm < D("0.01")

    def test_flat_smile_limit_beta_half(self):
        args = (D(2), D("0.5"), D(0), D("0.0001"))
        atm = hagan_atm_vol(F, T, *args)
        for K in (D(90), D(110)):
            assert abs(hagan_black_vol(F, K, T, *args) - atm) < D("0.01")

    def test_beta_zero(self):
        vol = hagan_black_vol(F, D(90), T, D(20), D(0), D("-0.2"), D("0.3"))
        assert D("0.1") < vol < D("0.4")

    def test_accepts_floats(self):
        vol = hagan_black_vol(100.0, 90.0, 1.0, 2.0, 0.5, -0.3, 0.4)
        assert isinstance(vol, Decimal)
        assert vol > 0

    def test_degenerate_inputs_return_floor(self):
        """rho beyond 1 (possible under Jacobian bumps) must not blow up."""
        cfg = CalibrationConfig()
        vol = hagan_black_vol(F, D(50), T, D("-0.5"), D("0.5"), D("1.0005"), D("0.4"), cfg)
        assert vol == cfg.vol_floor

    def test_custom_vol_floor(self):
        cfg = CalibrationConfig(vol_floor=D("0.005"))
        vol = hagan_atm_vol(F, T, D("-1"), D("0.5"), D(0), D("0.4"), cfg)
        assert vol == D("0.005")


class TestSabrModel:
    """Tests for SabrModel class."""

    def test_smile_at_strikes(self, skewed_params):
        model = SabrModel()
        smile = model.smile_at_strikes(F, [80, 100, 120], T, skewed_params)
        assert list(smile) == [D(80), D(100), D(120)]
        assert all(v > 0 for v in smile.values())
        assert smile[D(100)] == model.atm_vol(F, T, skewed_params)

    def test_skew_negative_for_negative_rho(self, skewed_params):
        assert SabrModel().skew(F, T, skewed_params) < 0

    def test_skew_finite_difference(self, skewed_params):
        model = SabrModel()
        up = model.implied_vol(F, D(101), T, skewed_params)
        dn = model.implied_vol(F, D(99), T, skewed_params)
        assert model.skew(F, T, skewed_params) == (up - dn) / D(2)

    def test_backbone_negative_for_beta_below_one(self):
        params = SabrParams(alpha=D(2), beta=D("0.5"), rho=D(0), nu=D("0.01"))
        assert SabrModel().backbone(F, T, params) < 0

    def test_backbone_flat_for_lognormal(self):
        params = SabrParams(alpha=D("0.2"), beta=D(1), rho=D(0), nu=D("0.3"))
        assert abs(SabrModel().backbone(F, T, params)) < D("1e-10")
