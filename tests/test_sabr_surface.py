"""
Tests for the per-expiry SABR surface.
"""

import logging
from decimal import Decimal

import pandas as pd
import pytest

from sabrlib.config import CalibrationConfig
from sabrlib.errors import InvalidInputError
from sabrlib.vol.sabr import SabrModel, SabrParams
from sabrlib.vol.sabr_surface import SabrSliceParams, SabrSurfaceState, build_sabr_surface

D = Decimal

FAST = CalibrationConfig(max_iterations=5)


def make_slice(expiry, forward="100"):
    return SabrSliceParams(
        expiry=D(expiry), forward=D(forward),
        alpha=D(2), beta=D("0.5"), rho=D("-0.3"), nu=D("0.4"),
    )


@pytest.fixture
def surface():
    return SabrSurfaceState(slices={D("0.5"): make_slice("0.5"), D(2): make_slice("2")})


@pytest.fixture
def quotes_df():
    rows = []
    smiles = {
        0.5: [(90, 0.23), (100, 0.20), (110, 0.21)],
        1.0: [(80, 0.30), (90, 0.24), (100, 0.20), (110, 0.22), (120, 0.27)],
        2.0: [(100, 0.21)],
    }
    for expiry, quotes in smiles.items():
        for strike, vol in quotes:
            rows.append({"expiry": expiry, "strike": strike, "vol": vol})
    return pd.DataFrame(rows)


class TestSabrSurfaceState:
    """Tests for slice lookup."""

    def test_exact_slice(self, surface):
        assert surface.get_slice(0.5).expiry == D("0.5")

    def test_nearest_fallback(self, surface):
        params = surface.get_slice(1.5)
        assert params.expiry == D(2)
        assert params.diagnostics["fallback_from"] == [{"requested": "1.5", "used": "2"}]

    def test_no_fallback(self, surface):
        assert surface.get_slice(1, allow_fallback=False) is None

    def test_other_policy(self, surface):
        surface.missing_slice_policy = "none"
        assert surface.get_slice(1) is None

    def test_empty_surface(self):
        state = SabrSurfaceState(slices={})
        assert state.get_slice(1) is None
        with pytest.raises(KeyError):
            state.implied_vol(1, 100)

    def test_implied_vol(self, surface):
        expected = SabrModel().implied_vol(
            D(100), D(90), D(2), SabrParams(alpha=2, beta=0.5, rho=-0.3, nu=0.4)
        )
        assert surface.implied_vol(2, 90) == expected

    def test_diagnostics_table(self, surface):
        table = surface.diagnostics_table()
        assert set(table) == {D("0.5"), D(2)}
        assert table[D(2)]["alpha"] == D(2)

    def test_to_frame_sorted(self, surface):
        df = surface.to_frame()
        assert list(df["expiry"]) == [D("0.5"), D(2)]


class TestBuildSabrSurface:
    """Tests for surface calibration."""

    def test_slices_built(self, quotes_df, caplog):
        with caplog.at_level(logging.WARNING, logger="sabrlib.vol.sabr_surface"):
            state = build_sabr_surface(
                quotes_df, forwards={0.5: 100, 1.0: 100, 2.0: 100}, config=FAST
            )
        # 2.0 has a single quote and is skipped
        assert set(state.slices) == {D("0.5"), D("1.0")}
        assert any("Skipping expiry 2.0" in r.getMessage() for r in caplog.records)
        assert state.convention["min_quotes_per_slice"] == 3

    def test_diagnostics(self, quotes_df):
        state = build_sabr_surface(quotes_df, forwards={1.0: 100}, config=FAST)
        diag = state.get_slice(1).diagnostics
        assert diag["n_quotes"] == 5
        assert diag["iterations"] <= 5
        assert diag["max_abs_error"] >= 0

    def test_missing_forward_skipped(self, quotes_df):
        state = build_sabr_surface(quotes_df, forwards={1.0: 100}, config=FAST)
        assert list(state.slices) == [D("1.0")]

    def test_forward_column(self, quotes_df):
        quotes_df["forward"] = 100
        state = build_sabr_surface(quotes_df, min_quotes_per_slice=1, config=FAST)
        assert len(state.slices) == 3
        assert state.get_slice(2).forward == D(100)

    def test_requires_expiry_column(self):
        with pytest.raises(InvalidInputError):
            build_sabr_surface(pd.DataFrame({"strike": [100], "vol": [0.2]}))
