"""
Tests for Decimal linear solves and OLS regression.
"""

from decimal import Decimal

import pytest

from sabrlib.errors import InsufficientDataError, InvalidInputError
from sabrlib.math.linalg import solve_3x3, solve_linear_system
from sabrlib.math.regression import linear_regression

D = Decimal


def matvec(a, x):
    return [sum((a[i][j] * x[j] for j in range(len(x))), D(0)) for i in range(len(a))]


class TestSolve3x3:
    """Tests for the 3x3 pivoted elimination."""

    def test_identity(self):
        identity = [[D(1), D(0), D(0)], [D(0), D(1), D(0)], [D(0), D(0), D(1)]]
        b = [D(3), D(-7), D("0.5")]
        assert solve_3x3(identity, b) == b

    def test_nontrivial_system(self):
        """Requires a row swap: the (1,1) entry is zero after elimination."""
        a = [[D(2), D(1), D(0)], [D(1), D(0), D(3)], [D(0), D(1), D(2)]]
        b = [D(5), D(7), D(4)]
        x = solve_3x3(a, b)
        assert x == [D("2.125"), D("0.75"), D("1.625")]

    def test_residual_small(self):
        a = [[D(4), D(-2), D(1)], [D(-2), D(4), D(-2)], [D(1), D(-2), D(4)]]
        b = [D(11), D(-16), D(17)]
        x = solve_3x3(a, b)
        for lhs, rhs in zip(matvec(a, x), b):
            assert abs(lhs - rhs) < D("1e-20")

    def test_inputs_not_modified(self):
        a = [[D(2), D(1), D(0)], [D(1), D(0), D(3)], [D(0), D(1), D(2)]]
        b = [D(5), D(7), D(4)]
        solve_3x3(a, b)
        assert a[1] == [D(1), D(0), D(3)]
        assert b == [D(5), D(7), D(4)]

    def test_singular_direction_skipped(self):
        """A zero column contributes a zero component instead of raising."""
        a = [[D(1), D(0), D(0)], [D(0), D(0), D(0)], [D(0), D(0), D(2)]]
        b = [D(1), D(0), D(4)]
        assert solve_3x3(a, b) == [D(1), D(0), D(2)]

    def test_wrong_length(self):
        with pytest.raises(ValueError):
            solve_3x3([[D(1), D(0)], [D(0), D(1)]], [D(1), D(2)])


class TestSolveLinearSystem:
    """Tests for the general n x n solver."""

    def test_two_by_two(self):
        a = [[D(3), D(2)], [D(1), D(2)]]
        b = [D(5), D(5)]
        x = solve_linear_system(a, b)
        assert abs(x[0] - D(0)) < D("1e-25")
        assert abs(x[1] - D("2.5")) < D("1e-25")

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            solve_linear_system([[D(1), D(2)]], [D(1), D(2)])


class TestLinearRegression:
    """Tests for single-regressor OLS."""

    def test_perfect_fit(self):
        result = linear_regression([1, 2, 3, 4], [3, 5, 7, 9])
        assert result.slope == D(2)
        assert result.intercept == D(1)
        assert result.r_squared == D(1)
        assert result.n_obs == 4
        assert result.predict(10) == D(21)

    def test_noisy_fit(self):
        result = linear_regression([1, 2, 3], [1, 3, 2])
        assert result.slope == D("0.5")
        assert result.intercept == D(1)
        assert result.r_squared == D("0.25")

    def test_constant_x(self):
        result = linear_regression([2, 2, 2], [1, 2, 3])
        assert result.slope == D(0)
        assert result.intercept == D(2)
        assert result.r_squared == D(0)

    def test_constant_y(self):
        result = linear_regression([1, 2, 3], [5, 5, 5])
        assert result.slope == D(0)
        assert result.r_squared == D(0)

    def test_length_mismatch(self):
        with pytest.raises(InvalidInputError) as exc:
            linear_regression([1, 2, 3], [1, 2])
        assert exc.value.field == "y"

    def test_too_few_observations(self):
        with pytest.raises(InsufficientDataError):
            linear_regression([1], [2])

    def test_to_dict(self):
        d = linear_regression([1, 2], [2, 4]).to_dict()
        assert D(d["slope"]) == D(2)
        assert d["n_obs"] == 2
