"""Tests for design parameter validation and the shared root finder."""

import math

import pytest

from pyclusterpower.power import (
    AmbiguousUnknownCountError,
    ClusterPowerError,
    DesignParameters,
    DomainViolationError,
    InvalidClusterCountError,
    RootBracketingError,
)
from pyclusterpower.power._common import _check_design_args, _solve_parameter


def _params(**overrides):
    base = dict(
        alpha=0.05, power=0.8, nclusters=20, nsubjects=10,
        cv=0.0, p1=0.1, p2=0.2, icc=0.05,
    )
    base.update(overrides)
    return DesignParameters(**base)


class TestDesignParameters:
    """Tests for unknown detection on DesignParameters."""

    def test_none_is_unspecified(self):
        assert _params(power=None).unspecified() == ["power"]

    def test_nan_is_unspecified(self):
        assert _params(icc=float("nan")).unspecified() == ["icc"]

    def test_canonical_order(self):
        p = _params(icc=None, alpha=None, p2=None)
        assert p.unspecified() == ["alpha", "p2", "icc"]

    def test_with_value_copies(self):
        p = _params(nclusters=None)
        q = p.with_value("nclusters", 12.5)
        assert q.nclusters == 12.5
        assert p.nclusters is None


class TestCheckDesignArgs:
    """Tests for validation order and error kinds."""

    def test_returns_unknown(self):
        assert _check_design_args(_params(p2=None)) == "p2"

    def test_nclusters_one_rejected(self):
        with pytest.raises(InvalidClusterCountError, match="greater than 1"):
            _check_design_args(_params(power=None, nclusters=1))

    def test_nclusters_checked_before_count(self):
        """Cluster count is validated before the number of unknowns."""
        with pytest.raises(InvalidClusterCountError):
            _check_design_args(_params(power=None, p1=None, nclusters=0.5))

    def test_no_unknown(self):
        with pytest.raises(AmbiguousUnknownCountError, match="got 0"):
            _check_design_args(_params())

    def test_two_unknowns(self):
        with pytest.raises(AmbiguousUnknownCountError, match="got 2"):
            _check_design_args(_params(power=None, nclusters=None))

    @pytest.mark.parametrize("name, value", [
        ("p1", 1.2),
        ("p2", 0.0),
        ("alpha", 1.0),
        ("power", -0.1),
        ("nsubjects", 0.0),
        ("cv", -0.5),
        ("icc", 1.0),
    ])
    def test_domain_violation(self, name, value):
        with pytest.raises(DomainViolationError, match=name):
            _check_design_args(_params(**{"nclusters": None, name: value}))

    def test_domain_check_can_be_disabled(self):
        p = _params(power=None, p1=1.2)
        assert _check_design_args(p, check_domain=False) == "power"

    def test_errors_are_value_errors(self):
        assert issubclass(ClusterPowerError, ValueError)
        assert issubclass(RootBracketingError, ClusterPowerError)


class TestSolveParameter:
    """Tests for Brent root finding with optional bracket extension."""

    def test_plain_bracket(self):
        root = _solve_parameter(lambda x: x ** 2, 4.0, (0.0, 10.0))
        assert root == pytest.approx(2.0, abs=1e-8)

    def test_no_sign_change(self):
        with pytest.raises(RootBracketingError) as excinfo:
            _solve_parameter(lambda x: x ** 2, -1.0, (0.0, 10.0))
        err = excinfo.value
        assert err.lower == 0.0
        assert err.upper == 10.0
        assert err.extend is None
        assert "[0, 10]" in str(err)

    def test_root_at_endpoint(self):
        assert _solve_parameter(lambda x: x, 0.0, (0.0, 1.0)) == 0.0

    def test_extend_up_moves_upper(self):
        """Increasing function whose root lies beyond the upper end."""
        root = _solve_parameter(lambda x: x, 50.0, (0.0, 1.0), extend="up")
        assert root == pytest.approx(50.0, abs=1e-8)

    def test_extend_up_moves_lower(self):
        """Increasing function whose root lies below the lower end."""
        root = _solve_parameter(lambda x: x, -5.0, (0.0, 10.0), extend="up")
        assert root == pytest.approx(-5.0, abs=1e-8)

    def test_extend_down_moves_upper(self):
        """Decreasing function whose root lies beyond the upper end."""
        root = _solve_parameter(lambda x: -x, -50.0, (0.0, 1.0), extend="down")
        assert root == pytest.approx(50.0, abs=1e-8)

    def test_extend_down_moves_lower(self):
        root = _solve_parameter(lambda x: -x, 3.0, (1.0, 10.0), extend="down")
        assert root == pytest.approx(-3.0, abs=1e-8)

    def test_extension_exhausted(self):
        """A bounded function never reaches an out-of-range target."""
        with pytest.raises(RootBracketingError, match="after 50 extensions") as excinfo:
            _solve_parameter(
                lambda x: 1.0 - math.exp(-x), 2.0, (0.0, 1.0), extend="up", maxiter=50,
            )
        assert excinfo.value.extend == "up"
        assert excinfo.value.upper > 1.0

    def test_nan_endpoint(self):
        with pytest.raises(RootBracketingError, match="NaN"):
            _solve_parameter(lambda x: math.nan, 0.5, (0.0, 1.0))

    def test_invalid_extend(self):
        with pytest.raises(ValueError, match="extend"):
            _solve_parameter(lambda x: x, 0.5, (0.0, 1.0), extend="sideways")
