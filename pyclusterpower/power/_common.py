"""Shared types, errors and root finding for cluster trial power calculations."""

from __future__ import annotations

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass, fields, replace

from scipy.optimize import brentq

logger = logging.getLogger(__name__)

PARAMETER_NAMES = ("alpha", "power", "nclusters", "nsubjects", "cv", "p1", "p2", "icc")

_VALID_EXTEND = (None, "up", "down")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ClusterPowerError(ValueError):
    """Base class for invalid cluster power problems."""


class InvalidClusterCountError(ClusterPowerError):
    """``nclusters`` was given and is not greater than 1."""


class AmbiguousUnknownCountError(ClusterPowerError):
    """Zero, or more than one, of the design parameters is unspecified."""


class DomainViolationError(ClusterPowerError):
    """A specified design parameter lies outside its domain."""


class RootBracketingError(ClusterPowerError):
    """No sign change of the residual could be bracketed.

    Usually means no value of the omitted parameter satisfies the power
    equation for the fixed ones, e.g. the requested power cannot be reached
    with any number of subjects per cluster.
    """

    def __init__(
        self,
        lower: float,
        upper: float,
        f_lower: float,
        f_upper: float,
        target: float,
        extend: str | None = None,
        reason: str = "no sign change",
    ) -> None:
        self.lower = lower
        self.upper = upper
        self.f_lower = f_lower
        self.f_upper = f_upper
        self.target = target
        self.extend = extend
        direction = f", extending {extend}" if extend else ""
        super().__init__(
            f"Cannot solve: {reason} on interval [{lower:.6g}, {upper:.6g}]{direction}; "
            f"residuals are {f_lower:.6g} and {f_upper:.6g} for target {target:.6f}. "
            f"No solution exists for the omitted parameter given the others."
        )


# ---------------------------------------------------------------------------
# Design parameters
# ---------------------------------------------------------------------------

def _is_unspecified(value: float | None) -> bool:
    """``None`` and NaN both mark a parameter as the one to solve for."""
    if value is None:
        return True
    return isinstance(value, float) and math.isnan(value)


@dataclass(frozen=True)
class DesignParameters:
    """The eight quantities of the power equation, one of them unspecified."""

    alpha: float | None = None
    power: float | None = None
    nclusters: float | None = None
    nsubjects: float | None = None
    cv: float | None = None
    p1: float | None = None
    p2: float | None = None
    icc: float | None = None

    def unspecified(self) -> list[str]:
        """Names of the unspecified parameters, in canonical order."""
        return [f.name for f in fields(self) if _is_unspecified(getattr(self, f.name))]

    def with_value(self, name: str, value: float) -> DesignParameters:
        return replace(self, **{name: value})


def _check_design_args(params: DesignParameters, *, check_domain: bool = True) -> str:
    """Validate design parameters. Return the name of the parameter to solve for.

    Rules
    -----
    - If provided, *nclusters* must be > 1.
    - Exactly one parameter must be ``None`` (or NaN).
    - With *check_domain*, every provided parameter must lie in its domain:
      alpha, power, p1, p2 in (0, 1); nsubjects > 0; cv >= 0; icc in [0, 1).

    Raises
    ------
    InvalidClusterCountError, AmbiguousUnknownCountError, DomainViolationError
    """
    if not _is_unspecified(params.nclusters) and params.nclusters <= 1:
        raise InvalidClusterCountError(
            f"nclusters must be greater than 1, got {params.nclusters}"
        )

    missing = params.unspecified()
    if len(missing) != 1:
        raise AmbiguousUnknownCountError(
            "Exactly one of 'alpha', 'power', 'nclusters', 'nsubjects', 'cv', "
            f"'p1', 'p2', or 'icc' must be None (got {len(missing)}: {missing})"
        )

    if check_domain:
        _check_domain(params)

    return missing[0]


def _check_domain(params: DesignParameters) -> None:
    for name in ("alpha", "power", "p1", "p2"):
        value = getattr(params, name)
        if not _is_unspecified(value) and not (0.0 < value < 1.0):
            raise DomainViolationError(f"{name} must be in (0, 1), got {value}")

    if not _is_unspecified(params.nsubjects):
        if not (math.isfinite(params.nsubjects) and params.nsubjects > 0.0):
            raise DomainViolationError(f"nsubjects must be > 0, got {params.nsubjects}")
    if not _is_unspecified(params.nclusters) and not math.isfinite(params.nclusters):
        raise DomainViolationError(f"nclusters must be finite, got {params.nclusters}")
    if not _is_unspecified(params.cv):
        if not (math.isfinite(params.cv) and params.cv >= 0.0):
            raise DomainViolationError(f"cv must be >= 0, got {params.cv}")
    if not _is_unspecified(params.icc) and not (0.0 <= params.icc < 1.0):
        raise DomainViolationError(f"icc must be in [0, 1), got {params.icc}")


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ClusterBinaryResult:
    """Result of a cluster randomized binary outcome power calculation.

    ``target`` names the parameter that was solved for and ``value`` holds
    its solution. The remaining fields echo the full set of resolved design
    parameters so the result can be fed back into the power evaluator.
    """

    target: str
    value: float
    alpha: float
    power: float
    nclusters: float
    nsubjects: float
    cv: float
    p1: float
    p2: float
    icc: float
    pooled: bool
    tdist: bool
    deff: float
    method: str
    note: str = ""

    def as_dict(self) -> dict[str, float]:
        """The solved parameter as a single named value."""
        return {self.target: self.value}

    def summary(self) -> str:
        """Human-readable summary, similar to R's print.power.htest."""
        lines = [self.method, ""]
        for name in PARAMETER_NAMES:
            value = getattr(self, name)
            marker = "  <- solved" if name == self.target else ""
            lines.append(f"{name:>15} = {value:.6g}{marker}")
        lines.append(f"{'deff':>15} = {self.deff:.4f}")
        lines.append(f"{'variance':>15} = {'pooled' if self.pooled else 'unpooled'}")
        lines.append(f"{'reference':>15} = {'t' if self.tdist else 'normal'}")
        if self.note:
            lines.append("")
            lines.append(f"NOTE: {self.note}")
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Shared root-finding
# ---------------------------------------------------------------------------

def _extend_step(x: float) -> float:
    return 0.01 * max(1e-4, abs(x))


def _solve_parameter(
    func: Callable[[float], float],
    target: float,
    bracket: tuple[float, float],
    *,
    xtol: float = 1e-10,
    maxiter: int = 1000,
    extend: str | None = None,
) -> float:
    """Solve ``func(x) == target`` via Brent's method.

    Parameters
    ----------
    func : callable
        Function of one variable (e.g. computes power as f(nclusters)).
    target : float
        Target value (e.g. desired power).
    bracket : tuple
        ``(lower, upper)`` starting bracket.
    xtol : float
        Absolute tolerance on the root.
    maxiter : int
        Iteration cap, applied separately to bracket extension and to Brent.
    extend : {None, 'up', 'down'}
        Without extension, ``func(lower) - target`` and ``func(upper) - target``
        must have opposite signs. With ``'up'`` the residual is assumed to be
        increasing: while it is positive at the lower end that end moves down,
        and while it is negative at the upper end that end moves up, in
        geometrically growing steps. ``'down'`` assumes a decreasing residual.
        This is R's ``uniroot(extendInt = "upX" / "downX")``.

    Returns
    -------
    float
        The solution *x* such that ``func(x) ≈ target``.

    Raises
    ------
    RootBracketingError
        If no sign change can be bracketed.
    """
    if extend not in _VALID_EXTEND:
        raise ValueError(f"extend must be one of {_VALID_EXTEND}, got {extend!r}")

    def residual(x: float) -> float:
        return func(x) - target

    lo, hi = bracket
    f_lo = residual(lo)
    f_hi = residual(hi)

    if extend is not None:
        sig = 1.0 if extend == "up" else -1.0

        step = _extend_step(lo)
        it = 0
        while sig * f_lo > 0:
            it += 1
            if it > maxiter:
                raise RootBracketingError(
                    lo, hi, f_lo, f_hi, target, extend,
                    reason=f"no sign change after {maxiter} extensions",
                )
            lo -= step
            f_lo = residual(lo)
            step *= 2.0
            logger.debug("extended lower bracket to %g (residual %g)", lo, f_lo)

        step = _extend_step(hi)
        it = 0
        while sig * f_hi < 0:
            it += 1
            if it > maxiter:
                raise RootBracketingError(
                    lo, hi, f_lo, f_hi, target, extend,
                    reason=f"no sign change after {maxiter} extensions",
                )
            hi += step
            f_hi = residual(hi)
            step *= 2.0
            logger.debug("extended upper bracket to %g (residual %g)", hi, f_hi)

    if math.isnan(f_lo) or math.isnan(f_hi):
        raise RootBracketingError(
            lo, hi, f_lo, f_hi, target, extend, reason="residual is NaN at an endpoint",
        )

    if f_lo == 0.0:
        return lo
    if f_hi == 0.0:
        return hi

    # Check bracket validity
    if f_lo * f_hi > 0:
        raise RootBracketingError(lo, hi, f_lo, f_hi, target, extend)

    root = brentq(residual, lo, hi, xtol=xtol, maxiter=maxiter)
    logger.debug("root %g found in [%g, %g]", root, lo, hi)
    return root
