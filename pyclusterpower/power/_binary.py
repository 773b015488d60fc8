"""Power calculations for cluster randomized trials with a binary outcome.

Two-arm parallel design, equal allocation. Variance is inflated by the design
effect of Donner and Klar (2000), extended for variable cluster sizes:
    DEFF = 1 + ((CV^2 + 1) * m - 1) * ICC
where m is the mean cluster size and CV its coefficient of variation.

Validates against: R clusterPower::cpa.binary()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np
from numpy.typing import ArrayLike
from scipy.stats import nct, norm
from scipy.stats import t as t_dist

from pyclusterpower.power._common import (
    ClusterBinaryResult,
    DesignParameters,
    RootBracketingError,
    _check_design_args,
    _solve_parameter,
)

logger = logging.getLogger(__name__)

DEFAULT_ALPHA = 0.05
DEFAULT_ICC = 0.05
DEFAULT_CV = 0.0
DEFAULT_TOL = float(np.finfo(float).eps ** 0.25)  # R uniroot default


# ---------------------------------------------------------------------------
# Internal power computation — also used by _curve.py
# ---------------------------------------------------------------------------

def _as_output(x):
    """Python float for scalar results, ndarray otherwise."""
    return float(x) if np.ndim(x) == 0 else x


def design_effect(nsubjects: ArrayLike, cv: ArrayLike, icc: ArrayLike):
    """Variance inflation due to clustering and variable cluster sizes.

    ``DEFF = 1 + ((cv**2 + 1) * nsubjects - 1) * icc``
    """
    cv = np.asarray(cv, dtype=float)
    deff = 1.0 + ((cv ** 2 + 1.0) * np.asarray(nsubjects, dtype=float) - 1.0) * icc
    return _as_output(deff)


def cluster_binary_power(
    alpha: ArrayLike,
    nclusters: ArrayLike,
    nsubjects: ArrayLike,
    cv: ArrayLike,
    p1: ArrayLike,
    p2: ArrayLike,
    icc: ArrayLike,
    *,
    pooled: bool = False,
    tdist: bool = True,
):
    """Power of the two-sided test of ``p1 == p2`` in a cluster randomized trial.

    All numeric arguments broadcast against each other. Scalar inputs give a
    float, array inputs an ndarray.

    Parameters
    ----------
    alpha : float or array
        Significance level.
    nclusters : float or array
        Clusters per arm. May be non-integer during root-finding.
    nsubjects : float or array
        Mean cluster size.
    cv : float or array
        Coefficient of variation of cluster sizes.
    p1, p2 : float or array
        Outcome proportions in the two arms.
    icc : float or array
        Intraclass correlation.
    pooled : bool
        Use the pooled proportion for the standard error.
    tdist : bool
        Reference the non-central t with ``2 * (nclusters - 1)`` df instead of
        the normal distribution.

    Returns
    -------
    float or ndarray
        Power. Not clamped; degenerate inputs propagate NaN.
    """
    alpha, nclusters, nsubjects, p1, p2, icc = (
        np.asarray(x, dtype=float) for x in (alpha, nclusters, nsubjects, p1, p2, icc)
    )

    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        deff = np.asarray(design_effect(nsubjects, cv, icc))
        n_total = nclusters * nsubjects
        if pooled:
            p = (p1 + p2) / 2.0
            sdd = np.sqrt(p * (1.0 - p) * 2.0 * deff / n_total)
        else:
            sdd = np.sqrt((p1 * (1.0 - p1) + p2 * (1.0 - p2)) * deff / n_total)
        ncp = np.abs(p1 - p2) / sdd

        z_power = norm.cdf(ncp - norm.isf(alpha / 2.0))
        if not tdist:
            return _as_output(z_power)

        df = 2.0 * (nclusters - 1.0)
        t_crit = t_dist.isf(alpha / 2.0, df)
        t_power = nct.sf(t_crit, df, ncp)

    # scipy's nct can return NaN for large noncentrality, and is needlessly
    # slow for huge df; the normal approximation is accurate in both regimes.
    fallback = (df > 1e5) | (np.isnan(t_power) & ~np.isnan(ncp) & (df > 0))
    return _as_output(np.where(fallback, z_power, t_power))


# ---------------------------------------------------------------------------
# Bracket table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class _Bracket:
    """Search interval for one unknown, as functions of the fixed parameters."""

    lower: Callable[[DesignParameters], float]
    upper: Callable[[DesignParameters], float]
    extend: str | None = None


# Keyed by (unknown, p1inc); p1inc only matters for the proportions.
_BRACKETS: dict[tuple[str, bool | None], _Bracket] = {
    ("alpha", None): _Bracket(lambda p: 1e-10, lambda p: 1.0 - 1e-10),
    ("nclusters", None): _Bracket(lambda p: 2.0 + 1e-10, lambda p: 1e7),
    ("p1", True): _Bracket(lambda p: p.p2 + 1e-7, lambda p: 1.0 - 1e-7),
    ("p1", False): _Bracket(lambda p: 1e-7, lambda p: p.p2 - 1e-7),
    ("p2", True): _Bracket(lambda p: 1e-7, lambda p: p.p1 - 1e-7),
    ("p2", False): _Bracket(lambda p: p.p1 + 1e-7, lambda p: 1.0 - 1e-7),
    ("nsubjects", None): _Bracket(lambda p: 2.0 + 1e-10, lambda p: 1e7, extend="up"),
    ("cv", None): _Bracket(lambda p: 1e-7, lambda p: 1e7, extend="down"),
    ("icc", None): _Bracket(lambda p: 1e-7, lambda p: 1.0 - 1e-7),
}


def _bracket_for(target: str, p1inc: bool) -> _Bracket:
    direction = bool(p1inc) if target in ("p1", "p2") else None
    return _BRACKETS[(target, direction)]


def _power_in(
    params: DesignParameters,
    field: str,
    *,
    pooled: bool,
    tdist: bool,
) -> Callable[[float], float]:
    """Power as a function of one design parameter, the others held fixed."""

    def power_at(x: float) -> float:
        p = params.with_value(field, x)
        return cluster_binary_power(
            p.alpha, p.nclusters, p.nsubjects, p.cv, p.p1, p.p2, p.icc,
            pooled=pooled, tdist=tdist,
        )

    return power_at


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def power_cluster_binary(
    alpha: float | None = DEFAULT_ALPHA,
    power: float | None = None,
    nclusters: float | None = None,
    nsubjects: float | None = None,
    cv: float | None = DEFAULT_CV,
    p1: float | None = None,
    p2: float | None = None,
    icc: float | None = DEFAULT_ICC,
    *,
    pooled: bool = False,
    p1inc: bool = True,
    tdist: bool = True,
    tol: float = DEFAULT_TOL,
    check_domain: bool = True,
) -> ClusterBinaryResult:
    """Power calculation for a cluster randomized trial with a binary outcome.

    Exactly one of ``alpha``, ``power``, ``nclusters``, ``nsubjects``, ``cv``,
    ``p1``, ``p2``, ``icc`` must be ``None`` (or NaN). ``alpha``, ``cv`` and
    ``icc`` have defaults, so to solve for one of them pass it as ``None``
    explicitly.

    Parameters
    ----------
    alpha : float or None
        Significance level (default 0.05).
    power : float or None
        Desired power.
    nclusters : float or None
        Number of clusters per arm. Must be greater than 1.
    nsubjects : float or None
        Mean cluster size.
    cv : float or None
        Coefficient of variation of cluster sizes (default 0, equal sizes).
    p1, p2 : float or None
        Proportion with the outcome in each arm.
    icc : float or None
        Intraclass correlation (default 0.05).
    pooled : bool
        Use the pooled standard error.
    p1inc : bool
        ``True`` if ``p1`` is expected to exceed ``p2``. Only used when
        ``p1`` or ``p2`` is being solved for.
    tdist : bool
        Use the t distribution with ``2 * (nclusters - 1)`` df (default),
        otherwise the normal distribution.
    tol : float
        Absolute tolerance for the root finder. The default gives at least
        four significant digits.
    check_domain : bool
        Reject given values outside their domain (e.g. ``p1 = 1.2``).

    Returns
    -------
    ClusterBinaryResult

    Raises
    ------
    InvalidClusterCountError
        If ``nclusters <= 1``.
    AmbiguousUnknownCountError
        If not exactly one parameter is ``None``.
    DomainViolationError
        If a given value is outside its domain and ``check_domain`` is set.
    RootBracketingError
        If no value of the unknown satisfies the power equation, e.g. the
        requested power is not achievable with any cluster size.

    Examples
    --------
    >>> r = power_cluster_binary(power=0.8, nsubjects=10, p1=0.1, p2=0.2,
    ...                          icc=0.1, tdist=False)
    >>> round(r.value, 1)  # clusters per arm
    37.3

    Validates against: R clusterPower::cpa.binary()
    """
    params = DesignParameters(
        alpha=alpha, power=power, nclusters=nclusters, nsubjects=nsubjects,
        cv=cv, p1=p1, p2=p2, icc=icc,
    )
    target = _check_design_args(params, check_domain=check_domain)

    if target == "power":
        implied = cluster_binary_power(
            params.alpha, params.nclusters, params.nsubjects, params.cv,
            params.p1, params.p2, params.icc, pooled=pooled, tdist=tdist,
        )
        if not (0.0 < implied < 1.0):
            logger.warning("implied power %r lies outside (0, 1)", implied)
        params = params.with_value("power", implied)

    else:
        bracket = _bracket_for(target, p1inc)
        lo, hi = bracket.lower(params), bracket.upper(params)
        logger.debug(
            "solving for %s on [%g, %g] (extend=%s)", target, lo, hi, bracket.extend,
        )
        if not lo < hi:
            raise RootBracketingError(
                lo, hi, float("nan"), float("nan"), params.power, bracket.extend,
                reason=f"empty interval for {target} (check p1inc)",
            )
        root = _solve_parameter(
            func=_power_in(params, target, pooled=pooled, tdist=tdist),
            target=params.power,
            bracket=(lo, hi),
            xtol=tol,
            extend=bracket.extend,
        )
        params = params.with_value(target, root)

    deff = design_effect(params.nsubjects, params.cv, params.icc)

    return ClusterBinaryResult(
        target=target,
        value=getattr(params, target),
        alpha=params.alpha,
        power=params.power,
        nclusters=params.nclusters,
        nsubjects=params.nsubjects,
        cv=params.cv,
        p1=params.p1,
        p2=params.p2,
        icc=params.icc,
        pooled=pooled,
        tdist=tdist,
        deff=deff,
        method="Cluster randomized trial power calculation: binary outcome",
        note=(
            "nclusters is number of clusters per arm; nsubjects is mean cluster size; "
            f"DEFF = {deff:.2f}"
        ),
    )
