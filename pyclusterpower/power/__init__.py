"""
Sample size and power calculations for cluster randomized trials.

Solve-for-any-one-parameter power for two-arm parallel cluster randomized
trials with a binary outcome: alpha, power, clusters per arm, mean cluster
size, cluster size CV, either arm proportion, or the ICC.

Validates against: R package clusterPower (cpa.binary).
"""

from pyclusterpower.power._common import (
    DesignParameters,
    ClusterBinaryResult,
    ClusterPowerError,
    InvalidClusterCountError,
    AmbiguousUnknownCountError,
    DomainViolationError,
    RootBracketingError,
)
from pyclusterpower.power._binary import (
    design_effect,
    cluster_binary_power,
    power_cluster_binary,
)
from pyclusterpower.power._curve import power_curve_cluster_binary, PowerCurveResult

__all__ = [
    "DesignParameters",
    "ClusterBinaryResult",
    "PowerCurveResult",
    "ClusterPowerError",
    "InvalidClusterCountError",
    "AmbiguousUnknownCountError",
    "DomainViolationError",
    "RootBracketingError",
    "design_effect",
    "cluster_binary_power",
    "power_cluster_binary",
    "power_curve_cluster_binary",
]
