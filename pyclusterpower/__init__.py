"""
PyClusterPower: power and sample size for cluster randomized trials in Python.

Solves the power equation of a two-arm parallel cluster randomized trial with
a binary outcome for whichever one of its eight quantities is left unknown.

Usage:
    from pyclusterpower import power
"""

import logging

__version__ = "0.1.0"
__author__ = "Hai-Shuo"
__email__ = "contact@sgcx.org"

from pyclusterpower import power

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "__version__",
    "power",
]
