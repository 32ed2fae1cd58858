"""
abcadapt: Approximate Bayesian Computation by Population Monte Carlo
with adaptive distances
"""

from ._version import __version__
from .simulation import (
    ABCProblem,
    ABCPMCResult,
    DistanceMetric,
    PMCConfig,
    PMCSampler,
    run_abc_pmc,
)

__all__ = [
    "__version__",
    "ABCProblem",
    "ABCPMCResult",
    "DistanceMetric",
    "PMCConfig",
    "PMCSampler",
    "run_abc_pmc",
]
