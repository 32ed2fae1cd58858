# src/abcadapt/diagnostics/__init__.py

"""
Diagnostics module for abcadapt.

Weighted posterior summaries of ABC-PMC populations.
"""

from .posterior import (
    normalized_weights,
    effective_sample_size,
    parameter_means,
    parameter_vars,
    parameter_covs,
    weighted_quantile,
    credible_intervals,
    sort_population,
    summarize_population,
)

__all__ = [
    "normalized_weights",
    "effective_sample_size",
    "parameter_means",
    "parameter_vars",
    "parameter_covs",
    "weighted_quantile",
    "credible_intervals",
    "sort_population",
    "summarize_population",
]
