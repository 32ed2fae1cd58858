"""
Distance functions on summary statistics for ABC.

A DistanceMetric maps a vector of simulated summary statistics to a scalar
distance from the observed summary statistics. The set of metrics is closed:
each instance carries a ``kind`` tag and the state that kind needs. Some kinds
must be fitted on a reference table of simulated statistics before they can be
evaluated; fitting happens once per PMC iteration, evaluation happens on every
simulation, so evaluation never repeats fitting work.
"""

from dataclasses import dataclass, replace
from typing import Optional, Tuple
import logging

import jax.numpy as jnp
from jax import jit, vmap, tree_util

logger = logging.getLogger(__name__)

EUCLIDEAN = "euclidean"
LP = "lp"
LOGDIST = "logdist"
WEIGHTED_EUCLIDEAN = "weighted_euclidean"
MAHALANOBIS_EMP = "mahalanobis_emp"

DISTANCE_KINDS: Tuple[str, ...] = (
    EUCLIDEAN,
    LP,
    LOGDIST,
    WEIGHTED_EUCLIDEAN,
    MAHALANOBIS_EMP,
)

# Kinds whose evaluation depends on state fitted from a reference table
FITTED_KINDS: Tuple[str, ...] = (WEIGHTED_EUCLIDEAN, MAHALANOBIS_EMP)

# Smallest standard deviation used when rescaling a summary statistic
SCALE_FLOOR = 1e-8
# Eigenvalues of the correlation matrix below this are dropped in the pseudo-inverse
PINV_RCOND = 1e-6


@dataclass(frozen=True, eq=False)
class DistanceMetric:
    """
    Distance between simulated and observed summary statistics.

    Attributes:
        kind: One of DISTANCE_KINDS
        observed: Observed summary statistics, shape (n_stats,)
        p: Exponent of the Lp norm (only used by ``lp``)
        scale: Per-statistic scale factors (``weighted_euclidean``)
        precision: Empirical precision matrix (``mahalanobis_emp``)
    """

    kind: str
    observed: jnp.ndarray
    p: float = 2.0
    scale: Optional[jnp.ndarray] = None
    precision: Optional[jnp.ndarray] = None

    @classmethod
    def create(cls, kind: str, observed, p: float = 2.0) -> "DistanceMetric":
        """
        Create an unfitted distance of the given kind.

        Args:
            kind: Distance kind, one of DISTANCE_KINDS
            observed: Observed summary statistics
            p: Exponent for the ``lp`` kind

        Returns:
            DistanceMetric ready to be fitted (or evaluated, for kinds
            that need no fitting)
        """
        if kind not in DISTANCE_KINDS:
            raise ValueError(
                f"Unknown distance kind: {kind}. Must be one of {list(DISTANCE_KINDS)}"
            )
        if kind == LP and not p > 0:
            raise ValueError("Lp distance requires p > 0")
        observed = jnp.atleast_1d(jnp.asarray(observed, dtype=float))
        if observed.ndim != 1:
            raise ValueError(
                f"observed statistics must be 1d (got shape = {observed.shape})"
            )
        return cls(kind=kind, observed=observed, p=float(p))

    @property
    def requires_fit(self) -> bool:
        return self.kind in FITTED_KINDS

    @property
    def is_fitted(self) -> bool:
        if self.kind == WEIGHTED_EUCLIDEAN:
            return self.scale is not None
        if self.kind == MAHALANOBIS_EMP:
            return self.precision is not None
        return True

    @property
    def n_stats(self) -> int:
        return int(self.observed.shape[0])

    def fit(self, ref_params, ref_stats) -> "DistanceMetric":
        return fit_distance(self, ref_params, ref_stats)

    def __call__(self, stats) -> jnp.ndarray:
        stats = jnp.asarray(stats)
        if stats.ndim > 1:
            return evaluate_distances(self, stats)
        return evaluate_distance(self, stats)

    def __repr__(self) -> str:
        state = "fitted" if self.is_fitted else "unfitted"
        extra = f", p={self.p}" if self.kind == LP else ""
        return f"DistanceMetric({self.kind}{extra}, {state}, n_stats={self.n_stats})"


# kind and p select the code path, so they are static under jit
tree_util.register_dataclass(
    DistanceMetric,
    data_fields=["observed", "scale", "precision"],
    meta_fields=["kind", "p"],
)


def _column_std(ref_stats: jnp.ndarray) -> jnp.ndarray:
    ddof = 1 if ref_stats.shape[0] > 1 else 0
    return jnp.std(ref_stats, axis=0, ddof=ddof)


def _empirical_precision(ref_stats: jnp.ndarray) -> jnp.ndarray:
    """
    Pseudo-inverse of the empirical covariance of the reference statistics.

    The covariance is first reduced to a correlation matrix so that the
    eigenvalue cut-off does not depend on the units of each statistic.
    Constant statistics drop out of the correlation and get zero weight.
    """
    n_rows, n_stats = ref_stats.shape
    if n_rows < 2:
        logger.debug("Fewer than two reference rows, using a zero precision matrix")
        return jnp.zeros((n_stats, n_stats))

    sd = _column_std(ref_stats)
    safe_sd = jnp.maximum(sd, SCALE_FLOOR)
    standardized = (ref_stats - jnp.mean(ref_stats, axis=0)) / safe_sd
    corr = standardized.T @ standardized / (n_rows - 1)

    eigvals, eigvecs = jnp.linalg.eigh(corr)
    keep = eigvals > PINV_RCOND * jnp.max(eigvals)
    if not bool(jnp.all(keep)):
        logger.debug(
            f"Singular reference covariance: dropping {int(jnp.sum(~keep))} "
            f"of {n_stats} directions"
        )
    inv_eigvals = jnp.where(keep, 1.0 / jnp.where(keep, eigvals, 1.0), 0.0)
    corr_pinv = (eigvecs * inv_eigvals) @ eigvecs.T
    varying = sd > SCALE_FLOOR
    corr_pinv = jnp.where(jnp.outer(varying, varying), corr_pinv, 0.0)

    return corr_pinv / jnp.outer(safe_sd, safe_sd)


def fit_distance(metric: DistanceMetric, ref_params, ref_stats) -> DistanceMetric:
    """
    Fit a distance to a reference table of simulations.

    Args:
        metric: Distance to fit (fitted state, if any, is replaced)
        ref_params: Parameters of the reference table, shape (m, n_params).
            Part of the fitting contract; the current kinds only use the
            statistics.
        ref_stats: Summary statistics of the reference table, shape (m, n_stats)

    Returns:
        A new DistanceMetric with its fitted state set
    """
    if not metric.requires_fit:
        return metric

    ref_stats = jnp.asarray(ref_stats, dtype=float).reshape(-1, metric.n_stats)
    if ref_stats.shape[0] == 0:
        raise ValueError("Cannot fit a distance on an empty reference table")

    if metric.kind == WEIGHTED_EUCLIDEAN:
        sd = _column_std(ref_stats)
        n_floored = int(jnp.sum(sd < SCALE_FLOOR))
        if n_floored:
            logger.debug(f"Flooring the scale of {n_floored} near-constant statistics")
        return replace(metric, scale=1.0 / jnp.maximum(sd, SCALE_FLOOR))

    return replace(metric, precision=_empirical_precision(ref_stats))


@jit
def evaluate_distance(metric: DistanceMetric, stats: jnp.ndarray) -> jnp.ndarray:
    """
    Distance of one vector of summary statistics from the observed ones.

    Args:
        metric: Distance to evaluate (fitted, for kinds that need it)
        stats: Simulated summary statistics, shape (n_stats,)

    Returns:
        Non-negative scalar distance (NaN for ``logdist`` on non-positive stats)
    """
    kind = metric.kind
    diff = stats - metric.observed

    if kind == EUCLIDEAN:
        return jnp.sqrt(jnp.sum(diff**2))
    if kind == LP:
        return jnp.sum(jnp.abs(diff) ** metric.p) ** (1.0 / metric.p)
    if kind == LOGDIST:
        log_diff = jnp.log(stats) - jnp.log(metric.observed)
        return jnp.sqrt(jnp.sum(log_diff**2))
    if kind == WEIGHTED_EUCLIDEAN:
        if metric.scale is None:
            raise ValueError("weighted_euclidean distance must be fitted before use")
        return jnp.sqrt(jnp.sum((diff * metric.scale) ** 2))
    if kind == MAHALANOBIS_EMP:
        if metric.precision is None:
            raise ValueError("mahalanobis_emp distance must be fitted before use")
        return jnp.sqrt(jnp.maximum(diff @ metric.precision @ diff, 0.0))

    raise ValueError(f"Unknown distance kind: {kind}")


evaluate_distances = jit(vmap(evaluate_distance, in_axes=(None, 0)))
# Distances of each row of a (n, n_stats) matrix


__all__ = [
    "DistanceMetric",
    "DISTANCE_KINDS",
    "FITTED_KINDS",
    "EUCLIDEAN",
    "LP",
    "LOGDIST",
    "WEIGHTED_EUCLIDEAN",
    "MAHALANOBIS_EMP",
    "SCALE_FLOOR",
    "PINV_RCOND",
    "fit_distance",
    "evaluate_distance",
    "evaluate_distances",
]
