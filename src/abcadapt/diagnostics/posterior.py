# src/abcadapt/diagnostics/posterior.py

import jax.numpy as jnp
import numpy as np
from typing import Tuple, Union
import logging

# To avoid circular imports, we use TYPE_CHECKING
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..simulation.base import ABCPMCResult, ParticlePopulation

# Configure logging
logger = logging.getLogger(__name__)


def _as_population(output: Union["ABCPMCResult", "ParticlePopulation"], iteration: int):
    """Accept either a full result (pick one iteration) or a single population."""
    if hasattr(output, "population"):
        return output.population(iteration)
    return output


def normalized_weights(weights) -> np.ndarray:
    """Weights rescaled to sum to one."""
    weights = np.asarray(weights, dtype=float)
    total = weights.sum()
    if not total > 0:
        raise ValueError("Weights must have a positive sum")
    return weights / total


def effective_sample_size(weights) -> float:
    """Kish effective sample size of a set of importance weights."""
    w = normalized_weights(weights)
    return float(1.0 / np.sum(w**2))


def parameter_means(output, iteration: int = -1) -> np.ndarray:
    """
    Weighted posterior mean of each parameter.

    Args:
        output: ABCPMCResult or ParticlePopulation
        iteration: Iteration to summarise when given a full result

    Returns:
        Array of shape (n_params,)
    """
    population = _as_population(output, iteration)
    w = normalized_weights(population.weights)
    return w @ np.asarray(population.parameters, dtype=float)


def parameter_vars(output, iteration: int = -1) -> np.ndarray:
    """Weighted posterior variance of each parameter, shape (n_params,)."""
    population = _as_population(output, iteration)
    w = normalized_weights(population.weights)
    params = np.asarray(population.parameters, dtype=float)
    return w @ (params - w @ params) ** 2


def parameter_covs(output, iteration: int = -1) -> np.ndarray:
    """Weighted posterior covariance matrix, shape (n_params, n_params)."""
    population = _as_population(output, iteration)
    w = normalized_weights(population.weights)
    params = np.asarray(population.parameters, dtype=float)
    centered = params - w @ params
    return (centered * w[:, None]).T @ centered


def weighted_quantile(values, weights, q) -> np.ndarray:
    """
    Quantiles of a weighted sample.

    Uses the midpoints of the weighted empirical CDF as interpolation knots.
    """
    values = np.asarray(values, dtype=float)
    w = normalized_weights(weights)
    order = np.argsort(values)
    values, w = values[order], w[order]
    cdf = np.cumsum(w) - 0.5 * w
    return np.interp(q, cdf, values)


def credible_intervals(
    parameters, weights, level: float = 0.95
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Equal-tailed credible interval of each parameter.

    Args:
        parameters: Particles, shape (n, n_params)
        weights: Weights, shape (n,)
        level: Credible level

    Returns:
        Tuple (lower, upper) of arrays with shape (n_params,)
    """
    if not (0 < level < 1):
        raise ValueError("level must be between 0 and 1")
    params = np.asarray(parameters, dtype=float)
    weights = np.asarray(weights, dtype=float)
    q = [(1 - level) / 2, (1 + level) / 2]

    if np.all(weights == weights[0]):
        bounds = np.quantile(params, q, axis=0)
    else:
        bounds = np.stack(
            [weighted_quantile(params[:, i], weights, q) for i in range(params.shape[1])],
            axis=1,
        )
    return bounds[0], bounds[1]


def sort_population(population: "ParticlePopulation") -> "ParticlePopulation":
    """Return the population ordered by increasing distance."""
    order = jnp.argsort(population.distances)
    return population._replace(
        parameters=population.parameters[order],
        sumstats=population.sumstats[order],
        distances=population.distances[order],
        weights=population.weights[order],
    )


def summarize_population(population: "ParticlePopulation", n_sims: int) -> str:
    """
    Human-readable summary: accepted count, means and rough 95% intervals.

    Args:
        population: Population to describe
        n_sims: Number of simulations the population was drawn from

    Returns:
        Multi-line string
    """
    means = parameter_means(population)
    lower, upper = credible_intervals(population.parameters, population.weights)
    lines = [
        f"ABC output, {population.n_particles} accepted values from {n_sims} simulations",
        f"Effective sample size: {effective_sample_size(population.weights):.1f}",
        "Means and rough 95% credible intervals:",
    ]
    for i, (mean, lo, hi) in enumerate(zip(means, lower, upper), start=1):
        lines.append(f"Parameter {i}: {mean:.2e} ({lo:.2e},{hi:.2e})")
    return "\n".join(lines)


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
