"""
Problem and result structures for ABC-PMC.

This module contains the problem definition handed to the sampler, the
per-iteration particle population, and the final multi-iteration result.
"""

import jax.numpy as jnp
from typing import Callable, NamedTuple, Optional, Sequence, Tuple

from .distances import DistanceMetric


class ABCProblem(NamedTuple):
    """
    Definition of an ABC inference problem.

    Attributes:
        prior_sample: ``prior_sample(key) -> theta``
        prior_density: ``prior_density(theta) -> float``, non-negative
        simulator: ``simulator(key, theta) -> (success, stats)``
        observed_stats: Observed summary statistics, shape (n_stats,)
        n_params: Parameter dimension
        n_stats: Summary statistic dimension
    """

    prior_sample: Callable
    prior_density: Callable
    simulator: Callable
    observed_stats: jnp.ndarray
    n_params: int
    n_stats: int

    @classmethod
    def create(
        cls,
        prior_sample: Callable,
        prior_density: Callable,
        simulator: Callable,
        observed_stats,
        n_params: int,
    ) -> "ABCProblem":
        """Build a problem, inferring the statistic dimension from the observation."""
        observed_stats = jnp.atleast_1d(jnp.asarray(observed_stats, dtype=float))
        return cls(
            prior_sample=prior_sample,
            prior_density=prior_density,
            simulator=simulator,
            observed_stats=observed_stats,
            n_params=int(n_params),
            n_stats=int(observed_stats.shape[0]),
        )


class ParticlePopulation(NamedTuple):
    """
    Weighted particles accepted during one PMC iteration.

    Row i of parameters, sumstats, distances and weights describes the same
    particle.

    Attributes:
        parameters: Shape (n_particles, n_params)
        sumstats: Shape (n_particles, n_stats)
        distances: Distances under ``metric``, shape (n_particles,).
            All zero for the first iteration, which has no metric.
        weights: Unnormalised importance weights, shape (n_particles,)
        metric: Distance active when the particles were accepted
        init_params: Reference table parameters, shape (m, n_params)
        init_stats: Reference table statistics, shape (m, n_stats)
        n_sims: Simulator calls spent on this iteration
    """

    parameters: jnp.ndarray
    sumstats: jnp.ndarray
    distances: jnp.ndarray
    weights: jnp.ndarray
    metric: Optional[DistanceMetric]
    init_params: jnp.ndarray
    init_stats: jnp.ndarray
    n_sims: int = 0

    @property
    def n_particles(self) -> int:
        return int(self.parameters.shape[0])


class IterationSummary(NamedTuple):
    """Bookkeeping reported to observers when an iteration completes."""

    iteration: int
    sims_done: int
    sims_this_iteration: int
    acceptance_rate: float
    threshold: float
    population: ParticlePopulation


class ABCPMCResult(NamedTuple):
    """
    Output of an ABC-PMC run.

    Arrays are indexed by iteration first, then by particle.

    Attributes:
        parameters: Shape (n_iterations, n_particles, n_params)
        sumstats: Shape (n_iterations, n_particles, n_stats)
        distances: Shape (n_iterations, n_particles)
        weights: Shape (n_iterations, n_particles)
        cumulative_sims: Simulations done by the end of each iteration
        n_sims: Total simulations, including a discarded final iteration
        metrics: Distance fitted at the end of each iteration
        thresholds: Acceptance threshold derived at the end of each iteration
        init_params: Per-iteration reference table parameters (if stored)
        init_stats: Per-iteration reference table statistics (if stored)
    """

    parameters: jnp.ndarray
    sumstats: jnp.ndarray
    distances: jnp.ndarray
    weights: jnp.ndarray
    cumulative_sims: jnp.ndarray
    n_sims: int
    metrics: Tuple[DistanceMetric, ...]
    thresholds: jnp.ndarray
    init_params: Tuple[jnp.ndarray, ...] = ()
    init_stats: Tuple[jnp.ndarray, ...] = ()

    @property
    def n_iterations(self) -> int:
        return int(self.parameters.shape[0])

    @property
    def n_particles(self) -> int:
        return int(self.parameters.shape[1])

    @property
    def n_params(self) -> int:
        return int(self.parameters.shape[2])

    @property
    def n_stats(self) -> int:
        return int(self.sumstats.shape[2])

    def population(self, iteration: int = -1) -> ParticlePopulation:
        """
        Rebuild the population of one iteration.

        Args:
            iteration: Iteration index (0-based, negative counts from the end)

        Returns:
            ParticlePopulation of that iteration
        """
        if self.n_iterations == 0:
            raise IndexError("Result has no completed iterations")
        t = range(self.n_iterations)[iteration]
        metric = self.metrics[t - 1] if t > 0 else None
        if self.init_params:
            init_params, init_stats = self.init_params[t], self.init_stats[t]
        else:
            init_params = jnp.zeros((0, self.n_params))
            init_stats = jnp.zeros((0, self.n_stats))
        previous = int(self.cumulative_sims[t - 1]) if t > 0 else 0
        return ParticlePopulation(
            parameters=self.parameters[t],
            sumstats=self.sumstats[t],
            distances=self.distances[t],
            weights=self.weights[t],
            metric=metric,
            init_params=init_params,
            init_stats=init_stats,
            n_sims=int(self.cumulative_sims[t]) - previous,
        )

    def final_population(self) -> ParticlePopulation:
        return self.population(-1)

    @classmethod
    def from_populations(
        cls,
        populations: Sequence[ParticlePopulation],
        metrics: Sequence[DistanceMetric],
        thresholds: Sequence[float],
        cumulative_sims: Sequence[int],
        n_sims: int,
        n_particles: int,
        n_params: int,
        n_stats: int,
        store_init: bool = False,
    ) -> "ABCPMCResult":
        """Stack per-iteration populations into a result."""
        if populations:
            parameters = jnp.stack([pop.parameters for pop in populations])
            sumstats = jnp.stack([pop.sumstats for pop in populations])
            distances = jnp.stack([pop.distances for pop in populations])
            weights = jnp.stack([pop.weights for pop in populations])
        else:
            parameters = jnp.zeros((0, n_particles, n_params))
            sumstats = jnp.zeros((0, n_particles, n_stats))
            distances = jnp.zeros((0, n_particles))
            weights = jnp.zeros((0, n_particles))

        if store_init:
            init_params = tuple(pop.init_params for pop in populations)
            init_stats = tuple(pop.init_stats for pop in populations)
        else:
            init_params, init_stats = (), ()

        return cls(
            parameters=parameters,
            sumstats=sumstats,
            distances=distances,
            weights=weights,
            cumulative_sims=jnp.asarray(cumulative_sims, dtype=int).reshape(-1),
            n_sims=int(n_sims),
            metrics=tuple(metrics),
            thresholds=jnp.asarray(thresholds, dtype=float).reshape(-1),
            init_params=init_params,
            init_stats=init_stats,
        )


# Export main components
__all__ = [
    "ABCProblem",
    "ParticlePopulation",
    "IterationSummary",
    "ABCPMCResult",
]
