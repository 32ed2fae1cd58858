"""
ABC-PMC with adaptive distances.

This module contains the sequential controller. Each iteration fills a
population of N particles, fits a new distance on the simulations made while
filling it, derives the next acceptance threshold from the order statistics
of the population's distances under that new distance, and reweights the
population by importance sampling. Later iterations accept a candidate only
if it passes every (distance, threshold) pair recorded so far, since each
iteration may have fitted a different distance.
"""

from dataclasses import replace
from math import ceil
from typing import Iterator, List, NamedTuple, Optional, Sequence, Tuple
import logging

import jax.numpy as jnp
from jax import random

from .base import (
    ABCProblem,
    ABCPMCResult,
    IterationSummary,
    ParticlePopulation,
)
from .config import PMCConfig, ConfigurationError, validate_pmc_config
from .distances import (
    DistanceMetric,
    evaluate_distance,
    evaluate_distances,
    fit_distance,
)
from .kernels import PerturbationKernel, get_weights, propose_from_population
from .observers import PMCObserver, default_observers
from .reference import ReferenceTable

logger = logging.getLogger(__name__)


class FillResult(NamedTuple):
    """Outcome of the filling phase of one iteration."""

    parameters: List[jnp.ndarray]
    sumstats: List[jnp.ndarray]
    prior_weights: List[float]
    table: ReferenceTable
    sims_done: int


def kth_smallest(values: jnp.ndarray, k: int) -> float:
    """k-th order statistic (1-based) of a vector."""
    return float(jnp.sort(values)[k - 1])


def passes_history(
    stats: jnp.ndarray,
    metrics: Sequence[DistanceMetric],
    thresholds: Sequence[float],
) -> bool:
    """Whether stats lie within every recorded threshold under its own distance."""
    return all(
        float(evaluate_distance(metric, stats)) <= threshold
        for metric, threshold in zip(metrics, thresholds)
    )


class PMCSampler:
    """
    Adaptive ABC-PMC sampler.

    The run stops once ``config.max_sims`` simulator calls have been made.
    An iteration that cannot be completed within the budget is discarded.

    Args:
        problem: ABC problem (prior, simulator, observed statistics)
        config: Sampler configuration (defaults to PMCConfig())
        observers: Progress observers. Defaults to a progress bar and
            logged summaries unless ``config.silent`` is set.
        **overrides: Individual PMCConfig fields overriding ``config``

    Example:
        sampler = PMCSampler(problem, n_particles=200, alpha=0.5, max_sims=20000)
        result = sampler.run(random.PRNGKey(0))
    """

    def __init__(
        self,
        problem: ABCProblem,
        config: Optional[PMCConfig] = None,
        observers: Optional[Sequence[PMCObserver]] = None,
        **overrides,
    ):
        config = config if config is not None else PMCConfig()
        if overrides:
            unknown = set(overrides) - set(PMCConfig.__dataclass_fields__)
            if unknown:
                raise ConfigurationError(f"Unknown PMC config keys: {sorted(unknown)}")
            config = replace(config, **overrides)
        validate_pmc_config(config)

        observed = jnp.atleast_1d(jnp.asarray(problem.observed_stats, dtype=float))
        if observed.shape != (problem.n_stats,):
            raise ConfigurationError(
                f"observed_stats has shape {observed.shape}, expected ({problem.n_stats},)"
            )
        if problem.n_params <= 0:
            raise ConfigurationError("n_params must be positive")

        self.problem = problem
        self.config = config
        self.k = int(ceil(config.n_particles * config.alpha))
        self.batch_size = int(config.batch_size or config.n_particles)
        self.observers = (
            list(observers) if observers is not None else default_observers(config.silent)
        )
        self.distance_prototype = DistanceMetric.create(
            config.distance, observed, **config.distance_args
        )

    def _notify(self, event: str, *args) -> None:
        for observer in self.observers:
            getattr(observer, event)(*args)

    def _proposals(
        self,
        key: random.PRNGKey,
        previous: Optional[ParticlePopulation],
        kernel: Optional[PerturbationKernel],
    ) -> Iterator[Tuple[jnp.ndarray, random.PRNGKey]]:
        """Endless stream of (candidate, simulation key) pairs."""
        n_params = self.problem.n_params
        while True:
            key, key_theta, key_sim = random.split(key, 3)
            sim_keys = random.split(key_sim, self.batch_size)
            if previous is None:
                prior_keys = random.split(key_theta, self.batch_size)
                for prior_key, sim_key in zip(prior_keys, sim_keys):
                    theta = self.problem.prior_sample(prior_key)
                    yield jnp.asarray(theta, dtype=float).reshape(n_params), sim_key
            else:
                thetas = propose_from_population(
                    key_theta,
                    previous.parameters,
                    previous.weights,
                    kernel,
                    self.batch_size,
                )
                yield from zip(thetas, sim_keys)

    def _fill_population(
        self,
        key: random.PRNGKey,
        previous: Optional[ParticlePopulation],
        kernel: Optional[PerturbationKernel],
        metrics: Sequence[DistanceMetric],
        thresholds: Sequence[float],
        sims_done: int,
    ) -> FillResult:
        """
        Propose, simulate and test candidates until N are accepted or the
        budget runs out.
        """
        config = self.config
        n_stats = self.problem.n_stats
        table = ReferenceTable(config.n_sims_for_init, self.problem.n_params, n_stats)
        parameters, sumstats, prior_weights = [], [], []

        for theta, sim_key in self._proposals(key, previous, kernel):
            if len(parameters) >= config.n_particles or sims_done >= config.max_sims:
                break

            prior_weight = float(self.problem.prior_density(theta))
            if prior_weight == 0.0:
                continue

            success, stats = self.problem.simulator(sim_key, theta)
            sims_done += 1
            self._notify("on_candidate", sims_done)
            if not bool(success):
                continue

            stats = jnp.asarray(stats, dtype=float).reshape(n_stats)
            table.add(theta, stats)

            # The first iteration has no distance yet and accepts everything
            if previous is None or passes_history(stats, metrics, thresholds):
                parameters.append(theta)
                sumstats.append(stats)
                prior_weights.append(prior_weight)

        return FillResult(parameters, sumstats, prior_weights, table, sims_done)

    def run(self, key: random.PRNGKey) -> ABCPMCResult:
        """
        Run ABC-PMC until the simulation budget is spent.

        Args:
            key: JAX random key

        Returns:
            ABCPMCResult with one entry per completed iteration
        """
        try:
            return self._run(key)
        finally:
            self._notify("close")

    def _run(self, key: random.PRNGKey) -> ABCPMCResult:
        config = self.config
        populations: List[ParticlePopulation] = []
        metrics: List[DistanceMetric] = []
        thresholds: List[float] = []
        cumulative_sims: List[int] = []
        sims_done = 0

        self._notify("on_run_start", config)

        while sims_done < config.max_sims:
            iteration = len(populations) + 1
            previous = populations[-1] if populations else None
            kernel = None
            if previous is not None:
                kernel = PerturbationKernel.from_population(
                    previous.parameters, previous.weights, diagonal=config.diag_perturb
                )

            self._notify("on_iteration_start", iteration, sims_done)
            key, fill_key = random.split(key)
            fill = self._fill_population(
                fill_key, previous, kernel, metrics, thresholds, sims_done
            )
            sims_this_iteration = fill.sims_done - sims_done
            sims_done = fill.sims_done

            if len(fill.parameters) < config.n_particles:
                logger.info(
                    f"Budget of {config.max_sims} sims exhausted during iteration "
                    f"{iteration} ({len(fill.parameters)}/{config.n_particles} "
                    f"particles); discarding it"
                )
                break

            parameters = jnp.stack(fill.parameters)
            sumstats = jnp.stack(fill.sumstats)
            init_params, init_stats = fill.table.finalize()

            if previous is None:
                active_metric = None
                distances = jnp.zeros(config.n_particles)
                weights = jnp.ones(config.n_particles)
            else:
                active_metric = metrics[-1]
                distances = evaluate_distances(active_metric, sumstats)
                weights = get_weights(
                    parameters,
                    jnp.asarray(fill.prior_weights),
                    previous.parameters,
                    previous.weights,
                    kernel,
                )

            if config.adaptive or not metrics:
                new_metric = fit_distance(self.distance_prototype, init_params, init_stats)
            else:
                new_metric = metrics[0]
            new_threshold = kth_smallest(evaluate_distances(new_metric, sumstats), self.k)

            population = ParticlePopulation(
                parameters=parameters,
                sumstats=sumstats,
                distances=distances,
                weights=weights,
                metric=active_metric,
                init_params=init_params,
                init_stats=init_stats,
                n_sims=sims_this_iteration,
            )
            populations.append(population)
            metrics.append(new_metric)
            thresholds.append(new_threshold)
            cumulative_sims.append(sims_done)

            logger.debug(
                f"Iteration {iteration}: reference table of {len(fill.table)} sims, "
                f"threshold {new_threshold:.6g}"
            )
            self._notify(
                "on_iteration_complete",
                IterationSummary(
                    iteration=iteration,
                    sims_done=sims_done,
                    sims_this_iteration=sims_this_iteration,
                    acceptance_rate=self.k / sims_this_iteration,
                    threshold=new_threshold,
                    population=population,
                ),
            )

        result = ABCPMCResult.from_populations(
            populations,
            metrics,
            thresholds,
            cumulative_sims,
            n_sims=sims_done,
            n_particles=config.n_particles,
            n_params=self.problem.n_params,
            n_stats=self.problem.n_stats,
            store_init=config.store_init,
        )
        self._notify("on_run_end", result)
        return result


def run_abc_pmc(
    key: random.PRNGKey,
    problem: ABCProblem,
    config: Optional[PMCConfig] = None,
    observers: Optional[Sequence[PMCObserver]] = None,
    **overrides,
) -> ABCPMCResult:
    """Convenience wrapper: build a PMCSampler and run it."""
    return PMCSampler(problem, config, observers, **overrides).run(key)


__all__ = ["PMCSampler", "run_abc_pmc", "passes_history", "kth_smallest"]
