"""Tests for the adaptive ABC-PMC sampler."""

from math import ceil

import pytest
import numpy as np
import jax.numpy as jnp
from jax import random
from numpy.testing import assert_allclose, assert_array_equal

from abcadapt.simulation import (
    ABCProblem,
    ConfigurationError,
    PMCConfig,
    PMCObserver,
    PMCSampler,
    ProgressObserver,
    run_abc_pmc,
)
from abcadapt.simulation.distances import evaluate_distance, evaluate_distances
from abcadapt.simulation.sampler import kth_smallest, passes_history
from abcadapt.diagnostics import parameter_means

from conftest import CountingSimulator


class RecordingObserver(PMCObserver):
    """Keeps every notification it receives."""

    def __init__(self):
        self.events = []
        self.candidates = 0
        self.summaries = []

    def on_run_start(self, config):
        self.events.append("run_start")

    def on_iteration_start(self, iteration, sims_done):
        self.events.append(("iteration_start", iteration, sims_done))

    def on_candidate(self, sims_done):
        self.candidates += 1

    def on_iteration_complete(self, summary):
        self.summaries.append(summary)

    def on_run_end(self, result):
        self.events.append("run_end")


class TestHelpers:
    """Order statistic and history acceptance helpers."""

    def test_kth_smallest(self):
        values = jnp.array([0.4, 0.1, 0.3, 0.2])
        assert kth_smallest(values, 1) == pytest.approx(0.1)
        assert kth_smallest(values, 2) == pytest.approx(0.2)
        assert kth_smallest(values, 4) == pytest.approx(0.4)

    def test_passes_history_requires_every_pair(self, uniform_problem):
        from abcadapt.simulation import DistanceMetric

        metric = DistanceMetric.create("euclidean", jnp.array([0.5]))
        stats = jnp.array([0.6])

        assert passes_history(stats, [], [])
        assert passes_history(stats, [metric, metric], [0.2, 0.15])
        assert not passes_history(stats, [metric, metric], [0.2, 0.05])


class TestConfiguration:
    """Invalid settings are rejected before anything is simulated."""

    @pytest.mark.parametrize(
        "overrides",
        [
            {"n_particles": 0},
            {"alpha": 0.0},
            {"alpha": 1.5},
            {"max_sims": 0},
            {"n_sims_for_init": 0},
            {"distance": "cityblock"},
            {"distance": "lp"},
            {"distance": "lp", "distance_args": {"p": -1.0}},
            {"batch_size": 0},
        ],
    )
    def test_invalid_settings(self, overrides):
        simulator = CountingSimulator(lambda key, theta: (True, theta))
        problem = ABCProblem.create(
            prior_sample=lambda key: random.uniform(key, shape=(1,)),
            prior_density=lambda theta: 1.0,
            simulator=simulator,
            observed_stats=jnp.array([0.5]),
            n_params=1,
        )

        with pytest.raises(ConfigurationError):
            run_abc_pmc(random.PRNGKey(0), problem, silent=True, **overrides)
        assert simulator.calls == 0

    def test_unknown_override(self, uniform_problem):
        with pytest.raises(ConfigurationError, match="Unknown PMC config keys"):
            PMCSampler(uniform_problem, n_particle=10)

    def test_overrides_replace_config_fields(self, uniform_problem):
        base = PMCConfig(n_particles=50, silent=True)
        sampler = PMCSampler(uniform_problem, base, alpha=0.3, max_sims=1000)

        assert sampler.config.n_particles == 50
        assert sampler.config.alpha == 0.3
        assert sampler.config.max_sims == 1000
        assert base.alpha == 0.5
        assert sampler.k == ceil(50 * 0.3)
        assert sampler.batch_size == 50

    def test_observed_shape_mismatch(self, uniform_problem):
        problem = uniform_problem._replace(observed_stats=jnp.array([0.5, 0.5]))
        with pytest.raises(ConfigurationError, match="observed_stats"):
            PMCSampler(problem, silent=True)

    def test_silent_has_no_default_observers(self, uniform_problem):
        assert PMCSampler(uniform_problem, silent=True).observers == []
        assert len(PMCSampler(uniform_problem, silent=False).observers) == 1


class TestResultInvariants:
    """Properties every completed run must satisfy."""

    def test_shapes(self, gauss_result):
        result, sampler = gauss_result
        T = result.n_iterations

        assert T >= 3
        assert result.parameters.shape == (T, 100, 2)
        assert result.sumstats.shape == (T, 100, 2)
        assert result.distances.shape == (T, 100)
        assert result.weights.shape == (T, 100)
        assert result.cumulative_sims.shape == (T,)
        assert result.thresholds.shape == (T,)
        assert len(result.metrics) == T

    def test_simulation_counts(self, gauss_result):
        result, sampler = gauss_result
        cumulative = np.asarray(result.cumulative_sims)

        assert cumulative[0] == 100
        assert np.all(np.diff(cumulative) > 0)
        assert cumulative[-1] <= result.n_sims
        assert result.n_sims == sampler.config.max_sims

    def test_first_iteration(self, gauss_result):
        result, _ = gauss_result
        assert_array_equal(np.asarray(result.distances[0]), 0.0)
        assert_array_equal(np.asarray(result.weights[0]), 1.0)
        assert result.population(0).metric is None

    def test_threshold_is_order_statistic(self, gauss_result):
        result, sampler = gauss_result
        for t in range(result.n_iterations):
            d = np.asarray(evaluate_distances(result.metrics[t], result.sumstats[t]))
            expected = np.sort(d)[sampler.k - 1]
            assert float(result.thresholds[t]) == pytest.approx(float(expected))
            assert np.sum(d <= float(result.thresholds[t])) >= sampler.k

    def test_accepted_particles_pass_history(self, gauss_result):
        result, _ = gauss_result
        for t in range(1, result.n_iterations):
            for stats in result.sumstats[t]:
                for m in range(t):
                    d = float(evaluate_distance(result.metrics[m], stats))
                    assert d <= float(result.thresholds[m])

    def test_distances_use_acceptance_metric(self, gauss_result):
        result, _ = gauss_result
        for t in range(1, result.n_iterations):
            population = result.population(t)
            assert population.metric is result.metrics[t - 1]
            expected = evaluate_distances(result.metrics[t - 1], result.sumstats[t])
            assert_allclose(np.asarray(result.distances[t]), np.asarray(expected), rtol=1e-6)
            threshold = float(result.thresholds[t - 1])
            assert np.all(np.asarray(result.distances[t]) <= threshold * (1 + 1e-6))

    def test_weights(self, gauss_result):
        result, _ = gauss_result
        weights = np.asarray(result.weights)
        assert np.all(np.isfinite(weights))
        assert np.all(weights > 0)
        assert_allclose(weights[1:].max(axis=1), 1.0, rtol=1e-6)

    def test_metrics_are_fitted(self, gauss_result):
        result, _ = gauss_result
        for metric in result.metrics:
            assert metric.kind == "mahalanobis_emp"
            assert metric.is_fitted

    def test_reference_tables_stored(self, gauss_result):
        result, sampler = gauss_result
        assert len(result.init_params) == result.n_iterations
        for t, (params, stats) in enumerate(zip(result.init_params, result.init_stats)):
            sims = result.population(t).n_sims
            assert params.shape[0] == stats.shape[0]
            assert 100 <= params.shape[0] <= min(sims, sampler.config.n_sims_for_init)

    def test_particles_inside_prior(self, gauss_result):
        result, _ = gauss_result
        params = np.asarray(result.parameters)
        assert np.all((params[..., 0] >= -5) & (params[..., 0] <= 5))
        assert np.all((params[..., 1] >= 0.1) & (params[..., 1] <= 5))


class TestBudget:
    """Simulation budget accounting and termination."""

    def test_failing_simulator(self, failing_problem):
        result = run_abc_pmc(
            random.PRNGKey(0), failing_problem, n_particles=10, max_sims=50, silent=True
        )

        assert result.n_iterations == 0
        assert result.n_sims == 50
        assert failing_problem.simulator.calls == 50
        assert result.parameters.shape == (0, 10, 1)
        with pytest.raises(IndexError):
            result.final_population()

    def test_budget_below_population_size(self, uniform_problem):
        result = run_abc_pmc(
            random.PRNGKey(0), uniform_problem, n_particles=50, max_sims=30, silent=True
        )
        assert result.n_iterations == 0
        assert result.n_sims == 30

    def test_partial_iteration_is_discarded(self, uniform_problem):
        result = run_abc_pmc(
            random.PRNGKey(0),
            uniform_problem,
            n_particles=50,
            max_sims=100,
            distance="euclidean",
            silent=True,
        )
        # 50 sims for the first iteration, the second cannot accept every candidate
        assert result.n_iterations == 1
        assert int(result.cumulative_sims[-1]) == 50
        assert result.n_sims == 100

    def test_zero_prior_density_costs_nothing(self):
        evaluated = []

        def simulator(key, theta):
            evaluated.append(float(theta[0]))
            return True, theta

        simulator = CountingSimulator(simulator)
        problem = ABCProblem.create(
            prior_sample=lambda key: random.uniform(key, shape=(1,), maxval=2.0),
            prior_density=lambda theta: jnp.where(theta[0] <= 1.0, 1.0, 0.0),
            simulator=simulator,
            observed_stats=jnp.array([0.5]),
            n_params=1,
        )
        result = run_abc_pmc(
            random.PRNGKey(3), problem, n_particles=40, max_sims=400,
            distance="euclidean", silent=True,
        )

        assert simulator.calls == result.n_sims == 400
        assert max(evaluated) <= 1.0

    def test_failed_simulations_count(self):
        def simulator(key, theta):
            return random.uniform(key) < 0.5, theta

        simulator = CountingSimulator(simulator)
        problem = ABCProblem.create(
            prior_sample=lambda key: random.uniform(key, shape=(1,)),
            prior_density=lambda theta: 1.0,
            simulator=simulator,
            observed_stats=jnp.array([0.5]),
            n_params=1,
        )
        result = run_abc_pmc(
            random.PRNGKey(4), problem, n_particles=20, max_sims=500, silent=True
        )

        assert simulator.calls == result.n_sims == 500
        assert result.n_iterations >= 1
        # Roughly half the first simulations fail, so INIT needs more than N
        assert int(result.cumulative_sims[0]) > 20


class TestEndToEnd:
    """Complete runs on the toy models."""

    def test_uniform_identity_posterior(self, uniform_problem):
        result = run_abc_pmc(
            random.PRNGKey(0),
            uniform_problem,
            n_particles=200,
            alpha=0.5,
            max_sims=20000,
            distance="euclidean",
            silent=True,
        )

        assert result.n_iterations >= 3
        assert parameter_means(result)[0] == pytest.approx(0.5, abs=0.05)
        thresholds = np.asarray(result.thresholds)
        assert thresholds[0] > thresholds[1] > thresholds[2]

    def test_same_key_same_result(self, uniform_problem):
        config = PMCConfig(n_particles=30, max_sims=300, n_sims_for_init=100, silent=True)
        a = run_abc_pmc(random.PRNGKey(5), uniform_problem, config)
        b = run_abc_pmc(random.PRNGKey(5), uniform_problem, config)

        assert_array_equal(np.asarray(a.parameters), np.asarray(b.parameters))
        assert_array_equal(np.asarray(a.thresholds), np.asarray(b.thresholds))

    def test_non_adaptive_freezes_first_metric(self, gauss_problem):
        result = run_abc_pmc(
            random.PRNGKey(2),
            gauss_problem,
            n_particles=50,
            max_sims=1000,
            n_sims_for_init=200,
            adaptive=False,
            silent=True,
        )

        assert result.n_iterations >= 2
        assert all(metric is result.metrics[0] for metric in result.metrics)
        thresholds = np.asarray(result.thresholds)
        assert np.all(np.diff(thresholds) <= 1e-6 * thresholds[:-1])

    def test_diagonal_perturbation(self, gauss_problem):
        result = run_abc_pmc(
            random.PRNGKey(2),
            gauss_problem,
            n_particles=50,
            max_sims=800,
            diag_perturb=True,
            distance="weighted_euclidean",
            silent=True,
        )
        assert result.n_iterations >= 2
        assert np.all(np.isfinite(np.asarray(result.parameters)))
        assert np.all(np.asarray(result.weights) > 0)

    def test_batched_proposals(self, uniform_problem):
        result = run_abc_pmc(
            random.PRNGKey(6),
            uniform_problem,
            n_particles=40,
            max_sims=600,
            batch_size=7,
            distance="euclidean",
            silent=True,
        )
        assert result.n_iterations >= 2
        assert result.n_sims == 600

    def test_observer_notifications(self, uniform_problem):
        observer = RecordingObserver()
        result = run_abc_pmc(
            random.PRNGKey(1),
            uniform_problem,
            observers=[observer],
            n_particles=30,
            max_sims=400,
            distance="euclidean",
        )

        assert observer.events[0] == "run_start"
        assert observer.events[-1] == "run_end"
        assert observer.candidates == result.n_sims
        assert len(observer.summaries) == result.n_iterations

        starts = [e for e in observer.events if isinstance(e, tuple)]
        # One start per completed iteration plus the discarded one
        assert len(starts) == result.n_iterations + 1
        assert starts[0] == ("iteration_start", 1, 0)

        for t, summary in enumerate(observer.summaries):
            assert summary.iteration == t + 1
            assert summary.sims_done == int(result.cumulative_sims[t])
            assert summary.threshold == pytest.approx(float(result.thresholds[t]))
            assert summary.acceptance_rate == pytest.approx(
                15 / summary.sims_this_iteration
            )


class TestSimulatorErrors:
    """Exceptions raised by the simulator propagate and release observers."""

    def test_progress_bar_closed_on_error(self):
        def crash_after_30(key, theta):
            if simulator.calls > 30:
                raise RuntimeError("simulator crashed")
            return True, theta

        simulator = CountingSimulator(crash_after_30)
        problem = ABCProblem.create(
            prior_sample=lambda key: random.uniform(key, shape=(1,)),
            prior_density=lambda theta: 1.0,
            simulator=simulator,
            observed_stats=jnp.array([0.5]),
            n_params=1,
        )
        progress = ProgressObserver(show_bar=True)
        recorder = RecordingObserver()

        with pytest.raises(RuntimeError, match="simulator crashed"):
            run_abc_pmc(
                random.PRNGKey(0),
                problem,
                observers=[progress, recorder],
                n_particles=20,
                max_sims=500,
                distance="euclidean",
            )

        assert progress._bar is None
        assert "run_end" not in recorder.events
