"""Pytest configuration and fixtures."""

import pytest
import jax.numpy as jnp
from jax import random

from abcadapt.simulation import ABCProblem, PMCConfig, PMCSampler
from abcadapt.simulation.models import GaussGaussModel, UniformIdentityModel


class CountingSimulator:
    """Wraps a simulator and counts its calls."""

    def __init__(self, simulator):
        self.simulator = simulator
        self.calls = 0

    def __call__(self, key, theta):
        self.calls += 1
        return self.simulator(key, theta)


@pytest.fixture
def uniform_problem():
    """U(0, 1) prior, the parameter is its own statistic, observed 0.5."""
    return UniformIdentityModel().to_problem(jnp.array([0.5]))


@pytest.fixture
def gauss_problem():
    """Two-parameter Gaussian model observed at mu=1, sigma=2."""
    model = GaussGaussModel(n_obs=50)
    observed = model.simulate_observed_stats(random.PRNGKey(1), jnp.array([1.0, 2.0]))
    return model.to_problem(observed)


@pytest.fixture
def failing_problem():
    """Simulator that always reports failure."""
    model = UniformIdentityModel()
    return ABCProblem.create(
        prior_sample=model.get_prior_sample,
        prior_density=model.prior_pdf,
        simulator=CountingSimulator(lambda key, theta: (False, jnp.zeros(1))),
        observed_stats=jnp.array([0.5]),
        n_params=1,
    )


@pytest.fixture(scope="module")
def gauss_result():
    """Small adaptive run on the Gaussian model, reused across a module."""
    model = GaussGaussModel(n_obs=50)
    observed = model.simulate_observed_stats(random.PRNGKey(1), jnp.array([1.0, 2.0]))
    config = PMCConfig(
        n_particles=100,
        alpha=0.5,
        max_sims=3000,
        n_sims_for_init=500,
        distance="mahalanobis_emp",
        store_init=True,
        silent=True,
    )
    sampler = PMCSampler(model.to_problem(observed), config)
    return sampler.run(random.PRNGKey(7)), sampler
