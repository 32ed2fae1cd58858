"""Tests for the demonstration models and the model registry."""

import pytest
import numpy as np
import jax.numpy as jnp
from jax import random

from abcadapt.simulation.models import (
    GaussGaussModel,
    StatisticalModel,
    UniformIdentityModel,
    create_model_from_dict,
    get_available_models,
    register_model,
)


class TestUniformIdentityModel:
    def test_prior(self):
        model = UniformIdentityModel(low=-1.0, high=3.0, dim=2)
        samples = np.asarray(model.get_prior_samples(random.PRNGKey(0), 500))

        assert samples.shape == (500, 2)
        assert np.all((samples >= -1.0) & (samples <= 3.0))
        assert model.prior_pdf(jnp.array([0.0, 2.0])) == pytest.approx(1.0 / 16.0)
        assert model.prior_pdf(jnp.array([0.0, 3.5])) == 0.0

    def test_simulation_is_near_identity(self):
        model = UniformIdentityModel()
        theta = jnp.array([0.3])
        success, stats = model.simulate_summaries(random.PRNGKey(1), theta)

        assert success
        assert stats.shape == (1,)
        assert float(stats[0]) == pytest.approx(0.3, abs=1e-5)

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            UniformIdentityModel(low=1.0, high=0.0)
        with pytest.raises(ValueError):
            UniformIdentityModel(dim=0)


class TestGaussGaussModel:
    def test_summaries(self):
        model = GaussGaussModel(n_obs=2000)
        stats = model.simulate_observed_stats(random.PRNGKey(2), jnp.array([1.0, 2.0]))

        assert stats.shape == (2,)
        assert float(stats[0]) == pytest.approx(1.0, abs=0.2)
        assert float(stats[1]) == pytest.approx(2.0, abs=0.2)

    def test_prior_support(self):
        model = GaussGaussModel()
        assert model.prior_pdf(jnp.array([0.0, 1.0])) > 0
        assert model.prior_pdf(jnp.array([0.0, 0.05])) == 0.0
        assert model.prior_pdf(jnp.array([6.0, 1.0])) == 0.0

    def test_observed_theta_shape(self):
        with pytest.raises(ValueError, match="theta must have shape"):
            GaussGaussModel().simulate_observed_stats(random.PRNGKey(0), jnp.array([1.0]))

    def test_invalid_arguments(self):
        with pytest.raises(ValueError):
            GaussGaussModel(sigma_range=(-1.0, 1.0))
        with pytest.raises(ValueError):
            GaussGaussModel(n_obs=1)

    def test_to_problem(self):
        problem = GaussGaussModel().to_problem(jnp.array([0.0, 1.0]))
        assert problem.n_params == 2
        assert problem.n_stats == 2

        with pytest.raises(ValueError, match="observed_stats"):
            GaussGaussModel().to_problem(jnp.array([0.0, 1.0, 2.0]))


class TestModelRegistry:
    def test_available_models(self):
        available = get_available_models()
        assert available["UniformIdentityModel"] == "UniformIdentityModel"
        assert available["GaussGaussModel"] == "GaussGaussModel"

    def test_create_from_dict(self):
        model = create_model_from_dict(
            {"model_type": "GaussGaussModel", "model_args": {"n_obs": 20}}
        )
        assert isinstance(model, GaussGaussModel)
        assert model.n_obs == 20
        assert model.get_model_info()["model_args"]["n_obs"] == 20

    def test_unknown_model(self):
        with pytest.raises(ValueError, match="Unknown model type"):
            create_model_from_dict({"model_type": "Lotka"})
        with pytest.raises(ValueError, match="model_type"):
            create_model_from_dict({})

    def test_register_model(self):
        class ShiftedModel(UniformIdentityModel):
            pass

        register_model("ShiftedModel", ShiftedModel)
        model = create_model_from_dict({"model_type": "ShiftedModel"})
        assert isinstance(model, StatisticalModel)
        assert isinstance(model, ShiftedModel)
