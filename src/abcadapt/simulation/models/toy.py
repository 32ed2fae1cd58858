"""
Small demonstration models.

These exist so the CLI and tests can run the sampler end to end; they are
not meant as a modelling library.
"""

from jax import random
import jax.numpy as jnp
from typing import Dict, Any, Sequence, Tuple

from .base import StatisticalModel


def _box_pdf(theta: jnp.ndarray, low: jnp.ndarray, high: jnp.ndarray) -> float:
    inside = jnp.all((theta >= low) & (theta <= high))
    return float(jnp.where(inside, 1.0 / jnp.prod(high - low), 0.0))


class UniformIdentityModel(StatisticalModel):
    """
    The parameter is its own summary statistic, up to negligible noise.

    Model: S | theta = theta + noise * U(0, 1)
    Prior: theta ~ U(low, high) independently in each dimension

    Args:
        low: Lower bound of the prior (default: 0.0)
        high: Upper bound of the prior (default: 1.0)
        noise: Scale of the uniform simulation noise (default: 1e-6)
        dim: Number of parameters (default: 1)
    """

    def __init__(
        self, low: float = 0.0, high: float = 1.0, noise: float = 1e-6, dim: int = 1
    ):
        if not high > low:
            raise ValueError("high must be greater than low")
        if noise < 0:
            raise ValueError("noise must be non-negative")
        if dim <= 0:
            raise ValueError("dim must be positive")

        self.low = float(low)
        self.high = float(high)
        self.noise = float(noise)
        self.dim = int(dim)
        self.parameter_dim = self.dim
        self.summary_dim = self.dim

    def get_prior_sample(self, key: random.PRNGKey) -> jnp.ndarray:
        return random.uniform(
            key, shape=(self.dim,), minval=self.low, maxval=self.high
        )

    def prior_pdf(self, theta: jnp.ndarray) -> float:
        low = jnp.full(self.dim, self.low)
        high = jnp.full(self.dim, self.high)
        return _box_pdf(jnp.asarray(theta), low, high)

    def simulate_summaries(
        self, key: random.PRNGKey, theta: jnp.ndarray
    ) -> Tuple[bool, jnp.ndarray]:
        return True, theta + self.noise * random.uniform(key, shape=(self.dim,))

    def get_model_args(self) -> Dict[str, Any]:
        return {"low": self.low, "high": self.high, "noise": self.noise, "dim": self.dim}


class GaussGaussModel(StatisticalModel):
    """
    Gaussian observations with unknown mean and standard deviation.

    Model: X_1..X_n | (mu, sigma) ~ N(mu, sigma^2)
    Prior: mu ~ U(mu_range), sigma ~ U(sigma_range)
    Summaries: sample mean and sample standard deviation

    Args:
        mu_range: Prior bounds of mu (default: (-5, 5))
        sigma_range: Prior bounds of sigma, strictly positive (default: (0.1, 5))
        n_obs: Number of observations per dataset (default: 50)

    Example:
        model = GaussGaussModel()
        observed = model.simulate_observed_stats(random.PRNGKey(1), jnp.array([1.0, 2.0]))
        problem = model.to_problem(observed)
    """

    def __init__(
        self,
        mu_range: Sequence[float] = (-5.0, 5.0),
        sigma_range: Sequence[float] = (0.1, 5.0),
        n_obs: int = 50,
    ):
        mu_range = tuple(float(v) for v in mu_range)
        sigma_range = tuple(float(v) for v in sigma_range)
        if len(mu_range) != 2 or not mu_range[1] > mu_range[0]:
            raise ValueError("mu_range must be an increasing pair")
        if len(sigma_range) != 2 or not sigma_range[1] > sigma_range[0] > 0:
            raise ValueError("sigma_range must be an increasing pair of positive values")
        if n_obs < 2:
            raise ValueError("n_obs must be at least 2")

        self.mu_range = mu_range
        self.sigma_range = sigma_range
        self.n_obs = int(n_obs)
        self.parameter_dim = 2
        self.summary_dim = 2
        self._low = jnp.array([mu_range[0], sigma_range[0]])
        self._high = jnp.array([mu_range[1], sigma_range[1]])

    def get_prior_sample(self, key: random.PRNGKey) -> jnp.ndarray:
        return random.uniform(key, shape=(2,), minval=self._low, maxval=self._high)

    def prior_pdf(self, theta: jnp.ndarray) -> float:
        return _box_pdf(jnp.asarray(theta), self._low, self._high)

    def simulate_summaries(
        self, key: random.PRNGKey, theta: jnp.ndarray
    ) -> Tuple[bool, jnp.ndarray]:
        mu, sigma = theta[0], theta[1]
        x = mu + sigma * random.normal(key, shape=(self.n_obs,))
        return True, jnp.array([jnp.mean(x), jnp.std(x, ddof=1)])

    def get_model_args(self) -> Dict[str, Any]:
        return {
            "mu_range": list(self.mu_range),
            "sigma_range": list(self.sigma_range),
            "n_obs": self.n_obs,
        }


__all__ = ["UniformIdentityModel", "GaussGaussModel"]
