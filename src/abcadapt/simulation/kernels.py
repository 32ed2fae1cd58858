"""
Perturbation kernel and importance weights for ABC-PMC.

New particles are proposed by picking a particle of the previous population
(with probability proportional to its weight) and adding zero-mean Gaussian
noise. The noise covariance is twice the weighted covariance of the previous
population. Importance weights correct for sampling from that mixture rather
than from the prior.
"""

from dataclasses import dataclass
import logging

import jax.numpy as jnp
from jax import random
from jax.scipy.special import logsumexp
from jax.scipy.stats import multivariate_normal

logger = logging.getLogger(__name__)

# Fixed scaling of the population covariance
KERNEL_SCALE = 2.0
# Jitter added to the kernel covariance, relative to its mean variance
KERNEL_JITTER = 1e-6
# Absolute lower bound on the jitter (collapsed populations)
KERNEL_MIN_JITTER = 1e-12


def normalize_weights(weights: jnp.ndarray) -> jnp.ndarray:
    weights = jnp.asarray(weights, dtype=float)
    return weights / jnp.sum(weights)


def weighted_covariance(parameters: jnp.ndarray, weights: jnp.ndarray) -> jnp.ndarray:
    """
    Weighted covariance of a particle population.

    Weights are normalised and no bias correction is applied.

    Args:
        parameters: Particles, shape (n, n_params)
        weights: Unnormalised weights, shape (n,)

    Returns:
        Covariance matrix of shape (n_params, n_params)
    """
    w = normalize_weights(weights)
    mean = w @ parameters
    centered = parameters - mean
    return (centered * w[:, None]).T @ centered


def weighted_variance(parameters: jnp.ndarray, weights: jnp.ndarray) -> jnp.ndarray:
    """Per-parameter weighted variance, shape (n_params,)."""
    w = normalize_weights(weights)
    mean = w @ parameters
    return w @ (parameters - mean) ** 2


@dataclass(frozen=True, eq=False)
class PerturbationKernel:
    """
    Zero-mean multivariate normal perturbation.

    Attributes:
        cov: Covariance matrix, shape (n_params, n_params)
        diagonal: Whether the covariance was built from variances only
    """

    cov: jnp.ndarray
    diagonal: bool = False

    @classmethod
    def from_population(
        cls, parameters: jnp.ndarray, weights: jnp.ndarray, diagonal: bool = False
    ) -> "PerturbationKernel":
        """
        Build the kernel from the previous population.

        Args:
            parameters: Previous particles, shape (n, n_params)
            weights: Previous weights, shape (n,)
            diagonal: Ignore cross-covariances

        Returns:
            PerturbationKernel with covariance 2 * weighted covariance
        """
        parameters = jnp.asarray(parameters, dtype=float)
        if diagonal:
            cov = jnp.diag(KERNEL_SCALE * weighted_variance(parameters, weights))
        else:
            cov = KERNEL_SCALE * weighted_covariance(parameters, weights)

        n_params = cov.shape[0]
        jitter = max(KERNEL_JITTER * float(jnp.trace(cov)) / n_params, KERNEL_MIN_JITTER)
        cov = cov + jitter * jnp.eye(n_params)
        logger.debug(f"Perturbation kernel variances: {jnp.diag(cov)}")
        return cls(cov=cov, diagonal=diagonal)

    @property
    def n_params(self) -> int:
        return int(self.cov.shape[0])

    def sample(self, key: random.PRNGKey, n_samples: int) -> jnp.ndarray:
        """Draw perturbations of shape (n_samples, n_params)."""
        if self.diagonal:
            sd = jnp.sqrt(jnp.diag(self.cov))
            return sd * random.normal(key, shape=(n_samples, self.n_params))
        return random.multivariate_normal(
            key, jnp.zeros(self.n_params), self.cov, shape=(n_samples,)
        )

    def logpdf(self, displacements: jnp.ndarray) -> jnp.ndarray:
        """Log-density of displacements of shape (..., n_params)."""
        return multivariate_normal.logpdf(
            displacements, jnp.zeros(self.n_params), self.cov
        )


def propose_from_population(
    key: random.PRNGKey,
    parameters: jnp.ndarray,
    weights: jnp.ndarray,
    kernel: PerturbationKernel,
    n_samples: int,
) -> jnp.ndarray:
    """
    Draw proposals from the perturbed population mixture.

    Args:
        key: JAX random key
        parameters: Previous particles, shape (n, n_params)
        weights: Previous weights, shape (n,)
        kernel: Perturbation kernel
        n_samples: Number of proposals

    Returns:
        Proposals of shape (n_samples, n_params)
    """
    key_index, key_noise = random.split(key)
    indices = random.choice(
        key_index,
        parameters.shape[0],
        shape=(n_samples,),
        p=normalize_weights(weights),
    )
    return parameters[indices] + kernel.sample(key_noise, n_samples)


def get_weights(
    parameters: jnp.ndarray,
    prior_weights: jnp.ndarray,
    prev_parameters: jnp.ndarray,
    prev_weights: jnp.ndarray,
    kernel: PerturbationKernel,
) -> jnp.ndarray:
    """
    Importance weights of a new population.

    w_i is proportional to prior(theta_i) / sum_j W_j K(theta_i - theta_j),
    with W the normalised weights of the previous population and K the
    perturbation kernel density. The denominator is the density of the
    mixture the particles were drawn from.

    Args:
        parameters: New particles, shape (n, n_params)
        prior_weights: Prior density at each new particle, shape (n,)
        prev_parameters: Previous particles, shape (m, n_params)
        prev_weights: Previous weights, shape (m,)
        kernel: Kernel used to perturb the previous particles

    Returns:
        Unnormalised weights of shape (n,), scaled so the largest is 1.
        Particles with zero prior density get weight 0.
    """
    prior_weights = jnp.asarray(prior_weights, dtype=float)
    log_prev = jnp.log(normalize_weights(prev_weights))

    displacements = parameters[:, None, :] - prev_parameters[None, :, :]
    log_kernel = kernel.logpdf(displacements)
    log_mixture = logsumexp(log_kernel + log_prev[None, :], axis=1)

    positive = prior_weights > 0
    log_weights = jnp.where(
        positive, jnp.log(jnp.where(positive, prior_weights, 1.0)) - log_mixture, -jnp.inf
    )
    finite = jnp.isfinite(log_weights)
    if bool(jnp.any(finite)):
        log_weights = log_weights - jnp.max(jnp.where(finite, log_weights, -jnp.inf))
    return jnp.where(positive, jnp.exp(log_weights), 0.0)


__all__ = [
    "KERNEL_SCALE",
    "KERNEL_JITTER",
    "PerturbationKernel",
    "normalize_weights",
    "weighted_covariance",
    "weighted_variance",
    "propose_from_population",
    "get_weights",
]
