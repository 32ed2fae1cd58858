"""
Base class for statistical models in ABC simulation.

This module defines the interface a model implements to be turned into an
ABCProblem for the PMC sampler.
"""

from abc import ABC, abstractmethod
import jax.numpy as jnp
from jax import random, vmap
from typing import Dict, Any, Tuple

from ..base import ABCProblem


class StatisticalModel(ABC):
    """
    Abstract base class for models used with the PMC sampler.

    All models must implement:
    - get_prior_sample(): Sample parameters from the prior
    - prior_pdf(): Prior density at a parameter vector
    - simulate_summaries(): Simulate summary statistics, with a success flag
    - get_model_args(): Return arguments for model reconstruction

    Subclasses set ``parameter_dim`` and ``summary_dim``.
    """

    parameter_dim: int
    summary_dim: int

    @abstractmethod
    def get_prior_sample(self, key: random.PRNGKey) -> jnp.ndarray:
        """
        Sample parameters from prior distribution.

        Args:
            key: JAX random key

        Returns:
            Parameter sample of shape (parameter_dim,)
        """
        pass

    def get_prior_samples(self, key: random.PRNGKey, n_samples: int) -> jnp.ndarray:
        """
        Draws multiple samples from the prior distribution efficiently.

        Args:
            key: A single JAX random key.
            n_samples: The number of samples to draw from the prior.

        Returns:
            An array of parameter sets of shape (n_samples, parameter_dim).
        """
        keys = random.split(key, n_samples)
        return vmap(self.get_prior_sample)(keys)

    @abstractmethod
    def prior_pdf(self, theta: jnp.ndarray) -> float:
        """Prior density at theta (zero outside the support)."""
        pass

    @abstractmethod
    def simulate_summaries(
        self, key: random.PRNGKey, theta: jnp.ndarray
    ) -> Tuple[bool, jnp.ndarray]:
        """
        Simulate summary statistics given parameters.

        Args:
            key: JAX random key
            theta: Parameter values

        Returns:
            Tuple (success, stats) with stats of shape (summary_dim,)
        """
        pass

    @abstractmethod
    def get_model_args(self) -> Dict[str, Any]:
        """
        Get model-specific arguments for serialization.

        Returns:
            Dictionary of arguments needed to recreate the model
        """
        pass

    def simulate_observed_stats(
        self, key: random.PRNGKey, theta: jnp.ndarray
    ) -> jnp.ndarray:
        """Simulate a pseudo-observed dataset's summaries at a known theta."""
        theta = jnp.atleast_1d(jnp.asarray(theta, dtype=float))
        if theta.shape != (self.parameter_dim,):
            raise ValueError(
                f"theta must have shape ({self.parameter_dim},) (got {theta.shape})"
            )
        success, stats = self.simulate_summaries(key, theta)
        if not bool(success):
            raise ValueError(f"Simulation failed at theta = {theta}")
        return stats

    def to_problem(self, observed_stats) -> ABCProblem:
        """
        Build the ABCProblem for this model and an observation.

        Args:
            observed_stats: Observed summary statistics, shape (summary_dim,)

        Returns:
            ABCProblem wired to this model's prior and simulator
        """
        problem = ABCProblem.create(
            prior_sample=self.get_prior_sample,
            prior_density=self.prior_pdf,
            simulator=self.simulate_summaries,
            observed_stats=observed_stats,
            n_params=self.parameter_dim,
        )
        if problem.n_stats != self.summary_dim:
            raise ValueError(
                f"observed_stats has {problem.n_stats} entries, "
                f"model produces {self.summary_dim}"
            )
        return problem

    def get_model_info(self) -> Dict[str, Any]:
        """
        Get information about the model.

        Returns:
            Dictionary with model information
        """
        return {
            "model_class": self.__class__.__name__,
            "model_module": self.__module__,
            "model_args": self.get_model_args(),
        }

    def __repr__(self) -> str:
        """String representation of the model."""
        return f"{self.__class__.__name__}({self.get_model_args()})"


# Export main class
__all__ = ["StatisticalModel"]
