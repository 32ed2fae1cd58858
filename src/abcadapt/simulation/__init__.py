"""
ABC-PMC simulation module for abcadapt.

This module provides the adaptive-distance ABC-PMC sampler together with
its distances, perturbation kernel, result structures and persistence.
"""

# Main sampler class
from .sampler import PMCSampler, run_abc_pmc

# Result structures
from .base import (
    ABCProblem,
    ABCPMCResult,
    ParticlePopulation,
    IterationSummary,
)

# Distances
from .distances import (
    DistanceMetric,
    DISTANCE_KINDS,
    fit_distance,
    evaluate_distance,
    evaluate_distances,
)

# Building blocks
from .reference import ReferenceTable
from .kernels import PerturbationKernel, get_weights
from .observers import PMCObserver, ProgressObserver

# Configuration
from .config import PMCConfig, ConfigurationError, validate_pmc_config

# I/O functions
from .io import save_result_to_yaml, load_result_from_yaml

# Registry functions
from .registry import (
    create_distance_from_dict,
    create_sampler_from_dict,
    get_supported_distance_types,
    resolve_distance_type,
)

# Model imports
from .models import StatisticalModel, UniformIdentityModel, GaussGaussModel

__all__ = [
    # Main classes
    "PMCSampler",
    "run_abc_pmc",
    # Result structures
    "ABCProblem",
    "ABCPMCResult",
    "ParticlePopulation",
    "IterationSummary",
    # Distances
    "DistanceMetric",
    "DISTANCE_KINDS",
    "fit_distance",
    "evaluate_distance",
    "evaluate_distances",
    # Building blocks
    "ReferenceTable",
    "PerturbationKernel",
    "get_weights",
    "PMCObserver",
    "ProgressObserver",
    # Configuration
    "PMCConfig",
    "ConfigurationError",
    "validate_pmc_config",
    # I/O functions
    "save_result_to_yaml",
    "load_result_from_yaml",
    # Registry functions
    "create_distance_from_dict",
    "create_sampler_from_dict",
    "get_supported_distance_types",
    "resolve_distance_type",
    # Models
    "StatisticalModel",
    "UniformIdentityModel",
    "GaussGaussModel",
]
