"""
Registry for simulation module components.

This module provides factory functions for:
- DistanceMetric instances
- PMCSampler instances

Functions follow the naming convention:
- create_distance_from_dict()
- create_sampler_from_dict()
"""

from typing import Dict, Any, List, Optional, Sequence, TYPE_CHECKING
import logging

from .distances import DistanceMetric, DISTANCE_KINDS
from .config import PMCConfig, ConfigurationError

if TYPE_CHECKING:
    from .base import ABCProblem
    from .observers import PMCObserver
    from .sampler import PMCSampler

# Configure logging
logger = logging.getLogger(__name__)

# Names accepted in configuration files for each distance kind
DISTANCE_ALIASES: Dict[str, str] = {
    "Euclidean": "euclidean",
    "Lp": "lp",
    "Logdist": "logdist",
    "WeightedEuclidean": "weighted_euclidean",
    "MahalanobisEmp": "mahalanobis_emp",
}


def get_supported_distance_types() -> List[str]:
    """
    Get list of supported distance kinds.

    Returns:
        List of distance kind strings
    """
    return list(DISTANCE_KINDS)


def resolve_distance_type(name: str) -> str:
    """Map a distance name or alias to its kind."""
    kind = DISTANCE_ALIASES.get(name, name)
    if kind not in DISTANCE_KINDS:
        raise ValueError(
            f"Unknown distance type: {name}. Supported: {get_supported_distance_types()}"
        )
    return kind


def create_distance_from_dict(config: Dict[str, Any], observed) -> DistanceMetric:
    """
    Create an unfitted DistanceMetric from a configuration dictionary.

    Args:
        config: Dictionary with a "type" key and optional "p"
        observed: Observed summary statistics

    Returns:
        DistanceMetric

    Example:
        distance = create_distance_from_dict({"type": "lp", "p": 1.0}, observed)
    """
    if "type" not in config:
        raise ValueError("Distance configuration requires a 'type' key")
    kind = resolve_distance_type(config["type"])
    p = config.get("p", 2.0)
    return DistanceMetric.create(kind, observed, p=p)


def create_sampler_from_dict(
    config: Dict[str, Any],
    problem: "ABCProblem",
    observers: Optional[Sequence["PMCObserver"]] = None,
) -> "PMCSampler":
    """
    Create a PMCSampler from a configuration dictionary.

    Args:
        config: PMCConfig fields; "distance" may be an alias
        problem: ABC problem to sample from
        observers: Optional progress observers

    Returns:
        Configured PMCSampler

    Example:
        config = {"n_particles": 500, "alpha": 0.5, "max_sims": 100000,
                  "distance": "MahalanobisEmp"}
        sampler = create_sampler_from_dict(config, problem)
    """
    from .sampler import PMCSampler

    config = dict(config)
    if "distance" in config:
        try:
            config["distance"] = resolve_distance_type(config["distance"])
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

    pmc_config = PMCConfig.from_dict(config)
    sampler = PMCSampler(problem, pmc_config, observers=observers)
    logger.info(
        f"Created sampler: {type(sampler).__name__} with "
        f"{pmc_config.n_particles} particles and {pmc_config.distance} distance"
    )
    return sampler


__all__ = [
    "DISTANCE_ALIASES",
    "get_supported_distance_types",
    "resolve_distance_type",
    "create_distance_from_dict",
    "create_sampler_from_dict",
]
