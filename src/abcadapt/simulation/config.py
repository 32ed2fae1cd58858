"""
Configuration management for ABC-PMC runs.

PMCConfig holds every setting of the sequential sampler and can be saved to
and loaded from YAML.
"""

from typing import Dict, Any, Optional, Union
from numbers import Integral
from dataclasses import dataclass, field, asdict
from pathlib import Path
import logging
import yaml

from .distances import DISTANCE_KINDS, LP

logger = logging.getLogger(__name__)


class ConfigurationError(ValueError):
    """Raised for invalid sampler settings, before any simulation is run."""


@dataclass
class PMCConfig:
    """Configuration of an ABC-PMC run."""

    n_particles: int = 1000
    alpha: float = 0.5
    max_sims: int = 50000
    n_sims_for_init: int = 10000
    distance: str = "weighted_euclidean"
    distance_args: Dict[str, Any] = field(default_factory=dict)
    adaptive: bool = True
    diag_perturb: bool = False
    store_init: bool = False
    silent: bool = False
    batch_size: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "PMCConfig":
        known = set(cls.__dataclass_fields__)
        unknown = set(config) - known
        if unknown:
            raise ConfigurationError(f"Unknown PMC config keys: {sorted(unknown)}")
        config = dict(config)
        config["distance_args"] = dict(config.get("distance_args") or {})
        return cls(**config)

    def save(self, filepath: Union[str, Path]) -> None:
        """Save the configuration to a YAML file."""
        filepath = Path(filepath)
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    @classmethod
    def load(cls, filepath: Union[str, Path]) -> "PMCConfig":
        """Load a configuration from a YAML file."""
        filepath = Path(filepath)
        if not filepath.exists():
            raise FileNotFoundError(f"Configuration file not found: {filepath}")

        with open(filepath, "r") as f:
            config_dict = yaml.safe_load(f) or {}

        return cls.from_dict(config_dict)


def _is_positive_int(value) -> bool:
    return isinstance(value, Integral) and not isinstance(value, bool) and value > 0


def validate_pmc_config(config: PMCConfig) -> None:
    """
    Validate sampler settings.

    Args:
        config: PMCConfig to check

    Raises:
        ConfigurationError: If any setting is invalid
    """
    if not _is_positive_int(config.n_particles):
        raise ConfigurationError("n_particles must be a positive integer")

    if not (0 < config.alpha <= 1):
        raise ConfigurationError("alpha must be in (0, 1]")

    if not _is_positive_int(config.max_sims):
        raise ConfigurationError("max_sims must be a positive integer")

    if not _is_positive_int(config.n_sims_for_init):
        raise ConfigurationError("n_sims_for_init must be a positive integer")

    if config.distance not in DISTANCE_KINDS:
        raise ConfigurationError(
            f"Unknown distance: {config.distance}. Must be one of {list(DISTANCE_KINDS)}"
        )

    unexpected = set(config.distance_args) - {"p"}
    if unexpected:
        raise ConfigurationError(f"Unknown distance_args: {sorted(unexpected)}")

    if config.distance == LP:
        p = config.distance_args.get("p")
        if p is None or not p > 0:
            raise ConfigurationError("lp distance requires distance_args.p > 0")

    if config.batch_size is not None and not _is_positive_int(config.batch_size):
        raise ConfigurationError("batch_size must be positive")

    if config.n_sims_for_init < config.n_particles:
        logger.warning(
            f"n_sims_for_init ({config.n_sims_for_init}) is smaller than "
            f"n_particles ({config.n_particles}); distances will be fitted "
            f"on fewer simulations than are accepted."
        )

    logger.debug(f"Validated PMC config: {config}")


__all__ = ["PMCConfig", "ConfigurationError", "validate_pmc_config"]
