"""
Model registry for statistical models.

This module provides a centralized registry of the demonstration models and
a factory building them from configuration dictionaries.
"""

from typing import Dict, Any, Type
import logging

from .base import StatisticalModel
from .toy import GaussGaussModel, UniformIdentityModel

# Configure logging
logger = logging.getLogger(__name__)


MODEL_REGISTRY: Dict[str, Type[StatisticalModel]] = {
    "UniformIdentityModel": UniformIdentityModel,
    "GaussGaussModel": GaussGaussModel,
}


def register_model(model_type: str, model_class: Type[StatisticalModel]) -> None:
    """
    Register a new model type in the global registry.

    Args:
        model_type: Stable identifier for the model (used in YAML files)
        model_class: The actual Python class
    """
    if model_type in MODEL_REGISTRY:
        logger.warning(f"Overriding existing model type: {model_type}")

    MODEL_REGISTRY[model_type] = model_class
    logger.debug(f"Registered model: {model_type} -> {model_class.__name__}")


def get_available_models() -> Dict[str, str]:
    """
    Get all available model types and their corresponding class names.

    Returns:
        Dictionary mapping model_type -> class_name
    """
    return {model_type: cls.__name__ for model_type, cls in MODEL_REGISTRY.items()}


def create_model_from_dict(config: Dict[str, Any]) -> StatisticalModel:
    """
    Create a model from a configuration dictionary.

    Args:
        config: Dictionary with "model_type" and optional "model_args"

    Returns:
        Model instance

    Example:
        model = create_model_from_dict(
            {"model_type": "GaussGaussModel", "model_args": {"n_obs": 100}}
        )
    """
    if "model_type" not in config:
        raise ValueError("Model configuration requires a 'model_type' key")

    model_type = config["model_type"]
    if model_type not in MODEL_REGISTRY:
        raise ValueError(
            f"Unknown model type: {model_type}. "
            f"Available: {list(MODEL_REGISTRY.keys())}"
        )

    model = MODEL_REGISTRY[model_type](**(config.get("model_args") or {}))
    logger.info(f"Created model: {model}")
    return model


__all__ = [
    "MODEL_REGISTRY",
    "register_model",
    "get_available_models",
    "create_model_from_dict",
]
