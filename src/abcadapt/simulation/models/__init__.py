"""
Statistical models for abcadapt.

Demonstration models that can be turned into ABCProblem instances.
"""

from .base import StatisticalModel
from .toy import UniformIdentityModel, GaussGaussModel
from .registry import (
    MODEL_REGISTRY,
    register_model,
    get_available_models,
    create_model_from_dict,
)

__all__ = [
    "StatisticalModel",
    "UniformIdentityModel",
    "GaussGaussModel",
    "MODEL_REGISTRY",
    "register_model",
    "get_available_models",
    "create_model_from_dict",
]
