"""
I/O operations for ABC-PMC results.

A result is stored as two files:
    - <name>.yaml: metadata, distance kinds and thresholds, with a reference
      to the array file
    - <name>_arrays.npz: particle arrays, fitted distance state and
      (optionally) the per-iteration reference tables

Functions follow the naming convention:
- save_result_to_yaml() / load_result_from_yaml()
"""

from typing import Dict, Any, Union
from pathlib import Path
from datetime import datetime
import logging

import numpy as np
import jax.numpy as jnp
import yaml

from .base import ABCPMCResult
from .distances import DistanceMetric, DISTANCE_KINDS

# Configure logging
logger = logging.getLogger(__name__)

FORMAT_VERSION = 1
_STATE_FIELDS = ("scale", "precision")


def save_result_to_yaml(
    result: ABCPMCResult,
    output_path: Union[str, Path],
    overwrite: bool = False,
) -> None:
    """
    Save an ABCPMCResult to YAML + NPZ.

    Args:
        result: Result to save
        output_path: Path of the YAML file; arrays go next to it
        overwrite: Replace existing files
    """
    output_path = Path(output_path)

    # Check if we should skip saving
    if _should_skip_save(output_path, overwrite):
        return

    # Create output directory
    _ensure_output_directory(output_path)

    arrays_filename = f"{output_path.stem}_arrays.npz"
    arrays_path = output_path.parent / arrays_filename
    np.savez_compressed(arrays_path, **_result_arrays(result))
    logger.info(f"Saved result arrays to: {arrays_path}")

    metadata = _result_metadata(result)
    metadata["paths"] = {"arrays": arrays_filename}
    with open(output_path, "w") as f:
        yaml.dump(metadata, f, default_flow_style=False, sort_keys=False)
    logger.info(f"Saved result to: {output_path}")


def load_result_from_yaml(yaml_path: Union[str, Path]) -> ABCPMCResult:
    """
    Load an ABCPMCResult saved with save_result_to_yaml.

    Args:
        yaml_path: Path of the YAML file

    Returns:
        The stored ABCPMCResult
    """
    yaml_path = Path(yaml_path)
    if not yaml_path.exists():
        raise FileNotFoundError(f"Result file not found: {yaml_path}")

    with open(yaml_path, "r") as f:
        metadata = yaml.safe_load(f)
    validate_result_metadata(metadata)

    arrays_path = yaml_path.parent / metadata["paths"]["arrays"]
    if not arrays_path.exists():
        raise FileNotFoundError(f"Result arrays not found: {arrays_path}")

    with np.load(arrays_path) as data:
        arrays = {name: data[name] for name in data.files}

    metrics = []
    for i, info in enumerate(metadata["metrics"]):
        state = {
            name: jnp.asarray(arrays[f"metric_{i}_{name}"])
            for name in _STATE_FIELDS
            if f"metric_{i}_{name}" in arrays
        }
        metrics.append(
            DistanceMetric(
                kind=info["kind"],
                observed=jnp.asarray(arrays[f"metric_{i}_observed"]),
                p=float(info["p"]),
                **state,
            )
        )

    n_iterations = metadata["n_iterations"]
    if metadata["store_init"]:
        init_params = tuple(
            jnp.asarray(arrays[f"init_params_{i}"]) for i in range(n_iterations)
        )
        init_stats = tuple(
            jnp.asarray(arrays[f"init_stats_{i}"]) for i in range(n_iterations)
        )
    else:
        init_params, init_stats = (), ()

    logger.info(f"Loaded result with {n_iterations} iterations from: {yaml_path}")
    return ABCPMCResult(
        parameters=jnp.asarray(arrays["parameters"]),
        sumstats=jnp.asarray(arrays["sumstats"]),
        distances=jnp.asarray(arrays["distances"]),
        weights=jnp.asarray(arrays["weights"]),
        cumulative_sims=jnp.asarray(arrays["cumulative_sims"]),
        n_sims=int(metadata["n_sims"]),
        metrics=tuple(metrics),
        thresholds=jnp.asarray(arrays["thresholds"]),
        init_params=init_params,
        init_stats=init_stats,
    )


def validate_result_metadata(metadata: Dict[str, Any]) -> None:
    """
    Validate the structure of a result YAML file.

    Raises:
        ValueError: If required fields are missing or inconsistent
    """
    if not isinstance(metadata, dict):
        raise ValueError("Result file must contain a mapping")

    required_fields = {"n_iterations", "n_sims", "store_init", "metrics", "paths"}
    missing = required_fields - set(metadata)
    if missing:
        raise ValueError(f"Missing required fields: {sorted(missing)}")

    if metadata.get("format_version", FORMAT_VERSION) > FORMAT_VERSION:
        raise ValueError(
            f"Unsupported result format version: {metadata['format_version']}"
        )

    if len(metadata["metrics"]) != metadata["n_iterations"]:
        raise ValueError("Number of stored distances does not match n_iterations")

    for info in metadata["metrics"]:
        if info.get("kind") not in DISTANCE_KINDS:
            raise ValueError(f"Unknown distance kind in result: {info.get('kind')}")

    if "arrays" not in (metadata["paths"] or {}):
        raise ValueError("Result file does not reference an arrays file")


def _should_skip_save(output_path: Path, overwrite: bool) -> bool:
    """Check if saving should be skipped due to existing file."""
    if output_path.exists() and not overwrite:
        logger.info(f"Output path already exists and overwrite is False: {output_path}")
        return True
    return False


def _ensure_output_directory(output_path: Path) -> None:
    """Create output directory if it doesn't exist."""
    output_path.parent.mkdir(parents=True, exist_ok=True)


def _result_arrays(result: ABCPMCResult) -> Dict[str, np.ndarray]:
    """Collect every array of a result under a flat set of names."""
    arrays = {
        "parameters": np.asarray(result.parameters),
        "sumstats": np.asarray(result.sumstats),
        "distances": np.asarray(result.distances),
        "weights": np.asarray(result.weights),
        "cumulative_sims": np.asarray(result.cumulative_sims),
        "thresholds": np.asarray(result.thresholds),
    }
    for i, metric in enumerate(result.metrics):
        arrays[f"metric_{i}_observed"] = np.asarray(metric.observed)
        for name in _STATE_FIELDS:
            value = getattr(metric, name)
            if value is not None:
                arrays[f"metric_{i}_{name}"] = np.asarray(value)
    for i, (params, stats) in enumerate(zip(result.init_params, result.init_stats)):
        arrays[f"init_params_{i}"] = np.asarray(params)
        arrays[f"init_stats_{i}"] = np.asarray(stats)
    return arrays


def _result_metadata(result: ABCPMCResult) -> Dict[str, Any]:
    return {
        "format_version": FORMAT_VERSION,
        "created": datetime.now().isoformat(),
        "n_iterations": result.n_iterations,
        "n_particles": result.n_particles,
        "n_params": result.n_params,
        "n_stats": result.n_stats,
        "n_sims": int(result.n_sims),
        "store_init": bool(result.init_params),
        "cumulative_sims": [int(s) for s in result.cumulative_sims],
        "thresholds": [float(t) for t in result.thresholds],
        "metrics": [{"kind": m.kind, "p": float(m.p)} for m in result.metrics],
    }


__all__ = [
    "save_result_to_yaml",
    "load_result_from_yaml",
    "validate_result_metadata",
]
