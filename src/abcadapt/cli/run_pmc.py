"""
Run PMC Command - fit a model to observed summaries with adaptive ABC-PMC
"""

import logging
from pathlib import Path
from typing import Any, Dict

import jax
import jax.numpy as jnp
import yaml

from abcadapt.simulation import create_sampler_from_dict, save_result_to_yaml
from abcadapt.simulation.models import create_model_from_dict
from abcadapt.diagnostics import summarize_population
from abcadapt.cli.utils import add_boolean_flag, report_path_for, resolve_result_path

logger = logging.getLogger(__name__)


def load_run_config(config_path) -> Dict[str, Any]:
    """
    Load and check a run configuration file.

    The file holds a ``model`` section (model_type / model_args), either
    ``observed_stats`` or ``true_theta``, a ``pmc`` section with PMCConfig
    fields and an optional ``seed``.
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Run configuration not found: {config_path}")

    with open(config_path, "r") as f:
        config = yaml.safe_load(f) or {}

    if "model" not in config:
        raise ValueError("Run configuration requires a 'model' section")
    if ("observed_stats" in config) == ("true_theta" in config):
        raise ValueError("Give exactly one of 'observed_stats' or 'true_theta'")
    config.setdefault("pmc", {})
    return config


def write_report(result, report_path: Path) -> None:
    """Write a plain text report of a finished run."""
    with open(report_path, "w") as f:
        f.write("ABC-PMC Report\n")
        f.write("=" * 50 + "\n\n")
        f.write(f"Iterations completed: {result.n_iterations}\n")
        f.write(f"Simulations: {result.n_sims}\n\n")
        for t in range(result.n_iterations):
            f.write(
                f"Iteration {t + 1}: {int(result.cumulative_sims[t])} sims, "
                f"next threshold {float(result.thresholds[t]):.6g} "
                f"({result.metrics[t].kind})\n"
            )
        if result.n_iterations:
            population = result.final_population()
            f.write("\nFinal population:\n")
            f.write(summarize_population(population, population.n_sims) + "\n")

    logger.info(f"Report saved to: {report_path}")


def run_pmc_command(args):
    """Run ABC-PMC from a configuration file and save the result."""
    config = load_run_config(args.config_path)
    seed = args.seed if args.seed is not None else config.get("seed", 0)
    key = jax.random.PRNGKey(seed)
    logger.info(f"Using random seed: {seed}")

    model = create_model_from_dict(config["model"])

    if "true_theta" in config:
        key, key_obs = jax.random.split(key)
        observed_stats = model.simulate_observed_stats(
            key_obs, jnp.asarray(config["true_theta"], dtype=float)
        )
        logger.info(f"Simulated observed summaries at theta = {config['true_theta']}")
    else:
        observed_stats = jnp.asarray(config["observed_stats"], dtype=float)

    pmc_config = dict(config["pmc"])
    if not args.progress:
        pmc_config["silent"] = True

    sampler = create_sampler_from_dict(pmc_config, model.to_problem(observed_stats))
    result = sampler.run(key)

    output_path = resolve_result_path(args.output_path)
    save_result_to_yaml(result, output_path, overwrite=args.overwrite)

    if args.report:
        write_report(result, report_path_for(output_path))

    print(
        f"Completed {result.n_iterations} iterations using {result.n_sims} simulations"
    )
    return result


def setup_run_pmc_parser(subparsers):
    """Setup argument parser for run command."""
    parser = subparsers.add_parser(
        "run",
        help="Run adaptive ABC-PMC",
        description="""
        Run ABC-PMC with adaptive distances on one of the built-in models.

        The configuration YAML gives the model, the observation (or a true
        parameter to simulate it from) and the sampler settings.
        """,
    )

    parser.add_argument("config_path", type=str, help="Run configuration YAML file")
    parser.add_argument(
        "output_path",
        type=str,
        help="Output YAML file or directory (default filename: result.yaml)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed (default: 'seed' from the configuration, else 0)",
    )

    # Add standardized boolean flags
    add_boolean_flag(parser, "progress", default=True, help_text="Show progress output")
    add_boolean_flag(parser, "report", default=True, help_text="Write a text report")
    add_boolean_flag(
        parser, "overwrite", default=False, help_text="Overwrite existing results"
    )

    parser.set_defaults(func=run_pmc_command)

    return parser
