"""
Summarize Command - print the populations of a saved ABC-PMC result
"""

import logging

import numpy as np

from abcadapt.simulation import load_result_from_yaml
from abcadapt.diagnostics import parameter_covs, summarize_population

logger = logging.getLogger(__name__)


def summarize_command(args):
    """Print a summary of one iteration of a saved result."""
    result = load_result_from_yaml(args.result_path)
    if result.n_iterations == 0:
        print(f"No completed iterations ({result.n_sims} simulations)")
        return

    population = result.population(args.iteration)
    t = range(result.n_iterations)[args.iteration]
    print(f"Iteration {t + 1} of {result.n_iterations}")
    print(summarize_population(population, population.n_sims))
    print(f"Next threshold: {float(result.thresholds[t]):.6g}")
    if args.show_cov:
        print("Weighted covariance:")
        print(np.array2string(parameter_covs(population), precision=4))


def setup_summarize_parser(subparsers):
    """Setup argument parser for summarize command."""
    parser = subparsers.add_parser(
        "summarize",
        help="Summarize a saved ABC-PMC result",
    )
    parser.add_argument("result_path", type=str, help="Result YAML file")
    parser.add_argument(
        "--iteration",
        type=int,
        default=-1,
        help="Iteration to summarize, 0-based (default: last)",
    )
    parser.add_argument(
        "--show_cov",
        action="store_true",
        help="Also print the weighted covariance matrix",
    )
    parser.set_defaults(func=summarize_command)

    return parser
