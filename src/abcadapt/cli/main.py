#!/usr/bin/env python3
"""
abcadapt Command Line Interface

Run adaptive ABC-PMC on the built-in models and inspect saved results.
"""

import argparse
import logging
import sys

# Import command modules
from .run_pmc import setup_run_pmc_parser
from .summarize import setup_summarize_parser


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="abcadapt",
        description="""
        abcadapt: ABC-PMC with adaptive distances

        Commands:
        1. run: run the sampler from a YAML configuration and save the result
        2. summarize: print posterior summaries of a saved result
        """,
        epilog="""
        Examples:

        abcadapt run examples/configs/uniform_identity.yaml ./output
        abcadapt summarize ./output/result.yaml --iteration -1

        For detailed help on any command: abcadapt <command> --help
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )

    # Create subparsers for different commands
    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands",
        title="Commands",
        description="Choose a command to run",
    )

    # Setup command parsers
    setup_run_pmc_parser(subparsers)
    setup_summarize_parser(subparsers)

    # Parse arguments
    args = parser.parse_args(argv)

    # If no command provided, show help
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )

    # Run the appropriate command
    try:
        args.func(args)
    except Exception as e:
        print(f"Error running command '{args.command}': {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
