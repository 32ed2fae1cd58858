#!/usr/bin/env python3
"""
Output paths and flag helpers shared by the CLI commands.
"""

from pathlib import Path
from typing import Union

RESULT_FILENAME = "result.yaml"
REPORT_SUFFIX = "_report.txt"


def resolve_result_path(output_path: Union[str, Path]) -> Path:
    """
    Result YAML path for a user-given output location.

    A path without a suffix is a directory and gets ``result.yaml``; the
    parent directory is created.

    Examples:
        resolve_result_path("runs/gauss") -> runs/gauss/result.yaml
        resolve_result_path("runs/gauss.yaml") -> runs/gauss.yaml
    """
    output_path = Path(output_path)
    if not output_path.suffix:
        output_path = output_path / RESULT_FILENAME
    output_path.parent.mkdir(parents=True, exist_ok=True)
    return output_path


def report_path_for(result_path: Union[str, Path]) -> Path:
    """Text report written next to a result: ``<stem>_report.txt``."""
    result_path = Path(result_path)
    return result_path.parent / f"{result_path.stem}{REPORT_SUFFIX}"


def add_boolean_flag(parser, flag_name: str, default: bool = True, help_text: str = ""):
    """Add a ``--flag`` / ``--no-flag`` pair writing to ``args.<flag_name>``."""
    group = parser.add_mutually_exclusive_group()
    group.add_argument(
        f"--{flag_name}",
        dest=flag_name,
        action="store_true",
        default=default,
        help=f"{help_text or flag_name} (default: {default})",
    )
    group.add_argument(
        f"--no-{flag_name}",
        dest=flag_name,
        action="store_false",
        help=f"Disable --{flag_name}",
    )
