"""Common CLI argument registration utilities."""
from __future__ import annotations

import argparse


def add_json_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )


def add_config_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--config",
        type=str,
        metavar="FILE",
        help="Extra YAML config file merged over the user config",
    )


def add_verbose_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log debug output to stderr",
    )


def add_force_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--force",
        "-f",
        action="store_true",
        help="Force operation without confirmation",
    )


def add_target_args(parser: argparse.ArgumentParser, *, verb: str) -> None:
    """Add the mutually exclusive ``--pid/--port/--all`` target selection."""
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("--pid", type=int, help=f"{verb} the server with this PID")
    group.add_argument("--port", type=int, help=f"{verb} the server listening on this port")
    group.add_argument("--all", action="store_true", help=f"{verb} every running server")


def add_standard_flags(parser: argparse.ArgumentParser) -> None:
    """Add --json, --config and --verbose."""
    add_json_flag(parser)
    add_config_flag(parser)
    add_verbose_flag(parser)


__all__ = [
    "add_json_flag",
    "add_config_flag",
    "add_verbose_flag",
    "add_force_flag",
    "add_target_args",
    "add_standard_flags",
]
