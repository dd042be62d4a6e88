"""
Auto-discovery CLI dispatcher for servectl.

Every ``.py`` file in ``cli/commands/`` that exposes ``SUMMARY``,
``register_args(parser)`` and ``main(args) -> int`` becomes a subcommand.
Running ``servectl`` with no arguments opens the interactive menu.
"""

from __future__ import annotations

import argparse
import importlib
import sys
from collections.abc import Callable
from functools import lru_cache
from pathlib import Path
from typing import Any

from servectl.cli._output import OutputFormatter
from servectl.core.exceptions import ServectlError

DEFAULT_COMMAND = "menu"

# Extra names accepted for a command (the shell tool's short forms).
ALIASES: dict[str, list[str]] = {
    "list": ["ls", "status"],
    "quick": ["q"],
    "start": ["s"],
}


@lru_cache(maxsize=1)
def discover_root_commands() -> dict[str, dict[str, Any]]:
    """Import every command module under cli/commands."""
    commands_dir = Path(__file__).parent / "commands"
    commands: dict[str, dict[str, Any]] = {}

    if not commands_dir.exists():
        return commands

    for item in sorted(commands_dir.glob("*.py")):
        if item.name.startswith("_"):
            continue

        cmd_name = item.stem
        try:
            module = importlib.import_module(f"servectl.cli.commands.{cmd_name}")
        except ImportError as e:
            print(f"Warning: Could not import command {cmd_name}: {e}", file=sys.stderr)
            continue
        commands[cmd_name] = {
            "module": module,
            "summary": getattr(module, "SUMMARY", cmd_name),
            "register_args": getattr(module, "register_args", None),
            "main": getattr(module, "main", None),
        }

    return commands


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="servectl",
        description="Manage local python -m http.server instances",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        metavar="<command>",
    )

    for cmd_name, cmd_info in sorted(discover_root_commands().items()):
        primary_name = cmd_name.replace("_", "-")
        aliases = list(ALIASES.get(cmd_name, []))
        if primary_name != cmd_name:
            aliases.append(cmd_name)
        cmd_parser = subparsers.add_parser(
            primary_name,
            aliases=aliases,
            help=cmd_info["summary"],
            description=cmd_info["summary"],
        )
        if cmd_info["register_args"]:
            cmd_info["register_args"](cmd_parser)
        if cmd_info["main"]:
            cmd_parser.set_defaults(_func=cmd_info["main"])

    return parser


def _get_version() -> str:
    from servectl import __version__

    return __version__


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the servectl CLI.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code: 0 on success, 1 on errors, 130 when interrupted
    """
    if argv is None:
        argv = sys.argv[1:]
    argv = list(argv) or [DEFAULT_COMMAND]

    parser = build_parser()
    args = parser.parse_args(argv)

    func: Callable[[argparse.Namespace], int] | None = getattr(args, "_func", None)
    if func is None:
        parser.print_help()
        return 1

    try:
        return int(func(args) or 0)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130
    except ServectlError as e:
        OutputFormatter(json_mode=bool(getattr(args, "json", False))).error(e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
