"""
servectl stop command.

SUMMARY: Stop a server by PID or port, or stop them all
"""

from __future__ import annotations

import argparse
import sys

from servectl.cli import (
    OutputFormatter,
    add_force_flag,
    add_standard_flags,
    add_target_args,
    build_manager,
    confirm,
    describe_instance,
    selector_from_args,
)
from servectl.core.exceptions import InvalidTargetError, ServectlError

SUMMARY = "Stop a server by PID or port, or stop them all"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_target_args(parser, verb="Stop")
    add_force_flag(parser)
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        manager = build_manager(args)
        selector = selector_from_args(args)
        if selector is not None:
            stopped = manager.stop(selector)
            formatter.success(
                {"stopped": [stopped.to_dict()], "count": 1},
                f"Stopped server ({describe_instance(stopped)})",
                status="stopped",
            )
            return 0

        if not args.force:
            if formatter.json_mode:
                raise InvalidTargetError("--all needs --force in --json mode")
            if not confirm("This will stop ALL Python HTTP servers! Are you sure?"):
                formatter.text("Operation cancelled.")
                return 0
        stopped_all = manager.stop_all()
    except ServectlError as e:
        formatter.error(e, error_code="stop_error")
        return 1

    message = (
        "\n".join([f"Stopped {len(stopped_all)} server(s)"] + [f"  {describe_instance(s)}" for s in stopped_all])
        if stopped_all
        else "No servers were running."
    )
    formatter.success(
        {"stopped": [s.to_dict() for s in stopped_all], "count": len(stopped_all)},
        message,
        status="stopped",
    )
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
