"""
servectl restart command.

SUMMARY: Restart a server on the same port and directory
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
    selector_from_args,
)
from servectl.core.exceptions import InvalidTargetError, ServectlError

SUMMARY = "Restart a server on the same port and directory"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_target_args(parser, verb="Restart")
    add_force_flag(parser)
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        manager = build_manager(args)
        selector = selector_from_args(args)
        if selector is not None:
            fresh = manager.restart(selector)
            formatter.success(
                {"restarted": [fresh.to_dict()], "failed": []},
                f"Server on port {fresh.port} restarted with new PID {fresh.pid}\n  Log file: {fresh.log_path}",
                status="restarted",
            )
            return 0

        if not args.force:
            if formatter.json_mode:
                raise InvalidTargetError("--all needs --force in --json mode")
            if not confirm("This will restart ALL Python HTTP servers! Are you sure?"):
                formatter.text("Operation cancelled.")
                return 0
        restarted, failures = manager.restart_all()
    except ServectlError as e:
        formatter.error(e, error_code="restart_error")
        return 1

    lines = [f"Restarted {len(restarted)} server(s)"]
    lines += [f"  port {s.port}: new PID {s.pid}" for s in restarted]
    lines += [f"  PID {s.pid}: {exc}" for s, exc in failures]
    formatter.success(
        {
            "restarted": [s.to_dict() for s in restarted],
            "failed": [{"server": s.to_dict(), **exc.to_json_error()} for s, exc in failures],
        },
        "\n".join(lines),
        status="restarted" if not failures else "partial",
    )
    return 1 if failures else 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
