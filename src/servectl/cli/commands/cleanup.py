"""
servectl cleanup command.

SUMMARY: Remove orphaned records and old logs, or purge everything
"""

from __future__ import annotations

import argparse
import sys

from servectl.cli import OutputFormatter, add_force_flag, add_standard_flags, build_manager, confirm
from servectl.core.exceptions import InvalidTargetError, ServectlError

SUMMARY = "Remove orphaned records and old logs, or purge everything"


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--orphans",
        action="store_true",
        help="Remove registry records whose process is gone",
    )
    parser.add_argument(
        "--logs",
        action="store_true",
        help="Remove log files older than --days",
    )
    parser.add_argument(
        "--days",
        type=int,
        help="Age threshold for --logs (default: server.log_retention_days)",
    )
    parser.add_argument(
        "--all",
        action="store_true",
        help="Delete every log file and every registry record",
    )
    add_force_flag(parser)
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    """Without a selection flag, runs --orphans and --logs."""
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        if args.days is not None and args.days < 0:
            raise InvalidTargetError("--days must not be negative", context={"days": args.days})
        manager = build_manager(args)

        if args.all:
            if not args.force:
                if formatter.json_mode:
                    raise InvalidTargetError("--all needs --force in --json mode")
                if not confirm("This will remove all logs and records! Are you sure?"):
                    formatter.text("Cleanup cancelled.")
                    return 0
            records, logs = manager.purge_all()
            formatter.success(
                {"records_removed": records, "logs_removed": logs},
                f"Removed {records} record(s) and {logs} log file(s).",
                status="cleaned",
            )
            return 0

        run_orphans = args.orphans or not args.logs
        run_logs = args.logs or not args.orphans
        orphans = manager.reconcile() if run_orphans else []
        pruned = manager.prune_logs(args.days) if run_logs else []
    except ServectlError as e:
        formatter.error(e, error_code="cleanup_error")
        return 1

    lines = []
    if run_orphans:
        lines.append(f"Removed {len(orphans)} orphaned record(s)")
        lines += [f"  port {o.port} (PID {o.pid})" for o in orphans]
    if run_logs:
        days = manager.settings.log_retention_days if args.days is None else args.days
        lines.append(f"Removed {len(pruned)} log file(s) older than {days} day(s)")
        lines += [f"  {p.name}" for p in pruned]
    formatter.success(
        {
            "orphans_removed": [o.to_dict() for o in orphans],
            "logs_removed": [str(p) for p in pruned],
        },
        "\n".join(lines),
        status="cleaned",
    )
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
