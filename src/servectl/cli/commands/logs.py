"""
servectl logs command.

SUMMARY: List server log files, show the tail of one, or follow it
"""

from __future__ import annotations

import argparse
import sys

from servectl.cli import RULE, OutputFormatter, add_standard_flags, build_manager, format_table
from servectl.core.exceptions import InvalidTargetError, NotFoundError, ServectlError

SUMMARY = "List server log files, show the tail of one, or follow it"

FOLLOW_POLL_SECONDS = 0.5


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--show",
        "-s",
        type=int,
        metavar="N",
        help="Show log number N from the listing (1 = newest)",
    )
    parser.add_argument(
        "--lines",
        "-n",
        type=int,
        help="Number of lines to show (default: server.tail_lines)",
    )
    parser.add_argument(
        "--follow",
        "-f",
        action="store_true",
        help="Keep printing lines as they are appended (newest log unless --show)",
    )
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        manager = build_manager(args)
        logs = manager.logs.list_logs()

        if args.show is None and not args.follow:
            if formatter.json_mode:
                formatter.json_output({"logs": [log.to_dict() for log in logs], "log_dir": str(manager.settings.log_dir)})
            elif not logs:
                formatter.text(f"No log files found in {manager.settings.log_dir}")
            else:
                rows = [
                    [str(idx), log.name, str(log.size), f"{log.modified.astimezone():%Y-%m-%d %H:%M}"]
                    for idx, log in enumerate(logs, start=1)
                ]
                formatter.text(format_table(rows, ["#", "FILE", "BYTES", "MODIFIED"]))
            return 0

        if not logs:
            raise NotFoundError(f"No log files found in {manager.settings.log_dir}")
        index = args.show if args.show is not None else 1
        if not 1 <= index <= len(logs):
            raise InvalidTargetError(f"Log number must be between 1 and {len(logs)}", context={"show": index})
        selected = logs[index - 1]
        count = args.lines if args.lines is not None else manager.settings.tail_lines
        lines = manager.logs.tail(selected.path, count)
    except ServectlError as e:
        formatter.error(e, error_code="logs_error")
        return 1

    if formatter.json_mode:
        formatter.json_output({"log": selected.to_dict(), "lines": lines})
        return 0

    formatter.text(f"Viewing log: {selected.name}")
    formatter.text(RULE)
    for line in lines:
        formatter.text(line)
    if not args.follow:
        formatter.text(RULE)
        return 0

    try:
        for line in manager.logs.follow(selected.path, poll_interval=FOLLOW_POLL_SECONDS):
            print(line, flush=True)
    except KeyboardInterrupt:
        formatter.text("")
    except ServectlError as e:
        formatter.error(e, error_code="logs_error")
        return 1
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
