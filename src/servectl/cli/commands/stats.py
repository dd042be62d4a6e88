"""
servectl stats command.

SUMMARY: Show server, registry and log statistics
"""

from __future__ import annotations

import argparse
import sys

from servectl.cli import RULE, OutputFormatter, add_standard_flags, build_manager
from servectl.core.exceptions import ServectlError

SUMMARY = "Show server, registry and log statistics"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        manager = build_manager(args)
        stats = manager.stats()
    except ServectlError as e:
        formatter.error(e, error_code="stats_error")
        return 1

    if formatter.json_mode:
        formatter.json_output({"stats": stats.to_dict()})
        return 0

    formatter.text("Server Statistics")
    formatter.text(RULE)
    formatter.text_kv("Running servers", f"{stats.running} ({stats.untracked} untracked)")
    formatter.text_kv("Registry records", f"{stats.tracked_records} ({stats.orphaned_records} orphaned)")
    formatter.text_kv("Log files", stats.log_files)
    formatter.text_kv("Log directory", stats.log_dir)
    formatter.text_kv("Registry directory", stats.registry_dir)
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
