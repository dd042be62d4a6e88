"""
servectl list command.

SUMMARY: Show running servers
"""

from __future__ import annotations

import argparse
import sys

from servectl.cli import OutputFormatter, SERVER_HEADERS, add_standard_flags, build_manager, format_table, server_rows
from servectl.core.exceptions import ServectlError

SUMMARY = "Show running servers"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        manager = build_manager(args)
        servers = manager.list_servers()
    except ServectlError as e:
        formatter.error(e, error_code="list_error")
        return 1

    if formatter.json_mode:
        formatter.json_output({"servers": [s.to_dict() for s in servers], "count": len(servers)})
    elif not servers:
        formatter.text("No running Python HTTP servers found.")
    else:
        formatter.text(format_table(server_rows(servers), SERVER_HEADERS))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
