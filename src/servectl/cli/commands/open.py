"""
servectl open command.

SUMMARY: Open a running server in the default browser
"""

from __future__ import annotations

import argparse
import sys

from servectl.cli import OutputFormatter, add_standard_flags, build_manager
from servectl.core.exceptions import ServectlError

SUMMARY = "Open a running server in the default browser"


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("port", type=int, help="Port of the running server")
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        manager = build_manager(args)
        url = manager.open_in_browser(args.port)
    except ServectlError as e:
        formatter.error(e, error_code="open_error")
        return 1
    formatter.success({"url": url, "port": args.port}, f"Opened {url}", status="opened")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
