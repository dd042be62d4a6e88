"""
servectl quick command.

SUMMARY: Serve the current directory on the next free port and open the browser
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from servectl.cli import OutputFormatter, add_standard_flags, announce_serving, build_manager
from servectl.core.exceptions import ServectlError
from servectl.core.server import PortPreference, StartMode

SUMMARY = "Serve the current directory on the next free port and open the browser"


def register_args(parser: argparse.ArgumentParser) -> None:
    add_standard_flags(parser)


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        manager = build_manager(args)
        manager.start(
            Path.cwd(),
            PortPreference.auto(),
            None,
            StartMode.FOREGROUND_BROWSER,
            on_started=lambda inst: announce_serving(formatter, inst),
        )
    except ServectlError as e:
        formatter.error(e, error_code="start_error")
        return 1
    if not formatter.json_mode:
        formatter.text("Server stopped.")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
