"""
servectl start command.

SUMMARY: Start an http.server for a directory
"""

from __future__ import annotations

import argparse
import sys

from servectl.cli import OutputFormatter, add_standard_flags, announce_serving, build_manager
from servectl.core.exceptions import InvalidTargetError, ServectlError
from servectl.core.server import PortPreference, StartMode

SUMMARY = "Start an http.server for a directory"


def register_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "directory",
        nargs="?",
        default=".",
        help="Directory to serve (default: current directory)",
    )
    parser.add_argument(
        "--port",
        "-p",
        type=int,
        help="Port to serve on (with --auto-port: first port to try)",
    )
    strategy = parser.add_mutually_exclusive_group()
    strategy.add_argument(
        "--auto-port",
        action="store_true",
        help="Use the next free port at or above --port (or the default port)",
    )
    strategy.add_argument(
        "--random-port",
        action="store_true",
        help="Use a free port from a random start near the default port",
    )
    parser.add_argument(
        "--bind",
        "-B",
        metavar="ADDR",
        help="Bind address (default: all interfaces)",
    )
    parser.add_argument(
        "--background",
        "-b",
        action="store_true",
        help="Detach the server and log its output to a file",
    )
    parser.add_argument(
        "--open",
        "-o",
        action="store_true",
        help="Open the server URL in the default browser",
    )
    add_standard_flags(parser)


def port_preference(args: argparse.Namespace) -> PortPreference:
    if args.random_port:
        if args.port is not None:
            raise InvalidTargetError("--random-port cannot be combined with --port")
        return PortPreference.random()
    if args.auto_port:
        return PortPreference.auto(args.port)
    if args.port is not None:
        return PortPreference.explicit(args.port)
    return PortPreference.default()


def main(args: argparse.Namespace) -> int:
    formatter = OutputFormatter(json_mode=getattr(args, "json", False))
    try:
        manager = build_manager(args)
        mode = StartMode.from_flags(background=args.background, open_browser=args.open)
        instance = manager.start(
            args.directory,
            port_preference(args),
            args.bind,
            mode,
            on_started=None if mode.detached else (lambda inst: announce_serving(formatter, inst)),
        )
    except ServectlError as e:
        formatter.error(e, error_code="start_error")
        return 1

    if mode.detached:
        formatter.success(
            {"server": instance.to_dict()},
            "\n".join(
                [
                    f"Server started in background with PID {instance.pid}",
                    f"  Directory: {instance.directory}",
                    f"  URL: {instance.url}",
                    f"  Log file: {instance.log_path}",
                ]
            ),
            status="started",
        )
    elif not formatter.json_mode:
        formatter.text("Server stopped.")
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    register_args(parser)
    sys.exit(main(parser.parse_args()))
