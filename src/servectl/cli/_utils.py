"""Shared CLI utility functions."""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional

from servectl.cli._output import OutputFormatter
from servectl.core.config import ConfigManager, ManagerSettings
from servectl.core.exceptions import ConfigError
from servectl.core.server import ServerInstance, ServerManager, ServerSelector
from servectl.core.stdlib_logging import configure_logging, suppress_lastresort_in_json_mode


def load_settings(args: argparse.Namespace) -> ManagerSettings:
    config_path = getattr(args, "config", None)
    manager = ConfigManager(Path(config_path) if config_path else None)
    return manager.load_settings()


def build_manager(args: argparse.Namespace) -> ServerManager:
    """Load configuration, set up logging and build the lifecycle manager."""
    settings = load_settings(args)
    try:
        configure_logging(
            log_path=settings.manager_log_path,
            level=settings.log_level,
            verbose=bool(getattr(args, "verbose", False)),
        )
    except OSError as exc:
        raise ConfigError(
            f"Cannot open log file {settings.manager_log_path}: {exc}",
            context={"log_file": str(settings.manager_log_path)},
        ) from exc
    if getattr(args, "json", False):
        suppress_lastresort_in_json_mode()
    return ServerManager(settings)


def selector_from_args(args: argparse.Namespace) -> Optional[ServerSelector]:
    """``--pid``/``--port`` as a selector; None when ``--all`` was given."""
    if getattr(args, "pid", None) is not None:
        return ServerSelector.for_pid(args.pid)
    if getattr(args, "port", None) is not None:
        return ServerSelector.for_port(args.port)
    return None


def describe_instance(instance: ServerInstance) -> str:
    parts = [f"PID {instance.pid}"]
    if instance.port is not None:
        parts.append(f"port {instance.port}")
    if instance.directory is not None:
        parts.append(str(instance.directory))
    return ", ".join(parts)


def announce_serving(formatter: OutputFormatter, instance: ServerInstance) -> None:
    """Tell the user a foreground server is up and how to stop it."""
    if formatter.json_mode:
        formatter.json_output({"status": "serving", "server": instance.to_dict()})
        return
    formatter.text(f"Serving {instance.directory} at {instance.url} (PID {instance.pid})")
    formatter.text("Press Ctrl+C to stop")
    formatter.text(RULE)


def server_rows(servers: list[ServerInstance]) -> list[list[str]]:
    return [
        [
            str(s.pid),
            str(s.port) if s.port is not None else "?",
            str(s.directory) if s.directory is not None else "Unknown",
            s.url or "",
            "yes" if s.tracked else "no",
        ]
        for s in servers
    ]


SERVER_HEADERS = ["PID", "PORT", "DIRECTORY", "URL", "TRACKED"]
RULE = "\u2500" * 45


__all__ = [
    "load_settings",
    "build_manager",
    "selector_from_args",
    "describe_instance",
    "announce_serving",
    "server_rows",
    "SERVER_HEADERS",
    "RULE",
]
