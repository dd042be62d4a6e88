"""Server lifecycle domain: ports, registry, logs and the manager."""

from .command import ServerCommand, build_server_argv, parse_server_cmdline
from .logs import LogFile, LogStore
from .manager import ServerManager
from .models import (
    ManagerStats,
    PortPreference,
    ServerInstance,
    ServerSelector,
    ServerState,
    StartMode,
    validate_port,
)
from .ports import PortProber
from .registry import ProcessRegistry

__all__ = [
    "ServerCommand",
    "build_server_argv",
    "parse_server_cmdline",
    "LogFile",
    "LogStore",
    "ServerManager",
    "ManagerStats",
    "PortPreference",
    "ServerInstance",
    "ServerSelector",
    "ServerState",
    "StartMode",
    "validate_port",
    "PortProber",
    "ProcessRegistry",
]
