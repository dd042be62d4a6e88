"""Build and recognise ``python -m http.server`` command lines."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from servectl.core.config import ManagerSettings

from .models import validate_port

HTTP_SERVER_DEFAULT_PORT = 8000

# Options of http.server that consume the following argument.
_VALUE_OPTIONS = {"-b", "--bind", "-d", "--directory", "-p", "--protocol"}


@dataclass(frozen=True)
class ServerCommand:
    port: int
    directory: Optional[Path]
    bind_address: str = ""


def build_server_argv(
    settings: ManagerSettings,
    port: int,
    directory: Path,
    bind_address: str = "",
) -> list[str]:
    argv = [
        settings.python_executable,
        "-m",
        settings.module,
        str(port),
        "--directory",
        str(directory),
    ]
    if bind_address:
        argv += ["--bind", bind_address]
    return argv


def _module_index(cmdline: Sequence[str], module: str) -> Optional[int]:
    for i, token in enumerate(cmdline[:-1]):
        if token == "-m" and cmdline[i + 1] == module:
            return i + 2
        if token == f"-m{module}":
            return i + 1
    return None


def _is_python(token: str) -> bool:
    return os.path.basename(token).lower().startswith("python")


def parse_server_cmdline(cmdline: Sequence[str], module: str = "http.server") -> Optional[ServerCommand]:
    """Return the server parameters when ``cmdline`` runs ``module``, else None.

    Relative ``--directory`` values are returned as-is; the caller resolves
    them against the process cwd.
    """
    if not cmdline or not _is_python(cmdline[0]):
        return None
    start = _module_index(cmdline, module)
    if start is None:
        return None

    port: Optional[int] = None
    directory: Optional[Path] = None
    bind = ""
    args = list(cmdline[start:])
    i = 0
    while i < len(args):
        token = args[i]
        name, eq, inline = token.partition("=")
        if name in _VALUE_OPTIONS:
            if eq:
                value: Optional[str] = inline
            else:
                value = args[i + 1] if i + 1 < len(args) else None
                i += 1
            if value is not None:
                if name in ("-b", "--bind"):
                    bind = value
                elif name in ("-d", "--directory"):
                    directory = Path(value)
        elif token.startswith("-"):
            pass  # flags such as --cgi
        elif port is None and token.isdigit():
            try:
                port = validate_port(token)
            except ValueError:
                return None
        i += 1

    return ServerCommand(
        port=port if port is not None else HTTP_SERVER_DEFAULT_PORT,
        directory=directory,
        bind_address=bind,
    )


__all__ = ["ServerCommand", "build_server_argv", "parse_server_cmdline", "HTTP_SERVER_DEFAULT_PORT"]
