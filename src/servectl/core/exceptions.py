from __future__ import annotations

from typing import Any, Dict, Mapping


class ServectlError(Exception):
    """Base exception for servectl."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


class ConfigError(ServectlError, ValueError):
    """Raised when the merged configuration is invalid."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        ServectlError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class InvalidTargetError(ServectlError, ValueError):
    """Raised for a missing/unreadable directory or an out-of-range port."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        ServectlError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class PortInUseError(ServectlError):
    """Raised when the requested port is already bound or recorded as live."""


class PortBindError(ServectlError):
    """Raised when the spawned server could not bind its port (lost the race)."""


class LaunchError(ServectlError, RuntimeError):
    """Raised when the server process could not be spawned or exited early."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        ServectlError.__init__(self, message, context=context)
        RuntimeError.__init__(self, message)


class NotFoundError(ServectlError, LookupError):
    """Raised when no live process matches a stop/restart/open target."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        ServectlError.__init__(self, message, context=context)
        LookupError.__init__(self, message)


class AmbiguousTargetError(ServectlError):
    """Raised when a port resolves to more than one candidate pid."""


class RestartInfoUnavailableError(ServectlError):
    """Raised when the directory or port of a server cannot be recovered."""


class RegistryIOError(ServectlError, OSError):
    """Raised when a registry record cannot be read or written."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        ServectlError.__init__(self, message, context=context)
        OSError.__init__(self, message)


class ProbeUnavailableError(ServectlError, RuntimeError):
    """Raised when the OS port table cannot be queried.

    Never to be read as "port free".
    """

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        ServectlError.__init__(self, message, context=context)
        RuntimeError.__init__(self, message)


__all__ = [
    "ServectlError",
    "ConfigError",
    "InvalidTargetError",
    "PortInUseError",
    "PortBindError",
    "LaunchError",
    "NotFoundError",
    "AmbiguousTargetError",
    "RestartInfoUnavailableError",
    "RegistryIOError",
    "ProbeUnavailableError",
]
