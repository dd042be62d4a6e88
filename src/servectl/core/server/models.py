from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Optional, Union

from servectl.core.exceptions import InvalidTargetError
from servectl.core.utils.time import parse_iso8601, utc_timestamp

MIN_PORT = 1
MAX_PORT = 65535

PortStrategy = Literal["explicit", "auto", "default", "random"]

_WILDCARD_ADDRESSES = {"", "0.0.0.0", "::", "*"}


def validate_port(port: Any) -> int:
    """Return ``port`` as an int in 1-65535 or raise ``InvalidTargetError``."""
    try:
        value = int(port)
    except (TypeError, ValueError):
        raise InvalidTargetError(f"Invalid port: {port!r}", context={"port": port}) from None
    if isinstance(port, bool) or not MIN_PORT <= value <= MAX_PORT:
        raise InvalidTargetError(
            f"Invalid port {port!r}: must be between {MIN_PORT} and {MAX_PORT}",
            context={"port": port},
        )
    return value


class ServerState(str, Enum):
    UNBOUND = "unbound"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class StartMode(str, Enum):
    FOREGROUND = "foreground"
    FOREGROUND_BROWSER = "foreground_browser"
    BACKGROUND = "background"
    BACKGROUND_BROWSER = "background_browser"

    @property
    def detached(self) -> bool:
        return self in (StartMode.BACKGROUND, StartMode.BACKGROUND_BROWSER)

    @property
    def opens_browser(self) -> bool:
        return self in (StartMode.FOREGROUND_BROWSER, StartMode.BACKGROUND_BROWSER)

    @classmethod
    def from_flags(cls, *, background: bool, open_browser: bool) -> StartMode:
        if background:
            return cls.BACKGROUND_BROWSER if open_browser else cls.BACKGROUND
        return cls.FOREGROUND_BROWSER if open_browser else cls.FOREGROUND


@dataclass(frozen=True)
class PortPreference:
    """How ``start`` picks its port."""

    strategy: PortStrategy = "default"
    port: Optional[int] = None

    @classmethod
    def explicit(cls, port: int) -> PortPreference:
        return cls("explicit", validate_port(port))

    @classmethod
    def auto(cls, start: Optional[int] = None) -> PortPreference:
        return cls("auto", validate_port(start) if start is not None else None)

    @classmethod
    def default(cls) -> PortPreference:
        return cls("default")

    @classmethod
    def random(cls) -> PortPreference:
        return cls("random")


@dataclass(frozen=True)
class ServerSelector:
    """A stop/restart target: exactly one of ``pid`` or ``port``."""

    pid: Optional[int] = None
    port: Optional[int] = None

    def __post_init__(self) -> None:
        if (self.pid is None) == (self.port is None):
            raise InvalidTargetError("Selector needs exactly one of pid or port")

    @classmethod
    def for_pid(cls, pid: int) -> ServerSelector:
        try:
            value = int(pid)
        except (TypeError, ValueError):
            raise InvalidTargetError(f"Invalid PID: {pid!r}", context={"pid": pid}) from None
        if value <= 0:
            raise InvalidTargetError(f"Invalid PID: {pid!r}", context={"pid": pid})
        return cls(pid=value)

    @classmethod
    def for_port(cls, port: int) -> ServerSelector:
        return cls(port=validate_port(port))

    @classmethod
    def parse(cls, raw: Union[str, int, ServerSelector]) -> ServerSelector:
        """Parse ``pid:N``, ``port:N`` or a bare number (a port)."""
        if isinstance(raw, ServerSelector):
            return raw
        if isinstance(raw, int):
            return cls.for_port(raw)
        text = str(raw).strip().lower()
        kind, sep, value = text.partition(":")
        if not sep:
            return cls.for_port(text)
        if kind == "pid":
            return cls.for_pid(value)
        if kind == "port":
            return cls.for_port(value)
        raise InvalidTargetError(f"Unknown selector {raw!r} (use pid:N or port:N)")

    def describe(self) -> str:
        return f"pid {self.pid}" if self.pid is not None else f"port {self.port}"


@dataclass(frozen=True)
class ServerInstance:
    """One running (or formerly running) file-serving process."""

    pid: int
    port: Optional[int]
    directory: Optional[Path]
    log_path: Optional[Path] = None
    started_at: Optional[datetime] = None
    bind_address: str = ""
    tracked: bool = False

    @property
    def url(self) -> Optional[str]:
        if self.port is None:
            return None
        host = self.bind_address.strip()
        if host in _WILDCARD_ADDRESSES:
            host = "localhost"
        elif ":" in host:
            host = f"[{host}]"
        return f"http://{host}:{self.port}"

    def with_updates(self, **changes: Any) -> ServerInstance:
        return replace(self, **changes)

    def to_record(self) -> dict[str, Any]:
        """Serialize for the registry file."""
        return {
            "port": self.port,
            "pid": self.pid,
            "directory": str(self.directory) if self.directory else None,
            "log_path": str(self.log_path) if self.log_path else None,
            "started_at": utc_timestamp(self.started_at) if self.started_at else None,
            "bind_address": self.bind_address,
        }

    @classmethod
    def from_record(cls, raw: Any) -> ServerInstance:
        """Parse a registry record; raises ``ValueError`` on malformed data."""
        if not isinstance(raw, dict):
            raise ValueError("record must be a JSON object")
        try:
            pid = int(raw["pid"])
            port = validate_port(raw["port"])
        except (KeyError, TypeError, ValueError, InvalidTargetError) as exc:
            raise ValueError(f"record has an invalid pid/port: {exc}") from exc
        if pid <= 0:
            raise ValueError(f"record has an invalid pid: {pid}")

        directory = raw.get("directory")
        log_path = raw.get("log_path")
        started_raw = raw.get("started_at")
        started_at = parse_iso8601(str(started_raw)) if started_raw else None
        return cls(
            pid=pid,
            port=port,
            directory=Path(directory) if directory else None,
            log_path=Path(log_path) if log_path else None,
            started_at=started_at,
            bind_address=str(raw.get("bind_address") or ""),
            tracked=True,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for ``--json`` output."""
        data = self.to_record()
        data["url"] = self.url
        data["tracked"] = self.tracked
        return data


@dataclass(frozen=True)
class ManagerStats:
    running: int
    untracked: int
    tracked_records: int
    orphaned_records: int
    log_files: int
    log_dir: Path
    registry_dir: Path
    orphans: tuple[ServerInstance, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "untracked": self.untracked,
            "tracked_records": self.tracked_records,
            "orphaned_records": self.orphaned_records,
            "log_files": self.log_files,
            "log_dir": str(self.log_dir),
            "registry_dir": str(self.registry_dir),
        }


__all__ = [
    "MIN_PORT",
    "MAX_PORT",
    "validate_port",
    "ServerState",
    "StartMode",
    "PortPreference",
    "ServerSelector",
    "ServerInstance",
    "ManagerStats",
]
