from __future__ import annotations

import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

DEFAULT_LOG_DIR = "~/.python_server_logs"
DEFAULT_REGISTRY_DIR = "~/.python_server_pids"


def _expand(raw: Any, fallback: str) -> Path:
    text = str(raw or "").strip() or fallback
    return Path(text).expanduser()


@dataclass(frozen=True)
class ManagerSettings:
    """Explicit configuration handed to the server lifecycle manager."""

    default_port: int = 8000
    bind_address: str = ""
    python_executable: str = field(default_factory=lambda: sys.executable)
    module: str = "http.server"
    browser_delay_seconds: float = 2.0
    startup_timeout_seconds: float = 3.0
    shutdown_timeout_seconds: float = 5.0
    poll_interval_seconds: float = 0.1
    port_scan_limit: int = 1000
    restart_wait_attempts: int = 20
    restart_wait_interval_seconds: float = 0.25
    log_retention_days: int = 7
    tail_lines: int = 50
    log_dir: Path = field(default_factory=lambda: Path(DEFAULT_LOG_DIR).expanduser())
    registry_dir: Path = field(default_factory=lambda: Path(DEFAULT_REGISTRY_DIR).expanduser())
    log_level: str = "INFO"
    log_file: str | None = "servectl.log"

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> ManagerSettings:
        """Build settings from a merged (and validated) config mapping."""
        server = cfg.get("server") or {}
        paths = cfg.get("paths") or {}
        logging_cfg = cfg.get("logging") or {}
        defaults = cls()

        python_executable = server.get("python_executable")
        log_file = logging_cfg.get("file", defaults.log_file)
        if isinstance(log_file, str) and not log_file.strip():
            log_file = None

        return cls(
            default_port=int(server.get("default_port", defaults.default_port)),
            bind_address=str(server.get("bind_address") or ""),
            python_executable=str(python_executable) if python_executable else sys.executable,
            module=str(server.get("module") or defaults.module),
            browser_delay_seconds=float(server.get("browser_delay_seconds", defaults.browser_delay_seconds)),
            startup_timeout_seconds=float(server.get("startup_timeout_seconds", defaults.startup_timeout_seconds)),
            shutdown_timeout_seconds=float(server.get("shutdown_timeout_seconds", defaults.shutdown_timeout_seconds)),
            poll_interval_seconds=float(server.get("poll_interval_seconds", defaults.poll_interval_seconds)),
            port_scan_limit=int(server.get("port_scan_limit", defaults.port_scan_limit)),
            restart_wait_attempts=int(server.get("restart_wait_attempts", defaults.restart_wait_attempts)),
            restart_wait_interval_seconds=float(
                server.get("restart_wait_interval_seconds", defaults.restart_wait_interval_seconds)
            ),
            log_retention_days=int(server.get("log_retention_days", defaults.log_retention_days)),
            tail_lines=int(server.get("tail_lines", defaults.tail_lines)),
            log_dir=_expand(paths.get("log_dir"), DEFAULT_LOG_DIR),
            registry_dir=_expand(paths.get("registry_dir"), DEFAULT_REGISTRY_DIR),
            log_level=str(logging_cfg.get("level") or "INFO").upper(),
            log_file=log_file,
        )

    @property
    def manager_log_path(self) -> Path | None:
        if not self.log_file:
            return None
        path = Path(self.log_file).expanduser()
        return path if path.is_absolute() else self.log_dir / path


__all__ = ["ManagerSettings", "DEFAULT_LOG_DIR", "DEFAULT_REGISTRY_DIR"]
