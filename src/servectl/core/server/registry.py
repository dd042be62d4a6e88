"""
Per-port server records on disk.

One JSON file per instance, ``<registry_dir>/server_<port>.json``, written
atomically. The registry can drift from reality (a server killed from another
terminal, a reboot), so every read tolerates missing or corrupt files and
``reconcile`` prunes records whose process is gone.
"""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Callable, List, Optional

from servectl.core.exceptions import PortInUseError, RegistryIOError
from servectl.core.utils.io import ensure_directory, read_json, write_json_atomic

from .models import ServerInstance, validate_port

logger = logging.getLogger(__name__)

RECORD_GLOB = "server_*.json"
_RECORD_RE = re.compile(r"^server_(\d+)\.json$")


class ProcessRegistry:
    def __init__(self, registry_dir: Path, *, is_live: Callable[[ServerInstance], bool]) -> None:
        """``is_live(record)`` tells whether the recorded process still serves the record."""
        self.registry_dir = Path(registry_dir)
        self._is_live = is_live

    def path_for(self, port: int) -> Path:
        return self.registry_dir / f"server_{validate_port(port)}.json"

    def _read(self, path: Path) -> ServerInstance:
        try:
            raw = read_json(path)
        except FileNotFoundError:
            raise
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise RegistryIOError(f"Unreadable registry record {path}: {exc}", context={"path": str(path)}) from exc
        try:
            return ServerInstance.from_record(raw)
        except ValueError as exc:
            raise RegistryIOError(f"Malformed registry record {path}: {exc}", context={"path": str(path)}) from exc

    def _load(self, path: Path) -> Optional[ServerInstance]:
        """Read one record; corrupt or vanished files count as absent."""
        try:
            return self._read(path)
        except FileNotFoundError:
            return None
        except RegistryIOError as exc:
            logger.warning("%s (ignored)", exc)
            return None

    def record(self, instance: ServerInstance, *, replace: bool = True) -> ServerInstance:
        """Persist ``instance`` under its port.

        With ``replace=False`` an existing record for the same port whose pid
        is still live (and differs) raises ``PortInUseError``.
        """
        if instance.port is None:
            raise ValueError("Cannot record a server without a port")
        path = self.path_for(instance.port)
        if not replace:
            existing = self._load(path)
            if existing is not None and existing.pid != instance.pid and self._is_live(existing):
                raise PortInUseError(
                    f"Port {instance.port} is already recorded for live pid {existing.pid}",
                    context={"port": instance.port, "pid": existing.pid},
                )
        try:
            ensure_directory(self.registry_dir)
            write_json_atomic(path, instance.to_record())
        except OSError as exc:
            raise RegistryIOError(
                f"Cannot write registry record {path}: {exc}",
                context={"path": str(path), "port": instance.port},
            ) from exc
        logger.debug("Recorded port %s -> pid %s", instance.port, instance.pid)
        return instance.with_updates(tracked=True)

    def lookup(self, port: int) -> Optional[ServerInstance]:
        return self._load(self.path_for(port))

    def lookup_pid(self, pid: int) -> Optional[ServerInstance]:
        for instance in self.list_all():
            if instance.pid == pid:
                return instance
        return None

    def remove(self, port: int) -> bool:
        path = self.path_for(port)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.warning("Could not remove registry record %s: %s", path, exc)
            return False
        logger.debug("Removed registry record for port %s", port)
        return True

    def _record_paths(self) -> List[Path]:
        if not self.registry_dir.is_dir():
            return []
        return [p for p in self.registry_dir.glob(RECORD_GLOB) if _RECORD_RE.match(p.name)]

    def list_all(self) -> List[ServerInstance]:
        out: List[ServerInstance] = []
        for path in self._record_paths():
            instance = self._load(path)
            if instance is None:
                continue
            if path.name != f"server_{instance.port}.json":
                logger.warning("Registry record %s names port %s (ignored)", path, instance.port)
                continue
            out.append(instance)
        return sorted(out, key=lambda i: (i.port or 0, i.pid))

    def reconcile(self) -> List[ServerInstance]:
        """Remove records whose process is gone or reused; return the removed records."""
        removed: List[ServerInstance] = []
        for instance in self.list_all():
            if self._is_live(instance):
                continue
            if instance.port is not None and self.remove(instance.port):
                logger.warning("Removed stale record: port %s pid %s no longer serves it", instance.port, instance.pid)
                removed.append(instance)
        return removed

    def purge(self) -> int:
        """Delete every record file, readable or not."""
        count = 0
        for path in self._record_paths():
            try:
                path.unlink()
                count += 1
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Could not remove registry record %s: %s", path, exc)
        return count


__all__ = ["ProcessRegistry", "RECORD_GLOB"]
