from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path
from typing import IO, Callable, Iterator, List, Optional

from servectl.core.exceptions import NotFoundError
from servectl.core.utils.io import ensure_directory
from servectl.core.utils.time import file_stamp, from_epoch, utc_now

logger = logging.getLogger(__name__)

LOG_GLOB = "server_*.log"


@dataclass(frozen=True)
class LogFile:
    path: Path
    size: int
    modified: datetime

    @property
    def name(self) -> str:
        return self.path.name

    def to_dict(self) -> dict:
        return {"path": str(self.path), "name": self.name, "size": self.size, "modified": self.modified.isoformat()}


class LogStore:
    """Per-instance log files in one directory."""

    def __init__(self, log_dir: Path) -> None:
        self.log_dir = Path(log_dir)

    def new_log_path(self, port: int, when: Optional[datetime] = None) -> Path:
        """``server_<port>_<YYYYmmdd_HHMMSS>.log``, suffixed if that name is taken."""
        ensure_directory(self.log_dir)
        base = f"server_{port}_{file_stamp(when)}"
        path = self.log_dir / f"{base}.log"
        n = 1
        while path.exists():
            path = self.log_dir / f"{base}_{n}.log"
            n += 1
        return path

    def list_logs(self) -> List[LogFile]:
        if not self.log_dir.is_dir():
            return []
        out: List[LogFile] = []
        for path in self.log_dir.glob(LOG_GLOB):
            try:
                st = path.stat()
            except OSError:
                continue
            if not path.is_file():
                continue
            out.append(LogFile(path=path, size=st.st_size, modified=from_epoch(st.st_mtime)))
        out.sort(key=lambda f: (f.modified, f.name), reverse=True)
        return out

    def count(self) -> int:
        return len(self.list_logs())

    def _open(self, path: Path) -> IO[str]:
        # The file may be pruned between list_logs() and here.
        try:
            return open(path, "r", encoding="utf-8", errors="replace")
        except OSError as exc:
            raise NotFoundError(f"Cannot read log file {path}: {exc}", context={"path": str(path)}) from exc

    def tail(self, path: Path, lines: int = 50) -> List[str]:
        if lines <= 0:
            return []
        with self._open(path) as fh:
            return [line.rstrip("\n") for line in deque(fh, maxlen=lines)]

    def follow(
        self,
        path: Path,
        *,
        poll_interval: float = 0.5,
        stop: Optional[Callable[[], bool]] = None,
        from_start: bool = False,
    ) -> Iterator[str]:
        """Yield lines appended to ``path`` until ``stop()`` is true or interrupted."""
        with self._open(path) as fh:
            if not from_start:
                fh.seek(0, 2)
            pending = ""
            while True:
                chunk = fh.readline()
                if chunk:
                    pending += chunk
                    if pending.endswith("\n"):
                        yield pending.rstrip("\n")
                        pending = ""
                    continue
                if stop is not None and stop():
                    if pending:
                        yield pending
                    return
                time.sleep(poll_interval)

    def prune(self, older_than_days: int, *, now: Optional[datetime] = None) -> List[Path]:
        """Delete logs last modified more than ``older_than_days`` days ago."""
        cutoff = (now or utc_now()) - timedelta(days=max(0, int(older_than_days)))
        removed: List[Path] = []
        for log in self.list_logs():
            if log.modified >= cutoff:
                continue
            try:
                log.path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Could not delete log %s: %s", log.path, exc)
                continue
            removed.append(log.path)
        if removed:
            logger.info("Pruned %d log file(s) older than %d day(s)", len(removed), older_than_days)
        return removed

    def purge(self) -> List[Path]:
        removed: List[Path] = []
        for log in self.list_logs():
            try:
                log.path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                logger.warning("Could not delete log %s: %s", log.path, exc)
                continue
            removed.append(log.path)
        return removed


__all__ = ["LogFile", "LogStore", "LOG_GLOB"]
