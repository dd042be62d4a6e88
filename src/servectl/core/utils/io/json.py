"""JSON records: atomic writes and shared-lock reads."""
from __future__ import annotations

import fcntl
import json
from typing import Any

from .core import PathLike, atomic_write


def read_json(path: PathLike) -> Any:
    """Parse ``path`` under a shared lock.

    Raises ``FileNotFoundError`` when absent and ``json.JSONDecodeError`` on
    malformed content; the caller decides what a bad record means.
    """
    with open(path, "r", encoding="utf-8") as fh:
        fcntl.flock(fh.fileno(), fcntl.LOCK_SH)
        try:
            return json.load(fh)
        finally:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)


def write_json_atomic(path: PathLike, data: Any) -> None:
    atomic_write(path, json.dumps(data, indent=2, sort_keys=True) + "\n")


__all__ = ["read_json", "write_json_atomic"]
