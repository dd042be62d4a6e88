"""Directory and atomic-write primitives shared by the registry and log store."""
from __future__ import annotations

import fcntl
import os
import tempfile
from pathlib import Path
from typing import Union

PathLike = Union[str, Path]


def ensure_directory(path: PathLike) -> Path:
    """Create ``path`` (and parents) if needed; a file in the way is an error."""
    path = Path(path)
    if path.exists() and not path.is_dir():
        raise NotADirectoryError(f"Path exists but is not a directory: {path}")
    path.mkdir(parents=True, exist_ok=True)
    return path


def atomic_write(path: PathLike, content: str, *, encoding: str = "utf-8") -> None:
    """Replace ``path`` with ``content`` so readers never see a partial file.

    The text goes to a locked temp file in the same directory, is fsync'd and
    then renamed over the target. The temp file is removed on failure.
    """
    path = Path(path)
    ensure_directory(path.parent)
    fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding=encoding) as fh:
            fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


__all__ = ["PathLike", "ensure_directory", "atomic_write"]
