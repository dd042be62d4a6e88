"""YAML config layers."""
from __future__ import annotations

import fcntl
from typing import Any

import yaml

from .core import PathLike


def read_yaml(path: PathLike, default: Any = None) -> Any:
    """Load one YAML document; an empty file yields ``default``.

    Missing files and parse errors propagate (``FileNotFoundError``,
    ``yaml.YAMLError``) so configuration never silently falls back.
    """
    with open(path, "r", encoding="utf-8") as fh:
        fcntl.flock(fh.fileno(), fcntl.LOCK_SH)
        try:
            data = yaml.safe_load(fh)
        finally:
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
    return default if data is None else data


__all__ = ["read_yaml"]
