"""File I/O for servectl: atomic JSON registry records and YAML config layers."""
from __future__ import annotations

from .core import PathLike, atomic_write, ensure_directory
from .json import read_json, write_json_atomic
from .yaml import read_yaml

__all__ = [
    "PathLike",
    "ensure_directory",
    "atomic_write",
    "read_json",
    "write_json_atomic",
    "read_yaml",
]
