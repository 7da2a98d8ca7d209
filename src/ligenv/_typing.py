"""Defines type aliases for the project."""

from pathlib import Path
from typing import Any, Callable

PathLike = str | Path
Fetcher = Callable[[str], Any]


__all__ = [
    "Fetcher",
    "PathLike",
]
