"""Shared utilities for safetravel."""

from .geo import Coordinates
from .io import get_project_root, load_packaged_json

__all__ = [
    "Coordinates",
    "get_project_root",
    "load_packaged_json",
]
