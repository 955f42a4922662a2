"""I/O utilities for data paths and packaged resources."""

import json
from importlib import resources
from pathlib import Path
from typing import Any

# Project root is 4 levels up from this file
_PROJECT_ROOT = Path(__file__).parent.parent.parent.parent


def get_project_root() -> Path:
    """Get the project root directory."""
    return _PROJECT_ROOT


def load_packaged_json(filename: str) -> Any:
    """Load a JSON file shipped in the safetravel.data package.

    Example:
        >>> districts = load_packaged_json("districts.json")
        >>> len(districts)
        64
    """
    text = resources.files("safetravel.data").joinpath(filename).read_text(encoding="utf-8")
    return json.loads(text)
