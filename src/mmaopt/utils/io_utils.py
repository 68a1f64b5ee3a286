"""IO helpers for optimizer configuration files."""

from __future__ import annotations

from pathlib import Path

import yaml


def load_yaml(path: str | Path) -> dict:
    """Load a YAML file into a dictionary (empty files give an empty dict)."""
    with open(path, "r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}
