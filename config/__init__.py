"""
Configuration loading utilities for the provider.
"""

from pathlib import Path
from typing import Any, Dict

import yaml


CONFIG_DIR = Path(__file__).parent


def load_yaml(filename: str) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        filename: Name of file in config directory

    Returns:
        Parsed YAML as dict
    """
    filepath = CONFIG_DIR / filename
    if not filepath.exists():
        raise FileNotFoundError(f"Config file not found: {filepath}")

    with open(filepath, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


def load_provider() -> Dict[str, Any]:
    """Load provider configuration."""
    return load_yaml("provider.yaml")
