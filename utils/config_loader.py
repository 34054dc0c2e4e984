"""Configuration loader for YAML settings and environment secrets."""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import os
from dotenv import load_dotenv

load_dotenv()

_config: Optional[Dict[str, Any]] = None


def load_config(config_path: Optional[str] = None) -> Dict[str, Any]:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses default location.

    Returns:
        Configuration dictionary
    """
    global _config

    if config_path is None:
        # Default to config/settings.yaml in project root
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config" / "settings.yaml"
    else:
        config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        _config = yaml.safe_load(f) or {}

    return _config


def get_config() -> Dict[str, Any]:
    """
    Get loaded configuration.

    Returns:
        Configuration dictionary
    """
    global _config

    if _config is None:
        # Auto-load on first access
        _config = load_config()

    return _config


def get_section(name: str, config: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """
    Get a top-level configuration section.

    Args:
        name: Section name, e.g. 'traffic' or 'analysis'
        config: Explicit configuration; the loaded settings are used if None

    Returns:
        Section dictionary (empty if the section is missing)
    """
    if config is None:
        config = get_config()
    return config.get(name) or {}


def get_secret(env_var: str) -> Optional[str]:
    """
    Read a credential from the environment.

    Empty or whitespace-only values count as missing.

    Args:
        env_var: Environment variable name

    Returns:
        The stripped value, or None
    """
    value = os.getenv(env_var, "").strip()
    return value or None
