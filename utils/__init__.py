"""Utility modules for URBANPULSE."""

from .config_loader import load_config, get_config, get_section, get_secret
from .logger import setup_logger, setup_from_config
from .json_parser import find_fenced_block, extract_json_from_response
from .cache import ResultStore

__all__ = [
    "load_config",
    "get_config",
    "get_section",
    "get_secret",
    "setup_logger",
    "setup_from_config",
    "find_fenced_block",
    "extract_json_from_response",
    "ResultStore"
]
