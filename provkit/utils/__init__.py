"""Utility modules for provkit."""

from .logging import setup_logging, get_logger
from .filters import FilterSet
from .paths import decode_output, home_dir, relative_home_path

__all__ = [
    "setup_logging",
    "get_logger",
    "FilterSet",
    "decode_output",
    "home_dir",
    "relative_home_path",
]
