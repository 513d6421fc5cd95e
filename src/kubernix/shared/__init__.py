"""Shared modules for kubernix.

Logging setup and default filesystem locations used by every command.
"""

from .logging import configure_logging, get_logger
from .paths import CONFIG_FILE, DEFAULT_ROOT, KUBERNIX_DIR, resolve_under

__all__ = [
    # Paths
    "KUBERNIX_DIR",
    "CONFIG_FILE",
    "DEFAULT_ROOT",
    "resolve_under",
    # Logging
    "configure_logging",
    "get_logger",
]
