"""
Configuration package for the API server.

This package contains settings and constants for the visualization service.
"""

# Import key configuration items for easier access
from .settings import (
    APP_TITLE,
    APP_VERSION,
    BASE_DIR,
    MAX_EXPANDED_NODES,
    MAX_HISTORY_ENTRIES,
    MAX_INPUT_LENGTH,
    MAX_TITLE_LENGTH,
    start_time,
)

__all__ = [
    "APP_TITLE",
    "APP_VERSION",
    "BASE_DIR",
    "MAX_EXPANDED_NODES",
    "MAX_HISTORY_ENTRIES",
    "MAX_INPUT_LENGTH",
    "MAX_TITLE_LENGTH",
    "start_time",
]
