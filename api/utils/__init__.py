"""
Utility functions package for the API server.

This package contains the debug print helpers and error sanitising used by
the routes and by the pipeline packages.
"""

from .debug import (
    print__debug,
    print__pipeline_debug,
    print__model_debug,
    print__admission_debug,
    print__rate_limit_debug,
    print__storage_debug,
    print__api_debug,
    print__token_debug,
    print__startup_debug,
)

__all__ = [
    "print__debug",
    "print__pipeline_debug",
    "print__model_debug",
    "print__admission_debug",
    "print__rate_limit_debug",
    "print__storage_debug",
    "print__api_debug",
    "print__token_debug",
    "print__startup_debug",
]
