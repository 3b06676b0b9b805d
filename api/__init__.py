"""
API package for the visualization service.

This package contains the thin HTTP surface over the visualization pipeline:
settings, JWT authentication, request/response models, exception handlers
and route modules.
"""

__version__ = "1.0.0"
__all__ = []
