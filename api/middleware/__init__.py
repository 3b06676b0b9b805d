"""
Middleware package for the API server.

CORS and Brotli compression setup for the visualization service.
"""

from .cors import setup_brotli_middleware, setup_cors_middleware

__all__ = ["setup_brotli_middleware", "setup_cors_middleware"]
