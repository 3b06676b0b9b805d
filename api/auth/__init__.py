"""
Authentication package for the API server.

This package contains bearer-token (JWT) verification for the visualization service.
"""

# Import JWT authentication functions
from .jwt_auth import verify_jwt

# Export all authentication functions for easier access
__all__ = ["verify_jwt"]
