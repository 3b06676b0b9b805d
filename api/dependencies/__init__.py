"""
Dependencies package for the API server.

This package contains FastAPI dependencies for authentication and for
reaching the pipeline built at startup.
"""

# Import dependencies
from .auth import get_current_user, get_optional_user_id
from .pipeline import get_pipeline

# Export all dependencies for easier access
__all__ = ["get_current_user", "get_optional_user_id", "get_pipeline"]
