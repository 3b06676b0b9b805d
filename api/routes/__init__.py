"""
Routes package for the API server.

This package contains FastAPI route handlers for visualization generation and
management, token usage, health checks and the root catalog.
"""

# CRITICAL: Set Windows event loop policy FIRST, before any other imports
# This must be the very first thing that happens to fix psycopg compatibility
import sys

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Load environment variables early
from dotenv import load_dotenv

load_dotenv()

# Routes module initialization
from .health import router as health_router
from .root import router as root_router
from .usage import router as usage_router
from .visualizations import router as visualizations_router

# Export all routers for easy import
__all__ = [
    "health_router",
    "root_router",
    "usage_router",
    "visualizations_router",
]
