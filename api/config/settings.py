"""
MODULE_DESCRIPTION: API Configuration Settings - Application Constants

===================================================================================
PURPOSE AND OVERVIEW
===================================================================================

Central configuration for the HTTP surface of the visualization service. Holds
the application start time, JWT settings and the request bounds enforced by the
request models. Pipeline, admission and storage settings live with their own
packages (viz_agent.utils.models, admission.config, storage.config).

===================================================================================
ENVIRONMENT VARIABLES
===================================================================================

    JWT_SECRET          HS256 signing secret for bearer tokens
    JWT_AUDIENCE        expected "aud" claim (optional)
    JWT_ISSUER          expected "iss" claim (optional)
    JWT_JWKS_URL        RS256 key set URL; when set, tokens with a "kid" are
                        verified against it instead of JWT_SECRET
    USE_TEST_TOKENS     "1" accepts unsigned tokens issued by "test_issuer"
    MAX_INPUT_LENGTH    maximum characters for free-text input (default 10000)
    DEBUG_TRACEBACK     "1" adds tracebacks to 500 responses
    CORS_ORIGINS        comma-separated allowed origins (default "*")
"""

# CRITICAL: Set Windows event loop policy FIRST, before any other imports
# This must be the very first thing that happens to fix psycopg compatibility
import os
import sys

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Load environment variables early
from dotenv import load_dotenv

load_dotenv()

# Constants
try:
    from pathlib import Path

    BASE_DIR = Path(__file__).resolve().parents[2]
except NameError:
    BASE_DIR = Path(os.getcwd()).parents[0]

# Standard imports
import time

# ============================================================
# APPLICATION LIFECYCLE
# ============================================================
# Application startup time for uptime tracking
start_time = time.time()

APP_TITLE = "Visualization Pipeline API"
APP_VERSION = "1.0.0"

# ============================================================
# AUTHENTICATION
# ============================================================
JWT_SECRET = os.environ.get("JWT_SECRET", "")
JWT_AUDIENCE = os.environ.get("JWT_AUDIENCE") or None
JWT_ISSUER = os.environ.get("JWT_ISSUER") or None
JWT_JWKS_URL = os.environ.get("JWT_JWKS_URL") or None
JWT_ALGORITHM = "HS256"
TEST_TOKEN_ISSUER = "test_issuer"

# ============================================================
# REQUEST BOUNDS
# ============================================================
MAX_INPUT_LENGTH = int(os.environ.get("MAX_INPUT_LENGTH", "10000"))
MAX_EXPANDED_NODES = 500
MAX_NODE_ID_LENGTH = 200
MAX_HISTORY_ENTRIES = 50
MAX_TITLE_LENGTH = 200

CORS_ORIGINS = [
    origin.strip() for origin in os.environ.get("CORS_ORIGINS", "*").split(",") if origin.strip()
]
