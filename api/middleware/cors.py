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

from brotli_asgi import BrotliMiddleware
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.config.settings import CORS_ORIGINS
from api.utils.debug import print__startup_debug


def setup_cors_middleware(app: FastAPI):
    """Register CORS for the origins listed in CORS_ORIGINS (comma separated).

    Credentials are only allowed for an explicit origin list; browsers reject
    a wildcard origin combined with credentials.
    """
    print__startup_debug(f"📋 CORS allowed origins: {CORS_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials="*" not in CORS_ORIGINS,
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )


def setup_brotli_middleware(app: FastAPI):
    """Brotli-compress responses of 1 KB or more for clients sending ``Accept-Encoding: br``.

    Exported CSV and large payloads are the main beneficiaries.
    """
    print__startup_debug("📋 Registering Brotli compression middleware...")
    app.add_middleware(BrotliMiddleware, minimum_size=1000)
