"""
MODULE_DESCRIPTION: Exception Handlers - Global Error Responses for the FastAPI App

===================================================================================
PURPOSE AND OVERVIEW
===================================================================================

Registered on the application in api/main.py. Pipeline failures never reach
these handlers: routes translate failed Outcomes themselves through
api.utils.errors. What lands here is framework-level:

    RequestValidationError  -> 422 {"detail": "Validation error", "errors": [...]}
    HTTPException           -> its own status, {"detail": ...}
    ValueError              -> 400, message passed through sanitize_error
    anything else           -> 500, generic text (traceback only with
                               DEBUG_TRACEBACK=1)
===================================================================================
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
import traceback

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.helpers import traceback_json_response
from api.utils.debug import print__api_debug, print__debug, print__token_debug
from api.utils.errors import sanitize_error

# ==============================================================================
# EXCEPTION HANDLERS
# ==============================================================================


async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    """Pydantic request validation errors -> 422 with field-level detail."""
    print__debug(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=422,
        content={
            "detail": "Validation error",
            "errors": jsonable_encoder(exc.errors(), exclude={"input", "ctx"}),
        },
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """HTTPException -> JSON ``{"detail": ...}`` with the original status code.

    401s log the request line and client address; headers are never logged
    because they carry the bearer token.
    """
    if exc.status_code == 401:
        client_ip = request.client.host if request.client else "unknown"
        print__token_debug(
            f"🚨 HTTP 401 UNAUTHORIZED: {exc.detail} ({request.method} {request.url.path}, "
            f"client {client_ip})"
        )
    elif exc.status_code >= 400:
        print__api_debug(
            f"🚨 HTTP {exc.status_code} ERROR: {exc.detail} ({request.method} {request.url.path})"
        )

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


async def value_error_handler(_request: Request, exc: ValueError):
    print__debug(f"ValueError: {str(exc)}")
    return JSONResponse(
        status_code=400,
        content={"detail": sanitize_error(str(exc), fallback="Invalid input")},
    )


async def general_exception_handler(_request: Request, exc: Exception):
    """Catch-all -> 500 with a generic message; details stay in the log."""
    print__debug(
        f"Unexpected error: {type(exc).__name__}: {str(exc)}\n{traceback.format_exc()}"
    )
    debug_response = traceback_json_response(exc)
    if debug_response:
        return debug_response
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})
