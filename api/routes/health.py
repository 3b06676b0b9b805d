"""
MODULE_DESCRIPTION: Health Check Endpoints - Dependency Status for Monitoring

===================================================================================
PURPOSE AND OVERVIEW
===================================================================================

Unauthenticated endpoints for load balancers and monitoring:

GET /health
    Overall status. "degraded" (HTTP 503) when the admission key-value store is
    unconfigured or unreachable, because every costed operation is denied
    (fail closed) until it comes back.

    Returns:
        {
            "status": "healthy",            // or "degraded"
            "timestamp": "2026-01-15T10:30:00",
            "uptime_seconds": 3600.5,
            "admission_store": {"configured": true, "reachable": true},
            "document_store": "PostgresDocumentStore",
            "version": "1.0.0"
        }

GET /health/database
    SELECT 1 round trip against PostgreSQL with latency, or a note that the
    in-memory document store is in use.
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
import time
from datetime import datetime

import psycopg
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from admission.kv_store import KeyValueStoreError
from api.config.settings import APP_VERSION, start_time
from api.helpers import traceback_json_response
from api.utils.debug import print__api_debug
from storage.database.connection import check_connection_health, get_direct_connection
from storage.documents import PostgresDocumentStore

router = APIRouter()


async def _admission_store_status(kv_store) -> dict:
    if kv_store is None:
        return {"configured": False, "reachable": False}
    try:
        reachable = bool(await kv_store.ping())
    except KeyValueStoreError as e:
        print__api_debug(f"❌ HEALTH: admission store ping failed: {e}")
        reachable = False
    return {"configured": True, "reachable": reachable}


@router.get("/health")
async def health_check(request: Request):
    """Overall health; 503 while admission is failing closed."""
    try:
        admission_store = await _admission_store_status(
            getattr(request.app.state, "kv_store", None)
        )
        documents = getattr(request.app.state, "documents", None)
        healthy = admission_store["reachable"]

        health_data = {
            "status": "healthy" if healthy else "degraded",
            "timestamp": datetime.now().isoformat(),
            "uptime_seconds": round(time.time() - start_time, 2),
            "admission_store": admission_store,
            "document_store": type(documents).__name__ if documents is not None else None,
            "version": APP_VERSION,
        }
        if not healthy:
            return JSONResponse(status_code=503, content=health_data)
        return health_data

    except Exception as e:  # pylint: disable=broad-except
        resp = traceback_json_response(e)
        if resp:
            return resp
        return JSONResponse(
            status_code=500,
            content={"status": "error", "timestamp": datetime.now().isoformat()},
        )


@router.get("/health/database")
async def database_health_check(request: Request):
    """PostgreSQL connectivity and read latency."""
    health_status = {"timestamp": datetime.now().isoformat()}
    documents = getattr(request.app.state, "documents", None)
    if not isinstance(documents, PostgresDocumentStore):
        health_status.update(
            {
                "database_connection": "not_used",
                "note": "in-memory document store is active",
            }
        )
        return health_status

    try:
        started = time.time()
        async with get_direct_connection() as conn:
            healthy = await check_connection_health(conn)
        health_status.update(
            {
                "database_connection": "healthy" if healthy else "error",
                "read_latency_ms": round((time.time() - started) * 1000, 2),
            }
        )
    except psycopg.Error as e:
        print__api_debug(f"❌ HEALTH: database connection failed: {type(e).__name__}")
        health_status["database_connection"] = "error"
        healthy = False

    if not healthy:
        return JSONResponse(status_code=503, content=health_status)
    return health_status
