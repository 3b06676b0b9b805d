"""Visualization Pipeline FastAPI Backend Application

This module is the entry point of the HTTP service that turns free text into
interactive visualizations (network graphs, mind maps, tree diagrams, timelines
and Gantt charts) and lets users refine them through chat edits and node
expansion.

Startup (lifespan) builds the long-lived collaborators once and stores them on
``app.state``:

    kv_store    Redis (or in-memory) store behind token accounting and rate
                limits; None when unconfigured, which makes admission deny
                every costed operation
    documents   PostgreSQL (or in-memory) document store
    model       ModelClient wrapping the configured chat model
    pipeline    VisualizationPipeline wiring all of the above

Shutdown closes the key-value store connection.

Run with:
    uvicorn api.main:app --host 0.0.0.0 --port 8000
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

    BASE_DIR = Path(__file__).resolve().parents[1]
except NameError:
    BASE_DIR = Path(os.getcwd()).parents[0]

# Standard imports
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from admission.controller import AdmissionController
from admission.kv_store import create_key_value_store
from api.config.settings import APP_TITLE, APP_VERSION, MAX_INPUT_LENGTH
from api.exceptions.handlers import (
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    value_error_handler,
)
from api.middleware.cors import setup_brotli_middleware, setup_cors_middleware
from api.routes import health_router, root_router, usage_router, visualizations_router
from api.utils.debug import print__startup_debug
from storage.config import check_postgres_env_vars
from storage.database.table_setup import setup_visualizations_table
from storage.documents import PostgresDocumentStore, create_document_store
from viz_agent.pipeline import VisualizationPipeline
from viz_agent.utils.models import ModelClient

# ==============================================================================
# APPLICATION LIFESPAN MANAGEMENT
# ==============================================================================
_APP_STARTUP_TIME = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build stores, model client and pipeline on startup; close the kv store on shutdown."""
    # pylint: disable=global-statement
    global _APP_STARTUP_TIME
    _APP_STARTUP_TIME = datetime.now()
    print__startup_debug("🚀 FastAPI application starting up...")

    kv_store = create_key_value_store()
    documents = create_document_store()
    if isinstance(documents, PostgresDocumentStore):
        if not check_postgres_env_vars():
            raise RuntimeError("PostgreSQL document store selected but not configured")
        await setup_visualizations_table()

    model = ModelClient()
    app.state.kv_store = kv_store
    app.state.documents = documents
    app.state.model = model
    app.state.pipeline = VisualizationPipeline(
        model=model,
        admission=AdmissionController(kv_store),
        documents=documents,
        max_input_length=MAX_INPUT_LENGTH,
    )
    print__startup_debug(
        f"✅ Ready: admission store={type(kv_store).__name__ if kv_store else 'unconfigured'}, "
        f"documents={type(documents).__name__}, model={model.model_name}"
    )

    yield  # Application runs here, serving requests

    print__startup_debug(
        f"🛑 FastAPI application shutting down after {datetime.now() - _APP_STARTUP_TIME}"
    )
    if kv_store is not None:
        await kv_store.close()


# ==============================================================================
# FASTAPI APPLICATION INITIALIZATION
# ==============================================================================
app = FastAPI(
    title=APP_TITLE,
    description="""Turns free text into interactive, schema-validated visualizations.

## Features
- 🧭 Automatic format selection (network graph, mind map, tree, timeline, Gantt)
- ✏️ Chat-based editing with a persistent conversation history
- 🌱 Node expansion for graphs and hierarchies
- 💾 Save, share, export (JSON / CSV)
- 🎟️ Per-user token budgets and rate limits

## Authentication
All endpoints except `/`, `/health` and `/shared/{share_id}` require a Bearer token.
    """,
    version=APP_VERSION,
    lifespan=lifespan,
    responses={
        401: {
            "description": "Unauthorized - Invalid or missing authentication token",
            "content": {
                "application/json": {
                    "example": {"detail": "Authentication required", "category": "unauthenticated"}
                }
            },
        },
        429: {
            "description": "Rate Limit Exceeded",
            "content": {
                "application/json": {
                    "example": {
                        "detail": "Rate limit exceeded. Try again after 2026-01-15T11:00:00+00:00.",
                        "category": "admission_denied",
                        "reason": "rate_limited",
                        "remaining": 0,
                    }
                }
            },
        },
        500: {
            "description": "Internal Server Error",
            "content": {"application/json": {"example": {"detail": "Internal server error"}}},
        },
    },
)

# ==============================================================================
# MIDDLEWARE REGISTRATION
# ==============================================================================
setup_cors_middleware(app)
setup_brotli_middleware(app)

# ==============================================================================
# EXCEPTION HANDLERS
# ==============================================================================
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(ValueError, value_error_handler)
app.add_exception_handler(Exception, general_exception_handler)

# ==============================================================================
# ROUTE REGISTRATION
# ==============================================================================
app.include_router(root_router, tags=["Root"])
app.include_router(health_router, tags=["Health & Monitoring"])
app.include_router(visualizations_router, tags=["Visualizations"])
app.include_router(usage_router, tags=["Usage"])
