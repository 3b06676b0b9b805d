"""API root: self-description and endpoint catalog."""

from datetime import datetime

from fastapi import APIRouter

from api.config.settings import APP_TITLE, APP_VERSION

router = APIRouter()


@router.get("/", tags=["root"])
async def api_root():
    """Public endpoint catalog; no authentication required."""
    return {
        "name": APP_TITLE,
        "version": APP_VERSION,
        "description": "Turns free text into editable, schema-validated visualizations",
        "timestamp": datetime.now().isoformat(),
        "documentation": {"swagger": "/docs", "redoc": "/redoc", "openapi": "/openapi.json"},
        "core_endpoints": {
            "generate": "POST /visualize",
            "edit": "POST /visualizations/edit",
            "expand": "POST /visualizations/expand",
        },
        "document_endpoints": {
            "save": "POST /visualizations",
            "list": "GET /visualizations",
            "get": "GET /visualizations/{id}",
            "delete": "DELETE /visualizations/{id}",
            "export": "POST /visualizations/{id}/export",
            "share": "POST /visualizations/{id}/share",
            "shared": "GET /shared/{share_id}",
        },
        "system_endpoints": {"health": "GET /health", "usage": "GET /usage"},
        "visualization_kinds": [
            "network_graph",
            "mind_map",
            "tree_diagram",
            "timeline",
            "gantt_chart",
        ],
    }
