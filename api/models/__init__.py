"""
Data models package for the API server.

This package contains Pydantic models for request/response validation
for the visualization service.
"""

# Import request models
from .requests import (
    EditRequest,
    ExpandRequest,
    ExportRequest,
    SaveRequest,
    VisualizeRequest,
)

# Import response models
from .responses import (
    DeleteResponse,
    EditResponseBody,
    ErrorResponse,
    ExportResponse,
    ShareResponse,
    UsageResponse,
    VisualizationListResponse,
    VisualizationResponse,
)

# Export all models for easier access
__all__ = [
    # Request models
    "VisualizeRequest",
    "EditRequest",
    "ExpandRequest",
    "SaveRequest",
    "ExportRequest",
    # Response models
    "VisualizationResponse",
    "VisualizationListResponse",
    "EditResponseBody",
    "ExportResponse",
    "ShareResponse",
    "DeleteResponse",
    "UsageResponse",
    "ErrorResponse",
]
