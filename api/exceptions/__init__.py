"""Global exception handlers registered on the FastAPI application."""

from .handlers import (
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    value_error_handler,
)

__all__ = [
    "general_exception_handler",
    "http_exception_handler",
    "validation_exception_handler",
    "value_error_handler",
]
