"""PostgreSQL connection helpers and table setup for the document store."""

from .connection import (
    check_connection_health,
    get_connection_kwargs,
    get_connection_string,
    get_direct_connection,
)
from .table_setup import setup_visualizations_table

__all__ = [
    "get_connection_string",
    "get_connection_kwargs",
    "check_connection_health",
    "get_direct_connection",
    "setup_visualizations_table",
]
