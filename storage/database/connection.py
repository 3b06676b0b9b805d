"""PostgreSQL connection helpers for the document store."""

from __future__ import annotations

import os
import uuid
from contextlib import asynccontextmanager

import psycopg

from api.utils.debug import print__storage_debug
from storage.config import (
    CONNECT_TIMEOUT,
    KEEPALIVES_COUNT,
    KEEPALIVES_IDLE,
    KEEPALIVES_INTERVAL,
    TCP_USER_TIMEOUT,
    get_db_config,
)

_CONNECTION_STRING_CACHE = None


def get_connection_string():
    """Build (once) the PostgreSQL connection string with timeout and keepalive settings.

    The string is cached for the process so every connection reports the same
    application name in the server logs.
    """
    global _CONNECTION_STRING_CACHE
    if _CONNECTION_STRING_CACHE is not None:
        return _CONNECTION_STRING_CACHE

    config = get_db_config()
    app_name = f"viz_pipeline_{os.getpid()}_{uuid.uuid4().hex[:8]}"
    _CONNECTION_STRING_CACHE = (
        f"postgresql://{config['user']}:{config['password']}@"
        f"{config['host']}:{config['port']}/{config['dbname']}?"
        f"sslmode=require"
        f"&application_name={app_name}"
        f"&connect_timeout={CONNECT_TIMEOUT}"
        f"&keepalives_idle={KEEPALIVES_IDLE}"
        f"&keepalives_interval={KEEPALIVES_INTERVAL}"
        f"&keepalives_count={KEEPALIVES_COUNT}"
        f"&tcp_user_timeout={TCP_USER_TIMEOUT}"
    )
    print__storage_debug(f"🔗 CONNECTION STRING: generated for application {app_name}")
    return _CONNECTION_STRING_CACHE


def get_connection_kwargs():
    """Explicit transactions; prepared statements disabled for pooled cloud databases."""
    return {
        "autocommit": False,
        "prepare_threshold": None,
    }


async def check_connection_health(connection):
    """``SELECT 1`` health check; False on any error."""
    try:
        async with connection.cursor() as cur:
            await cur.execute("SELECT 1")
            result = await cur.fetchone()
            return result is not None and result[0] == 1
    except psycopg.Error as exc:
        print__storage_debug(f"❌ Connection health check failed: {exc}")
        return False


@asynccontextmanager
async def get_direct_connection():
    """Open a dedicated async connection, closed when the context exits.

    Usage:
        async with get_direct_connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute("SELECT ...", params)
    """
    async with await psycopg.AsyncConnection.connect(
        get_connection_string(), **get_connection_kwargs()
    ) as conn:
        yield conn
