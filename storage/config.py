"""Document Store Configuration

Connection parameters, timeouts and save limits for the visualization document
store, read from environment variables.
"""

from __future__ import annotations

MODULE_DESCRIPTION = r"""Document Store Configuration

Key Features:
-------------
1. Store Selection:
   - DOCUMENT_STORE=postgres (default) uses PostgreSQL via psycopg
   - DOCUMENT_STORE=memory uses the in-process store (tests, local runs)

2. Connection Configuration:
   - PostgreSQL parameters from the host/port/dbname/user/password variables
   - Connect, TCP and keepalive timeouts tuned for hosted databases

3. Save Limits:
   - Title length, serialized payload size and listing page size
   - Per-tier saved-document ceilings live with the other tier settings in
     admission.config

Core Functions:
--------------
get_db_config():
    Returns {user, password, host, port, dbname} from the environment.

check_postgres_env_vars():
    True when every required PostgreSQL variable is set.
"""

import os

from dotenv import load_dotenv

from api.utils.debug import print__storage_debug

load_dotenv()

# ==============================================================================
# STORE SELECTION
# ==============================================================================
DOCUMENT_STORE = os.environ.get("DOCUMENT_STORE", "postgres").lower()
VISUALIZATIONS_TABLE = "visualizations"

# ==============================================================================
# CONNECTION TIMEOUT CONFIGURATION
# ==============================================================================
CONNECT_TIMEOUT = 30  # seconds
TCP_USER_TIMEOUT = 60000  # milliseconds

KEEPALIVES_IDLE = 300
KEEPALIVES_INTERVAL = 30
KEEPALIVES_COUNT = 3

# ==============================================================================
# SAVE LIMITS
# ==============================================================================
MAX_TITLE_LENGTH = 200
MAX_PAYLOAD_BYTES = 1024 * 1024
DEFAULT_LIST_LIMIT = 20
MAX_LIST_LIMIT = 100
SHARE_ID_LENGTH = 12


def get_db_config():
    """Extract PostgreSQL connection parameters from environment variables."""
    config = {
        "user": os.environ.get("user"),
        "password": os.environ.get("password"),
        "host": os.environ.get("host"),
        "port": int(os.environ.get("port", 5432)),
        "dbname": os.environ.get("dbname"),
    }
    print__storage_debug(
        f"🔧 DB CONFIG: host={config['host']} port={config['port']} "
        f"dbname={config['dbname']} user={config['user']}"
    )
    return config


def check_postgres_env_vars():
    """Return True when every required PostgreSQL variable is set."""
    required_vars = ["host", "port", "dbname", "user", "password"]
    missing_vars = [var for var in required_vars if not os.environ.get(var)]
    if missing_vars:
        print__storage_debug(f"❌ DB CONFIG: missing environment variables: {missing_vars}")
        return False
    return True
