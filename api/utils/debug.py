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


# ==============================================================================
# DEBUG FUNCTIONS
# ==============================================================================
def _emit(flag: str, msg: str) -> None:
    """Print a tagged message when the environment flag of the same name is "1"."""
    if os.environ.get(flag, "0") == "1":
        print(f"[{flag}] {msg}")
        sys.stdout.flush()


def print__debug(msg: str) -> None:
    """Print DEBUG messages when debug mode is enabled.

    Args:
        msg: The message to print
    """
    debug_mode = os.environ.get("DEBUG", "0")
    if debug_mode == "1":
        print(f"[DEBUG] {msg}")
        sys.stdout.flush()


def print__pipeline_debug(msg: str) -> None:
    """Print visualization pipeline messages when print__pipeline_debug=1.

    Args:
        msg: The message to print
    """
    _emit("print__pipeline_debug", msg)


def print__model_debug(msg: str) -> None:
    """Print generative model call messages when print__model_debug=1."""
    _emit("print__model_debug", msg)


def print__admission_debug(msg: str) -> None:
    """Print token balance / admission messages when print__admission_debug=1.

    Args:
        msg: The message to print
    """
    _emit("print__admission_debug", msg)


def print__rate_limit_debug(msg: str) -> None:
    """Print fixed-window rate limit messages when print__rate_limit_debug=1."""
    _emit("print__rate_limit_debug", msg)


def print__storage_debug(msg: str) -> None:
    """Print document store messages when print__storage_debug=1.

    Args:
        msg: The message to print
    """
    _emit("print__storage_debug", msg)


def print__api_debug(msg: str) -> None:
    """Print HTTP route messages when print__api_debug=1."""
    _emit("print__api_debug", msg)


def print__token_debug(msg: str) -> None:
    """Print JWT verification messages when print__token_debug=1.

    Args:
        msg: The message to print
    """
    _emit("print__token_debug", msg)


def print__startup_debug(msg: str) -> None:
    """Print startup/shutdown messages when print__startup_debug=1."""
    _emit("print__startup_debug", msg)
