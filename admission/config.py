"""Admission Controller Configuration

Tier limits, per-operation token costs, per-tier fixed-window rate limits and the
key-value store settings used by the account ledger and the rate limiter.
"""

from __future__ import annotations

MODULE_DESCRIPTION = r"""Admission Controller Configuration

Central configuration for everything that gates a costed operation.

Key Features:
-------------
1. Token Tiers:
   - Monthly token allowance per tier (TIER_TOKEN_LIMITS)
   - Saved-document ceiling per tier (TIER_DOCUMENT_LIMITS)

2. Operation Costs:
   - One OperationClass per gated pipeline operation
   - Zero-cost classes skip the balance check but are still rate limited

3. Fixed-Window Rate Limits:
   - Per (tier, operation class) request ceilings (RATE_LIMITS)
   - Window length from RATE_LIMIT_WINDOW_SECONDS (default 3600)

4. Key-Value Store Selection:
   - ACCOUNT_STORE=memory selects the in-process store (tests, local runs)
   - otherwise REDIS_URL selects Redis; unset means unconfigured, which is the
     fail-closed path for every costed operation

Key Layout:
-----------
- account:{user_id}          JSON {tier, tokens_limit, reset_date}
- account:{user_id}:used     integer counter, incremented atomically
- ratelimit:{op}:{user_id}   fixed-window counter with TTL = window
"""

import os
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


# ==============================================================================
# TIERS AND OPERATION CLASSES
# ==============================================================================
class Tier(str, Enum):
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class OperationClass(str, Enum):
    GENERATE = "generate"
    RECOMMEND = "recommend"
    EDIT = "edit"
    EXPAND = "expand"
    SAVE = "save"
    DELETE = "delete"
    EXPORT = "export"
    SHARE = "share"


DEFAULT_TIER = Tier.FREE

TIER_TOKEN_LIMITS = {
    Tier.FREE: 100,
    Tier.PRO: 2000,
    Tier.ENTERPRISE: 10000,
}

TIER_DOCUMENT_LIMITS = {
    Tier.FREE: 50,
    Tier.PRO: 1000,
    Tier.ENTERPRISE: 1000,
}

OPERATION_COSTS = {
    OperationClass.GENERATE: 10,
    OperationClass.RECOMMEND: 1,
    OperationClass.EDIT: 8,
    OperationClass.EXPAND: 5,
    OperationClass.SAVE: 0,
    OperationClass.DELETE: 0,
    OperationClass.EXPORT: 1,
    OperationClass.SHARE: 0,
}

# ==============================================================================
# RATE LIMITS
# ==============================================================================
RATE_LIMIT_WINDOW_SECONDS = int(os.environ.get("RATE_LIMIT_WINDOW_SECONDS", 3600))

RATE_LIMITS = {
    Tier.FREE: {
        OperationClass.GENERATE: 10,
        OperationClass.RECOMMEND: 20,
        OperationClass.EDIT: 20,
        OperationClass.EXPAND: 20,
        OperationClass.SAVE: 30,
        OperationClass.DELETE: 30,
        OperationClass.EXPORT: 20,
        OperationClass.SHARE: 10,
    },
    Tier.PRO: {
        OperationClass.GENERATE: 100,
        OperationClass.RECOMMEND: 200,
        OperationClass.EDIT: 200,
        OperationClass.EXPAND: 200,
        OperationClass.SAVE: 300,
        OperationClass.DELETE: 300,
        OperationClass.EXPORT: 200,
        OperationClass.SHARE: 100,
    },
    Tier.ENTERPRISE: {
        OperationClass.GENERATE: 500,
        OperationClass.RECOMMEND: 1000,
        OperationClass.EDIT: 1000,
        OperationClass.EXPAND: 1000,
        OperationClass.SAVE: 1000,
        OperationClass.DELETE: 1000,
        OperationClass.EXPORT: 1000,
        OperationClass.SHARE: 500,
    },
}

# ==============================================================================
# KEY-VALUE STORE
# ==============================================================================
ACCOUNT_STORE = os.environ.get("ACCOUNT_STORE", "redis").lower()
REDIS_URL = os.environ.get("REDIS_URL")
REDIS_SOCKET_TIMEOUT = float(os.environ.get("REDIS_SOCKET_TIMEOUT", 5))


def account_key(user_id: str) -> str:
    return f"account:{user_id}"


def usage_key(user_id: str) -> str:
    return f"account:{user_id}:used"


def rate_limit_key(operation: OperationClass, user_id: str) -> str:
    return f"ratelimit:{operation.value}:{user_id}"


def next_reset_date(now: Optional[datetime] = None) -> datetime:
    """First instant of the month after ``now`` (UTC)."""
    now = now or datetime.now(timezone.utc)
    if now.month == 12:
        return datetime(now.year + 1, 1, 1, tzinfo=timezone.utc)
    return datetime(now.year, now.month + 1, 1, tzinfo=timezone.utc)


def coerce_tier(value) -> Tier:
    """Unknown or missing tiers fall back to the free tier."""
    try:
        return Tier(value)
    except ValueError:
        return DEFAULT_TIER
