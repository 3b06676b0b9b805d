"""Per-user token ledger kept in the key-value store.

An account is created lazily on first read as a free-tier account. Reads also
perform the monthly reset (no scheduler) and repair a stored limit that no
longer matches the tier. Token usage lives in its own integer key so charges
are a single atomic increment.
"""

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from admission.config import (
    DEFAULT_TIER,
    TIER_TOKEN_LIMITS,
    Tier,
    account_key,
    coerce_tier,
    next_reset_date,
    usage_key,
)
from admission.kv_store import KeyValueStore
from api.utils.debug import print__admission_debug
from viz_agent.utils.document import utc_now


@dataclass
class AdmissionAccount:
    user_id: str
    tier: Tier
    tokens_limit: int
    tokens_used: int
    reset_date: datetime

    @property
    def tokens_remaining(self) -> int:
        return self.tokens_limit - self.tokens_used


@dataclass
class BalanceCheck:
    allowed: bool
    tokens_used: int
    tokens_limit: int
    tokens_remaining: int
    reset_date: datetime
    message: Optional[str] = None


class AccountLedger:
    def __init__(self, store: KeyValueStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    async def _write_account(self, user_id: str, tier: Tier, limit: int, reset_date: datetime):
        await self.store.set(
            account_key(user_id),
            json.dumps(
                {"tier": tier.value, "tokens_limit": limit, "reset_date": reset_date.isoformat()}
            ),
        )

    async def get_account(self, user_id: str) -> AdmissionAccount:
        """Read (creating, resetting or repairing as needed) the account for ``user_id``."""
        now = self.clock()
        raw = await self.store.get(account_key(user_id))

        if raw is None:
            tier = DEFAULT_TIER
            reset_date = next_reset_date(now)
            await self._write_account(user_id, tier, TIER_TOKEN_LIMITS[tier], reset_date)
            await self.store.set(usage_key(user_id), "0")
            print__admission_debug(f"🆕 ACCOUNT: created {tier.value} account for {user_id}")
            return AdmissionAccount(user_id, tier, TIER_TOKEN_LIMITS[tier], 0, reset_date)

        data = json.loads(raw)
        tier = coerce_tier(data.get("tier"))
        limit = int(data.get("tokens_limit", 0))
        reset_date = datetime.fromisoformat(data["reset_date"])
        expected_limit = TIER_TOKEN_LIMITS[tier]
        dirty = False

        if limit != expected_limit:
            print__admission_debug(
                f"⚠️ ACCOUNT: limit {limit} does not match tier {tier.value} "
                f"for {user_id}, repairing to {expected_limit}"
            )
            limit = expected_limit
            dirty = True

        if now >= reset_date:
            reset_date = next_reset_date(now)
            await self.store.set(usage_key(user_id), "0")
            print__admission_debug(f"🔄 ACCOUNT: monthly reset for {user_id}")
            dirty = True

        if dirty:
            await self._write_account(user_id, tier, limit, reset_date)

        used = int(await self.store.get(usage_key(user_id)) or 0)
        return AdmissionAccount(user_id, tier, limit, used, reset_date)

    async def check_balance(self, user_id: str, cost: int) -> BalanceCheck:
        """Allowed iff ``tokens_used + cost <= tokens_limit``. Never mutates usage."""
        account = await self.get_account(user_id)
        remaining = account.tokens_remaining
        if account.tokens_used + cost > account.tokens_limit:
            return BalanceCheck(
                allowed=False,
                tokens_used=account.tokens_used,
                tokens_limit=account.tokens_limit,
                tokens_remaining=remaining,
                reset_date=account.reset_date,
                message=(
                    f"Insufficient tokens. You need {cost} tokens but only have "
                    f"{remaining} remaining. Resets on {account.reset_date.date().isoformat()}."
                ),
            )
        return BalanceCheck(
            allowed=True,
            tokens_used=account.tokens_used,
            tokens_limit=account.tokens_limit,
            tokens_remaining=remaining,
            reset_date=account.reset_date,
        )

    async def charge(self, user_id: str, cost: int) -> int:
        """Unconditionally add ``cost`` to the usage counter; returns the new total."""
        if cost <= 0:
            return int(await self.store.get(usage_key(user_id)) or 0)
        used = await self.store.incr(usage_key(user_id), cost)
        print__admission_debug(f"💰 CHARGE: {user_id} +{cost} tokens (used={used})")
        return used

    async def get_balance(self, user_id: str) -> dict:
        account = await self.get_account(user_id)
        percentage = (
            account.tokens_used / account.tokens_limit * 100 if account.tokens_limit else 0.0
        )
        return {
            "tokens_used": account.tokens_used,
            "tokens_limit": account.tokens_limit,
            "tokens_remaining": account.tokens_remaining,
            "reset_date": account.reset_date,
            "tier": account.tier.value,
            "percentage_used": round(percentage, 1),
        }

    async def update_tier(self, user_id: str, tier: Tier) -> AdmissionAccount:
        """Switch tier and limit immediately; tokens already used are kept."""
        account = await self.get_account(user_id)
        tier = Tier(tier)
        await self._write_account(user_id, tier, TIER_TOKEN_LIMITS[tier], account.reset_date)
        print__admission_debug(f"⬆️ ACCOUNT: {user_id} tier {account.tier.value} -> {tier.value}")
        return AdmissionAccount(
            user_id, tier, TIER_TOKEN_LIMITS[tier], account.tokens_used, account.reset_date
        )
