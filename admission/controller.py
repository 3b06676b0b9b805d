"""Admission Controller: CHECK -> (ALLOWED -> operation -> CHARGE) | (DENIED -> abort).

The balance check runs first so a request that cannot be paid for does not use
up a rate-limit slot. Both checks fail closed when the store is missing or
unreachable.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from admission.accounts import AccountLedger
from admission.config import (
    OPERATION_COSTS,
    RATE_LIMIT_WINDOW_SECONDS,
    RATE_LIMITS,
    TIER_DOCUMENT_LIMITS,
    OperationClass,
    Tier,
)
from admission.kv_store import KeyValueStore
from admission.rate_limiting import check_rate_limit
from api.utils.debug import print__admission_debug
from viz_agent.utils.document import utc_now
from viz_agent.utils.errors import (
    AdmissionDenied,
    InputValidationError,
    UpstreamUnavailable,
    returns_outcome,
)

ACCOUNTING_UNAVAILABLE_MESSAGE = (
    "Usage accounting is temporarily unavailable. Please try again later."
)


@dataclass
class AdmissionDecision:
    operation: OperationClass
    cost: int
    tier: Tier
    tokens_remaining: int
    rate_remaining: int
    reset_at: datetime


class AdmissionController:
    def __init__(
        self,
        store: Optional[KeyValueStore],
        window_seconds: int = RATE_LIMIT_WINDOW_SECONDS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.store = store
        self.window_seconds = window_seconds
        self.ledger = AccountLedger(store, clock) if store is not None else None

    @staticmethod
    def cost_of(operation: OperationClass) -> int:
        return OPERATION_COSTS[OperationClass(operation)]

    async def _check(self, user_id: str, operation: OperationClass) -> AdmissionDecision:
        operation = OperationClass(operation)
        cost = self.cost_of(operation)

        if self.ledger is None:
            raise AdmissionDenied(
                "account store unconfigured",
                reason="accounting_unavailable",
                user_message=ACCOUNTING_UNAVAILABLE_MESSAGE,
            )
        try:
            account = await self.ledger.get_account(user_id)
            balance = await self.ledger.check_balance(user_id, cost) if cost > 0 else None
        except Exception as exc:  # pylint: disable=broad-except
            print__admission_debug(
                f"🔒 ADMISSION: account store error for {user_id}: {type(exc).__name__}: {exc}"
            )
            raise AdmissionDenied(
                f"account store error: {type(exc).__name__}",
                reason="accounting_unavailable",
                user_message=ACCOUNTING_UNAVAILABLE_MESSAGE,
            ) from exc

        if balance is not None and not balance.allowed:
            print__admission_debug(
                f"🚫 ADMISSION: {user_id} needs {cost}, has {balance.tokens_remaining}"
            )
            raise AdmissionDenied(
                "insufficient token balance",
                reason="insufficient_tokens",
                remaining=balance.tokens_remaining,
                reset_at=balance.reset_date,
                user_message=balance.message,
            )

        limit = RATE_LIMITS[account.tier][operation]
        rate = await check_rate_limit(
            self.store, user_id, operation, limit, self.window_seconds
        )
        if not rate.allowed:
            if rate.reason == "rate_limit_unavailable":
                raise AdmissionDenied(
                    "rate limit store unavailable",
                    reason="rate_limit_unavailable",
                    reset_at=rate.reset_at,
                    user_message=ACCOUNTING_UNAVAILABLE_MESSAGE,
                )
            raise AdmissionDenied(
                f"{operation.value} limit of {limit} per window reached",
                reason="rate_limited",
                remaining=0,
                reset_at=rate.reset_at,
                user_message=(
                    f"Rate limit exceeded. Try again after {rate.reset_at.isoformat()}."
                ),
            )

        print__admission_debug(
            f"✅ ADMISSION: {user_id} {operation.value} allowed (cost={cost})"
        )
        return AdmissionDecision(
            operation=operation,
            cost=cost,
            tier=account.tier,
            tokens_remaining=account.tokens_remaining,
            rate_remaining=rate.remaining,
            reset_at=rate.reset_at,
        )

    check_admission = returns_outcome(_check)

    async def _charge(self, user_id: str, operation: OperationClass) -> int:
        cost = self.cost_of(operation)
        if self.ledger is None:
            raise UpstreamUnavailable("account store unconfigured")
        try:
            return await self.ledger.charge(user_id, cost)
        except Exception as exc:  # pylint: disable=broad-except
            raise UpstreamUnavailable(f"charge failed: {type(exc).__name__}") from exc

    charge = returns_outcome(_charge)

    async def _get_balance(self, user_id: str) -> dict:
        if self.ledger is None:
            raise UpstreamUnavailable("account store unconfigured")
        try:
            return await self.ledger.get_balance(user_id)
        except Exception as exc:  # pylint: disable=broad-except
            raise UpstreamUnavailable(f"balance read failed: {type(exc).__name__}") from exc

    get_balance = returns_outcome(_get_balance)

    async def _update_tier(self, user_id: str, tier: Tier):
        if self.ledger is None:
            raise UpstreamUnavailable("account store unconfigured")
        try:
            return await self.ledger.update_tier(user_id, tier)
        except ValueError as exc:
            raise InputValidationError(f"unknown tier {tier!r}") from exc
        except Exception as exc:  # pylint: disable=broad-except
            raise UpstreamUnavailable(f"tier update failed: {type(exc).__name__}") from exc

    update_tier = returns_outcome(_update_tier)

    async def document_limit(self, user_id: str) -> int:
        """Saved-document ceiling for the user's tier; free-tier limit if unknown."""
        if self.ledger is None:
            return TIER_DOCUMENT_LIMITS[Tier.FREE]
        try:
            account = await self.ledger.get_account(user_id)
        except Exception as exc:  # pylint: disable=broad-except
            print__admission_debug(f"⚠️ ADMISSION: tier lookup failed for {user_id}: {exc}")
            return TIER_DOCUMENT_LIMITS[Tier.FREE]
        return TIER_DOCUMENT_LIMITS[account.tier]
