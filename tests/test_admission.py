"""
Admission controller: token balance, charging, lazy monthly reset, tier repair,
fixed-window rate limiting and the fail-closed paths.
"""

import os
import sys

if sys.platform == "win32":
    import asyncio

    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

try:
    from pathlib import Path

    BASE_DIR = Path(__file__).resolve().parents[1]
except NameError:
    BASE_DIR = Path(os.getcwd()).parents[0]

sys.path.insert(0, str(BASE_DIR))

import asyncio
import json
from datetime import datetime, timezone

import pytest

from admission.accounts import AccountLedger
from admission.config import (
    RATE_LIMITS,
    OperationClass,
    Tier,
    account_key,
    next_reset_date,
    usage_key,
)
from admission.controller import AdmissionController
from admission.kv_store import InMemoryKeyValueStore
from admission.rate_limiting import check_rate_limit
from tests.helpers import FailingKeyValueStore, ManualClock
from viz_agent.utils.errors import ErrorCategory

JAN_15 = datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)


class WallClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


async def _used(store, user_id: str) -> int:
    return int(await store.get(usage_key(user_id)) or 0)


async def _seed(controller: AdmissionController, user_id: str, used: int) -> None:
    await controller.ledger.get_account(user_id)
    await controller.ledger.charge(user_id, used)


# ==============================================================================
# TOKEN BALANCE
# ==============================================================================
@pytest.mark.asyncio
async def test_insufficient_balance_is_denied_with_remaining_and_no_charge():
    store = InMemoryKeyValueStore()
    controller = AdmissionController(store)
    await _seed(controller, "alice", 95)

    outcome = await controller.check_admission("alice", OperationClass.GENERATE)

    assert not outcome.ok
    assert outcome.category == ErrorCategory.ADMISSION_DENIED
    assert outcome.error.reason == "insufficient_tokens"
    assert outcome.error.remaining == 5
    assert outcome.error.user_message.startswith("Insufficient tokens. You need 10 tokens")
    assert await _used(store, "alice") == 95


@pytest.mark.asyncio
async def test_repeated_checks_never_mutate_usage():
    store = InMemoryKeyValueStore()
    controller = AdmissionController(store)
    await _seed(controller, "bob", 30)

    for _ in range(5):
        outcome = await controller.check_admission("bob", OperationClass.EDIT)
        assert outcome.ok

    assert await _used(store, "bob") == 30


@pytest.mark.asyncio
async def test_charge_adds_exactly_the_operation_cost():
    store = InMemoryKeyValueStore()
    controller = AdmissionController(store)
    used = []
    for operation in (OperationClass.GENERATE, OperationClass.EDIT, OperationClass.EXPAND):
        outcome = await controller.charge("carol", operation)
        used.append(outcome.value)

    assert used == [10, 18, 23]
    assert await _used(store, "carol") == 23


@pytest.mark.asyncio
async def test_zero_cost_operations_skip_balance_and_charge_nothing():
    store = InMemoryKeyValueStore()
    controller = AdmissionController(store)
    await _seed(controller, "dave", 100)

    assert (await controller.check_admission("dave", OperationClass.SAVE)).ok
    assert (await controller.charge("dave", OperationClass.SAVE)).value == 100
    assert not (await controller.check_admission("dave", OperationClass.EXPORT)).ok


@pytest.mark.asyncio
async def test_exact_balance_is_allowed():
    store = InMemoryKeyValueStore()
    controller = AdmissionController(store)
    await _seed(controller, "erin", 90)

    assert (await controller.check_admission("erin", OperationClass.GENERATE)).ok


@pytest.mark.asyncio
async def test_account_created_lazily_as_free_tier():
    store = InMemoryKeyValueStore()
    ledger = AccountLedger(store, clock=WallClock(JAN_15))

    account = await ledger.get_account("new-user")

    assert account.tier == Tier.FREE
    assert account.tokens_limit == 100
    assert account.tokens_used == 0
    assert account.reset_date == datetime(2026, 2, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_usage_resets_lazily_on_first_read_after_reset_date():
    store = InMemoryKeyValueStore()
    clock = WallClock(JAN_15)
    ledger = AccountLedger(store, clock=clock)
    await ledger.get_account("frank")
    await ledger.charge("frank", 60)

    clock.now = datetime(2026, 2, 1, 0, 0, 1, tzinfo=timezone.utc)
    balance = await ledger.check_balance("frank", 10)

    assert balance.allowed
    assert balance.tokens_used == 0
    assert balance.reset_date == datetime(2026, 3, 1, tzinfo=timezone.utc)


@pytest.mark.asyncio
async def test_mismatched_limit_is_repaired_on_read():
    store = InMemoryKeyValueStore()
    await store.set(
        account_key("gina"),
        json.dumps(
            {"tier": "pro", "tokens_limit": 100, "reset_date": next_reset_date(JAN_15).isoformat()}
        ),
    )
    ledger = AccountLedger(store, clock=WallClock(JAN_15))

    account = await ledger.get_account("gina")

    assert account.tokens_limit == 2000
    assert json.loads(await store.get(account_key("gina")))["tokens_limit"] == 2000


@pytest.mark.asyncio
async def test_update_tier_keeps_usage():
    store = InMemoryKeyValueStore()
    controller = AdmissionController(store)
    await _seed(controller, "hank", 80)

    outcome = await controller.update_tier("hank", Tier.PRO)
    balance = (await controller.get_balance("hank")).value

    assert outcome.ok
    assert balance["tier"] == "pro"
    assert balance["tokens_used"] == 80
    assert balance["tokens_remaining"] == 1920
    assert balance["percentage_used"] == 4.0
    assert await controller.document_limit("hank") == 1000


@pytest.mark.asyncio
async def test_unknown_tier_is_validation_error():
    controller = AdmissionController(InMemoryKeyValueStore())

    outcome = await controller.update_tier("ivy", "platinum")

    assert outcome.category == ErrorCategory.VALIDATION_ERROR


# ==============================================================================
# RATE LIMITING
# ==============================================================================
@pytest.mark.asyncio
async def test_fixed_window_allows_exactly_the_limit():
    store = InMemoryKeyValueStore(clock=ManualClock())
    results = [
        await check_rate_limit(store, "jack", OperationClass.SHARE, limit=3, window_seconds=60)
        for _ in range(4)
    ]

    assert [r.allowed for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert results[-1].reason == "rate_limited"


@pytest.mark.asyncio
async def test_window_expiry_opens_a_new_window():
    clock = ManualClock()
    store = InMemoryKeyValueStore(clock=clock)
    for _ in range(2):
        await check_rate_limit(store, "kim", OperationClass.EDIT, limit=2, window_seconds=60)
    assert not (await check_rate_limit(store, "kim", OperationClass.EDIT, 2, 60)).allowed

    clock.advance(61)

    assert (await check_rate_limit(store, "kim", OperationClass.EDIT, 2, 60)).allowed


@pytest.mark.asyncio
async def test_windows_are_per_operation_class():
    store = InMemoryKeyValueStore(clock=ManualClock())
    await check_rate_limit(store, "lee", OperationClass.EDIT, limit=1, window_seconds=60)

    assert not (await check_rate_limit(store, "lee", OperationClass.EDIT, 1, 60)).allowed
    assert (await check_rate_limit(store, "lee", OperationClass.EXPAND, 1, 60)).allowed


@pytest.mark.asyncio
async def test_counter_left_without_ttl_gets_one():
    clock = ManualClock()
    store = InMemoryKeyValueStore(clock=clock)
    await store.set("ratelimit:edit:max", "1")

    result = await check_rate_limit(store, "max", OperationClass.EDIT, limit=5, window_seconds=60)

    assert result.allowed
    assert await store.ttl("ratelimit:edit:max") == 60


class YieldingKeyValueStore(InMemoryKeyValueStore):
    """Hands control back to the event loop before every command, like a network round trip."""

    async def get(self, key):
        await asyncio.sleep(0)
        return await super().get(key)

    async def set(self, key, value, ttl_seconds=None):
        await asyncio.sleep(0)
        return await super().set(key, value, ttl_seconds=ttl_seconds)

    async def incr(self, key, amount=1):
        await asyncio.sleep(0)
        return await super().incr(key, amount)

    async def expire(self, key, ttl_seconds):
        await asyncio.sleep(0)
        return await super().expire(key, ttl_seconds)

    async def ttl(self, key):
        await asyncio.sleep(0)
        return await super().ttl(key)


@pytest.mark.asyncio
async def test_concurrent_requests_never_exceed_the_window_limit():
    store = YieldingKeyValueStore(clock=ManualClock())

    results = await asyncio.gather(
        *[
            check_rate_limit(store, "quinn", OperationClass.GENERATE, limit=10, window_seconds=60)
            for _ in range(50)
        ]
    )

    assert sum(1 for r in results if r.allowed) == 10
    assert all(r.reason == "rate_limited" for r in results if not r.allowed)
    assert await store.ttl("ratelimit:generate:quinn") == 60


@pytest.mark.asyncio
async def test_counter_at_limit_without_ttl_is_repaired_while_denied():
    clock = ManualClock()
    store = InMemoryKeyValueStore(clock=clock)
    await store.set("ratelimit:edit:rosa", "5")

    result = await check_rate_limit(store, "rosa", OperationClass.EDIT, limit=5, window_seconds=60)

    assert not result.allowed
    assert result.reason == "rate_limited"
    assert await store.ttl("ratelimit:edit:rosa") == 60

    clock.advance(61)

    assert (await check_rate_limit(store, "rosa", OperationClass.EDIT, 5, 60)).allowed


@pytest.mark.asyncio
@pytest.mark.parametrize("operation", list(OperationClass))
async def test_unreachable_store_denies_every_operation(operation):
    result = await check_rate_limit(FailingKeyValueStore(), "nina", operation, limit=100)

    assert result.allowed is False
    assert result.reason == "rate_limit_unavailable"


@pytest.mark.asyncio
async def test_unconfigured_store_denies():
    result = await check_rate_limit(None, "nina", OperationClass.GENERATE, limit=100)

    assert not result.allowed


@pytest.mark.asyncio
async def test_controller_rate_limits_by_tier():
    controller = AdmissionController(InMemoryKeyValueStore())
    limit = RATE_LIMITS[Tier.FREE][OperationClass.SHARE]

    outcomes = [
        await controller.check_admission("olga", OperationClass.SHARE) for _ in range(limit + 1)
    ]

    assert all(o.ok for o in outcomes[:limit])
    assert outcomes[-1].error.reason == "rate_limited"
    assert outcomes[-1].error.user_message.startswith("Rate limit exceeded")


@pytest.mark.asyncio
@pytest.mark.parametrize("store", [None, FailingKeyValueStore()])
async def test_controller_fails_closed_without_accounting(store):
    controller = AdmissionController(store)

    for operation in OperationClass:
        outcome = await controller.check_admission("pat", operation)
        assert not outcome.ok
        assert outcome.error.reason == "accounting_unavailable"
