"""Admission Controller package: token balances and fixed-window rate limits.

Nothing outside this package reads or writes account or rate-limit state;
callers go through ``AdmissionController``.
"""

from .config import OperationClass, Tier
from .controller import AdmissionController, AdmissionDecision
from .kv_store import (
    InMemoryKeyValueStore,
    KeyValueStore,
    KeyValueStoreError,
    RedisKeyValueStore,
    create_key_value_store,
)

__all__ = [
    "AdmissionController",
    "AdmissionDecision",
    "OperationClass",
    "Tier",
    "KeyValueStore",
    "KeyValueStoreError",
    "InMemoryKeyValueStore",
    "RedisKeyValueStore",
    "create_key_value_store",
]
