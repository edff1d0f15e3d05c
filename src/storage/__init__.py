"""
Storage module for persisting healthcare claims.

Provides:
- Key derivation for the single-table index layout
- Backing key-value stores (in-memory, SQLite)
- ClaimStore with by-ID, by-member and month-bucket reads
"""

from .backends import InMemoryBackend, KeyValueBackend, SortKeyRange
from .claim_store import (
    ClaimFilters,
    ClaimStore,
    create_backend,
    create_claim_store,
)
from .keys import StorageKeySet, build_key_set
from .sqlite_backend import SQLiteBackend

__all__ = [
    "ClaimStore",
    "ClaimFilters",
    "KeyValueBackend",
    "InMemoryBackend",
    "SQLiteBackend",
    "SortKeyRange",
    "StorageKeySet",
    "build_key_set",
    "create_backend",
    "create_claim_store",
]
