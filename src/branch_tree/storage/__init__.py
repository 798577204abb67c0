"""Storage backend subpackage.

All backends implement the ``AsyncStorageBackend`` ABC and exchange raw
JSON branch records keyed by branch id.  ``AsyncSQLiteBackend`` imports
``aiosqlite`` lazily and raises ``ImportError`` on construction when it is
missing; ``BranchTree.compose`` then falls back to memory-only operation.

Public surface
--------------
- AsyncStorageBackend  — abstract base class for async backends
- AsyncInMemoryBackend — dict-based backend, optional write failures
- AsyncSQLiteBackend   — one-table aiosqlite backend
"""
from __future__ import annotations

from branch_tree.storage.async_base import AsyncStorageBackend
from branch_tree.storage.async_memory import AsyncInMemoryBackend
from branch_tree.storage.async_sqlite import AsyncSQLiteBackend

__all__ = [
    "AsyncStorageBackend",
    "AsyncInMemoryBackend",
    "AsyncSQLiteBackend",
]
