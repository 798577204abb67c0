"""Async in-memory branch record storage backend.

Records live in a dict guarded by ``asyncio.Lock`` and are gone when the
process exits.  Used for session-only operation (the default of
``BranchTree.compose`` without a ``db_path``) and in tests, where
``fail_writes`` simulates an unwritable durable store.

Classes
-------
- AsyncInMemoryBackend  — dict-backed ephemeral async storage
"""

from __future__ import annotations

import asyncio
from typing import Sequence

from branch_tree.storage.async_base import AsyncStorageBackend


class AsyncInMemoryBackend(AsyncStorageBackend):
    """Ephemeral async storage keyed by branch id.

    Parameters
    ----------
    records:
        Optional pre-populated mapping of branch ids to JSON records.  A
        shallow copy is taken.
    fail_writes:
        When True every ``save``, ``delete`` and ``clear`` raises
        ``OSError`` and leaves the records untouched.  Reads keep working.
    """

    def __init__(
        self,
        records: dict[str, str] | None = None,
        *,
        fail_writes: bool = False,
    ) -> None:
        self._records: dict[str, str] = dict(records or {})
        self._lock = asyncio.Lock()
        self.fail_writes = fail_writes
        self.writes = 0

    def _check_writable(self, operation: str, key: str | None = None) -> None:
        if self.fail_writes:
            target = f" {key!r}" if key is not None else ""
            raise OSError(f"AsyncInMemoryBackend: {operation}{target} refused (fail_writes=True).")

    # ------------------------------------------------------------------
    # AsyncStorageBackend interface
    # ------------------------------------------------------------------

    async def save(self, key: str, payload: str) -> None:
        async with self._lock:
            self._check_writable("save", key)
            self._records[key] = payload
            self.writes += 1

    async def load(self, key: str) -> str:
        """Return the record stored under *key*.

        Raises
        ------
        KeyError
            If no record exists for *key*.
        """
        async with self._lock:
            try:
                return self._records[key]
            except KeyError:
                raise KeyError(f"Branch record {key!r} not found.") from None

    async def list_keys(self) -> Sequence[str]:
        """Return the stored branch ids in first-write order."""
        async with self._lock:
            return list(self._records)

    async def delete(self, key: str) -> bool:
        async with self._lock:
            self._check_writable("delete", key)
            return self._records.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        async with self._lock:
            return key in self._records

    async def load_all(self) -> dict[str, str]:
        async with self._lock:
            return dict(self._records)

    async def clear(self) -> None:
        async with self._lock:
            self._check_writable("clear")
            self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __repr__(self) -> str:
        return f"AsyncInMemoryBackend(records={len(self._records)}, writes={self.writes})"


__all__ = ["AsyncInMemoryBackend"]
