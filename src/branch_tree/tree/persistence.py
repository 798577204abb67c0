"""Best-effort durable writes for the branch store.

The in-memory store is the source of truth; the durable backend is only a
restart cache.  Every call here swallows and logs backend failures so that
losing durability degrades silently to a session-only tree.

Writes for the same branch are applied in the order they were issued: each
key owns an ``asyncio.Lock`` (FIFO for waiters) and the payload is
serialised when the write is issued, not when it runs.  Each key also
carries a removal generation: a save issued before a delete of the same
branch is dropped when it finally runs, even if it was still queued behind
other writes of a ``write_many`` batch.  The durable delete always wins.

Classes
-------
- BranchPersistence  — availability-aware, failure-swallowing write-through
"""
from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from pydantic import ValidationError

from branch_tree.storage.async_base import AsyncStorageBackend
from branch_tree.tree.serializer import BranchSerializer, SchemaVersionError
from branch_tree.tree.state import Branch

logger = logging.getLogger(__name__)


class BranchPersistence:
    """Write-through adapter between ``BranchStore`` and a storage backend.

    Parameters
    ----------
    backend:
        The durable backend, or ``None`` for memory-only operation.
        Availability is fixed at construction time.
    serializer:
        Record codec.  Defaults to a ``BranchSerializer`` with the standard
        history cap.
    """

    def __init__(
        self,
        backend: AsyncStorageBackend | None,
        serializer: BranchSerializer | None = None,
    ) -> None:
        self._backend = backend
        self._serializer = serializer or BranchSerializer()
        self._key_locks: dict[str, asyncio.Lock] = {}
        self._pending: dict[str, int] = {}
        self._removals: dict[str, int] = {}
        self.failure_count = 0
        self.last_error: BaseException | None = None

    @property
    def available(self) -> bool:
        """True when a durable backend is attached."""
        return self._backend is not None

    @property
    def backend(self) -> AsyncStorageBackend | None:
        return self._backend

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def write(self, branch: Branch) -> bool:
        """Persist a snapshot of *branch* taken now.

        Returns
        -------
        bool
            True when the backend accepted the write.
        """
        if self._backend is None:
            return False
        return await self._save(branch.id, self._serializer.to_json(branch), self._generation(branch.id))

    async def write_many(self, branches: list[Branch]) -> int:
        """Persist several branches; returns how many writes succeeded.

        Every snapshot is taken when the batch is issued, so a branch
        removed while earlier writes of the batch are running is skipped.
        """
        if self._backend is None:
            return 0
        issued = [
            (branch.id, self._serializer.to_json(branch), self._generation(branch.id))
            for branch in branches
        ]
        written = 0
        for branch_id, payload, generation in issued:
            if await self._save(branch_id, payload, generation):
                written += 1
        return written

    async def remove(self, branch_id: str) -> bool:
        """Delete the durable record for *branch_id*.

        Saves of this branch issued earlier and not yet applied are dropped.
        """
        if self._backend is None:
            return False
        self._removals[branch_id] = self._generation(branch_id) + 1
        async with self._ordered(branch_id):
            try:
                await self._backend.delete(branch_id)
            except Exception as exc:  # noqa: BLE001
                self._record_failure("delete", branch_id, exc)
                return False
        return True

    async def clear(self) -> bool:
        """Remove every durable branch record."""
        if self._backend is None:
            return False
        try:
            await self._backend.clear()
        except Exception as exc:  # noqa: BLE001
            self._record_failure("clear", "*", exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def load_all(self) -> list[Branch]:
        """Return every decodable persisted branch.

        Records that fail to decode are logged and skipped; a backend
        failure yields an empty list.
        """
        if self._backend is None:
            logger.warning("BranchPersistence: no durable backend, skipping load")
            return []
        try:
            records = await self._backend.load_all()
        except Exception as exc:  # noqa: BLE001
            self._record_failure("load", "*", exc)
            return []

        branches: list[Branch] = []
        for key, raw in records.items():
            try:
                branches.append(self._serializer.from_json(raw))
            except (SchemaVersionError, ValidationError, ValueError) as exc:
                logger.error("BranchPersistence: skipping undecodable record %r: %s", key, exc)
        return branches

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _generation(self, key: str) -> int:
        return self._removals.get(key, 0)

    async def _save(self, key: str, payload: str, generation: int) -> bool:
        async with self._ordered(key):
            if self._generation(key) != generation:
                logger.debug("BranchPersistence: dropping write of removed branch %r", key)
                return False
            try:
                await self._backend.save(key, payload)  # type: ignore[union-attr]
            except Exception as exc:  # noqa: BLE001
                self._record_failure("write", key, exc)
                return False
        return True

    @asynccontextmanager
    async def _ordered(self, key: str) -> AsyncIterator[None]:
        """Hold the per-key lock; the lock is dropped once no writer uses it."""
        lock = self._key_locks.get(key)
        if lock is None:
            lock = self._key_locks[key] = asyncio.Lock()
        self._pending[key] = self._pending.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._pending[key] -= 1
            if self._pending[key] == 0:
                del self._pending[key]
                del self._key_locks[key]

    def _record_failure(self, operation: str, key: str, exc: BaseException) -> None:
        self.failure_count += 1
        self.last_error = exc
        logger.error("BranchPersistence: %s failed for %r: %s", operation, key, exc)

    def __repr__(self) -> str:
        return (
            f"BranchPersistence(backend={self._backend!r}, "
            f"failures={self.failure_count})"
        )


__all__ = ["BranchPersistence"]
