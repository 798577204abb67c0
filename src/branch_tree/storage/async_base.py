"""Abstract base class for async branch record storage backends.

All concrete backends must implement the operations defined here.  The raw
payload exchanged with the backend is always a UTF-8 string (a
JSON-encoded branch record), keyed by branch id.

Classes
-------
- AsyncStorageBackend  — abstract base for all async backends
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence


class AsyncStorageBackend(ABC):
    """Protocol for async reading and writing of raw branch records.

    All methods are coroutines (``async def``).  Implementations should use
    ``asyncio.Lock`` for in-process safety where needed.
    """

    @abstractmethod
    async def save(self, key: str, payload: str) -> None:
        """Persist ``payload`` under ``key``, overwriting any existing record.

        Parameters
        ----------
        key:
            Unique record key (the branch id).
        payload:
            UTF-8 string to persist (JSON).
        """

    @abstractmethod
    async def load(self, key: str) -> str:
        """Return the raw payload stored under ``key``.

        Raises
        ------
        KeyError
            If no record exists for ``key``.
        """

    @abstractmethod
    async def list_keys(self) -> Sequence[str]:
        """Return all stored record keys.  Order is implementation-defined."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove the record for ``key``.

        Returns
        -------
        bool
            True if the record existed and was deleted, False otherwise.
        """

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Return True if a record for ``key`` exists."""

    async def load_all(self) -> dict[str, str]:
        """Return every stored record as a ``key -> payload`` mapping.

        The default implementation lists keys and loads them one by one;
        backends able to fetch everything in one round trip override it.
        Records deleted between the listing and the load are skipped.
        """
        records: dict[str, str] = {}
        for key in await self.list_keys():
            try:
                records[key] = await self.load(key)
            except KeyError:
                continue
        return records

    async def clear(self) -> None:
        """Remove every record held by this backend."""
        for key in list(await self.list_keys()):
            await self.delete(key)


__all__ = ["AsyncStorageBackend"]
