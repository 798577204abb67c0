"""Per-branch navigation history with a cursor.

Each branch keeps an ordered log of visited pages and a cursor
(``history_index``) pointing at the page currently shown.  Breadcrumb
jumps only move the cursor; a fresh navigation made while the cursor sits
in the past discards the abandoned forward entries before appending
("smart branching"), the same way browser back/forward behaves.

Every mutation below computes the new log and cursor and assigns them to
the in-memory branch before the single durable write is awaited, so no
other callback can observe or interleave with a half-applied change.

Classes
-------
- HistoryPosition  — a history snapshot together with its cursor
- HistoryTrack     — add / navigate / inspect branch histories
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from branch_tree.tree.state import HistoryEntry, utcnow
from branch_tree.tree.store import BranchStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HistoryPosition:
    """Navigation log of a branch with the cursor position.

    Parameters
    ----------
    history:
        Entries oldest first.
    current_index:
        Cursor into ``history``; -1 when there is no history.
    """

    history: list[HistoryEntry] = field(default_factory=list)
    current_index: int = -1

    @property
    def current(self) -> HistoryEntry | None:
        if 0 <= self.current_index < len(self.history):
            return self.history[self.current_index]
        return None

    @property
    def can_go_back(self) -> bool:
        return self.current_index > 0

    @property
    def can_go_forward(self) -> bool:
        return 0 <= self.current_index < len(self.history) - 1


class HistoryTrack:
    """Navigation-log operations over the branches of a ``BranchStore``.

    Parameters
    ----------
    store:
        The branch store whose branches carry the histories.
    max_entries:
        History cap.  Defaults to the store's ``max_history_entries``.
    """

    def __init__(self, store: BranchStore, max_entries: int | None = None) -> None:
        self._store = store
        self.max_entries = max_entries if max_entries is not None else store.max_history_entries
        if self.max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {self.max_entries!r}.")

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def add_to_history(
        self,
        branch_id: str,
        url: str,
        title: str = "",
        *,
        is_breadcrumb_nav: bool = False,
    ) -> bool:
        """Record a navigation of *branch_id* to *url*.

        Parameters
        ----------
        branch_id:
            Branch that navigated.
        url:
            New page address.  Empty urls are ignored.
        title:
            Page title, if already known.
        is_breadcrumb_nav:
            True when the navigation was caused by a breadcrumb jump; the
            cursor has already been moved, so nothing is recorded.

        Returns
        -------
        bool
            True when a new entry was appended.
        """
        branch = self._store.get(branch_id)
        if branch is None or not url:
            return False
        if is_breadcrumb_nav:
            return False

        history = list(branch.history)
        cursor = branch.cursor

        current = history[cursor] if 0 <= cursor < len(history) else None
        if current is not None and current.url == url:
            # Reload of the page under the cursor: refresh the title only.
            if title and current.title != title:
                history[cursor] = current.model_copy(update={"title": title})
                branch.history = history
                await self._store.save(branch_id)
            return False

        if cursor < len(history) - 1:
            history = history[: cursor + 1]
            logger.debug("HistoryTrack: truncated forward history of %r at %d", branch_id, cursor)

        history.append(HistoryEntry(url=url, title=title or "", timestamp=utcnow()))
        new_index = len(history) - 1

        if len(history) > self.max_entries:
            evicted = len(history) - self.max_entries
            history = history[-self.max_entries:]
            new_index = max(0, new_index - evicted)

        branch.history = history
        branch.history_index = new_index
        branch.url = url
        branch.title = title or branch.title
        await self._store.save(branch_id)
        return True

    async def navigate_to_history_index(self, branch_id: str, index: int) -> HistoryEntry | None:
        """Move the cursor of *branch_id* to *index* without touching the log.

        Returns
        -------
        HistoryEntry | None
            The entry now under the cursor, for the caller to load; None for
            unknown branches and out-of-range indexes.
        """
        branch = self._store.get(branch_id)
        if branch is None:
            return None
        if index < 0 or index >= len(branch.history):
            logger.warning(
                "HistoryTrack: invalid history index %d for %r (max %d)",
                index,
                branch_id,
                len(branch.history) - 1,
            )
            return None
        branch.history_index = index
        entry = branch.history[index]
        await self._store.save(branch_id)
        return entry

    async def go_back(self, branch_id: str) -> HistoryEntry | None:
        """Step the cursor one entry into the past."""
        return await self.navigate_to_history_index(branch_id, self.get_history_index(branch_id) - 1)

    async def go_forward(self, branch_id: str) -> HistoryEntry | None:
        """Step the cursor one entry towards the present."""
        return await self.navigate_to_history_index(branch_id, self.get_history_index(branch_id) + 1)

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    def get_history_index(self, branch_id: str) -> int:
        """Return the cursor of *branch_id* (-1 when unknown or empty)."""
        branch = self._store.get(branch_id)
        if branch is None:
            return -1
        return branch.cursor

    def get_history_with_position(self, branch_id: str) -> HistoryPosition:
        """Return a snapshot of the history of *branch_id* with its cursor."""
        branch = self._store.get(branch_id)
        if branch is None:
            return HistoryPosition()
        return HistoryPosition(history=list(branch.history), current_index=branch.cursor)

    def __repr__(self) -> str:
        return f"HistoryTrack(max_entries={self.max_entries})"


__all__ = ["HistoryPosition", "HistoryTrack"]
