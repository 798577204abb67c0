"""Incrementally maintained structural index over the branch store.

The store keeps branches in a plain dict; everything structural lives here:

- ``parent id -> ordered list of child ids`` (``None`` holds ROOT and
  orphans), which is the sibling order the renderer shows and the source
  of each branch's persisted ``position``;
- ``tab id -> branch id`` for constant-time ``get_by_tab_id``.

The index never touches ``Branch`` objects except in ``rebuild``; keeping
``Branch.parent_id`` / ``Branch.position`` in step is the store's job.

Classes
-------
- TreeIndex  — parent/child ordering and tab lookup
"""
from __future__ import annotations

from typing import Iterable

from branch_tree.tree.state import Branch


class TreeIndex:
    """Ordered parent → children map plus the tab → branch map."""

    def __init__(self) -> None:
        self._children: dict[str | None, list[str]] = {}
        self._parent: dict[str, str | None] = {}
        self._by_tab: dict[str, str] = {}

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def attach(self, branch_id: str, parent_id: str | None, index: int | None = None) -> int:
        """Insert *branch_id* under *parent_id* at *index* (clamped).

        ``None`` appends.  A branch that is already attached is moved.

        Returns
        -------
        int
            The position the branch ended up at.
        """
        if branch_id in self._parent:
            self.detach(branch_id)
        siblings = self._children.setdefault(parent_id, [])
        if index is None or index > len(siblings):
            index = len(siblings)
        index = max(0, index)
        siblings.insert(index, branch_id)
        self._parent[branch_id] = parent_id
        return index

    def detach(self, branch_id: str) -> tuple[str | None, int] | None:
        """Remove *branch_id* from its parent's child list.

        Returns
        -------
        tuple[str | None, int] | None
            ``(parent_id, former_index)``, or None if it was not attached.
        """
        if branch_id not in self._parent:
            return None
        parent_id = self._parent.pop(branch_id)
        siblings = self._children.get(parent_id, [])
        index = siblings.index(branch_id)
        del siblings[index]
        if not siblings:
            self._children.pop(parent_id, None)
        return parent_id, index

    def children_of(self, parent_id: str | None) -> list[str]:
        """Return the ordered child ids of *parent_id* (a copy)."""
        return list(self._children.get(parent_id, ()))

    def parent_of(self, branch_id: str) -> str | None:
        return self._parent.get(branch_id)

    def index_of(self, branch_id: str) -> int:
        """Return the sibling position of *branch_id*, or -1 if unknown."""
        if branch_id not in self._parent:
            return -1
        return self._children[self._parent[branch_id]].index(branch_id)

    # ------------------------------------------------------------------
    # Tabs
    # ------------------------------------------------------------------

    def bind_tab(self, tab_id: str, branch_id: str) -> str | None:
        """Map *tab_id* to *branch_id*.

        Returns
        -------
        str | None
            The branch previously bound to the tab, if it was a different one.
        """
        previous = self._by_tab.get(tab_id)
        self._by_tab[tab_id] = branch_id
        return previous if previous != branch_id else None

    def unbind_tab(self, tab_id: str, branch_id: str) -> None:
        """Drop the mapping for *tab_id* if it still points at *branch_id*."""
        if self._by_tab.get(tab_id) == branch_id:
            del self._by_tab[tab_id]

    def branch_for_tab(self, tab_id: str) -> str | None:
        return self._by_tab.get(tab_id)

    # ------------------------------------------------------------------
    # Bulk
    # ------------------------------------------------------------------

    def rebuild(self, branches: Iterable[Branch]) -> None:
        """Recreate the index from scratch.

        Siblings are ordered by their stored ``position`` with ``created_at``
        and id as tie-breakers, so duplicate positions from concurrent
        inserts still produce a deterministic order.
        """
        self.clear()
        ordered = sorted(branches, key=lambda b: (b.position, b.created_at, b.id))
        for branch in ordered:
            self._children.setdefault(branch.parent_id, []).append(branch.id)
            self._parent[branch.id] = branch.parent_id
            if branch.tab_id is not None:
                self._by_tab.setdefault(branch.tab_id, branch.id)

    def clear(self) -> None:
        self._children.clear()
        self._parent.clear()
        self._by_tab.clear()

    def __contains__(self, branch_id: object) -> bool:
        return branch_id in self._parent

    def __len__(self) -> int:
        return len(self._parent)

    def __repr__(self) -> str:
        return f"TreeIndex(branches={len(self._parent)}, tabs={len(self._by_tab)})"


__all__ = ["TreeIndex"]
