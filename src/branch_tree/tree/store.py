"""Authoritative in-memory branch store.

Provides ``BranchStore``, the object every other component is handed: it
owns the branch map, the structural ``TreeIndex`` and the write-through
``BranchPersistence`` adapter.

Mutations are coroutines because each one ends with a durable write (a
suspension point).  The in-memory change is always complete before that
first ``await``, so other callbacks interleaving at the write observe a
consistent tree.  Reads are plain synchronous methods.

Classes
-------
- BranchStore  — CRUD, tree queries and ROOT management over branches
"""
from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import ValidationError

from branch_tree.tree.index import TreeIndex
from branch_tree.tree.persistence import BranchPersistence
from branch_tree.tree.state import (
    DEFAULT_MAX_HISTORY,
    ROOT_BRANCH_ID,
    ROOT_TITLE,
    ROOT_URL,
    Branch,
    BranchNode,
    HistoryEntry,
    utcnow,
)

logger = logging.getLogger(__name__)

# Keys that ``update`` refuses; structure changes go through ``move``.
_STRUCTURAL_FIELDS: frozenset[str] = frozenset({"id", "is_root", "position"})
_FIELD_BY_ALIAS: dict[str, str] = {
    (info.alias or name): name for name, info in Branch.model_fields.items()
}


def _tab_key(tab_id: object) -> str | None:
    return None if tab_id is None else str(tab_id)


class BranchStore:
    """Branch map, tree queries and best-effort persistence.

    Parameters
    ----------
    persistence:
        Durable write-through adapter.  Defaults to a memory-only adapter.
    max_history_entries:
        History cap enforced on loaded and merged records.

    Example
    -------
    ::

        store = BranchStore()
        root_id = await store.ensure_root("tab-1")
        child_id = await store.create("tab-2", root_id, "https://example.com", "Example")
        assert store.get_ancestors(child_id)[0].id == root_id
    """

    def __init__(
        self,
        persistence: BranchPersistence | None = None,
        *,
        max_history_entries: int = DEFAULT_MAX_HISTORY,
    ) -> None:
        self._branches: dict[str, Branch] = {}
        self._index = TreeIndex()
        self._persistence = persistence or BranchPersistence(None)
        self._isolated: list[str] = []
        self.max_history_entries = max_history_entries

    @property
    def persistence(self) -> BranchPersistence:
        return self._persistence

    @property
    def index(self) -> TreeIndex:
        return self._index

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get(self, branch_id: str | None) -> Branch | None:
        """Return the branch with *branch_id*, or None."""
        if branch_id is None:
            return None
        return self._branches.get(branch_id)

    def get_by_tab_id(self, tab_id: object) -> Branch | None:
        """Return the branch bound to *tab_id*, or None."""
        key = _tab_key(tab_id)
        if key is None:
            return None
        branch_id = self._index.branch_for_tab(key)
        return self._branches.get(branch_id) if branch_id is not None else None

    def get_root(self) -> Branch | None:
        return self._branches.get(ROOT_BRANCH_ID)

    @property
    def root_id(self) -> str:
        return ROOT_BRANCH_ID

    @staticmethod
    def is_root(branch_id: str | None) -> bool:
        return branch_id == ROOT_BRANCH_ID

    def get_all(self) -> list[Branch]:
        return list(self._branches.values())

    def count(self) -> int:
        return len(self._branches)

    def __contains__(self, branch_id: object) -> bool:
        return branch_id in self._branches

    def __len__(self) -> int:
        return len(self._branches)

    # ------------------------------------------------------------------
    # Tree queries
    # ------------------------------------------------------------------

    def get_children(self, branch_id: str | None) -> list[Branch]:
        """Return the children of *branch_id* in sibling order."""
        return [self._branches[i] for i in self._index.children_of(branch_id) if i in self._branches]

    def get_descendants(self, branch_id: str) -> list[Branch]:
        """Return every descendant of *branch_id*, depth-first pre-order."""
        descendants: list[Branch] = []
        visited = {branch_id}
        stack = list(reversed(self._index.children_of(branch_id)))
        while stack:
            child_id = stack.pop()
            if child_id in visited or child_id not in self._branches:
                continue
            visited.add(child_id)
            descendants.append(self._branches[child_id])
            stack.extend(reversed(self._index.children_of(child_id)))
        return descendants

    def get_ancestors(self, branch_id: str) -> list[Branch]:
        """Return the ancestors of *branch_id*, nearest first.

        The walk stops at a missing parent.  Revisiting a branch means the
        parent chain is corrupt: the link closing the cycle is cut and the
        branch owning it is isolated as an orphan for the reconciler.
        """
        ancestors: list[Branch] = []
        visited = {branch_id}
        current = self._branches.get(branch_id)
        while current is not None and current.parent_id is not None:
            parent_id = current.parent_id
            if parent_id in visited:
                logger.error(
                    "BranchStore: parent cycle through %r; isolating %r", parent_id, current.id
                )
                self._isolate(current)
                break
            parent = self._branches.get(parent_id)
            if parent is None:
                break
            ancestors.append(parent)
            visited.add(parent_id)
            current = parent
        return ancestors

    def is_descendant(self, ancestor_id: str, branch_id: str) -> bool:
        """Return True if *branch_id* sits somewhere below *ancestor_id*."""
        return any(a.id == ancestor_id for a in self.get_ancestors(branch_id))

    def get_roots(self) -> list[Branch]:
        """Return the parentless branches: ROOT first, then any orphans."""
        return self.get_children(None)

    def get_tree(self) -> list[BranchNode]:
        """Return the nested tree rooted at ``get_roots()``."""
        visited: set[str] = set()

        def build(branch: Branch) -> BranchNode:
            visited.add(branch.id)
            children = [build(c) for c in self.get_children(branch.id) if c.id not in visited]
            return BranchNode(branch=branch, children=children)

        return [build(root) for root in self.get_roots() if root.id not in visited]

    def drain_isolated(self) -> list[str]:
        """Return and forget the branches isolated by the cycle guard."""
        isolated, self._isolated = self._isolated, []
        return isolated

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create(
        self,
        tab_id: object,
        parent_id: str | None = None,
        url: str = "",
        title: str = "",
    ) -> str | None:
        """Create a branch for *tab_id* and return its id.

        The history is seeded with *url* when one is given.  A missing
        *parent_id* attaches the branch to ROOT (or leaves it an orphan when
        there is no ROOT yet).  A tab that already owns a branch gets that
        branch's id back.

        Returns
        -------
        str | None
            The branch id, or None when *parent_id* names an unknown branch.
        """
        tab_key = _tab_key(tab_id)
        existing = self.get_by_tab_id(tab_key)
        if existing is not None:
            logger.debug("BranchStore: tab %r already owns branch %r", tab_key, existing.id)
            return existing.id

        if parent_id is None:
            parent_id = ROOT_BRANCH_ID if ROOT_BRANCH_ID in self._branches else None
        elif parent_id not in self._branches:
            logger.warning("BranchStore: cannot create under unknown parent %r", parent_id)
            return None

        now = utcnow()
        history = [HistoryEntry(url=url, title=title or "", timestamp=now)] if url else []
        branch = Branch(
            tab_id=tab_key,
            parent_id=parent_id,
            url=url or "",
            title=title or "",
            history=history,
            history_index=0 if history else -1,
            created_at=now,
            last_active_at=now,
        )
        changed = self._insert(branch, index=None)
        logger.debug(
            "BranchStore: created %r %s",
            branch.id,
            f"(child of {parent_id})" if parent_id else "(orphan)",
        )
        await self._persistence.write_many(changed)
        return branch.id

    async def ensure_root(self, tab_id: object = None) -> str:
        """Create ROOT if it is missing, otherwise rebind it to *tab_id*.

        Parentless branches that exist when ROOT is created are adopted as
        its children, keeping their relative order.  Idempotent: repeated
        calls with the same tab change nothing.
        """
        tab_key = _tab_key(tab_id)
        root = self._branches.get(ROOT_BRANCH_ID)
        if root is not None:
            if tab_key is not None and root.tab_id != tab_key:
                await self.update(ROOT_BRANCH_ID, {"tab_id": tab_key})
            return ROOT_BRANCH_ID

        root = Branch(
            id=ROOT_BRANCH_ID,
            tab_id=None,
            parent_id=None,
            url=ROOT_URL,
            title=ROOT_TITLE,
            is_root=True,
        )
        orphans = self.get_children(None)
        changed = self._insert(root, index=0)
        for orphan in orphans:
            self._index.attach(orphan.id, ROOT_BRANCH_ID)
            orphan.parent_id = ROOT_BRANCH_ID
            changed.append(orphan)
        changed.extend(self._renumber(None))
        changed.extend(self._renumber(ROOT_BRANCH_ID))
        if tab_key is not None:
            changed.extend(self._bind_tab(root, tab_key))
        logger.info(
            "BranchStore: created ROOT branch (tab %r, %d adopted)", tab_key, len(orphans)
        )
        await self._persistence.write_many(_unique(changed))
        return ROOT_BRANCH_ID

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    async def update(self, branch_id: str, partial: Mapping[str, Any]) -> bool:
        """Shallow-merge *partial* into the branch.

        Keys may use attribute names (``tab_id``) or record names
        (``tabId``).  ``parent_id`` is routed through ``move``.  The merge
        is validated as a whole and refused without any change when it does
        not describe a valid branch.

        Returns
        -------
        bool
            False for unknown branches and refused merges.
        """
        branch = self._branches.get(branch_id)
        if branch is None:
            logger.warning("BranchStore: cannot update non-existent branch %r", branch_id)
            return False

        fields: dict[str, Any] = {}
        for key, value in partial.items():
            name = _FIELD_BY_ALIAS.get(key, key)
            if name not in Branch.model_fields or name in _STRUCTURAL_FIELDS:
                logger.warning("BranchStore: ignoring field %r in update of %r", key, branch_id)
                continue
            fields[name] = value

        new_parent = fields.pop("parent_id", branch.parent_id)
        merged = {**branch.model_dump(), **fields}
        try:
            validated = Branch.model_validate(merged)
        except ValidationError as exc:
            logger.warning("BranchStore: refused update of %r: %s", branch_id, exc)
            return False
        validated.trim_history(self.max_history_entries)

        if new_parent != branch.parent_id:
            if new_parent is None or not await self.move(branch_id, new_parent):
                logger.warning("BranchStore: refused parent change of %r to %r", branch_id, new_parent)
                return False

        changed = [branch]
        for name in fields:
            if name == "tab_id":
                changed.extend(self._bind_tab(branch, validated.tab_id))
            else:
                setattr(branch, name, getattr(validated, name))
        if "history" in fields or "history_index" in fields:
            branch.history = validated.history
            branch.history_index = validated.history_index

        await self._persistence.write_many(_unique(changed))
        return True

    async def save(self, branch_id: str) -> bool:
        """Persist the current in-memory state of *branch_id*."""
        branch = self._branches.get(branch_id)
        if branch is None:
            return False
        await self._persistence.write(branch)
        return True

    async def move(self, branch_id: str, parent_id: str, index: int | None = None) -> bool:
        """Attach *branch_id* under *parent_id* at sibling slot *index*.

        *index* counts the branch's current slot when it stays under the
        same parent, so moving one slot down is ``old + 2``.  ``None``
        appends.  Moves that would detach ROOT, target an unknown branch or
        create a cycle are refused without any change.
        """
        branch = self._branches.get(branch_id)
        if branch is None or branch.is_root or self.is_root(branch_id):
            return False
        if parent_id not in self._branches or parent_id == branch_id:
            return False
        if self.is_descendant(branch_id, parent_id):
            return False

        old = self._index.detach(branch_id)
        old_parent = old[0] if old is not None else branch.parent_id
        if old is not None and old[0] == parent_id and index is not None and old[1] < index:
            index -= 1
        self._index.attach(branch_id, parent_id, index)
        branch.parent_id = parent_id

        changed = [branch, *self._renumber(old_parent), *self._renumber(parent_id)]
        logger.debug("BranchStore: moved %r under %r", branch_id, parent_id)
        await self._persistence.write_many(_unique(changed))
        return True

    # ------------------------------------------------------------------
    # Destruction
    # ------------------------------------------------------------------

    async def destroy(self, branch_id: str) -> bool:
        """Remove a single branch.  ROOT and unknown ids are refused.

        Direct children are left as orphans (``parent_id=None``) so no
        surviving branch references the destroyed id.
        """
        if self.is_root(branch_id):
            logger.info("BranchStore: refusing to destroy ROOT")
            return False
        branch = self._branches.pop(branch_id, None)
        if branch is None:
            return False

        old = self._index.detach(branch_id)
        if branch.tab_id is not None:
            self._index.unbind_tab(branch.tab_id, branch_id)

        orphans: list[Branch] = []
        for child_id in self._index.children_of(branch_id):
            child = self._branches.get(child_id)
            if child is None:
                continue
            self._index.attach(child_id, None)
            child.parent_id = None
            orphans.append(child)

        changed = [*orphans, *self._renumber(None)]
        if old is not None:
            changed.extend(self._renumber(old[0]))
        logger.debug("BranchStore: destroyed %r (%d orphaned)", branch_id, len(orphans))

        await self._persistence.remove(branch_id)
        await self._persistence.write_many(_unique(changed))
        return True

    async def destroy_with_children(self, branch_id: str) -> bool:
        """Destroy *branch_id* and all its descendants, deepest first."""
        if self.is_root(branch_id) or branch_id not in self._branches:
            return False
        descendants = self.get_descendants(branch_id)
        for descendant in reversed(descendants):
            await self.destroy(descendant.id)
        return await self.destroy(branch_id)

    async def clear_all(self) -> None:
        """Forget every branch, in memory and in durable storage."""
        self._branches.clear()
        self._index.clear()
        self._isolated.clear()
        await self._persistence.clear()
        logger.info("BranchStore: cleared all branches")

    # ------------------------------------------------------------------
    # Restart cache
    # ------------------------------------------------------------------

    async def load(self) -> int:
        """Merge persisted branches into memory.

        Branches already in memory win over their durable copy.

        Returns
        -------
        int
            Number of branches added from durable storage.
        """
        loaded = await self._persistence.load_all()
        added = 0
        for branch in loaded:
            if branch.id in self._branches:
                continue
            branch.trim_history(self.max_history_entries)
            if branch.id == ROOT_BRANCH_ID:
                branch.is_root = True
                branch.parent_id = None
            else:
                branch.is_root = False
            self._branches[branch.id] = branch
            added += 1
        self._index.rebuild(self._branches.values())
        logger.info("BranchStore: loaded %d branches from durable storage", added)
        return added

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _insert(self, branch: Branch, index: int | None) -> list[Branch]:
        self._branches[branch.id] = branch
        self._index.attach(branch.id, branch.parent_id, index)
        changed = [branch, *self._renumber(branch.parent_id)]
        if branch.tab_id is not None:
            changed.extend(self._bind_tab(branch, branch.tab_id))
        return _unique(changed)

    def _bind_tab(self, branch: Branch, tab_id: str | None) -> list[Branch]:
        """Point *branch* at *tab_id*, unbinding any branch that held it."""
        changed: list[Branch] = []
        if branch.tab_id is not None and branch.tab_id != tab_id:
            self._index.unbind_tab(branch.tab_id, branch.id)
        branch.tab_id = tab_id
        if tab_id is None:
            return changed
        previous_id = self._index.bind_tab(tab_id, branch.id)
        previous = self._branches.get(previous_id) if previous_id else None
        if previous is not None:
            logger.warning(
                "BranchStore: tab %r moved from branch %r to %r", tab_id, previous.id, branch.id
            )
            previous.tab_id = None
            changed.append(previous)
        return changed

    def _renumber(self, parent_id: str | None) -> list[Branch]:
        """Rewrite sibling ``position`` fields; return those that changed."""
        changed: list[Branch] = []
        for position, child_id in enumerate(self._index.children_of(parent_id)):
            child = self._branches.get(child_id)
            if child is not None and child.position != position:
                child.position = position
                changed.append(child)
        return changed

    def _isolate(self, branch: Branch) -> None:
        self._index.attach(branch.id, None)
        branch.parent_id = None
        self._renumber(None)
        self._isolated.append(branch.id)

    def __repr__(self) -> str:
        return (
            f"BranchStore(branches={len(self._branches)}, "
            f"durable={self._persistence.available})"
        )


def _unique(branches: list[Branch]) -> list[Branch]:
    seen: set[str] = set()
    result: list[Branch] = []
    for branch in branches:
        if branch.id not in seen:
            seen.add(branch.id)
            result.append(branch)
    return result


__all__ = ["BranchStore"]
