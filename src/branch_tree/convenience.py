"""Convenience API for branch-tree: one object wiring every component.

Example
-------
::

    from branch_tree import BranchTree, InMemoryTabSource

    tabs = InMemoryTabSource()
    tree = BranchTree.compose(tabs=tabs)
    await tree.start()
    await tabs.add_tab(url="https://example.com")
    print(tree.get_tree())

"""
from __future__ import annotations

import logging
from collections.abc import Collection, Mapping, Sequence
from typing import Any

from branch_tree.config import TreeConfig
from branch_tree.lifecycle.bridge import LifecycleBridge
from branch_tree.lifecycle.source import TabSource
from branch_tree.reconcile.reconciler import ReconcileReport, Reconciler
from branch_tree.reparent.drop import DropPlan, DropPlanner, VisibleRow
from branch_tree.reparent.engine import RejectReason, ReparentEngine
from branch_tree.storage.async_base import AsyncStorageBackend
from branch_tree.storage.async_memory import AsyncInMemoryBackend
from branch_tree.tree.history import HistoryPosition, HistoryTrack
from branch_tree.tree.persistence import BranchPersistence
from branch_tree.tree.serializer import BranchSerializer
from branch_tree.tree.state import Branch, BranchNode, HistoryEntry
from branch_tree.tree.store import BranchStore

logger = logging.getLogger(__name__)

_AUTO = object()


class BranchTree:
    """Facade over the store, history, lifecycle, reparent and reconcile layers.

    Build one with ``BranchTree.compose``; the constructor takes already
    wired components for callers that need to substitute one.

    Parameters
    ----------
    store, history, bridge, engine, planner, reconciler:
        The wired components.
    config:
        The configuration they were built from.
    """

    def __init__(
        self,
        store: BranchStore,
        history: HistoryTrack,
        bridge: LifecycleBridge,
        engine: ReparentEngine,
        planner: DropPlanner,
        reconciler: Reconciler,
        config: TreeConfig | None = None,
    ) -> None:
        self.store = store
        self.history = history
        self.bridge = bridge
        self.engine = engine
        self.planner = planner
        self.reconciler = reconciler
        self.config = config or TreeConfig()

    @classmethod
    def compose(
        cls,
        config: TreeConfig | None = None,
        *,
        backend: Any = _AUTO,
        tabs: TabSource | None = None,
    ) -> BranchTree:
        """Build a fully wired engine.

        Parameters
        ----------
        config:
            Engine settings.  Defaults to ``TreeConfig()``.
        backend:
            Durable storage.  Omitted: SQLite at ``config.db_path`` when one
            is set, otherwise an in-memory backend.  ``None``: memory-only
            mode without any durable layer.
        tabs:
            The tab host to follow.

        Returns
        -------
        BranchTree
        """
        config = config or TreeConfig()
        if backend is _AUTO:
            backend = _default_backend(config)

        serializer = BranchSerializer(max_history_entries=config.max_history_entries)
        persistence = BranchPersistence(backend, serializer)
        store = BranchStore(persistence, max_history_entries=config.max_history_entries)
        history = HistoryTrack(store, config.max_history_entries)
        reconciler = Reconciler(store, tabs, config)
        bridge = LifecycleBridge(store, history, tabs, reconciler)
        engine = ReparentEngine(store, tabs)
        planner = DropPlanner(
            store,
            engine,
            indent_per_level=config.indent_per_level,
            base_offset=config.base_offset,
        )
        logger.debug("BranchTree: composed (durable=%s)", persistence.available)
        return cls(store, history, bridge, engine, planner, reconciler, config)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, *, schedule: bool = True) -> None:
        """Load, subscribe to tab events, migrate open tabs, start the timer."""
        await self.bridge.start()
        if schedule:
            self.reconciler.start()

    async def stop(self) -> None:
        """Stop the reconciliation timer and any pending request."""
        await self.reconciler.stop()

    async def __aenter__(self) -> BranchTree:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_tree(self) -> list[BranchNode]:
        return self.store.get_tree()

    def get(self, branch_id: str) -> Branch | None:
        return self.store.get(branch_id)

    def get_by_tab_id(self, tab_id: object) -> Branch | None:
        return self.store.get_by_tab_id(tab_id)

    def get_children(self, branch_id: str | None) -> list[Branch]:
        return self.store.get_children(branch_id)

    def get_descendants(self, branch_id: str) -> list[Branch]:
        return self.store.get_descendants(branch_id)

    def get_ancestors(self, branch_id: str) -> list[Branch]:
        return self.store.get_ancestors(branch_id)

    def get_roots(self) -> list[Branch]:
        return self.store.get_roots()

    def get_all(self) -> list[Branch]:
        return self.store.get_all()

    def count(self) -> int:
        return self.store.count()

    # ------------------------------------------------------------------
    # Branch mutations
    # ------------------------------------------------------------------

    async def create(
        self,
        tab_id: object,
        parent_id: str | None = None,
        url: str = "",
        title: str = "",
    ) -> str | None:
        return await self.store.create(tab_id, parent_id, url, title)

    async def update(self, branch_id: str, partial: Mapping[str, Any]) -> bool:
        return await self.store.update(branch_id, partial)

    async def destroy(self, branch_id: str) -> bool:
        return await self.store.destroy(branch_id)

    async def destroy_with_children(self, branch_id: str) -> bool:
        return await self.store.destroy_with_children(branch_id)

    async def ensure_root(self, tab_id: object = None) -> str:
        return await self.store.ensure_root(tab_id)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def add_to_history(
        self,
        branch_id: str,
        url: str,
        title: str = "",
        *,
        is_breadcrumb_nav: bool = False,
    ) -> bool:
        return await self.history.add_to_history(
            branch_id, url, title, is_breadcrumb_nav=is_breadcrumb_nav
        )

    async def navigate_to_history_index(self, branch_id: str, index: int) -> HistoryEntry | None:
        return await self.history.navigate_to_history_index(branch_id, index)

    def get_history_index(self, branch_id: str) -> int:
        return self.history.get_history_index(branch_id)

    def get_history_with_position(self, branch_id: str) -> HistoryPosition:
        return self.history.get_history_with_position(branch_id)

    async def navigate_breadcrumb(self, branch_id: str, index: int) -> HistoryEntry | None:
        """Jump to a history entry; the resulting url update is not recorded."""
        return await self.bridge.navigate_breadcrumb(branch_id, index)

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def validate_reparent(self, branch_id: str, new_parent_id: str | None) -> RejectReason | None:
        return self.engine.validate(branch_id, new_parent_id)

    async def reparent(
        self,
        branch_id: str,
        new_parent_id: str | None,
        index: int | None = None,
    ) -> bool:
        return await self.engine.reparent(branch_id, new_parent_id, index)

    def plan_drop(
        self,
        rows: Sequence[VisibleRow],
        x: float,
        y: float,
        dragged_id: str,
        collapsed: Collection[str] = (),
    ) -> DropPlan:
        return self.planner.plan(rows, x, y, dragged_id, collapsed)

    async def reconcile(self) -> ReconcileReport:
        return await self.reconciler.reconcile()

    def __repr__(self) -> str:
        return f"BranchTree(branches={self.store.count()}, durable={self.store.persistence.available})"


def _default_backend(config: TreeConfig) -> AsyncStorageBackend | None:
    if config.db_path is None:
        return AsyncInMemoryBackend()
    try:
        from branch_tree.storage.async_sqlite import AsyncSQLiteBackend

        return AsyncSQLiteBackend(db_path=config.db_path)
    except ImportError as exc:
        logger.warning("BranchTree: durable storage unavailable, running memory-only: %s", exc)
        return None


__all__ = ["BranchTree"]
