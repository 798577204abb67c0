"""Translate tab lifecycle events into branch tree mutations.

``LifecycleBridge`` subscribes to a ``TabSource`` and keeps the tree in step
with the host's tabs:

- ``tab-added``     → bind the tab to ROOT or create a child branch
- ``tab-destroyed`` → destroy the tab's branch subtree, request cleanup
- ``tab-updated``   → record navigations, refresh titles
- ``tab-selected``  → refresh activity, wake sleeping branches

It also runs the start-up migration that gives every already-open tab a
branch, and implements breadcrumb jumps (cursor move plus a single-use
navigation token so the resulting url update is not recorded twice).

Classes
-------
- LifecycleBridge  — event handlers, migration and breadcrumb navigation
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Mapping

from branch_tree.lifecycle.navigation import NavigationTokens
from branch_tree.lifecycle.policy import TabAddedAction, decide_tab_added
from branch_tree.lifecycle.source import (
    DEFAULT_CONTAINER,
    TAB_ADDED,
    TAB_DESTROYED,
    TAB_SELECTED,
    TAB_UPDATED,
    TabData,
    TabSource,
)
from branch_tree.tree.history import HistoryTrack
from branch_tree.tree.state import BranchStatus, HistoryEntry, utcnow
from branch_tree.tree.store import BranchStore

if TYPE_CHECKING:
    from branch_tree.reconcile.reconciler import Reconciler

logger = logging.getLogger(__name__)


class LifecycleBridge:
    """Keeps the branch tree consistent with the host's tab lifecycle.

    Parameters
    ----------
    store:
        The branch store to mutate.
    history:
        History operations over *store*.
    tabs:
        The tab host.  Without one the handlers can still be called
        directly, and every bound tab is assumed alive.
    reconciler:
        Receives a debounced cleanup request after every tab closure.

    Example
    -------
    ::

        tabs = InMemoryTabSource()
        bridge = LifecycleBridge(store, HistoryTrack(store), tabs)
        await bridge.start()
        await tabs.add_tab(url="https://example.com")
    """

    def __init__(
        self,
        store: BranchStore,
        history: HistoryTrack,
        tabs: TabSource | None = None,
        reconciler: Reconciler | None = None,
    ) -> None:
        self._store = store
        self._history = history
        self._tabs = tabs
        self.reconciler = reconciler
        self.tokens = NavigationTokens()
        self._attached = False
        self._started = False

    @property
    def tabs(self) -> TabSource | None:
        return self._tabs

    @property
    def started(self) -> bool:
        return self._started

    # ------------------------------------------------------------------
    # Start-up
    # ------------------------------------------------------------------

    def attach(self, tabs: TabSource | None = None) -> None:
        """Subscribe the event handlers to *tabs* (or the configured source)."""
        if tabs is not None and tabs is not self._tabs:
            if self._attached:
                raise RuntimeError("LifecycleBridge is already attached to another tab source.")
            self._tabs = tabs
        if self._tabs is None or self._attached:
            return
        self._tabs.on(TAB_ADDED, self.on_tab_added)
        self._tabs.on(TAB_DESTROYED, self.on_tab_destroyed)
        self._tabs.on(TAB_UPDATED, self.on_tab_updated)
        self._tabs.on(TAB_SELECTED, self.on_tab_selected)
        self._attached = True
        logger.debug("LifecycleBridge: attached to %r", self._tabs)

    async def start(self) -> None:
        """Load persisted branches, subscribe to tab events, migrate open tabs.

        Calling ``start`` again is a no-op.
        """
        if self._started:
            return
        self._started = True
        await self._store.load()
        self.attach()
        migrated = await self.migrate()
        logger.info(
            "LifecycleBridge: started with %d branches (%d tabs migrated)",
            self._store.count(),
            migrated,
        )

    async def migrate(self) -> int:
        """Give every live tab without a branch one.

        Tabs whose id already has a branch keep it.  A tab whose recorded
        ``branch_id`` names a known branch is rebound to it, unless another
        live tab still owns that branch; such a tab gets a fresh branch.

        Returns
        -------
        int
            Number of tabs that received a new or rebound branch.
        """
        if self._tabs is None:
            return 0
        migrated = 0
        unbound = []
        for tab in self._tabs.list_tabs():
            existing = self._store.get_by_tab_id(tab.tab_id)
            if existing is None and tab.branch_id:
                recorded = self._store.get(tab.branch_id)
                if recorded is not None and not self._tab_alive(recorded.tab_id):
                    if await self._store.update(recorded.id, {"tab_id": tab.tab_id}):
                        existing = recorded
                        migrated += 1
            if existing is not None:
                self._tabs.assign_branch(tab.tab_id, existing.id, existing.parent_id)
                continue
            unbound.append(tab)

        for tab in unbound:
            data = replace(tab.to_data(), branch_id=None)
            if await self._apply_tab_added(tab.tab_id, data) is not None:
                migrated += 1
        return migrated

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def on_tab_added(
        self,
        tab_id: object,
        tab_data: TabData | Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
        container_id: str = DEFAULT_CONTAINER,
    ) -> str | None:
        """Handle ``tab-added``; returns the branch bound to the tab, if any."""
        data = tab_data if isinstance(tab_data, TabData) else TabData.from_mapping(tab_data)
        return await self._apply_tab_added(str(tab_id), data)

    async def on_tab_destroyed(self, tab_id: object, container_id: str = DEFAULT_CONTAINER) -> bool:
        """Handle ``tab-destroyed``: drop the tab's branch and its subtree.

        ROOT survives the closure of its tab; it is rebound to the next tab
        that opens.
        """
        branch = self._store.get_by_tab_id(tab_id)
        if branch is None:
            return False
        if branch.is_root:
            logger.debug("LifecycleBridge: ROOT tab %r closed; keeping ROOT", tab_id)
            return False
        self.tokens.discard(branch.id)
        destroyed = await self._store.destroy_with_children(branch.id)
        if self.reconciler is not None:
            self.reconciler.request()
        return destroyed

    async def on_tab_updated(
        self,
        tab_id: object,
        key: str,
        value: Any,
        container_id: str = DEFAULT_CONTAINER,
    ) -> bool:
        """Handle ``tab-updated`` for the ``url`` and ``title`` keys."""
        branch = self._store.get_by_tab_id(tab_id)
        if branch is None:
            return False

        if key == "url":
            url = str(value or "")
            if not url:
                return False
            breadcrumb = self.tokens.consume(branch.id, url)
            if breadcrumb:
                # The cursor already points at this entry; only mirror the page.
                return await self._store.update(branch.id, {"url": url})
            tab = self._tabs.get_tab(str(tab_id)) if self._tabs is not None else None
            title = tab.title if tab is not None else ""
            return await self._history.add_to_history(branch.id, url, title)

        if key == "title":
            title = str(value or "")
            partial: dict[str, Any] = {"title": title}
            if branch.history:
                last = branch.history[-1]
                if last.url == branch.url and not last.title:
                    partial["history"] = [
                        *branch.history[:-1],
                        last.model_copy(update={"title": title}),
                    ]
            return await self._store.update(branch.id, partial)

        return False

    async def on_tab_selected(self, tab_id: object, container_id: str = DEFAULT_CONTAINER) -> bool:
        """Handle ``tab-selected``: mark the branch active and awake."""
        branch = self._store.get_by_tab_id(tab_id)
        if branch is None:
            return False
        if branch.state == BranchStatus.SLEEPING:
            logger.debug("LifecycleBridge: waking branch %r", branch.id)
        return await self._store.update(
            branch.id, {"last_active_at": utcnow(), "state": BranchStatus.AWAKE}
        )

    # ------------------------------------------------------------------
    # Breadcrumbs
    # ------------------------------------------------------------------

    async def navigate_breadcrumb(self, branch_id: str, index: int) -> HistoryEntry | None:
        """Jump *branch_id* to history entry *index*.

        Returns the entry for the caller to load in the tab.  The url update
        that loading produces is recognised and not recorded as a new
        navigation.
        """
        entry = await self._history.navigate_to_history_index(branch_id, index)
        if entry is not None:
            self.tokens.issue(branch_id, entry.url)
        return entry

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _tab_alive(self, tab_id: str | None) -> bool:
        if tab_id is None:
            return False
        if self._tabs is None:
            return True
        return self._tabs.has_tab(tab_id)

    async def _apply_tab_added(self, tab_id: str, data: TabData) -> str | None:
        root = self._store.get_root()
        existing = self._store.get_by_tab_id(tab_id)
        decision = decide_tab_added(
            has_branch=bool(data.branch_id) or existing is not None,
            root_exists=root is not None,
            root_tab_alive=root is not None and root.tab_id != tab_id and self._tab_alive(root.tab_id),
            parent_branch_id=data.parent_branch_id,
            parent_exists=data.parent_branch_id in self._store,
        )

        if decision.action is TabAddedAction.SKIP:
            # Replayed or already-assigned tab: never touch the tree.
            return existing.id if existing is not None else None

        if decision.action in (TabAddedAction.BECOME_ROOT, TabAddedAction.REUSE_ROOT):
            branch_id = await self._store.ensure_root(tab_id)
            logger.debug("LifecycleBridge: tab %r is ROOT (%s)", tab_id, decision.action.value)
        else:
            branch_id = await self._store.create(tab_id, decision.parent_id, data.url, data.title)
            if branch_id is None:
                return None

        self._bind_back(tab_id, branch_id)
        return branch_id

    def _bind_back(self, tab_id: str, branch_id: str) -> None:
        if self._tabs is None:
            return
        branch = self._store.get(branch_id)
        self._tabs.assign_branch(tab_id, branch_id, branch.parent_id if branch else None)


__all__ = ["LifecycleBridge"]
