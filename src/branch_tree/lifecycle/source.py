"""Tab lifecycle source: the host-side contract the engine consumes.

The host (a browser shell, a test, an embedding application) owns the real
tabs.  The engine only needs to subscribe to four events and to ask which
tabs are alive:

- ``tab-added(tab_id, tab_data, options, container_id)``
- ``tab-destroyed(tab_id, container_id)``
- ``tab-updated(tab_id, key, value, container_id)`` with ``key`` in
  ``{"url", "title"}``
- ``tab-selected(tab_id, container_id)``

``InMemoryTabSource`` is a complete in-process host implementing that
contract; events are delivered by awaiting every subscribed handler in
registration order.

Classes
-------
- TabData            — payload of ``tab-added``
- TabInfo            — a live tab as seen by the host
- TabSource          — protocol the engine depends on
- InMemoryTabSource  — dict-backed reference host
"""
from __future__ import annotations

import itertools
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping, Protocol, runtime_checkable

logger = logging.getLogger(__name__)

TAB_ADDED = "tab-added"
TAB_DESTROYED = "tab-destroyed"
TAB_UPDATED = "tab-updated"
TAB_SELECTED = "tab-selected"
TAB_EVENTS: frozenset[str] = frozenset({TAB_ADDED, TAB_DESTROYED, TAB_UPDATED, TAB_SELECTED})

DEFAULT_CONTAINER = "default"

TabHandler = Callable[..., Awaitable[None]]


@dataclass(frozen=True)
class TabData:
    """What the host knows about a tab when it is added.

    Parameters
    ----------
    url:
        Initial url, possibly empty.
    title:
        Initial title, possibly empty.
    parent_branch_id:
        Branch of the tab a link was followed from, when the UI knows it.
    branch_id:
        Branch already assigned to this tab (replayed events).
    """

    url: str = ""
    title: str = ""
    parent_branch_id: str | None = None
    branch_id: str | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any] | None) -> TabData:
        """Build from a host payload using either camelCase or snake_case keys."""
        if not data:
            return cls()
        return cls(
            url=str(data.get("url") or ""),
            title=str(data.get("title") or ""),
            parent_branch_id=data.get("parentBranchId", data.get("parent_branch_id")),
            branch_id=data.get("branchId", data.get("branch_id")),
        )


@dataclass
class TabInfo:
    """A live tab held by the host."""

    tab_id: str
    url: str = ""
    title: str = ""
    branch_id: str | None = None
    parent_branch_id: str | None = None
    container_id: str = DEFAULT_CONTAINER
    selected: bool = False
    audible: bool = False

    def to_data(self) -> TabData:
        return TabData(
            url=self.url,
            title=self.title,
            parent_branch_id=self.parent_branch_id,
            branch_id=self.branch_id,
        )


@runtime_checkable
class TabSource(Protocol):
    """Host-side tab registry and event emitter."""

    def on(self, event: str, handler: TabHandler) -> None: ...

    def has_tab(self, tab_id: str) -> bool: ...

    def get_tab(self, tab_id: str) -> TabInfo | None: ...

    def list_tabs(self) -> list[TabInfo]: ...

    def assign_branch(self, tab_id: str, branch_id: str, parent_branch_id: str | None) -> None: ...


class InMemoryTabSource:
    """In-process tab host.

    Mutating helpers (``add_tab``, ``remove_tab`` ...) change the tab table
    first and then deliver the matching event, mirroring a host whose
    lifecycle events describe something that already happened.

    Example
    -------
    ::

        tabs = InMemoryTabSource()
        tree = BranchTree.compose(tabs=tabs)
        await tree.start()
        tab_id = await tabs.add_tab(url="https://example.com")
    """

    def __init__(self) -> None:
        self._tabs: dict[str, TabInfo] = {}
        self._handlers: dict[str, list[TabHandler]] = defaultdict(list)
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Subscription
    # ------------------------------------------------------------------

    def on(self, event: str, handler: TabHandler) -> None:
        """Subscribe *handler* to *event*."""
        if event not in TAB_EVENTS:
            raise ValueError(f"Unknown tab event {event!r}.")
        self._handlers[event].append(handler)

    def off(self, event: str, handler: TabHandler) -> None:
        """Unsubscribe *handler*; unknown handlers are ignored."""
        handlers = self._handlers.get(event, [])
        if handler in handlers:
            handlers.remove(handler)

    async def emit(self, event: str, *args: Any) -> None:
        """Deliver *event* to every subscriber, in subscription order."""
        for handler in list(self._handlers.get(event, ())):
            await handler(*args)

    # ------------------------------------------------------------------
    # TabSource queries
    # ------------------------------------------------------------------

    def has_tab(self, tab_id: str) -> bool:
        return tab_id in self._tabs

    def get_tab(self, tab_id: str) -> TabInfo | None:
        return self._tabs.get(tab_id)

    def list_tabs(self) -> list[TabInfo]:
        return list(self._tabs.values())

    def assign_branch(self, tab_id: str, branch_id: str, parent_branch_id: str | None) -> None:
        tab = self._tabs.get(tab_id)
        if tab is not None:
            tab.branch_id = branch_id
            tab.parent_branch_id = parent_branch_id

    @property
    def selected_tab_id(self) -> str | None:
        for tab in self._tabs.values():
            if tab.selected:
                return tab.tab_id
        return None

    # ------------------------------------------------------------------
    # Host actions
    # ------------------------------------------------------------------

    def seed(self, *tabs: TabInfo) -> None:
        """Register already-open tabs without emitting events (session restore)."""
        for tab in tabs:
            self._tabs[tab.tab_id] = tab

    async def add_tab(
        self,
        tab_id: str | None = None,
        *,
        url: str = "",
        title: str = "",
        parent_branch_id: str | None = None,
        container_id: str = DEFAULT_CONTAINER,
        options: Mapping[str, Any] | None = None,
    ) -> str:
        """Open a tab and emit ``tab-added``; returns the tab id."""
        tab_id = tab_id or f"tab-{next(self._ids)}"
        tab = TabInfo(
            tab_id=tab_id,
            url=url,
            title=title,
            parent_branch_id=parent_branch_id,
            container_id=container_id,
        )
        self._tabs[tab_id] = tab
        await self.emit(TAB_ADDED, tab_id, tab.to_data(), dict(options or {}), container_id)
        return tab_id

    async def remove_tab(self, tab_id: str) -> bool:
        """Close a tab and emit ``tab-destroyed``."""
        tab = self._tabs.pop(tab_id, None)
        if tab is None:
            return False
        await self.emit(TAB_DESTROYED, tab_id, tab.container_id)
        return True

    async def update_tab(self, tab_id: str, key: str, value: str) -> bool:
        """Set ``url`` or ``title`` on a tab and emit ``tab-updated``."""
        tab = self._tabs.get(tab_id)
        if tab is None or key not in ("url", "title"):
            return False
        setattr(tab, key, value)
        await self.emit(TAB_UPDATED, tab_id, key, value, tab.container_id)
        return True

    async def navigate(self, tab_id: str, url: str, title: str = "") -> bool:
        """Load *url* in a tab: a url update followed by a title update.

        The tab carries the new page's title (empty when unknown) by the
        time the url update is emitted.
        """
        tab = self._tabs.get(tab_id)
        if tab is None:
            return False
        tab.title = title
        if not await self.update_tab(tab_id, "url", url):
            return False
        if title:
            await self.update_tab(tab_id, "title", title)
        return True

    async def select_tab(self, tab_id: str) -> bool:
        """Make *tab_id* the selected tab and emit ``tab-selected``."""
        tab = self._tabs.get(tab_id)
        if tab is None:
            return False
        for other in self._tabs.values():
            other.selected = other.tab_id == tab_id
        await self.emit(TAB_SELECTED, tab_id, tab.container_id)
        return True

    def __len__(self) -> int:
        return len(self._tabs)

    def __repr__(self) -> str:
        return f"InMemoryTabSource(tabs={len(self._tabs)})"


__all__ = [
    "DEFAULT_CONTAINER",
    "InMemoryTabSource",
    "TAB_ADDED",
    "TAB_DESTROYED",
    "TAB_EVENTS",
    "TAB_SELECTED",
    "TAB_UPDATED",
    "TabData",
    "TabHandler",
    "TabInfo",
    "TabSource",
]
