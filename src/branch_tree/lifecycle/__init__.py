"""Tab lifecycle integration.

Classes
-------
LifecycleBridge
    Applies tab events to the branch tree.
InMemoryTabSource
    In-process reference tab host.
NavigationTokens
    Single-use markers for breadcrumb-driven url changes.
"""
from __future__ import annotations

from branch_tree.lifecycle.bridge import LifecycleBridge
from branch_tree.lifecycle.navigation import NavigationTokens
from branch_tree.lifecycle.policy import TabAddedAction, TabAddedDecision, decide_tab_added
from branch_tree.lifecycle.source import (
    TAB_ADDED,
    TAB_DESTROYED,
    TAB_SELECTED,
    TAB_UPDATED,
    InMemoryTabSource,
    TabData,
    TabInfo,
    TabSource,
)

__all__ = [
    "InMemoryTabSource",
    "LifecycleBridge",
    "NavigationTokens",
    "TAB_ADDED",
    "TAB_DESTROYED",
    "TAB_SELECTED",
    "TAB_UPDATED",
    "TabAddedAction",
    "TabAddedDecision",
    "TabData",
    "TabInfo",
    "TabSource",
    "decide_tab_added",
]
