"""branch-tree — Tree-structured browsing sessions.

Every open tab is bound to a branch; branches form a tree rooted at a
permanent ROOT branch, each carrying its own navigation history.

Public API
----------
The stable public surface is everything exported from this module.
Anything inside submodules not re-exported here is considered private
and may change without notice.

Example
-------
>>> import branch_tree
>>> branch_tree.__version__
'0.1.0'
"""
from __future__ import annotations

# Configuration
from branch_tree.config import ConfigError, SleepConfig, TreeConfig, load_config

# Tree core
from branch_tree.tree.state import (
    ROOT_BRANCH_ID,
    Branch,
    BranchNode,
    BranchStatus,
    HistoryEntry,
)
from branch_tree.tree.store import BranchStore
from branch_tree.tree.index import TreeIndex
from branch_tree.tree.history import HistoryPosition, HistoryTrack
from branch_tree.tree.persistence import BranchPersistence
from branch_tree.tree.serializer import BranchSerializer, SchemaVersionError

# Storage backends
from branch_tree.storage.async_base import AsyncStorageBackend
from branch_tree.storage.async_memory import AsyncInMemoryBackend

# Tab lifecycle
from branch_tree.lifecycle.bridge import LifecycleBridge
from branch_tree.lifecycle.navigation import NavigationTokens
from branch_tree.lifecycle.policy import TabAddedAction, TabAddedDecision, decide_tab_added
from branch_tree.lifecycle.source import InMemoryTabSource, TabData, TabInfo, TabSource

# Structure
from branch_tree.reparent.engine import RejectReason, ReparentEngine
from branch_tree.reparent.drop import DropPlan, DropPlanner, VisibleRow

# Reconciliation
from branch_tree.reconcile.reconciler import ReconcileReport, Reconciler
from branch_tree.reconcile.sleep import SleepPolicy

# Convenience
from branch_tree.convenience import BranchTree

__version__: str = "0.1.0"

__all__ = [
    "__version__",
    # Configuration
    "ConfigError",
    "SleepConfig",
    "TreeConfig",
    "load_config",
    # Tree core
    "ROOT_BRANCH_ID",
    "Branch",
    "BranchNode",
    "BranchStatus",
    "HistoryEntry",
    "BranchStore",
    "TreeIndex",
    "HistoryPosition",
    "HistoryTrack",
    "BranchPersistence",
    "BranchSerializer",
    "SchemaVersionError",
    # Storage backends
    "AsyncStorageBackend",
    "AsyncInMemoryBackend",
    # Tab lifecycle
    "LifecycleBridge",
    "NavigationTokens",
    "TabAddedAction",
    "TabAddedDecision",
    "decide_tab_added",
    "InMemoryTabSource",
    "TabData",
    "TabInfo",
    "TabSource",
    # Structure
    "RejectReason",
    "ReparentEngine",
    "DropPlan",
    "DropPlanner",
    "VisibleRow",
    # Reconciliation
    "ReconcileReport",
    "Reconciler",
    "SleepPolicy",
    # Convenience
    "BranchTree",
]
