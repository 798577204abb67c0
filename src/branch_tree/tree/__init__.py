"""Branch tree core: models, store, structural index and history.

Classes
-------
Branch
    A tree node bound to one tab, with its navigation log.
BranchStore
    Authoritative in-memory branch map with best-effort persistence.
TreeIndex
    Ordered parent → children index and tab lookup.
HistoryTrack
    Per-branch navigation log with smart branching.
BranchPersistence
    Failure-swallowing write-through to an async storage backend.
BranchSerializer
    JSON / YAML branch records with schema versioning.
"""
from __future__ import annotations

from branch_tree.tree.history import HistoryPosition, HistoryTrack
from branch_tree.tree.index import TreeIndex
from branch_tree.tree.persistence import BranchPersistence
from branch_tree.tree.serializer import BranchSerializer, SchemaVersionError
from branch_tree.tree.state import (
    ROOT_BRANCH_ID,
    Branch,
    BranchNode,
    BranchStatus,
    HistoryEntry,
)
from branch_tree.tree.store import BranchStore

__all__ = [
    "Branch",
    "BranchNode",
    "BranchPersistence",
    "BranchSerializer",
    "BranchStatus",
    "BranchStore",
    "HistoryEntry",
    "HistoryPosition",
    "HistoryTrack",
    "ROOT_BRANCH_ID",
    "SchemaVersionError",
    "TreeIndex",
]
