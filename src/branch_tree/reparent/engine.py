"""Validated structural moves of branches.

Classes
-------
- RejectReason    — why a move was refused
- ReparentEngine  — validate and apply moves, keeping the tab host in sync
"""
from __future__ import annotations

import logging
from enum import Enum

from branch_tree.lifecycle.source import TabSource
from branch_tree.tree.state import ROOT_BRANCH_ID
from branch_tree.tree.store import BranchStore

logger = logging.getLogger(__name__)


class RejectReason(str, Enum):
    """Reason a reparent request is invalid."""

    UNKNOWN_BRANCH = "unknown_branch"
    IS_ROOT = "is_root"
    UNKNOWN_TARGET = "unknown_target"
    SELF = "self"
    DESCENDANT = "descendant"


class ReparentEngine:
    """Moves branches between parents and sibling slots.

    Every move is validated first; an invalid move changes nothing.

    Parameters
    ----------
    store:
        The branch store to restructure.
    tabs:
        Optional tab host, told about the new parent of a moved tab.
    """

    def __init__(self, store: BranchStore, tabs: TabSource | None = None) -> None:
        self._store = store
        self.tabs = tabs

    def is_descendant(self, ancestor_id: str, branch_id: str) -> bool:
        """Return True if *branch_id* lies in the subtree of *ancestor_id*."""
        return self._store.is_descendant(ancestor_id, branch_id)

    def validate(self, branch_id: str, new_parent_id: str | None) -> RejectReason | None:
        """Check whether *branch_id* may move under *new_parent_id*.

        ``None`` as the target means ROOT.

        Returns
        -------
        RejectReason | None
            None when the move is allowed.
        """
        if branch_id not in self._store:
            return RejectReason.UNKNOWN_BRANCH
        if self._store.is_root(branch_id):
            return RejectReason.IS_ROOT
        target = new_parent_id or ROOT_BRANCH_ID
        if target not in self._store:
            return RejectReason.UNKNOWN_TARGET
        if target == branch_id:
            return RejectReason.SELF
        if self.is_descendant(branch_id, target):
            return RejectReason.DESCENDANT
        return None

    async def reparent(
        self,
        branch_id: str,
        new_parent_id: str | None,
        index: int | None = None,
    ) -> bool:
        """Move *branch_id* under *new_parent_id* at sibling slot *index*.

        Parameters
        ----------
        branch_id:
            The branch to move.
        new_parent_id:
            New parent; ``None`` means ROOT.
        index:
            Sibling slot, clamped to the parent's child count.  When the
            branch stays under the same parent the slot is counted with the
            branch still in place.  ``None`` appends.

        Returns
        -------
        bool
            True when the move was applied.
        """
        reason = self.validate(branch_id, new_parent_id)
        if reason is not None:
            logger.warning(
                "ReparentEngine: refused moving %r under %r (%s)",
                branch_id,
                new_parent_id,
                reason.value,
            )
            return False

        target = new_parent_id or ROOT_BRANCH_ID
        if not await self._store.move(branch_id, target, index):
            return False

        branch = self._store.get(branch_id)
        if self.tabs is not None and branch is not None and branch.tab_id is not None:
            self.tabs.assign_branch(branch.tab_id, branch_id, target)
        logger.debug("ReparentEngine: moved %r under %r at %r", branch_id, target, index)
        return True


__all__ = ["RejectReason", "ReparentEngine"]
