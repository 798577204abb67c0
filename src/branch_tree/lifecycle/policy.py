"""Decision policy for newly opened tabs.

Deciding what a ``tab-added`` event means is kept free of side effects so
the rules can be tested on their own; ``LifecycleBridge`` applies the
decision.

The rules, in order:

1. A tab that already owns a branch (replayed or restored event) is left
   alone.
2. Without a ROOT branch the first tab becomes ROOT.
3. If ROOT exists but its tab is gone, the new tab adopts ROOT.
4. Otherwise the tab gets a new branch under the parent the host named, or
   under ROOT when the host named none or named an unknown branch.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from branch_tree.tree.state import ROOT_BRANCH_ID


class TabAddedAction(str, Enum):
    """What to do with a newly added tab."""

    SKIP = "skip"
    BECOME_ROOT = "become_root"
    REUSE_ROOT = "reuse_root"
    CREATE_CHILD = "create_child"


@dataclass(frozen=True)
class TabAddedDecision:
    action: TabAddedAction
    parent_id: str | None = None


def decide_tab_added(
    *,
    has_branch: bool,
    root_exists: bool,
    root_tab_alive: bool,
    parent_branch_id: str | None = None,
    parent_exists: bool = True,
) -> TabAddedDecision:
    """Classify a ``tab-added`` event.

    Parameters
    ----------
    has_branch:
        The tab is already bound to a branch.
    root_exists:
        A ROOT branch is present in the store.
    root_tab_alive:
        ROOT is bound to a tab that is still open.
    parent_branch_id:
        Parent the host suggested, if any.
    parent_exists:
        Whether *parent_branch_id* names a known branch.

    Returns
    -------
    TabAddedDecision
        ``parent_id`` is set only for ``CREATE_CHILD``.
    """
    if has_branch:
        return TabAddedDecision(TabAddedAction.SKIP)
    if not root_exists:
        return TabAddedDecision(TabAddedAction.BECOME_ROOT)
    if not root_tab_alive:
        return TabAddedDecision(TabAddedAction.REUSE_ROOT)
    if parent_branch_id is None or not parent_exists:
        return TabAddedDecision(TabAddedAction.CREATE_CHILD, ROOT_BRANCH_ID)
    return TabAddedDecision(TabAddedAction.CREATE_CHILD, parent_branch_id)


__all__ = ["TabAddedAction", "TabAddedDecision", "decide_tab_added"]
