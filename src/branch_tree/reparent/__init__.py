"""Structural moves and drag-and-drop target inference.

Classes
-------
ReparentEngine
    Validated moves between parents and sibling slots.
DropPlanner
    Pointer position over rendered rows → drop target.
"""
from __future__ import annotations

from branch_tree.reparent.drop import DropPlan, DropPlanner, VisibleRow
from branch_tree.reparent.engine import RejectReason, ReparentEngine

__all__ = [
    "DropPlan",
    "DropPlanner",
    "RejectReason",
    "ReparentEngine",
    "VisibleRow",
]
