"""Drop-target inference for drag-and-drop in a rendered tree.

The tree renders ROOT's children at depth 0 and indents each level by a
fixed number of pixels.  Given the visible rows and a pointer position,
``DropPlanner`` works out where a dragged branch would land: its new
parent, its sibling slot and the depth the drop indicator should show.

Coordinates are relative to the tree's top-left corner.

Classes
-------
- VisibleRow   — one rendered row
- DropPlan     — resolved drop target
- DropPlanner  — pointer position → DropPlan
"""
from __future__ import annotations

import logging
import math
from collections.abc import Collection, Sequence
from dataclasses import dataclass

from branch_tree.reparent.engine import ReparentEngine
from branch_tree.tree.state import ROOT_BRANCH_ID
from branch_tree.tree.store import BranchStore

logger = logging.getLogger(__name__)

DEFAULT_INDENT_PER_LEVEL = 14.0
DEFAULT_BASE_OFFSET = 10.0


@dataclass(frozen=True)
class VisibleRow:
    """A rendered tree row.

    Parameters
    ----------
    branch_id:
        Branch shown by the row.
    depth:
        Indentation level; ROOT's children are at depth 0.
    top:
        Vertical offset of the row's top edge.
    height:
        Row height.
    """

    branch_id: str
    depth: int
    top: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def middle(self) -> float:
        return self.top + self.height / 2


@dataclass(frozen=True)
class DropPlan:
    """Where a drop would land.

    ``parent_id`` and ``index`` are ready to hand to
    ``ReparentEngine.reparent``.  ``target_id`` is the hovered row's branch,
    None when the tree shows no rows.
    """

    parent_id: str
    index: int
    depth: int
    insert_after: bool
    valid: bool
    target_id: str | None = None


class DropPlanner:
    """Infers drop targets from pointer positions.

    Parameters
    ----------
    store:
        Branch store the rows were rendered from.
    engine:
        Used to validate the inferred move.  Defaults to a new engine over
        *store*.
    indent_per_level:
        Horizontal pixels per depth level.
    base_offset:
        Horizontal pixels from the tree's left edge to depth 0.
    """

    def __init__(
        self,
        store: BranchStore,
        engine: ReparentEngine | None = None,
        *,
        indent_per_level: float = DEFAULT_INDENT_PER_LEVEL,
        base_offset: float = DEFAULT_BASE_OFFSET,
    ) -> None:
        if indent_per_level <= 0:
            raise ValueError(f"indent_per_level must be > 0, got {indent_per_level!r}.")
        self._store = store
        self._engine = engine or ReparentEngine(store)
        self.indent_per_level = indent_per_level
        self.base_offset = base_offset

    def plan(
        self,
        rows: Sequence[VisibleRow],
        x: float,
        y: float,
        dragged_id: str,
        collapsed: Collection[str] = (),
    ) -> DropPlan:
        """Resolve the drop target for a pointer at (*x*, *y*).

        Parameters
        ----------
        rows:
            Visible rows, top to bottom.  The dragged row is ignored.
        x, y:
            Pointer position relative to the tree.
        dragged_id:
            Branch being dragged.
        collapsed:
            Branches whose children are hidden.
        """
        candidates = [row for row in rows if row.branch_id != dragged_id]
        if not candidates:
            return DropPlan(
                parent_id=ROOT_BRANCH_ID,
                index=0,
                depth=0,
                insert_after=False,
                valid=self._engine.validate(dragged_id, ROOT_BRANCH_ID) is None,
            )

        hovered, insert_after = self._hovered_row(candidates, y)
        wanted = math.floor((x - self.base_offset) / self.indent_per_level)
        if insert_after:
            expanded = self._has_visible_children(hovered.branch_id, collapsed)
            max_depth = hovered.depth if expanded else hovered.depth + 1
        else:
            max_depth = hovered.depth
        depth = max(0, min(max_depth, wanted))

        parent_id = self._parent_for_depth(hovered, depth)
        index = self._insert_index(parent_id, hovered.branch_id, insert_after)
        valid = self._engine.validate(dragged_id, parent_id) is None
        logger.debug(
            "DropPlanner: %r over %r (%s) -> parent %r index %d depth %d",
            dragged_id,
            hovered.branch_id,
            "after" if insert_after else "before",
            parent_id,
            index,
            depth,
        )
        return DropPlan(
            parent_id=parent_id,
            index=index,
            depth=depth,
            insert_after=insert_after,
            valid=valid,
            target_id=hovered.branch_id,
        )

    def indicator_offset(self, depth: int) -> float:
        """Horizontal position of the drop indicator for *depth*."""
        return self.base_offset + depth * self.indent_per_level

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _hovered_row(rows: Sequence[VisibleRow], y: float) -> tuple[VisibleRow, bool]:
        closest = rows[0]
        closest_distance = math.inf
        for row in rows:
            if row.top <= y <= row.bottom:
                return row, y > row.middle
            distance = abs(y - row.middle)
            if distance < closest_distance:
                closest, closest_distance = row, distance
        return closest, y > closest.middle

    def _has_visible_children(self, branch_id: str, collapsed: Collection[str]) -> bool:
        if branch_id in collapsed:
            return False
        return bool(self._store.get_children(branch_id))

    def _parent_for_depth(self, hovered: VisibleRow, depth: int) -> str:
        branch = self._store.get(hovered.branch_id)
        if branch is None:
            return ROOT_BRANCH_ID
        if depth > hovered.depth:
            return branch.id
        if depth == hovered.depth:
            return branch.parent_id or ROOT_BRANCH_ID
        # Outdent: the new parent sits at depth - 1, i.e. (hovered.depth - depth)
        # levels above the hovered row's parent.
        ancestors = self._store.get_ancestors(branch.id)
        level = hovered.depth - depth
        if level < len(ancestors):
            return ancestors[level].id
        return ROOT_BRANCH_ID

    def _insert_index(self, parent_id: str, target_id: str, insert_after: bool) -> int:
        siblings = self._store.get_children(parent_id)
        for position, sibling in enumerate(siblings):
            if sibling.id == target_id:
                return position + 1 if insert_after else position
        return len(siblings)


__all__ = [
    "DEFAULT_BASE_OFFSET",
    "DEFAULT_INDENT_PER_LEVEL",
    "DropPlan",
    "DropPlanner",
    "VisibleRow",
]
