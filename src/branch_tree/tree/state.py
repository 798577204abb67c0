"""Branch tree domain models.

All types are Pydantic BaseModel subclasses to enable runtime validation
and JSON serialisation.  Persisted records use camelCase keys
(``tabId``, ``parentId``, ``historyIndex`` ...) through an alias generator,
while Python code uses the snake_case attribute names.

Classes
-------
- BranchStatus   — enum for the awake/sleeping lifecycle state
- HistoryEntry   — one navigation step inside a branch
- Branch         — a tree node bound to (at most) one tab
- BranchNode     — a branch with its nested children, as built by ``get_tree``
"""
from __future__ import annotations

from collections.abc import Iterator
from datetime import datetime, timezone
from enum import Enum
from typing import ClassVar
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

ROOT_BRANCH_ID = "br_root"
ROOT_URL = ""
ROOT_TITLE = "Home"
DEFAULT_MAX_HISTORY = 50


def generate_branch_id() -> str:
    """Return a fresh ``br_``-prefixed branch identifier."""
    return f"br_{uuid4().hex[:12]}"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BranchStatus(str, Enum):
    """Whether the tab behind a branch is loaded or put to sleep."""

    AWAKE = "awake"
    SLEEPING = "sleeping"


class HistoryEntry(BaseModel):
    """A single page visit recorded in a branch's navigation log.

    Parameters
    ----------
    url:
        Address of the visited page.
    title:
        Page title.  May be empty until the page reports one.
    timestamp:
        When the visit was recorded (UTC).
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    url: str
    title: str = ""
    timestamp: datetime = Field(default_factory=utcnow)


class Branch(BaseModel):
    """A node of the branch tree.

    Parameters
    ----------
    id:
        Unique branch identifier (``br_...``).  ROOT always uses
        ``br_root``.
    tab_id:
        External tab this branch is bound to.  ``None`` once the tab is
        gone or before it is assigned.
    parent_id:
        Parent branch identifier.  ``None`` only for ROOT and for orphans
        awaiting reconciliation.
    url:
        Current url of the branch (follows the latest history entry).
    title:
        Current page title.
    history:
        Ordered navigation log, oldest first.
    history_index:
        Cursor into ``history``; ``-1`` when empty.  Legacy records may
        carry ``None``, which is read as "points at the last entry".
    created_at:
        When the branch was created (UTC).
    last_active_at:
        When the branch's tab was last selected (UTC).
    state:
        ``awake`` or ``sleeping``.
    position:
        Explicit order among the siblings sharing ``parent_id``.
    is_root:
        True only for the ROOT branch.
    """

    SCHEMA_VERSION: ClassVar[str] = "1.0"

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=generate_branch_id)
    tab_id: str | None = None
    parent_id: str | None = None
    url: str = ""
    title: str = ""
    history: list[HistoryEntry] = Field(default_factory=list)
    history_index: int | None = -1
    created_at: datetime = Field(default_factory=utcnow)
    last_active_at: datetime = Field(default_factory=utcnow)
    state: BranchStatus = BranchStatus.AWAKE
    position: int = 0
    is_root: bool = False

    @field_validator("tab_id", mode="before")
    @classmethod
    def _coerce_tab_id(cls, value: object) -> object:
        # Hosts may hand out numeric tab ids.
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @model_validator(mode="after")
    def _clamp_history_index(self) -> Branch:
        if self.history_index is not None:
            self.history_index = max(-1, min(self.history_index, len(self.history) - 1))
        return self

    # ------------------------------------------------------------------
    # History cursor helpers
    # ------------------------------------------------------------------

    @property
    def cursor(self) -> int:
        """The effective history cursor (legacy ``None`` means the tail)."""
        if self.history_index is None:
            return len(self.history) - 1
        return self.history_index

    @property
    def current_entry(self) -> HistoryEntry | None:
        """The history entry under the cursor, or None for an empty log."""
        cursor = self.cursor
        if 0 <= cursor < len(self.history):
            return self.history[cursor]
        return None

    def trim_history(self, max_entries: int = DEFAULT_MAX_HISTORY) -> int:
        """Drop the oldest entries beyond *max_entries*.

        The cursor is shifted down by the number of evicted entries and
        never drops below 0 while entries remain.

        Returns
        -------
        int
            The number of entries evicted.
        """
        excess = len(self.history) - max_entries
        if excess <= 0:
            return 0
        self.history = self.history[-max_entries:]
        if self.history_index is not None:
            self.history_index = max(0, self.history_index - excess)
        return excess

    # ------------------------------------------------------------------
    # Records
    # ------------------------------------------------------------------

    def to_record(self) -> dict[str, object]:
        """Return the persisted camelCase record for this branch."""
        return self.model_dump(mode="json", by_alias=True)

    def summary_line(self) -> str:
        """Return a one-line human-readable description."""
        label = self.title or self.url or "(empty)"
        sleeping = " [sleeping]" if self.state == BranchStatus.SLEEPING else ""
        return f"{label} ({self.id}){sleeping}"


class BranchNode(BaseModel):
    """A branch together with its nested children."""

    branch: Branch
    children: list[BranchNode] = Field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        """Flatten into the branch record with a nested ``children`` list."""
        data = self.branch.to_record()
        data["children"] = [child.to_dict() for child in self.children]
        return data

    def walk(self, depth: int = 0) -> Iterator[tuple[int, Branch]]:
        """Yield ``(depth, branch)`` pairs in display order."""
        yield depth, self.branch
        for child in self.children:
            yield from child.walk(depth + 1)


__all__ = [
    "Branch",
    "BranchNode",
    "BranchStatus",
    "DEFAULT_MAX_HISTORY",
    "HistoryEntry",
    "ROOT_BRANCH_ID",
    "ROOT_TITLE",
    "ROOT_URL",
    "generate_branch_id",
    "utcnow",
]
