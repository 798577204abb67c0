"""Unit tests for branch_tree.tree.state."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from branch_tree.tree.state import (
    ROOT_BRANCH_ID,
    Branch,
    BranchNode,
    BranchStatus,
    HistoryEntry,
    generate_branch_id,
)


def _entries(count: int) -> list[HistoryEntry]:
    return [HistoryEntry(url=f"https://site/{i}", title=f"Page {i}") for i in range(count)]


# ---------------------------------------------------------------------------
# Identifiers
# ---------------------------------------------------------------------------


class TestBranchIds:
    def test_generated_ids_are_prefixed(self) -> None:
        assert generate_branch_id().startswith("br_")

    def test_generated_ids_are_unique(self) -> None:
        assert len({generate_branch_id() for _ in range(200)}) == 200

    def test_root_id_constant(self) -> None:
        assert ROOT_BRANCH_ID == "br_root"

    def test_default_branch_gets_fresh_id(self) -> None:
        assert Branch().id != Branch().id


# ---------------------------------------------------------------------------
# Branch model
# ---------------------------------------------------------------------------


class TestBranch:
    def test_defaults(self) -> None:
        branch = Branch()
        assert branch.tab_id is None
        assert branch.parent_id is None
        assert branch.history == []
        assert branch.history_index == -1
        assert branch.state == BranchStatus.AWAKE
        assert branch.is_root is False
        assert branch.created_at.tzinfo is not None

    def test_numeric_tab_id_coerced_to_str(self) -> None:
        assert Branch(tab_id=42).tab_id == "42"

    def test_history_index_clamped_to_length(self) -> None:
        branch = Branch(history=_entries(3), history_index=10)
        assert branch.history_index == 2

    def test_history_index_clamped_below(self) -> None:
        branch = Branch(history=_entries(2), history_index=-5)
        assert branch.history_index == -1

    def test_legacy_none_cursor_points_at_tail(self) -> None:
        branch = Branch(history=_entries(4), history_index=None)
        assert branch.cursor == 3
        assert branch.current_entry is not None
        assert branch.current_entry.url == "https://site/3"

    def test_current_entry_none_for_empty_history(self) -> None:
        assert Branch().current_entry is None

    def test_invalid_state_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Branch(state="hibernating")

    def test_accepts_camel_case_record(self) -> None:
        branch = Branch.model_validate(
            {"id": "br_x", "tabId": "t1", "parentId": "br_root", "historyIndex": -1}
        )
        assert branch.tab_id == "t1"
        assert branch.parent_id == "br_root"


class TestTrimHistory:
    def test_no_trim_under_cap(self) -> None:
        branch = Branch(history=_entries(5), history_index=4)
        assert branch.trim_history(50) == 0
        assert len(branch.history) == 5

    def test_trim_keeps_newest_and_shifts_cursor(self) -> None:
        branch = Branch(history=_entries(60), history_index=55)
        evicted = branch.trim_history(50)
        assert evicted == 10
        assert len(branch.history) == 50
        assert branch.history[0].url == "https://site/10"
        assert branch.history_index == 45

    def test_cursor_never_negative_after_trim(self) -> None:
        branch = Branch(history=_entries(60), history_index=3)
        branch.trim_history(50)
        assert branch.history_index == 0


class TestRecords:
    def test_to_record_uses_camel_case(self) -> None:
        record = Branch(id="br_a", tab_id="t", parent_id=ROOT_BRANCH_ID).to_record()
        assert record["tabId"] == "t"
        assert record["parentId"] == ROOT_BRANCH_ID
        assert "historyIndex" in record
        assert "lastActiveAt" in record
        assert "tab_id" not in record

    def test_to_record_is_json_safe(self) -> None:
        when = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        record = Branch(created_at=when).to_record()
        assert isinstance(record["createdAt"], str)
        assert record["state"] == "awake"

    def test_summary_line_marks_sleeping(self) -> None:
        branch = Branch(id="br_s", title="Docs", state=BranchStatus.SLEEPING)
        assert branch.summary_line() == "Docs (br_s) [sleeping]"

    def test_summary_line_falls_back_to_url(self) -> None:
        assert Branch(id="br_u", url="https://a").summary_line() == "https://a (br_u)"


# ---------------------------------------------------------------------------
# BranchNode
# ---------------------------------------------------------------------------


class TestBranchNode:
    def _tree(self) -> BranchNode:
        leaf = BranchNode(branch=Branch(id="br_leaf"))
        middle = BranchNode(branch=Branch(id="br_mid"), children=[leaf])
        return BranchNode(branch=Branch(id="br_top"), children=[middle])

    def test_walk_yields_depths_in_display_order(self) -> None:
        pairs = [(depth, branch.id) for depth, branch in self._tree().walk()]
        assert pairs == [(0, "br_top"), (1, "br_mid"), (2, "br_leaf")]

    def test_to_dict_nests_children(self) -> None:
        data = self._tree().to_dict()
        assert data["id"] == "br_top"
        assert data["children"][0]["children"][0]["id"] == "br_leaf"
