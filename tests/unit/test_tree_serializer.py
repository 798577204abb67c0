"""Unit tests for branch_tree.tree.serializer.

Tests cover JSON and YAML records, schema version enforcement, history
trimming on decode and the nested tree dump.
"""
from __future__ import annotations

import json

import pytest
import yaml

from branch_tree.tree.serializer import BranchSerializer, SchemaVersionError
from branch_tree.tree.state import Branch, BranchNode, HistoryEntry


def _make_branch(**kwargs: object) -> Branch:
    history = [
        HistoryEntry(url="https://a.example", title="A"),
        HistoryEntry(url="https://b.example", title="B"),
    ]
    defaults: dict[str, object] = {
        "id": "br_test",
        "tab_id": "tab-1",
        "parent_id": "br_root",
        "url": "https://b.example",
        "title": "B",
        "history": history,
        "history_index": 1,
    }
    defaults.update(kwargs)
    return Branch(**defaults)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# SchemaVersionError
# ---------------------------------------------------------------------------


class TestSchemaVersionError:
    def test_message_contains_version(self) -> None:
        assert "99.0" in str(SchemaVersionError("99.0"))

    def test_version_attribute(self) -> None:
        assert SchemaVersionError("2.0").version == "2.0"

    def test_is_value_error(self) -> None:
        assert isinstance(SchemaVersionError("x"), ValueError)


# ---------------------------------------------------------------------------
# JSON
# ---------------------------------------------------------------------------


class TestBranchSerializerJSON:
    def test_embeds_schema_version(self) -> None:
        data = json.loads(BranchSerializer().to_json(_make_branch()))
        assert data["schemaVersion"] == "1.0"
        assert data["tabId"] == "tab-1"

    def test_round_trip_preserves_fields(self) -> None:
        serializer = BranchSerializer()
        original = _make_branch()
        restored = serializer.from_json(serializer.to_json(original))
        assert restored == original

    def test_unsupported_version_raises(self) -> None:
        data = json.loads(BranchSerializer().to_json(_make_branch()))
        data["schemaVersion"] = "9.9"
        with pytest.raises(SchemaVersionError):
            BranchSerializer().from_json(json.dumps(data))

    def test_missing_version_read_as_current(self) -> None:
        data = json.loads(BranchSerializer().to_json(_make_branch()))
        del data["schemaVersion"]
        assert BranchSerializer().from_json(json.dumps(data)).id == "br_test"

    def test_non_mapping_rejected(self) -> None:
        with pytest.raises(ValueError):
            BranchSerializer().from_json("[1, 2]")

    def test_legacy_null_history_index(self) -> None:
        data = json.loads(BranchSerializer().to_json(_make_branch()))
        data["historyIndex"] = None
        branch = BranchSerializer().from_json(json.dumps(data))
        assert branch.cursor == 1


class TestHistoryTrimOnDecode:
    def test_long_history_trimmed_and_cursor_shifted(self) -> None:
        history = [HistoryEntry(url=f"https://p/{i}") for i in range(60)]
        branch = _make_branch(history=history, history_index=59)
        serializer = BranchSerializer(max_history_entries=50)
        restored = serializer.from_json(BranchSerializer(max_history_entries=100).to_json(branch))
        assert len(restored.history) == 50
        assert restored.history_index == 49
        assert restored.history[0].url == "https://p/10"

    def test_cursor_in_evicted_range_lands_on_zero(self) -> None:
        history = [HistoryEntry(url=f"https://p/{i}") for i in range(55)]
        branch = _make_branch(history=history, history_index=2)
        restored = BranchSerializer(max_history_entries=50).from_json(
            BranchSerializer().to_json(branch)
        )
        assert restored.history_index == 0


# ---------------------------------------------------------------------------
# YAML and dispatch
# ---------------------------------------------------------------------------


class TestBranchSerializerYAML:
    def test_round_trip(self) -> None:
        serializer = BranchSerializer()
        original = _make_branch()
        assert serializer.from_yaml(serializer.to_yaml(original)) == original

    def test_dispatch(self) -> None:
        serializer = BranchSerializer()
        branch = _make_branch()
        raw = serializer.serialize(branch, format="yaml")
        assert yaml.safe_load(raw)["id"] == "br_test"
        assert serializer.deserialize(raw, format="yaml").id == "br_test"
        assert serializer.deserialize(serializer.serialize(branch)).id == "br_test"


class TestDumpTree:
    def test_json_dump_nests_children(self) -> None:
        child = BranchNode(branch=_make_branch(id="br_child"))
        root = BranchNode(branch=Branch(id="br_root", is_root=True), children=[child])
        data = json.loads(BranchSerializer().dump_tree([root]))
        assert data["schemaVersion"] == "1.0"
        assert data["tree"][0]["children"][0]["id"] == "br_child"

    def test_yaml_dump(self) -> None:
        root = BranchNode(branch=Branch(id="br_root", is_root=True))
        data = yaml.safe_load(BranchSerializer().dump_tree([root], format="yaml"))
        assert data["tree"][0]["id"] == "br_root"
