"""Branch record serialization with schema versioning.

Supports JSON and YAML round-trips.  The schema version is embedded in
every serialised record under ``schemaVersion`` so that future readers can
perform migrations.  Records written before versioning existed carry no
version at all and are read as the current schema.

Classes
-------
- BranchSerializer  — serialize/deserialize Branch records to JSON or YAML
"""
from __future__ import annotations

import json
from typing import Literal, Sequence

import yaml

from branch_tree.tree.state import Branch, BranchNode

_SUPPORTED_SCHEMA_VERSIONS: frozenset[str] = frozenset({"1.0"})
_VERSION_KEY = "schemaVersion"


class SchemaVersionError(ValueError):
    """Raised when a serialised record uses an unsupported schema version."""

    def __init__(self, version: str) -> None:
        self.version = version
        supported = ", ".join(sorted(_SUPPORTED_SCHEMA_VERSIONS))
        super().__init__(
            f"Unsupported schema version {version!r}. "
            f"Supported versions: {supported}"
        )


class BranchSerializer:
    """Serialize and deserialize ``Branch`` records.

    Parameters
    ----------
    max_history_entries:
        History cap applied to every decoded record.  Stores written by
        older builds may hold longer logs; they are trimmed on the way in.
    """

    def __init__(self, max_history_entries: int = 50) -> None:
        self.max_history_entries = max_history_entries

    # ------------------------------------------------------------------
    # JSON
    # ------------------------------------------------------------------

    def to_json(self, branch: Branch, *, indent: int | None = None) -> str:
        """Serialise a ``Branch`` to its persisted JSON record."""
        return json.dumps(self._record(branch), indent=indent, default=str)

    def from_json(self, raw: str) -> Branch:
        """Deserialize a ``Branch`` from a JSON record.

        Raises
        ------
        SchemaVersionError
            If ``schemaVersion`` is present and unsupported.
        json.JSONDecodeError
            If ``raw`` is not valid JSON.
        pydantic.ValidationError
            If the record does not describe a branch.
        """
        data: dict[str, object] = json.loads(raw)
        return self._deserialize(data)

    # ------------------------------------------------------------------
    # YAML
    # ------------------------------------------------------------------

    def to_yaml(self, branch: Branch) -> str:
        """Serialise a ``Branch`` to a YAML document."""
        return yaml.dump(
            self._record(branch), default_flow_style=False, allow_unicode=True, sort_keys=True
        )

    def from_yaml(self, raw: str) -> Branch:
        """Deserialize a ``Branch`` from a YAML document."""
        data: dict[str, object] = yaml.safe_load(raw)
        return self._deserialize(data)

    # ------------------------------------------------------------------
    # Format dispatch
    # ------------------------------------------------------------------

    def serialize(self, branch: Branch, format: Literal["json", "yaml"] = "json") -> str:
        if format == "yaml":
            return self.to_yaml(branch)
        return self.to_json(branch)

    def deserialize(self, raw: str, format: Literal["json", "yaml"] = "json") -> Branch:
        if format == "yaml":
            return self.from_yaml(raw)
        return self.from_json(raw)

    def dump_tree(
        self, nodes: Sequence[BranchNode], format: Literal["json", "yaml"] = "json"
    ) -> str:
        """Serialise a nested tree (as returned by ``get_tree``) in one document."""
        data = {
            _VERSION_KEY: Branch.SCHEMA_VERSION,
            "tree": [node.to_dict() for node in nodes],
        }
        if format == "yaml":
            return yaml.dump(data, default_flow_style=False, allow_unicode=True, sort_keys=False)
        return json.dumps(data, indent=2, default=str)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _record(self, branch: Branch) -> dict[str, object]:
        data = branch.to_record()
        data[_VERSION_KEY] = Branch.SCHEMA_VERSION
        return data

    def _deserialize(self, data: dict[str, object]) -> Branch:
        if not isinstance(data, dict):
            raise ValueError(f"Branch record must be a mapping, got {type(data).__name__}.")
        version = str(data.pop(_VERSION_KEY, Branch.SCHEMA_VERSION))
        if version not in _SUPPORTED_SCHEMA_VERSIONS:
            raise SchemaVersionError(version)

        history = data.get("history")
        if isinstance(history, list) and len(history) > self.max_history_entries:
            # Trim before validation so the cursor clamp sees the final length.
            excess = len(history) - self.max_history_entries
            data["history"] = history[-self.max_history_entries:]
            index = data.get("historyIndex")
            if isinstance(index, int):
                data["historyIndex"] = max(0, index - excess)

        return Branch.model_validate(data)


__all__ = ["BranchSerializer", "SchemaVersionError"]
