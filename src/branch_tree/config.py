"""Engine configuration.

``TreeConfig`` gathers every tunable of the engine in one validated model.
It can be built in code or loaded from a YAML file whose top level is
either the settings mapping itself or a mapping with a ``branch_tree``
section::

    branch_tree:
      max_history_entries: 50
      reconcile_interval_s: 30
      sleep:
        enabled: true
        timeout_s: 300

Classes
-------
- SleepConfig  — idle-branch sleep settings
- TreeConfig   — top-level engine settings
- ConfigError  — raised for unreadable or invalid configuration files
"""
from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

_SECTION = "branch_tree"


class ConfigError(ValueError):
    """Raised when a configuration file cannot be read or validated."""


class SleepConfig(BaseModel):
    """Settings for putting idle branches to sleep.

    Parameters
    ----------
    enabled:
        Run the sleep pass during reconciliation.  Default: False.
    timeout_s:
        Seconds of inactivity before an awake branch is put to sleep.
    keep_audio_awake:
        Never put a branch to sleep while its tab is playing audio.
    """

    enabled: bool = False
    timeout_s: float = Field(default=300.0, gt=0)
    keep_audio_awake: bool = True


class TreeConfig(BaseModel):
    """Configuration for the branch tree engine.

    Parameters
    ----------
    max_history_entries:
        Navigation log cap per branch.  Default: 50.
    reconcile_interval_s:
        Seconds between periodic reconciliation passes.  0 disables the
        periodic timer.
    reconcile_debounce_s:
        Delay used to coalesce reconciliation requests after tab closures.
    startup_delay_s:
        Delay before the first reconciliation pass after ``start``, giving
        the tab host time to restore its tabs.
    db_path:
        SQLite file for the durable store.  ``None`` keeps the tree in
        memory only.
    indent_per_level:
        Horizontal pixels per depth level used by drop-target inference.
    base_offset:
        Horizontal pixels from the tree's left edge to depth 0.
    sleep:
        Idle-branch sleep settings.
    """

    max_history_entries: int = Field(default=50, ge=1)
    reconcile_interval_s: float = Field(default=30.0, ge=0)
    reconcile_debounce_s: float = Field(default=0.1, ge=0)
    startup_delay_s: float = Field(default=0.5, ge=0)
    db_path: Path | None = None
    indent_per_level: float = Field(default=14.0, gt=0)
    base_offset: float = 10.0
    sleep: SleepConfig = Field(default_factory=SleepConfig)

    model_config = {"frozen": True}


def config_from_mapping(data: dict[str, Any] | None) -> TreeConfig:
    """Build a ``TreeConfig`` from a parsed mapping.

    Raises
    ------
    ConfigError
        If the mapping does not validate.
    """
    if data is None:
        return TreeConfig()
    if not isinstance(data, dict):
        raise ConfigError(f"Configuration must be a mapping, got {type(data).__name__}.")
    section = data.get(_SECTION, data)
    if not isinstance(section, dict):
        raise ConfigError(f"Section {_SECTION!r} must be a mapping.")
    try:
        return TreeConfig.model_validate(section)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def load_config(path: str | Path | None) -> TreeConfig:
    """Load a ``TreeConfig`` from a YAML file.

    ``None`` returns the defaults.

    Raises
    ------
    ConfigError
        If the file is missing, is not valid YAML, or fails validation.
    """
    if path is None:
        return TreeConfig()
    config_path = Path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file {str(config_path)!r}: {exc}") from exc
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {str(config_path)!r}: {exc}") from exc
    return config_from_mapping(data)


__all__ = ["ConfigError", "SleepConfig", "TreeConfig", "config_from_mapping", "load_config"]
