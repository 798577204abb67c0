"""Idle-branch sleep policy.

A branch goes to sleep when it has been inactive for longer than the
configured timeout, unless its tab is the selected one or (optionally) is
playing audio.  Selecting the tab wakes it again (see ``LifecycleBridge``).
"""
from __future__ import annotations

from datetime import datetime, timedelta

from branch_tree.config import SleepConfig
from branch_tree.lifecycle.source import TabInfo
from branch_tree.tree.state import Branch, BranchStatus, utcnow


class SleepPolicy:
    """Decides which branches should be put to sleep.

    Parameters
    ----------
    config:
        Sleep settings.  Defaults to ``SleepConfig()``.
    """

    def __init__(self, config: SleepConfig | None = None) -> None:
        self.config = config or SleepConfig()

    @property
    def timeout(self) -> timedelta:
        return timedelta(seconds=self.config.timeout_s)

    def idle_for(self, branch: Branch, now: datetime | None = None) -> timedelta:
        """Time since *branch* was last active."""
        return (now or utcnow()) - branch.last_active_at

    def should_sleep(
        self,
        branch: Branch,
        tab: TabInfo | None = None,
        now: datetime | None = None,
    ) -> bool:
        """Return True if *branch* should transition to ``sleeping``.

        *tab* is the host's view of the branch's tab; None when the host
        cannot tell, in which case only the idle time counts.
        """
        if branch.is_root or branch.state != BranchStatus.AWAKE:
            return False
        if tab is not None:
            if tab.selected:
                return False
            if tab.audible and self.config.keep_audio_awake:
                return False
        return self.idle_for(branch, now) >= self.timeout


__all__ = ["SleepPolicy"]
