"""Tree repair: stale-branch cleanup, orphan reattachment and idle sleep."""
from __future__ import annotations

from branch_tree.reconcile.reconciler import ReconcileReport, Reconciler
from branch_tree.reconcile.sleep import SleepPolicy

__all__ = ["ReconcileReport", "Reconciler", "SleepPolicy"]
