"""Periodic and on-demand repair of the branch tree.

The tree can drift from the host's tabs: tabs close without an event
reaching the engine, restored records point at parents that no longer
exist, or a corrupted record closes a parent cycle.  ``Reconciler`` runs
independent passes that bring it back to a consistent shape:

1. cycle pass  — walk every ancestor chain; corrupt links are cut
2. stale pass  — destroy branches whose tab is gone (needs a tab host)
3. orphan pass — reattach parentless or dangling branches to ROOT
4. sleep pass  — put idle branches to sleep (when enabled)

A pass never undoes the work of an earlier one, so running ``reconcile``
twice in a row reports nothing to do the second time.

Classes
-------
- ReconcileReport  — counts of what a run changed
- Reconciler       — runs the passes, debounced requests and the timer
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass

from branch_tree.config import TreeConfig
from branch_tree.lifecycle.source import TabSource
from branch_tree.reconcile.sleep import SleepPolicy
from branch_tree.tree.state import BranchStatus, utcnow
from branch_tree.tree.store import BranchStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    """What a reconciliation run changed.

    Parameters
    ----------
    destroyed:
        Stale branches removed.
    reparented:
        Orphans attached to ROOT.
    isolated:
        Branches cut out of a parent cycle.
    slept:
        Branches put to sleep.
    """

    destroyed: int = 0
    reparented: int = 0
    isolated: int = 0
    slept: int = 0

    @property
    def total(self) -> int:
        return self.destroyed + self.reparented + self.isolated + self.slept

    @property
    def clean(self) -> bool:
        return self.total == 0

    def to_dict(self) -> dict[str, int]:
        return {
            "destroyed": self.destroyed,
            "reparented": self.reparented,
            "isolated": self.isolated,
            "slept": self.slept,
        }


class Reconciler:
    """Keeps the branch tree consistent with the live tabs.

    Parameters
    ----------
    store:
        The branch store to repair.
    tabs:
        Tab host used to tell live tabs from closed ones.  Without one the
        stale pass is skipped.
    config:
        Timing and sleep settings.

    Example
    -------
    ::

        reconciler = Reconciler(store, tabs, TreeConfig(reconcile_interval_s=60))
        report = await reconciler.reconcile()
        reconciler.start()   # delayed first pass, then periodic
        ...
        await reconciler.stop()
    """

    def __init__(
        self,
        store: BranchStore,
        tabs: TabSource | None = None,
        config: TreeConfig | None = None,
    ) -> None:
        self._store = store
        self.tabs = tabs
        self.config = config or TreeConfig()
        self.sleep_policy = SleepPolicy(self.config.sleep)
        self._lock = asyncio.Lock()
        self._timer: asyncio.Task[None] | None = None
        self._debounce: asyncio.Task[None] | None = None
        self._debounce_armed = False
        self.runs = 0
        self.last_report: ReconcileReport | None = None

    @property
    def running(self) -> bool:
        return self._timer is not None and not self._timer.done()

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    async def reconcile(self) -> ReconcileReport:
        """Run every pass once and return what changed."""
        async with self._lock:
            report = ReconcileReport()
            report.isolated = await self._cycle_pass()
            report.destroyed = await self._stale_pass()
            report.reparented = await self._orphan_pass()
            if self.config.sleep.enabled:
                report.slept = await self._sleep_pass()

            self.runs += 1
            self.last_report = report
            if report.clean:
                logger.debug("Reconciler: tree is consistent")
            else:
                logger.info(
                    "Reconciler: destroyed %d stale, reparented %d orphans, "
                    "isolated %d, slept %d",
                    report.destroyed,
                    report.reparented,
                    report.isolated,
                    report.slept,
                )
            return report

    async def _cycle_pass(self) -> int:
        for branch in self._store.get_all():
            self._store.get_ancestors(branch.id)
        isolated = list(dict.fromkeys(self._store.drain_isolated()))
        for branch_id in isolated:
            await self._store.save(branch_id)
        return len(isolated)

    async def _stale_pass(self) -> int:
        if self.tabs is None:
            return 0
        destroyed = 0
        for branch in self._store.get_all():
            if branch.is_root:
                continue
            if branch.tab_id is not None and self.tabs.has_tab(branch.tab_id):
                continue
            if await self._store.destroy(branch.id):
                logger.debug("Reconciler: destroyed stale branch %r (tab %r)", branch.id, branch.tab_id)
                destroyed += 1
        return destroyed

    async def _orphan_pass(self) -> int:
        root = self._store.get_root()
        if root is None:
            return 0
        reparented = 0
        for branch in self._store.get_all():
            if branch.is_root:
                continue
            if branch.parent_id is not None and branch.parent_id in self._store:
                continue
            if await self._store.move(branch.id, root.id):
                logger.debug(
                    "Reconciler: reattached orphan %r (parent was %r)", branch.id, branch.parent_id
                )
                reparented += 1
        return reparented

    async def _sleep_pass(self) -> int:
        now = utcnow()
        slept = 0
        for branch in self._store.get_all():
            tab = None
            if self.tabs is not None and branch.tab_id is not None:
                tab = self.tabs.get_tab(branch.tab_id)
            if not self.sleep_policy.should_sleep(branch, tab, now):
                continue
            if await self._store.update(branch.id, {"state": BranchStatus.SLEEPING}):
                slept += 1
        return slept

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    def request(self) -> None:
        """Schedule a run after ``reconcile_debounce_s``.

        Requests made while one is already waiting are folded into it.
        Must be called from a running event loop.
        """
        if self._debounce_armed:
            return
        self._debounce_armed = True
        self._debounce = asyncio.get_running_loop().create_task(self._debounced())

    async def flush(self) -> None:
        """Wait for a pending requested run to finish."""
        if self._debounce is not None and not self._debounce.done():
            await self._debounce

    def start(self) -> None:
        """Start the periodic timer: first run after ``startup_delay_s``."""
        if self.running:
            return
        self._timer = asyncio.get_running_loop().create_task(self._periodic())
        logger.debug(
            "Reconciler: timer started (delay %.2fs, interval %.2fs)",
            self.config.startup_delay_s,
            self.config.reconcile_interval_s,
        )

    async def stop(self) -> None:
        """Cancel the timer and any pending requested run."""
        for task in (self._timer, self._debounce):
            if task is not None and not task.done():
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        self._timer = None
        self._debounce = None
        self._debounce_armed = False

    async def _debounced(self) -> None:
        await asyncio.sleep(self.config.reconcile_debounce_s)
        self._debounce_armed = False
        await self._run_guarded()

    async def _periodic(self) -> None:
        await asyncio.sleep(self.config.startup_delay_s)
        while True:
            await self._run_guarded()
            if self.config.reconcile_interval_s <= 0:
                return
            await asyncio.sleep(self.config.reconcile_interval_s)

    async def _run_guarded(self) -> None:
        try:
            await self.reconcile()
        except Exception:  # noqa: BLE001
            logger.exception("Reconciler: reconciliation run failed")

    def __repr__(self) -> str:
        return f"Reconciler(runs={self.runs}, running={self.running})"


__all__ = ["ReconcileReport", "Reconciler"]
