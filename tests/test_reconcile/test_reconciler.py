"""Tests for branch_tree.reconcile.reconciler."""
from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from branch_tree.config import SleepConfig, TreeConfig
from branch_tree.lifecycle.source import InMemoryTabSource, TabInfo
from branch_tree.reconcile.reconciler import ReconcileReport, Reconciler
from branch_tree.storage.async_memory import AsyncInMemoryBackend
from branch_tree.tree.persistence import BranchPersistence
from branch_tree.tree.state import ROOT_BRANCH_ID, Branch, BranchStatus, utcnow
from branch_tree.tree.store import BranchStore

FAST = TreeConfig(reconcile_debounce_s=0.01, startup_delay_s=0.0, reconcile_interval_s=0.01)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _tabs(*tab_ids: str) -> InMemoryTabSource:
    tabs = InMemoryTabSource()
    tabs.seed(*(TabInfo(tab_id=tab_id) for tab_id in tab_ids))
    return tabs


async def _chain(store: BranchStore) -> tuple[str, str]:
    """ROOT(t0) → parent(t1) → child(t2)."""
    await store.ensure_root("t0")
    parent = await store.create("t1", ROOT_BRANCH_ID, "https://parent")
    child = await store.create("t2", parent, "https://child")
    return parent, child


class ExplodingTabs(InMemoryTabSource):
    def has_tab(self, tab_id: object) -> bool:
        raise RuntimeError("tab host unavailable")


# ===========================================================================
# ReconcileReport
# ===========================================================================


class TestReconcileReport:
    def test_totals(self) -> None:
        report = ReconcileReport(destroyed=1, reparented=2)
        assert report.total == 3
        assert report.clean is False
        assert ReconcileReport().clean is True

    def test_to_dict(self) -> None:
        assert ReconcileReport(slept=4).to_dict() == {
            "destroyed": 0,
            "reparented": 0,
            "isolated": 0,
            "slept": 4,
        }


# ===========================================================================
# Passes
# ===========================================================================


class TestStalePass:
    @pytest.mark.asyncio
    async def test_destroys_branches_of_closed_tabs(self) -> None:
        store = BranchStore()
        parent, child = await _chain(store)
        report = await Reconciler(store, _tabs("t0", "t1")).reconcile()
        assert report.destroyed == 1
        assert store.get(child) is None
        assert store.get(parent) is not None

    @pytest.mark.asyncio
    async def test_children_of_stale_branch_are_rescued(self) -> None:
        store = BranchStore()
        parent, child = await _chain(store)
        report = await Reconciler(store, _tabs("t0", "t2")).reconcile()
        assert (report.destroyed, report.reparented) == (1, 1)
        assert store.get(child).parent_id == ROOT_BRANCH_ID

    @pytest.mark.asyncio
    async def test_unbound_branch_is_stale(self) -> None:
        store = BranchStore()
        await _chain(store)
        unbound = await store.create(None, ROOT_BRANCH_ID)
        report = await Reconciler(store, _tabs("t0", "t1", "t2")).reconcile()
        assert report.destroyed == 1
        assert store.get(unbound) is None

    @pytest.mark.asyncio
    async def test_root_is_kept_without_its_tab(self) -> None:
        store = BranchStore()
        await _chain(store)
        await Reconciler(store, _tabs("t1", "t2")).reconcile()
        assert store.get_root() is not None

    @pytest.mark.asyncio
    async def test_skipped_without_tab_host(self) -> None:
        store = BranchStore()
        await _chain(store)
        report = await Reconciler(store).reconcile()
        assert report.destroyed == 0
        assert store.count() == 3


class TestOrphanPass:
    @pytest.mark.asyncio
    async def test_reattaches_orphans_to_root(self) -> None:
        store = BranchStore()
        parent, child = await _chain(store)
        await store.destroy(parent)
        assert store.get(child).parent_id is None
        report = await Reconciler(store).reconcile()
        assert report.reparented == 1
        assert store.get(child).parent_id == ROOT_BRANCH_ID

    @pytest.mark.asyncio
    async def test_reattaches_dangling_parents(self) -> None:
        backend = AsyncInMemoryBackend()
        writer = BranchStore(BranchPersistence(backend))
        await writer.ensure_root("t0")
        await writer.persistence.write(Branch(id="br_lost", tab_id="t9", parent_id="br_gone"))

        store = BranchStore(BranchPersistence(backend))
        await store.load()
        report = await Reconciler(store).reconcile()
        assert report.reparented == 1
        assert store.get("br_lost").parent_id == ROOT_BRANCH_ID

    @pytest.mark.asyncio
    async def test_no_root_no_reattach(self) -> None:
        store = BranchStore()
        orphan = await store.create("t1")
        report = await Reconciler(store).reconcile()
        assert report.reparented == 0
        assert store.get(orphan).parent_id is None


class TestCyclePass:
    @pytest.mark.asyncio
    async def test_breaks_parent_cycle(self) -> None:
        backend = AsyncInMemoryBackend()
        writer = BranchStore(BranchPersistence(backend))
        await writer.ensure_root("t0")
        await writer.persistence.write(Branch(id="br_x", tab_id="tx", parent_id="br_y"))
        await writer.persistence.write(Branch(id="br_y", tab_id="ty", parent_id="br_x"))

        store = BranchStore(BranchPersistence(backend))
        await store.load()
        report = await Reconciler(store).reconcile()
        assert (report.isolated, report.reparented) == (1, 1)
        for branch_id in ("br_x", "br_y"):
            ancestors = [a.id for a in store.get_ancestors(branch_id)]
            assert ancestors[-1] == ROOT_BRANCH_ID
        assert store.drain_isolated() == []


class TestSleepPass:
    @staticmethod
    def _config(**sleep: object) -> TreeConfig:
        return TreeConfig(sleep=SleepConfig(enabled=True, timeout_s=60, **sleep))

    @staticmethod
    async def _idle(store: BranchStore, branch_id: str) -> None:
        await store.update(branch_id, {"last_active_at": utcnow() - timedelta(minutes=10)})

    @pytest.mark.asyncio
    async def test_idle_branches_sleep(self) -> None:
        store = BranchStore()
        parent, child = await _chain(store)
        await self._idle(store, child)
        report = await Reconciler(store, _tabs("t0", "t1", "t2"), self._config()).reconcile()
        assert report.slept == 1
        assert store.get(child).state == BranchStatus.SLEEPING
        assert store.get(parent).state == BranchStatus.AWAKE

    @pytest.mark.asyncio
    async def test_selected_and_audible_tabs_stay_awake(self) -> None:
        store = BranchStore()
        parent, child = await _chain(store)
        await self._idle(store, parent)
        await self._idle(store, child)
        tabs = InMemoryTabSource()
        tabs.seed(
            TabInfo(tab_id="t0"),
            TabInfo(tab_id="t1", selected=True),
            TabInfo(tab_id="t2", audible=True),
        )
        report = await Reconciler(store, tabs, self._config()).reconcile()
        assert report.slept == 0

    @pytest.mark.asyncio
    async def test_disabled_by_default(self) -> None:
        store = BranchStore()
        _, child = await _chain(store)
        await self._idle(store, child)
        report = await Reconciler(store, _tabs("t0", "t1", "t2")).reconcile()
        assert report.slept == 0
        assert store.get(child).state == BranchStatus.AWAKE


# ===========================================================================
# Idempotence
# ===========================================================================


class TestIdempotence:
    @pytest.mark.asyncio
    async def test_second_run_is_clean(self) -> None:
        store = BranchStore()
        parent, _ = await _chain(store)
        await store.create(None, parent)
        reconciler = Reconciler(store, _tabs("t0", "t2"))
        first = await reconciler.reconcile()
        second = await reconciler.reconcile()
        assert first.clean is False
        assert second.clean is True
        assert reconciler.runs == 2
        assert reconciler.last_report is second


# ===========================================================================
# Scheduling
# ===========================================================================


class TestScheduling:
    @pytest.mark.asyncio
    async def test_requests_are_debounced(self) -> None:
        store = BranchStore()
        await _chain(store)
        reconciler = Reconciler(store, None, FAST)
        for _ in range(3):
            reconciler.request()
        await reconciler.flush()
        assert reconciler.runs == 1

        reconciler.request()
        await reconciler.flush()
        assert reconciler.runs == 2

    @pytest.mark.asyncio
    async def test_stop_cancels_pending_request(self) -> None:
        reconciler = Reconciler(BranchStore(), None, TreeConfig(reconcile_debounce_s=10))
        reconciler.request()
        await reconciler.stop()
        assert reconciler.runs == 0
        await reconciler.flush()

    @pytest.mark.asyncio
    async def test_failed_run_is_logged_not_raised(self) -> None:
        store = BranchStore()
        await _chain(store)
        reconciler = Reconciler(store, ExplodingTabs(), FAST)
        reconciler.request()
        await reconciler.flush()
        assert reconciler.runs == 0

    @pytest.mark.asyncio
    async def test_periodic_timer(self) -> None:
        reconciler = Reconciler(BranchStore(), None, FAST)
        reconciler.start()
        reconciler.start()
        assert reconciler.running is True
        await asyncio.sleep(0.1)
        await reconciler.stop()
        assert reconciler.running is False
        assert reconciler.runs >= 2

    @pytest.mark.asyncio
    async def test_zero_interval_runs_once(self) -> None:
        config = TreeConfig(startup_delay_s=0, reconcile_interval_s=0)
        reconciler = Reconciler(BranchStore(), None, config)
        reconciler.start()
        await asyncio.sleep(0.05)
        assert reconciler.runs == 1
        assert reconciler.running is False
        await reconciler.stop()
