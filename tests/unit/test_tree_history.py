"""Unit tests for branch_tree.tree.history.HistoryTrack."""
from __future__ import annotations

import pytest

from branch_tree.tree.history import HistoryPosition, HistoryTrack
from branch_tree.tree.store import BranchStore


@pytest.fixture()
def store() -> BranchStore:
    return BranchStore()


@pytest.fixture()
def track(store: BranchStore) -> HistoryTrack:
    return HistoryTrack(store)


async def _visit(track: HistoryTrack, branch_id: str, *urls: str) -> None:
    for url in urls:
        await track.add_to_history(branch_id, url)


def _urls(store: BranchStore, branch_id: str) -> list[str]:
    return [entry.url for entry in store.get(branch_id).history]


class TestAddToHistory:
    @pytest.mark.asyncio
    async def test_appends_and_moves_cursor(self, store: BranchStore, track: HistoryTrack) -> None:
        branch_id = await store.create("t1", url="https://a")
        assert await track.add_to_history(branch_id, "https://b", "B") is True
        branch = store.get(branch_id)
        assert _urls(store, branch_id) == ["https://a", "https://b"]
        assert branch.history_index == 1
        assert branch.url == "https://b"
        assert branch.title == "B"

    @pytest.mark.asyncio
    async def test_first_entry_on_empty_branch(self, store: BranchStore, track: HistoryTrack) -> None:
        branch_id = await store.create("t1")
        await track.add_to_history(branch_id, "https://a")
        assert track.get_history_index(branch_id) == 0

    @pytest.mark.asyncio
    async def test_same_url_updates_title_only(self, store: BranchStore, track: HistoryTrack) -> None:
        branch_id = await store.create("t1", url="https://a")
        assert await track.add_to_history(branch_id, "https://a", "Loaded") is False
        branch = store.get(branch_id)
        assert len(branch.history) == 1
        assert branch.history[0].title == "Loaded"

    @pytest.mark.asyncio
    async def test_smart_branching_truncates_forward(
        self, store: BranchStore, track: HistoryTrack
    ) -> None:
        branch_id = await store.create("t1", url="https://a")
        await _visit(track, branch_id, "https://b", "https://c", "https://d")
        await track.navigate_to_history_index(branch_id, 1)
        await track.add_to_history(branch_id, "https://x")
        assert _urls(store, branch_id) == ["https://a", "https://b", "https://x"]
        assert track.get_history_index(branch_id) == 2

    @pytest.mark.asyncio
    async def test_breadcrumb_navigation_not_recorded(
        self, store: BranchStore, track: HistoryTrack
    ) -> None:
        branch_id = await store.create("t1", url="https://a")
        await _visit(track, branch_id, "https://b", "https://c")
        await track.navigate_to_history_index(branch_id, 0)
        assert await track.add_to_history(branch_id, "https://a", is_breadcrumb_nav=True) is False
        assert _urls(store, branch_id) == ["https://a", "https://b", "https://c"]
        assert track.get_history_index(branch_id) == 0

    @pytest.mark.asyncio
    async def test_empty_url_and_unknown_branch_ignored(
        self, store: BranchStore, track: HistoryTrack
    ) -> None:
        branch_id = await store.create("t1", url="https://a")
        assert await track.add_to_history(branch_id, "") is False
        assert await track.add_to_history("br_missing", "https://a") is False

    @pytest.mark.asyncio
    async def test_cap_evicts_oldest(self, store: BranchStore) -> None:
        track = HistoryTrack(store, max_entries=5)
        branch_id = await store.create("t1")
        await _visit(track, branch_id, *[f"https://p/{i}" for i in range(8)])
        assert _urls(store, branch_id) == [f"https://p/{i}" for i in range(3, 8)]
        assert track.get_history_index(branch_id) == 4

    @pytest.mark.asyncio
    async def test_default_cap_is_fifty(self, store: BranchStore, track: HistoryTrack) -> None:
        branch_id = await store.create("t1")
        await _visit(track, branch_id, *[f"https://p/{i}" for i in range(55)])
        assert len(store.get(branch_id).history) == 50
        assert track.get_history_index(branch_id) == 49

    def test_invalid_cap(self, store: BranchStore) -> None:
        with pytest.raises(ValueError):
            HistoryTrack(store, max_entries=0)


class TestNavigate:
    @pytest.mark.asyncio
    async def test_moves_cursor_without_touching_log(
        self, store: BranchStore, track: HistoryTrack
    ) -> None:
        branch_id = await store.create("t1", url="https://a")
        await _visit(track, branch_id, "https://b", "https://c")
        entry = await track.navigate_to_history_index(branch_id, 1)
        assert entry is not None and entry.url == "https://b"
        assert _urls(store, branch_id) == ["https://a", "https://b", "https://c"]
        assert track.get_history_index(branch_id) == 1

    @pytest.mark.asyncio
    async def test_out_of_range(self, store: BranchStore, track: HistoryTrack) -> None:
        branch_id = await store.create("t1", url="https://a")
        assert await track.navigate_to_history_index(branch_id, 5) is None
        assert await track.navigate_to_history_index(branch_id, -1) is None
        assert await track.navigate_to_history_index("br_missing", 0) is None
        assert track.get_history_index(branch_id) == 0

    @pytest.mark.asyncio
    async def test_back_and_forward(self, store: BranchStore, track: HistoryTrack) -> None:
        branch_id = await store.create("t1", url="https://a")
        await _visit(track, branch_id, "https://b")
        assert (await track.go_back(branch_id)).url == "https://a"
        assert await track.go_back(branch_id) is None
        assert (await track.go_forward(branch_id)).url == "https://b"
        assert await track.go_forward(branch_id) is None


class TestInspection:
    @pytest.mark.asyncio
    async def test_history_with_position(self, store: BranchStore, track: HistoryTrack) -> None:
        branch_id = await store.create("t1", url="https://a")
        await _visit(track, branch_id, "https://b", "https://c")
        await track.navigate_to_history_index(branch_id, 1)
        position = track.get_history_with_position(branch_id)
        assert position.current_index == 1
        assert position.current.url == "https://b"
        assert position.can_go_back is True
        assert position.can_go_forward is True

    def test_unknown_branch(self, track: HistoryTrack) -> None:
        assert track.get_history_index("br_missing") == -1
        assert track.get_history_with_position("br_missing") == HistoryPosition()

    @pytest.mark.asyncio
    async def test_snapshot_is_detached(self, store: BranchStore, track: HistoryTrack) -> None:
        branch_id = await store.create("t1", url="https://a")
        position = track.get_history_with_position(branch_id)
        position.history.clear()
        assert len(store.get(branch_id).history) == 1
