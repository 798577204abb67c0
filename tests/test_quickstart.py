"""Test that the quickstart API works for branch-tree."""
from __future__ import annotations

import importlib.util
from pathlib import Path

import pytest

_aiosqlite_available = importlib.util.find_spec("aiosqlite") is not None


def test_quickstart_import() -> None:
    from branch_tree import BranchTree

    tree = BranchTree.compose()
    assert tree is not None
    assert tree.count() == 0


def test_quickstart_repr() -> None:
    from branch_tree import BranchTree

    text = repr(BranchTree.compose(backend=None))
    assert "BranchTree" in text
    assert "durable=False" in text


@pytest.mark.asyncio
async def test_quickstart_follows_tabs() -> None:
    from branch_tree import ROOT_BRANCH_ID, BranchTree, InMemoryTabSource

    tabs = InMemoryTabSource()
    async with BranchTree.compose(tabs=tabs) as tree:
        home = await tabs.add_tab(url="https://start.example")
        docs = await tabs.add_tab(url="https://docs.example", title="Docs")
        await tabs.update_tab(docs, "url", "https://docs.example/api")

        assert tree.get_by_tab_id(home).id == ROOT_BRANCH_ID
        branch = tree.get_by_tab_id(docs)
        assert branch.parent_id == ROOT_BRANCH_ID
        assert [e.url for e in tree.get_history_with_position(branch.id).history] == [
            "https://docs.example",
            "https://docs.example/api",
        ]
        nodes = tree.get_tree()
        assert nodes[0].branch.id == ROOT_BRANCH_ID
        assert nodes[0].children[0].branch.id == branch.id
    assert tree.reconciler.running is False


@pytest.mark.asyncio
async def test_quickstart_breadcrumb_and_reparent() -> None:
    from branch_tree import ROOT_BRANCH_ID, BranchTree, InMemoryTabSource, RejectReason

    tabs = InMemoryTabSource()
    tree = BranchTree.compose(tabs=tabs)
    await tree.start(schedule=False)
    await tabs.add_tab()
    a_tab = await tabs.add_tab(url="https://a")
    b_tab = await tabs.add_tab(url="https://b")
    a = tree.get_by_tab_id(a_tab).id
    b = tree.get_by_tab_id(b_tab).id

    await tabs.update_tab(a_tab, "url", "https://a/2")
    entry = await tree.navigate_breadcrumb(a, 0)
    await tabs.update_tab(a_tab, "url", entry.url)
    assert tree.get_history_index(a) == 0
    assert len(tree.get_history_with_position(a).history) == 2

    assert tree.validate_reparent(ROOT_BRANCH_ID, b) is RejectReason.IS_ROOT
    assert await tree.reparent(b, a) is True
    assert tabs.get_tab(b_tab).parent_branch_id == a
    assert tree.validate_reparent(a, b) is RejectReason.DESCENDANT

    await tabs.remove_tab(a_tab)
    await tree.reconciler.flush()
    assert tree.get(a) is None
    assert tree.get(b) is None
    assert tree.count() == 1
    await tree.stop()


@pytest.mark.asyncio
async def test_quickstart_memory_only() -> None:
    from branch_tree import BranchTree

    tree = BranchTree.compose(backend=None)
    await tree.start(schedule=False)
    root = await tree.ensure_root("t0")
    child = await tree.create("t1", root, "https://a")
    assert tree.get_ancestors(child)[0].id == root
    assert tree.store.persistence.available is False
    await tree.stop()


@pytest.mark.asyncio
@pytest.mark.skipif(not _aiosqlite_available, reason="aiosqlite not installed")
async def test_quickstart_sqlite_survives_restart(tmp_path: Path) -> None:
    from branch_tree import BranchTree, InMemoryTabSource, TabInfo, TreeConfig

    config = TreeConfig(db_path=tmp_path / "branches.db")
    tabs = InMemoryTabSource()
    first = BranchTree.compose(config, tabs=tabs)
    await first.start(schedule=False)
    await tabs.add_tab("t1")
    await tabs.add_tab("t2", url="https://a")
    branch_id = first.get_by_tab_id("t2").id
    await first.stop()

    restored = InMemoryTabSource()
    restored.seed(TabInfo(tab_id="t1"), TabInfo(tab_id="t2"))
    second = BranchTree.compose(config, tabs=restored)
    await second.start(schedule=False)
    assert second.count() == 2
    assert second.get_by_tab_id("t2").id == branch_id
    await second.stop()
