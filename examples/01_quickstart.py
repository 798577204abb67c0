#!/usr/bin/env python3
"""Example: Quickstart — branch-tree

Minimal working example: follow a simulated tab host, navigate a few
pages, jump back through a breadcrumb and print the resulting tree.

Usage:
    python examples/01_quickstart.py

Requirements:
    pip install branch-tree
"""
from __future__ import annotations

import asyncio

import branch_tree
from branch_tree import BranchNode, BranchTree, InMemoryTabSource


def print_tree(nodes: list[BranchNode], depth: int = 0) -> None:
    for node in nodes:
        branch = node.branch
        print(f"{'  ' * depth}- {branch.title or branch.url or branch.id} [{branch.id}]")
        print_tree(node.children, depth + 1)


async def main() -> None:
    print(f"branch-tree version: {branch_tree.__version__}")

    # Step 1: Wire the engine to a tab host (memory-only storage)
    tabs = InMemoryTabSource()
    tree = BranchTree.compose(tabs=tabs, backend=None)
    await tree.start(schedule=False)

    # Step 2: The first tab becomes ROOT, later tabs become its children
    await tabs.add_tab(url="https://start.example", title="Start")
    docs_tab = await tabs.add_tab(url="https://docs.example", title="Docs")
    docs = tree.get_by_tab_id(docs_tab)

    # Step 3: A link opened from the docs tab becomes a grandchild
    await tabs.add_tab(url="https://docs.example/faq", title="FAQ", parent_branch_id=docs.id)

    # Step 4: Navigate inside the docs tab, then jump back by breadcrumb
    await tabs.navigate(docs_tab, "https://docs.example/api", "API")
    await tabs.navigate(docs_tab, "https://docs.example/api/auth", "Auth")
    entry = await tree.navigate_breadcrumb(docs.id, 0)
    await tabs.navigate(docs_tab, entry.url, entry.title)

    position = tree.get_history_with_position(docs.id)
    print(f"\nDocs history ({len(position.history)} entries, cursor {position.current_index}):")
    for index, item in enumerate(position.history):
        marker = "*" if index == position.current_index else " "
        print(f"  {marker} {item.url}")

    print("\nTree:")
    print_tree(tree.get_tree())

    # Step 5: Closing a tab removes its branch subtree
    await tabs.remove_tab(docs_tab)
    await tree.reconciler.flush()
    print(f"\nAfter closing docs: {tree.count()} branch(es)")
    await tree.stop()


if __name__ == "__main__":
    asyncio.run(main())
