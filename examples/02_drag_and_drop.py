#!/usr/bin/env python3
"""Example: Drag and Drop

Demonstrates resolving a pointer position over the rendered tree into a
drop target and applying it as a validated reparent.

Usage:
    python examples/02_drag_and_drop.py

Requirements:
    pip install branch-tree
"""
from __future__ import annotations

import asyncio

from branch_tree import BranchTree, InMemoryTabSource, VisibleRow

ROW_HEIGHT = 22.0


def visible_rows(tree: BranchTree) -> list[VisibleRow]:
    """Lay out ROOT's descendants top to bottom, ROOT's children at depth 0."""
    rows: list[VisibleRow] = []

    def walk(parent_id: str, depth: int) -> None:
        for child in tree.get_children(parent_id):
            rows.append(VisibleRow(child.id, depth, top=len(rows) * ROW_HEIGHT, height=ROW_HEIGHT))
            walk(child.id, depth + 1)

    walk(tree.store.root_id, 0)
    return rows


async def main() -> None:
    tabs = InMemoryTabSource()
    tree = BranchTree.compose(tabs=tabs, backend=None)
    await tree.start(schedule=False)

    await tabs.add_tab(url="https://start.example")
    news = tree.get_by_tab_id(await tabs.add_tab(url="https://news.example", title="News"))
    await tabs.add_tab(url="https://news.example/a", title="Article", parent_branch_id=news.id)
    shop = tree.get_by_tab_id(await tabs.add_tab(url="https://shop.example", title="Shop"))

    rows = visible_rows(tree)
    for row in rows:
        print(f"{'  ' * row.depth}{tree.get(row.branch_id).title} (y={row.top:.0f})")

    # Drop "Shop" on the lower half of "Article", indented one level past it.
    article_row = rows[1]
    x = tree.planner.indicator_offset(article_row.depth + 1) + 1
    y = article_row.middle + 5
    plan = tree.plan_drop(rows, x, y, shop.id)
    print(f"\nDrop plan: parent={tree.get(plan.parent_id).title} index={plan.index} "
          f"depth={plan.depth} valid={plan.valid}")

    if plan.valid:
        await tree.reparent(shop.id, plan.parent_id, plan.index)

    # Dropping "News" into its own subtree is refused.
    reason = tree.validate_reparent(news.id, shop.id)
    print(f"Moving News under Shop: {reason.value if reason else 'allowed'}")

    print("\nAncestors of Shop:", " > ".join(b.title or b.id for b in reversed(tree.get_ancestors(shop.id))))
    await tree.stop()


if __name__ == "__main__":
    asyncio.run(main())
