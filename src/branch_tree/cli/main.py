"""CLI entry point for branch-tree.

Invoked as::

    branch-tree [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m branch_tree.cli.main

Commands
--------
- version      — Show detailed version information
- tree         — Inspect and maintain a persisted branch tree

Tree sub-commands
-----------------
- tree show       — Render the tree
- tree stats      — Summarise branch counts and history sizes
- tree export     — Dump the nested tree as JSON or YAML
- tree reconcile  — Reattach orphans and cut parent cycles
- tree clear      — Delete every stored branch
"""
from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from branch_tree import __version__
from branch_tree.config import ConfigError, TreeConfig, load_config
from branch_tree.tree.persistence import BranchPersistence
from branch_tree.tree.serializer import BranchSerializer
from branch_tree.tree.state import BranchNode, BranchStatus
from branch_tree.tree.store import BranchStore

console = Console()

_DEFAULT_DB = Path.home() / ".branch-tree" / "branches.db"

# ---------------------------------------------------------------------------
# Store factory
# ---------------------------------------------------------------------------


def _make_backend(db_path: Path) -> object:
    """Instantiate the SQLite backend for *db_path*, exiting when unavailable."""
    try:
        from branch_tree.storage.async_sqlite import AsyncSQLiteBackend
    except ImportError:
        console.print("[red]aiosqlite is required: pip install aiosqlite[/red]")
        sys.exit(1)
    try:
        return AsyncSQLiteBackend(db_path=db_path)
    except ImportError as exc:
        console.print(f"[red]{exc}[/red]")
        sys.exit(1)


async def _open_store(db_path: Path, config: TreeConfig) -> BranchStore:
    backend = _make_backend(db_path)
    serializer = BranchSerializer(max_history_entries=config.max_history_entries)
    store = BranchStore(
        BranchPersistence(backend, serializer),  # type: ignore[arg-type]
        max_history_entries=config.max_history_entries,
    )
    await store.load()
    return store


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="branch-tree")
def cli() -> None:
    """Tree-structured browsing sessions"""


# ---------------------------------------------------------------------------
# version
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show detailed version information."""
    console.print(f"[bold]branch-tree[/bold] v{__version__}")


# ---------------------------------------------------------------------------
# tree command group
# ---------------------------------------------------------------------------


@cli.group(name="tree")
@click.option(
    "--db-path",
    default=None,
    type=click.Path(dir_okay=False),
    help="SQLite database holding the branches. Defaults to ~/.branch-tree/branches.db.",
)
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML configuration file.",
)
@click.pass_context
def tree_group(ctx: click.Context, db_path: str | None, config_path: str | None) -> None:
    """Inspect and maintain a persisted branch tree."""
    try:
        config = load_config(config_path)
    except ConfigError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    if db_path:
        ctx.obj["db_path"] = Path(db_path)
    else:
        ctx.obj["db_path"] = config.db_path or _DEFAULT_DB


def _add_node(parent: Tree, node: BranchNode) -> None:
    branch = node.branch
    style = "dim" if branch.state == BranchStatus.SLEEPING else "white"
    label = f"[{style}]{escape(branch.summary_line())}[/{style}]"
    if branch.url:
        label += f" [cyan]{escape(branch.url)}[/cyan]"
    child = parent.add(label)
    for grandchild in node.children:
        _add_node(child, grandchild)


# ---------------------------------------------------------------------------
# tree show
# ---------------------------------------------------------------------------


@tree_group.command(name="show")
@click.option("--json-output", is_flag=True, help="Output raw JSON instead of a rendered tree.")
@click.pass_context
def tree_show(ctx: click.Context, json_output: bool) -> None:
    """Render the branch tree."""
    config: TreeConfig = ctx.obj["config"]
    store = asyncio.run(_open_store(ctx.obj["db_path"], config))
    nodes = store.get_tree()

    if not nodes:
        console.print("[yellow]No branches found.[/yellow]")
        return

    if json_output:
        console.print_json(BranchSerializer(config.max_history_entries).dump_tree(nodes))
        return

    rendered = Tree(f"[bold]Branches[/bold] ({store.count()})")
    for node in nodes:
        _add_node(rendered, node)
    console.print(rendered)


# ---------------------------------------------------------------------------
# tree stats
# ---------------------------------------------------------------------------


@tree_group.command(name="stats")
@click.pass_context
def tree_stats(ctx: click.Context) -> None:
    """Summarise the stored branches."""
    store = asyncio.run(_open_store(ctx.obj["db_path"], ctx.obj["config"]))
    branches = store.get_all()

    orphans = [b for b in branches if not b.is_root and b.parent_id not in store]
    sleeping = [b for b in branches if b.state == BranchStatus.SLEEPING]
    max_depth = 0
    for node in store.get_tree():
        for depth, _ in node.walk():
            max_depth = max(max_depth, depth)

    table = Table(title="Branch tree", show_lines=False)
    table.add_column("Metric", style="bold cyan")
    table.add_column("Value", justify="right")
    table.add_row("branches", str(len(branches)))
    table.add_row("root", "yes" if store.get_root() is not None else "no")
    table.add_row("orphans", str(len(orphans)))
    table.add_row("sleeping", str(len(sleeping)))
    table.add_row("max depth", str(max_depth))
    table.add_row("history entries", str(sum(len(b.history) for b in branches)))
    console.print(table)
    console.print(f"\n[dim]Database: {ctx.obj['db_path']}[/dim]")


# ---------------------------------------------------------------------------
# tree export
# ---------------------------------------------------------------------------


@tree_group.command(name="export")
@click.option(
    "--format",
    "fmt",
    default="json",
    show_default=True,
    type=click.Choice(["json", "yaml"], case_sensitive=False),
    help="Output format.",
)
@click.option(
    "--output",
    "output_file",
    default=None,
    type=click.Path(dir_okay=False),
    help="Write to this file instead of standard output.",
)
@click.pass_context
def tree_export(ctx: click.Context, fmt: str, output_file: str | None) -> None:
    """Dump the nested tree, records included."""
    config: TreeConfig = ctx.obj["config"]
    store = asyncio.run(_open_store(ctx.obj["db_path"], config))
    document = BranchSerializer(config.max_history_entries).dump_tree(
        store.get_tree(), format=fmt.lower()  # type: ignore[arg-type]
    )

    if output_file is None:
        click.echo(document)
        return

    output_path = Path(output_file)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(document, encoding="utf-8")
    console.print(f"[green]Exported ({fmt}):[/green] {output_file}")


# ---------------------------------------------------------------------------
# tree reconcile
# ---------------------------------------------------------------------------


@tree_group.command(name="reconcile")
@click.pass_context
def tree_reconcile(ctx: click.Context) -> None:
    """Reattach orphaned branches to ROOT and cut parent cycles.

    No tab host is running here, so branches are never treated as stale.
    """
    from branch_tree.reconcile.reconciler import Reconciler

    config: TreeConfig = ctx.obj["config"]

    async def run() -> dict[str, int]:
        store = await _open_store(ctx.obj["db_path"], config)
        report = await Reconciler(store, None, config).reconcile()
        return report.to_dict()

    counts = asyncio.run(run())

    table = Table(title="Reconciliation", show_lines=False)
    table.add_column("Pass", style="bold cyan")
    table.add_column("Changed", justify="right")
    for name, value in counts.items():
        table.add_row(name, str(value))
    console.print(table)


# ---------------------------------------------------------------------------
# tree clear
# ---------------------------------------------------------------------------


@tree_group.command(name="clear")
@click.option("--yes", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
def tree_clear(ctx: click.Context, yes: bool) -> None:
    """Delete every stored branch."""
    db_path: Path = ctx.obj["db_path"]
    if not yes and not click.confirm(f"Delete all branches in {db_path}?"):
        console.print("[yellow]Aborted.[/yellow]")
        return

    async def run() -> int:
        store = await _open_store(db_path, ctx.obj["config"])
        removed = store.count()
        await store.clear_all()
        return removed

    removed = asyncio.run(run())
    console.print(f"[green]Cleared[/green] {removed} branches.")


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


if __name__ == "__main__":
    cli()
