"""CLI for focus-todos (list, reorder, nest, sections, watch, MCP server)."""

import asyncio
import json
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger

from focus_todos.config import resolve_data_directory, resolve_vault_directory
from focus_todos.core.session import FocusSession, open_session, watch_session
from focus_todos.core.tree.markdown import render_display_tree_as_markdown
from focus_todos.core.tree.serialize import item_to_dict, tree_to_dict
from focus_todos.errors import FocusError
from focus_todos.logging_config import configure_logging
from focus_todos.models.ordering import Direction, DropPosition

app = typer.Typer(help="Focus: one ordered list of the checkbox items in your notes.")
section_app = typer.Typer(help="Manage named sections.")
config_app = typer.Typer(help="Show or change settings.")
app.add_typer(section_app, name="section")
app.add_typer(config_app, name="config")

VaultOption = Annotated[
    Path | None,
    typer.Option("--vault", "-V", help="Vault directory (default: $FOCUS_VAULT_DIR or cwd)"),
]
DataDirOption = Annotated[
    Path | None,
    typer.Option("--data-dir", "-d", help="Directory holding focus.db"),
]


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    configure_logging(verbose=verbose)


@contextmanager
def _open(vault: Path | None, data_dir: Path | None) -> Iterator[FocusSession]:
    """Open a refreshed session, closing the database afterwards."""
    vault_dir = (vault or resolve_vault_directory()).expanduser()
    if not vault_dir.is_dir():
        logger.error("Vault directory not found: {}", vault_dir)
        raise typer.Exit(1)

    session = open_session(vault_dir, (data_dir or resolve_data_directory()).expanduser())
    try:
        yield session
    except FocusError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1) from e
    finally:
        session.conn.close()


def _resolve_item(session: FocusSession, key: str) -> str:
    """Resolve a full item id or a unique id prefix."""
    if session.find_item(key) is not None:
        return key
    matches = [item.id for item in session.get_items() if item.id.startswith(key)]
    if len(matches) == 1:
        return matches[0]
    if matches:
        typer.echo(f"Item id '{key}' is ambiguous ({len(matches)} matches).", err=True)
    else:
        typer.echo(f"Item '{key}' not found.", err=True)
    raise typer.Exit(1)


def _report(changed: bool) -> None:
    typer.echo("Updated." if changed else "Nothing changed.")


@app.command(name="list")
def list_cmd(
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
    flat: bool = typer.Option(False, "--flat", help="Flat sorted list instead of the tree"),
    output_json: bool = typer.Option(False, "--json", "-j", help="Output as JSON"),
    show_ids: bool = typer.Option(False, "--ids", "-i", help="Show item ids"),
) -> None:
    """Show open items in display order."""
    with _open(vault, data_dir) as session:
        items = session.get_items()
        if output_json:
            data = (
                {"items": [item_to_dict(i) for i in items], "count": len(items)}
                if flat
                else {**tree_to_dict(session.get_tree()), "count": len(items)}
            )
            typer.echo(json.dumps(data, indent=2))
            return

        if not items:
            typer.echo("No open items found.")
            return

        noun = "item" if len(items) == 1 else "items"
        typer.echo(f"{len(items)} open {noun}:\n")
        if flat:
            for item in items:
                suffix = f"  id={item.id}" if show_ids else ""
                typer.echo(f"- [ ] {item.text}  ({item.source_name}:{item.source.line}){suffix}")
        else:
            typer.echo(render_display_tree_as_markdown(session.get_tree(), include_ids=show_ids))


@app.command()
def reorder(
    dragged: str = typer.Argument(..., help="Item to move"),
    target: str = typer.Argument(..., help="Item to place it next to"),
    after: bool = typer.Option(False, "--after", "-a", help="Place after the target"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Place an item before (or after) another item, at the target's level."""
    with _open(vault, data_dir) as session:
        position = DropPosition.AFTER if after else DropPosition.BEFORE
        _report(
            session.reorder(_resolve_item(session, dragged), _resolve_item(session, target), position)
        )


@app.command()
def nest(
    child: str = typer.Argument(..., help="Item to nest"),
    parent: str = typer.Argument(..., help="New parent item"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Nest an item under another item (possibly from another document)."""
    with _open(vault, data_dir) as session:
        child_id = _resolve_item(session, child)
        parent_id = _resolve_item(session, parent)
        if not session.nest_under(child_id, parent_id):
            typer.echo("Not nested: the parent is the item itself or one of its descendants.")
            return
        typer.echo("Updated.")


@app.command()
def unnest(
    item: str = typer.Argument(..., help="Nested item"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Move a nested item back to the top level, right after its parent."""
    with _open(vault, data_dir) as session:
        _report(session.unnest(_resolve_item(session, item)))


@app.command()
def move(
    item: str = typer.Argument(..., help="Item to move"),
    direction: Direction = typer.Argument(..., help="up or down"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Move an item one position up or down among its siblings."""
    with _open(vault, data_dir) as session:
        _report(session.move_adjacent(_resolve_item(session, item), direction))


@app.command()
def assign(
    item: str = typer.Argument(..., help="Item to assign"),
    section: str = typer.Argument(..., help="Section name or id"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Put an item into a section."""
    with _open(vault, data_dir) as session:
        if session.store.find_section(section) is None:
            typer.echo(f"Section '{section}' not found.", err=True)
            raise typer.Exit(1)
        _report(session.assign_to_section(_resolve_item(session, item), section))


@app.command()
def unassign(
    item: str = typer.Argument(..., help="Sectioned item"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Take an item out of its section."""
    with _open(vault, data_dir) as session:
        _report(session.unassign(_resolve_item(session, item)))


@app.command()
def prioritize(
    items: list[str] = typer.Argument(..., help="Item ids, highest priority first"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Replace the explicit priority order."""
    with _open(vault, data_dir) as session:
        _report(session.set_priority_order([_resolve_item(session, i) for i in items]))


@app.command()
def toggle(
    item: str = typer.Argument(..., help="Item to check or uncheck"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Toggle an item's checkbox in its source document."""
    with _open(vault, data_dir) as session:
        session.toggle_item(_resolve_item(session, item))
        typer.echo("Toggled.")


@app.command()
def add(
    path: str = typer.Argument(..., help="Document to append to (created if missing)"),
    text: str = typer.Argument(..., help="Item text"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Append a new item to a document."""
    with _open(vault, data_dir) as session:
        try:
            session.add_item(path, text)
        except ValueError as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from e
        typer.echo(f"Added to {path}.")


@app.command()
def subtasks(
    item: str = typer.Argument(..., help="Parent item"),
    texts: list[str] = typer.Argument(..., help="Subtask texts"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Insert sub-items below an item in its source document."""
    with _open(vault, data_dir) as session:
        session.add_subtasks(_resolve_item(session, item), texts)
        typer.echo(f"Added {len(texts)} subtasks.")


@app.command()
def spawn(
    item: str = typer.Argument(..., help="Item to spawn a note from"),
    title: str = typer.Argument(..., help="Note title"),
    content: str = typer.Option("", "--content", "-c", help="Note body"),
    folder: str | None = typer.Option(None, "--folder", "-f", help="Vault folder for the note"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Create a linked note for an item and link it from the item's line."""
    with _open(vault, data_dir) as session:
        try:
            doc = session.spawn_note(_resolve_item(session, item), title, content, folder)
        except (ValueError, FileExistsError) as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from e
        typer.echo(f"Created {doc.path}.")


@app.command()
def watch(
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Re-render the list whenever documents in the vault change."""
    with _open(vault, data_dir) as session:

        def _show(current: FocusSession) -> None:
            typer.echo(render_display_tree_as_markdown(current.get_tree()))

        async def _run() -> None:
            await watch_session(session, stop=asyncio.Event(), on_refresh=_show)

        typer.echo(render_display_tree_as_markdown(session.get_tree()))
        try:
            asyncio.run(_run())
        except KeyboardInterrupt:
            typer.echo("Stopped.")


@app.command()
def serve() -> None:
    """Start the MCP server (stdio transport)."""
    from focus_todos.mcp.server import run_mcp_server

    run_mcp_server()


# --- Sections ---


@section_app.command(name="list")
def section_list(vault: VaultOption = None, data_dir: DataDirOption = None) -> None:
    """List sections in display order."""
    with _open(vault, data_dir) as session:
        sections = session.store.sections
        if not sections:
            typer.echo("No sections.")
            return
        for s in sections:
            state = " (collapsed)" if s.collapsed else ""
            typer.echo(f"  {s.name}{state}  [id={s.id}]")


@section_app.command(name="add")
def section_add(
    name: str = typer.Argument(..., help="Section name"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Create a section."""
    with _open(vault, data_dir) as session:
        section = session.create_section(name)
        typer.echo(f"Created section '{section.name}' [id={section.id}]")


@section_app.command(name="rename")
def section_rename(
    section: str = typer.Argument(..., help="Section name or id"),
    name: str = typer.Argument(..., help="New name"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Rename a section."""
    with _open(vault, data_dir) as session:
        _report(session.rename_section(section, name))


@section_app.command(name="delete")
def section_delete(
    section: str = typer.Argument(..., help="Section name or id"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Delete a section; its items become ungrouped."""
    with _open(vault, data_dir) as session:
        _report(session.delete_section(section))


@section_app.command(name="collapse")
def section_collapse(
    section: str = typer.Argument(..., help="Section name or id"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Collapse a section."""
    with _open(vault, data_dir) as session:
        _report(session.set_section_collapsed(section, True))


@section_app.command(name="expand")
def section_expand(
    section: str = typer.Argument(..., help="Section name or id"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Expand a collapsed section."""
    with _open(vault, data_dir) as session:
        _report(session.set_section_collapsed(section, False))


@section_app.command(name="move")
def section_move(
    section: str = typer.Argument(..., help="Section name or id"),
    direction: Direction = typer.Argument(..., help="up or down"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Move a section one position up or down."""
    with _open(vault, data_dir) as session:
        _report(session.move_section(section, direction))


# --- Settings ---


@config_app.command(name="show")
def config_show(vault: VaultOption = None, data_dir: DataDirOption = None) -> None:
    """Print the current settings as JSON."""
    with _open(vault, data_dir) as session:
        typer.echo(json.dumps(session.settings.to_dict(), indent=2))


@config_app.command(name="set")
def config_set(
    key: str = typer.Argument(..., help="Setting name"),
    value: str = typer.Argument(..., help="New value (comma-separated for lists)"),
    vault: VaultOption = None,
    data_dir: DataDirOption = None,
) -> None:
    """Change a setting."""
    with _open(vault, data_dir) as session:
        try:
            session.update_settings(**{key: value})
        except (KeyError, ValueError) as e:
            typer.echo(f"Error: {e}", err=True)
            raise typer.Exit(1) from e
        typer.echo(f"{key} updated.")
