"""MCP server exposing the focus list: reading, ordering, sections and write-back."""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger
from mcp.server.fastmcp import Context, FastMCP

from focus_todos.config import resolve_data_directory, resolve_vault_directory
from focus_todos.core.session import FocusSession, open_session
from focus_todos.core.tree.markdown import render_display_tree_as_markdown
from focus_todos.core.tree.serialize import item_to_dict, tree_to_dict
from focus_todos.errors import FocusError
from focus_todos.models.ordering import Direction, DropPosition


def _missing(session: FocusSession, *item_ids: str) -> dict[str, Any] | None:
    missing = [i for i in item_ids if session.find_item(i) is None]
    if missing:
        return {"success": False, "error": f"Item '{missing[0]}' not found."}
    return None


# --- Core functions (testable without MCP context) ---


def focus_list_items(
    session: FocusSession,
    *,
    tag: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> dict[str, Any]:
    """List open items in flat sorted order.

    Args:
        tag: Only items carrying this tag (with or without the leading '#').
        limit: Max results (1-500, default 100).
        offset: Pagination offset.
    """
    limit = max(1, min(limit, 500))
    items = list(session.get_items())
    if tag:
        wanted = tag if tag.startswith("#") else f"#{tag}"
        items = [i for i in items if wanted in i.tags]
    page = items[offset : offset + limit]
    return {
        "items": [item_to_dict(i) for i in page],
        "count": len(page),
        "total": len(items),
    }


def focus_get_tree(session: FocusSession, *, response_format: str = "json") -> dict[str, Any]:
    """Return the display tree (ungrouped roots, then sections).

    Args:
        response_format: "json" for nested dicts or "markdown" for a rendered outline.
    """
    tree = session.get_tree()
    if response_format == "markdown":
        return {"markdown": render_display_tree_as_markdown(tree, include_ids=True)}
    return tree_to_dict(tree)


def focus_set_priority_order(session: FocusSession, *, item_ids: list[str]) -> dict[str, Any]:
    """Replace the explicit priority order with the given ids."""
    changed = session.set_priority_order(item_ids)
    return {"success": True, "changed": changed}


def focus_reorder(
    session: FocusSession,
    *,
    dragged_id: str,
    target_id: str,
    position: str = "before",
) -> dict[str, Any]:
    """Place an item before or after another item, at the target's level."""
    if error := _missing(session, dragged_id, target_id):
        return error
    try:
        drop = DropPosition(position)
    except ValueError:
        return {"success": False, "error": f"Invalid position '{position}' (use before/after)."}
    return {"success": True, "changed": session.reorder(dragged_id, target_id, drop)}


def focus_nest(session: FocusSession, *, child_id: str, parent_id: str) -> dict[str, Any]:
    """Nest an item under another item."""
    if error := _missing(session, child_id, parent_id):
        return error
    if not session.nest_under(child_id, parent_id):
        return {
            "success": False,
            "error": "Cannot nest an item under itself or one of its descendants.",
        }
    return {"success": True, "changed": True}


def focus_unnest(session: FocusSession, *, item_id: str) -> dict[str, Any]:
    """Move a nested item to the top level, right after its former parent."""
    if error := _missing(session, item_id):
        return error
    return {"success": True, "changed": session.unnest(item_id)}


def focus_move(session: FocusSession, *, item_id: str, direction: str) -> dict[str, Any]:
    """Move an item one step up or down among its siblings."""
    if error := _missing(session, item_id):
        return error
    try:
        step = Direction(direction)
    except ValueError:
        return {"success": False, "error": f"Invalid direction '{direction}' (use up/down)."}
    return {"success": True, "changed": session.move_adjacent(item_id, step)}


def focus_assign_section(
    session: FocusSession,
    *,
    item_id: str,
    section: str | None,
) -> dict[str, Any]:
    """Assign an item to a section (by id or name); None removes it from its section."""
    if error := _missing(session, item_id):
        return error
    if section is None:
        return {"success": True, "changed": session.unassign(item_id)}
    if session.store.find_section(section) is None:
        return {"success": False, "error": f"Section '{section}' not found."}
    return {"success": True, "changed": session.assign_to_section(item_id, section)}


def focus_create_section(session: FocusSession, *, name: str) -> dict[str, Any]:
    """Create a new section."""
    if not name.strip():
        return {"success": False, "error": "Section name must not be empty."}
    section = session.create_section(name.strip())
    return {"success": True, "id": section.id, "name": section.name}


def focus_toggle_item(session: FocusSession, *, item_id: str) -> dict[str, Any]:
    """Toggle an item's checkbox in its source document."""
    try:
        session.toggle_item(item_id)
    except FocusError as e:
        return {"success": False, "error": str(e)}
    return {"success": True}


def focus_add_item(session: FocusSession, *, file_path: str, text: str) -> dict[str, Any]:
    """Append a new open item to a document, creating it if missing."""
    try:
        session.add_item(file_path, text)
    except (FocusError, ValueError) as e:
        return {"success": False, "error": str(e)}
    return {"success": True, "path": file_path}


def focus_add_subtasks(
    session: FocusSession,
    *,
    item_id: str,
    subtasks: list[str],
) -> dict[str, Any]:
    """Insert sub-items directly below an item in its source document."""
    if not subtasks:
        return {"success": False, "error": "No subtasks provided."}
    try:
        session.add_subtasks(item_id, subtasks)
    except FocusError as e:
        return {"success": False, "error": str(e)}
    return {"success": True, "added": len(subtasks)}


def focus_spawn_note(
    session: FocusSession,
    *,
    item_id: str,
    title: str,
    content: str = "",
    folder: str | None = None,
) -> dict[str, Any]:
    """Create a linked note for an item and link it from the item's line."""
    try:
        doc = session.spawn_note(item_id, title, content, folder)
    except (FocusError, ValueError, FileExistsError) as e:
        return {"success": False, "error": str(e)}
    return {"success": True, "path": doc.path}


# --- MCP Server Setup ---


@dataclass
class ServerContext:
    """Shared resources for the MCP server lifetime."""

    session: FocusSession
    vault_dir: Path
    data_dir: Path
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


@asynccontextmanager
async def server_lifespan(_server: FastMCP) -> AsyncIterator[ServerContext]:
    """Open the session on startup, close the database on shutdown."""
    vault_dir = resolve_vault_directory()
    data_dir = resolve_data_directory()
    session = open_session(vault_dir, data_dir)
    logger.info("Serving vault {} ({} open items)", vault_dir, len(session.get_items()))
    try:
        yield ServerContext(session=session, vault_dir=vault_dir, data_dir=data_dir)
    finally:
        session.conn.close()


mcp_server = FastMCP(
    "focus-todos",
    instructions="""\
Focus is a single prioritized list of the open checkbox items ("- [ ] ...") found
in a markdown vault. The user's ordering, nesting and sections live outside the
documents; the documents themselves are only changed by toggle/add tools.

## Workflow
1. Call focus_get_tree_tool to see the list as the user sees it (ids included).
2. Use item ids from that output for reorder/nest/move/assign calls.
3. Ids change when an item's text changes, so re-read the tree after edits.
""",
    lifespan=server_lifespan,
)


def _ctx(mcp_ctx: Context) -> ServerContext:
    return mcp_ctx.request_context.lifespan_context  # type: ignore[return-value]


async def _fresh(ctx: ServerContext) -> FocusSession:
    """Re-read changed documents before answering."""
    async with ctx.lock:
        ctx.session.refresh()
    return ctx.session


# --- MCP Tool Wrappers ---


@mcp_server.tool()
async def focus_list_items_tool(
    ctx: Context,
    tag: str | None = None,
    limit: int = 100,
    offset: int = 0,
) -> dict[str, Any]:
    """List open items in flat sorted order.

    Args:
        tag: Only items carrying this tag.
        limit: Max results (1-500, default 100).
        offset: Pagination offset.
    """
    session = await _fresh(_ctx(ctx))
    return focus_list_items(session, tag=tag, limit=limit, offset=offset)


@mcp_server.tool()
async def focus_get_tree_tool(ctx: Context, response_format: str = "json") -> dict[str, Any]:
    """Return the display tree: ungrouped items first, then each section.

    Args:
        response_format: "json" or "markdown".
    """
    session = await _fresh(_ctx(ctx))
    return focus_get_tree(session, response_format=response_format)


@mcp_server.tool()
async def focus_set_priority_order_tool(ctx: Context, item_ids: list[str]) -> dict[str, Any]:
    """Replace the priority order (highest first). Unlisted items sort after."""
    return focus_set_priority_order(_ctx(ctx).session, item_ids=item_ids)


@mcp_server.tool()
async def focus_reorder_tool(
    ctx: Context,
    dragged_id: str,
    target_id: str,
    position: str = "before",
) -> dict[str, Any]:
    """Place an item before or after another item.

    Args:
        dragged_id: Item to move.
        target_id: Item to place it next to.
        position: "before" or "after".
    """
    return focus_reorder(
        _ctx(ctx).session, dragged_id=dragged_id, target_id=target_id, position=position
    )


@mcp_server.tool()
async def focus_nest_tool(ctx: Context, child_id: str, parent_id: str) -> dict[str, Any]:
    """Nest an item under another item, even across documents."""
    return focus_nest(_ctx(ctx).session, child_id=child_id, parent_id=parent_id)


@mcp_server.tool()
async def focus_unnest_tool(ctx: Context, item_id: str) -> dict[str, Any]:
    """Move a nested item back to the top level."""
    return focus_unnest(_ctx(ctx).session, item_id=item_id)


@mcp_server.tool()
async def focus_move_tool(ctx: Context, item_id: str, direction: str) -> dict[str, Any]:
    """Move an item one step "up" or "down" among its siblings."""
    return focus_move(_ctx(ctx).session, item_id=item_id, direction=direction)


@mcp_server.tool()
async def focus_assign_section_tool(
    ctx: Context,
    item_id: str,
    section: str | None = None,
) -> dict[str, Any]:
    """Assign an item to a section by id or name; omit section to unassign."""
    return focus_assign_section(_ctx(ctx).session, item_id=item_id, section=section)


@mcp_server.tool()
async def focus_create_section_tool(ctx: Context, name: str) -> dict[str, Any]:
    """Create a named section."""
    return focus_create_section(_ctx(ctx).session, name=name)


@mcp_server.tool()
async def focus_toggle_item_tool(ctx: Context, item_id: str) -> dict[str, Any]:
    """Check or uncheck an item in its source document."""
    server = _ctx(ctx)
    async with server.lock:
        server.session.refresh()
        return focus_toggle_item(server.session, item_id=item_id)


@mcp_server.tool()
async def focus_add_item_tool(ctx: Context, file_path: str, text: str) -> dict[str, Any]:
    """Append an open item to a document (vault-relative path).

    Args:
        file_path: Document path, e.g. "TODO.md". Created if missing.
        text: Item text, may include #tags and [[links]].
    """
    server = _ctx(ctx)
    async with server.lock:
        return focus_add_item(server.session, file_path=file_path, text=text)


@mcp_server.tool()
async def focus_add_subtasks_tool(
    ctx: Context,
    item_id: str,
    subtasks: list[str],
) -> dict[str, Any]:
    """Insert sub-items below an item in its source document."""
    server = _ctx(ctx)
    async with server.lock:
        server.session.refresh()
        return focus_add_subtasks(server.session, item_id=item_id, subtasks=subtasks)


@mcp_server.tool()
async def focus_spawn_note_tool(
    ctx: Context,
    item_id: str,
    title: str,
    content: str = "",
    folder: str | None = None,
) -> dict[str, Any]:
    """Create a note for an item, with a backlink, and link it from the item.

    Args:
        item_id: Item to spawn the note from.
        title: Note title; path separators become '-'.
        content: Note body below the backlink header.
        folder: Vault folder for the note (default: vault root).
    """
    server = _ctx(ctx)
    async with server.lock:
        server.session.refresh()
        return focus_spawn_note(
            server.session, item_id=item_id, title=title, content=content, folder=folder
        )


def run_mcp_server() -> None:
    """Run the MCP server with stdio transport."""
    from focus_todos.logging_config import configure_logging

    configure_logging(verbose=False)
    mcp_server.run(transport="stdio")
