"""Render the display tree as markdown."""

import io

from focus_todos.models.ordering import DisplayTree, TreeNode


def _count(nodes: tuple[TreeNode, ...]) -> int:
    return sum(1 + _count(n.children) for n in nodes)


def _write_nodes(
    out: io.StringIO,
    nodes: tuple[TreeNode, ...],
    depth: int,
    *,
    include_source: bool,
    include_ids: bool,
) -> None:
    for node in nodes:
        item = node.item
        indent = "    " * depth
        checkbox = "- [x] " if item.completed else "- [ ] "
        suffix = ""
        if include_source:
            suffix += f"  ({item.source_name}:{item.source.line})"
        if include_ids:
            suffix += f"  id={item.id}"
        out.write(f"{indent}{checkbox}{item.text}{suffix}\n")
        _write_nodes(
            out, node.children, depth + 1, include_source=include_source, include_ids=include_ids
        )


def render_display_tree_as_markdown(
    tree: DisplayTree,
    *,
    include_source: bool = True,
    include_ids: bool = False,
) -> str:
    """Render ungrouped items, then one heading per section.

    Args:
        tree: The display tree to render.
        include_source: Append ``(file:line)`` to every item.
        include_ids: Append the item id to every item.

    Returns:
        Markdown string with an indented checkbox hierarchy.
    """
    out = io.StringIO()
    _write_nodes(out, tree.ungrouped, 0, include_source=include_source, include_ids=include_ids)

    for bucket in tree.sections:
        if out.tell():
            out.write("\n")
        out.write(f"## {bucket.section.name}\n")
        if bucket.section.collapsed:
            count = _count(bucket.roots)
            noun = "item" if count == 1 else "items"
            out.write(f"(collapsed, {count} {noun})\n")
            continue
        _write_nodes(
            out, bucket.roots, 0, include_source=include_source, include_ids=include_ids
        )

    return out.getvalue()
