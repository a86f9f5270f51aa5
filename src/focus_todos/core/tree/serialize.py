"""JSON-ready dictionaries for items and display trees."""

from typing import Any

from focus_todos.models.item import Item
from focus_todos.models.ordering import DisplayTree, TreeNode


def item_to_dict(item: Item) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "id": item.id,
        "text": item.text,
        "completed": item.completed,
        "path": item.source.path,
        "line": item.source.line,
        "indent": item.indent,
        "captured_at": item.captured_at.isoformat(),
        "tags": list(item.tags),
    }
    if item.linked_document:
        entry["linked_document"] = item.linked_document
    return entry


def _node_to_dict(node: TreeNode) -> dict[str, Any]:
    entry = item_to_dict(node.item)
    entry["children"] = [_node_to_dict(c) for c in node.children]
    return entry


def tree_to_dict(tree: DisplayTree) -> dict[str, Any]:
    return {
        "ungrouped": [_node_to_dict(n) for n in tree.ungrouped],
        "sections": [
            {
                "id": bucket.section.id,
                "name": bucket.section.name,
                "collapsed": bucket.section.collapsed,
                "items": [_node_to_dict(n) for n in bucket.roots],
            }
            for bucket in tree.sections
        ],
    }
