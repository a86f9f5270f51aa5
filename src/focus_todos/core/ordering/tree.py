"""Compose the flat item list and the ordering overlay into a display tree."""

from collections.abc import Sequence

from focus_todos.core.ordering.store import OrderingStore
from focus_todos.models.item import Item
from focus_todos.models.ordering import DisplayTree, SectionBucket, TreeNode


def _order_by(items: list[Item], order: Sequence[str]) -> list[Item]:
    """Order items by their index in ``order``; unlisted items keep flat order, last."""
    rank = {item_id: i for i, item_id in enumerate(order)}
    return sorted(items, key=lambda item: rank.get(item.id, len(rank)))


def build_display_tree(items: Sequence[Item], store: OrderingStore) -> DisplayTree:
    """Build the render-ready tree for an already sorted flat item list.

    Roots are items without a live overlay parent. They are split into the
    ungrouped bucket (flat order) and one bucket per section (section order,
    unlisted members last). Children follow their parent's child order.

    Every item appears exactly once: items cut off from all roots by cyclic
    nesting data are promoted to ungrouped roots.
    """
    by_id = {item.id: item for item in items}
    parent_of = store.parent_of
    children_of = store.children_of
    assignment_of = store.assignment_of

    roots: list[Item] = []
    children_map: dict[str, list[Item]] = {}
    for item in items:
        parent_id = parent_of.get(item.id)
        if parent_id is not None and parent_id in by_id and parent_id != item.id:
            children_map.setdefault(parent_id, []).append(item)
        else:
            roots.append(item)

    for parent_id, children in children_map.items():
        children_map[parent_id] = _order_by(children, children_of.get(parent_id, []))

    placed: set[str] = set()

    def _node(item: Item) -> TreeNode:
        placed.add(item.id)
        kids = [c for c in children_map.get(item.id, []) if c.id not in placed]
        return TreeNode(item=item, children=tuple(_node(c) for c in kids))

    sections = store.sections
    known = {s.id for s in sections}
    section_members: dict[str, list[Item]] = {s.id: [] for s in sections}
    ungrouped: list[Item] = []
    for item in roots:
        section_id = assignment_of.get(item.id)
        if section_id in known:
            section_members[section_id].append(item)
        else:
            ungrouped.append(item)

    ungrouped_nodes = [_node(item) for item in ungrouped]
    order_within = store.order_within_section
    buckets = tuple(
        SectionBucket(
            section=s,
            roots=tuple(
                _node(item)
                for item in _order_by(section_members[s.id], order_within.get(s.id, []))
            ),
        )
        for s in sections
    )

    stranded = [item for item in items if item.id not in placed]
    while stranded:
        ungrouped_nodes.append(_node(stranded[0]))
        stranded = [item for item in stranded if item.id not in placed]

    return DisplayTree(ungrouped=tuple(ungrouped_nodes), sections=buckets)
