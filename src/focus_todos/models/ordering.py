"""Domain models for the ordering overlay and the display tree."""

from collections.abc import Iterator
from dataclasses import dataclass
from enum import StrEnum

from focus_todos.models.item import Item


class Slice(StrEnum):
    """One independently persisted part of the ordering overlay."""

    PRIORITIES = "priorities"
    NESTING = "nesting"
    SECTIONS = "sections"


class DropPosition(StrEnum):
    BEFORE = "before"
    AFTER = "after"


class DropZone(StrEnum):
    """Where a dragged item was released relative to its target."""

    BEFORE = "before"
    AFTER = "after"
    NEST = "nest"


class Direction(StrEnum):
    UP = "up"
    DOWN = "down"


class DefaultSort(StrEnum):
    """Ordering applied to items without an explicit priority."""

    DATE = "date"
    SOURCE = "source"
    NONE = "none"


@dataclass(frozen=True)
class Section:
    """A named group of root items."""

    id: str
    name: str
    collapsed: bool = False


@dataclass(frozen=True)
class TreeNode:
    """An item with its ordered overlay children."""

    item: Item
    children: tuple["TreeNode", ...] = ()


@dataclass(frozen=True)
class SectionBucket:
    section: Section
    roots: tuple[TreeNode, ...] = ()


@dataclass(frozen=True)
class DisplayTree:
    """Render-ready tree: ungrouped roots followed by each section's roots."""

    ungrouped: tuple[TreeNode, ...] = ()
    sections: tuple[SectionBucket, ...] = ()

    def walk(self) -> Iterator[tuple[int, TreeNode]]:
        """Yield ``(depth, node)`` pairs in display order."""

        def _walk(nodes: tuple[TreeNode, ...], depth: int) -> Iterator[tuple[int, TreeNode]]:
            for node in nodes:
                yield depth, node
                yield from _walk(node.children, depth + 1)

        yield from _walk(self.ungrouped, 0)
        for bucket in self.sections:
            yield from _walk(bucket.roots, 0)

    def item_ids(self) -> list[str]:
        return [node.item.id for _depth, node in self.walk()]
