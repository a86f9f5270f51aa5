"""In-memory ordering overlay: priority order, cross-document nesting, sections.

The store is a pure data structure. Every mutation returns the set of slices
it touched so the owner can persist exactly those records. Mutations never
raise: unknown ids, unknown sections and cycle-creating nests are no-ops that
return an empty set.
"""

import uuid
from collections.abc import Iterable, Sequence

from loguru import logger

from focus_todos.models.item import Item
from focus_todos.models.ordering import DefaultSort, Direction, DropPosition, DropZone, Section, Slice


def classify_drop(offset_y: float, height: float) -> DropZone:
    """Map a drop position inside the target row to a drop zone.

    The top quarter inserts before, the bottom quarter after, the middle nests.
    """
    if height <= 0:
        return DropZone.NEST
    if offset_y < height * 0.25:
        return DropZone.BEFORE
    if offset_y > height * 0.75:
        return DropZone.AFTER
    return DropZone.NEST


def _insert_relative(seq: list[str], item_id: str, target_id: str, offset: int) -> None:
    """Insert next to target (offset 0 = before, 1 = after), or append if target is absent."""
    try:
        idx = seq.index(target_id)
    except ValueError:
        seq.append(item_id)
        return
    seq.insert(idx + offset, item_id)


def _remove_all(seq: list[str], item_id: str) -> bool:
    if item_id not in seq:
        return False
    seq[:] = [x for x in seq if x != item_id]
    return True


def _complete(seq: list[str], ids: Iterable[str]) -> bool:
    """Append ids missing from seq, keeping their given order."""
    present = set(seq)
    added = False
    for item_id in ids:
        if item_id not in present:
            seq.append(item_id)
            present.add(item_id)
            added = True
    return added


def _shift(seq: list[str], item_id: str, delta: int, peers: set[str] | None = None) -> bool:
    """Swap item with its nearest neighbour in the given direction.

    When ``peers`` is given, entries outside it are skipped so the move is by
    one visible position. Bounded: returns False at either end.
    """
    if item_id not in seq:
        return False
    idx = seq.index(item_id)
    j = idx + delta
    while 0 <= j < len(seq) and peers is not None and seq[j] not in peers:
        j += delta
    if not 0 <= j < len(seq):
        return False
    seq[idx], seq[j] = seq[j], seq[idx]
    return True


def _dedupe(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(ids))


class OrderingStore:
    """Owns the three overlay maps and their compound mutations."""

    def __init__(
        self,
        *,
        priority_order: Iterable[str] = (),
        parent_of: dict[str, str] | None = None,
        children_of: dict[str, list[str]] | None = None,
        sections: Iterable[Section] = (),
        assignment_of: dict[str, str] | None = None,
        order_within_section: dict[str, list[str]] | None = None,
    ) -> None:
        self._priority_order: list[str] = _dedupe(priority_order)
        self._parent_of: dict[str, str] = dict(parent_of or {})
        self._children_of: dict[str, list[str]] = {
            k: _dedupe(v) for k, v in (children_of or {}).items()
        }
        self._sections: list[Section] = list(sections)
        self._assignment_of: dict[str, str] = dict(assignment_of or {})
        self._order_within_section: dict[str, list[str]] = {
            k: _dedupe(v) for k, v in (order_within_section or {}).items()
        }

    # --- Read-only views (copies) ---

    @property
    def priority_order(self) -> list[str]:
        return list(self._priority_order)

    @property
    def parent_of(self) -> dict[str, str]:
        return dict(self._parent_of)

    @property
    def children_of(self) -> dict[str, list[str]]:
        return {k: list(v) for k, v in self._children_of.items()}

    @property
    def sections(self) -> list[Section]:
        return list(self._sections)

    @property
    def assignment_of(self) -> dict[str, str]:
        return dict(self._assignment_of)

    @property
    def order_within_section(self) -> dict[str, list[str]]:
        return {k: list(v) for k, v in self._order_within_section.items()}

    def parent(self, item_id: str) -> str | None:
        return self._parent_of.get(item_id)

    def section(self, section_id: str) -> Section | None:
        return next((s for s in self._sections if s.id == section_id), None)

    def find_section(self, key: str) -> Section | None:
        """Look up a section by id, then by case-insensitive name."""
        found = self.section(key)
        if found is not None:
            return found
        folded = key.casefold()
        return next((s for s in self._sections if s.name.casefold() == folded), None)

    def section_of(self, item_id: str) -> str | None:
        """Return the item's section id if it points at a known section."""
        section_id = self._assignment_of.get(item_id)
        if section_id is None or self.section(section_id) is None:
            return None
        return section_id

    def is_descendant(self, candidate_id: str, ancestor_id: str) -> bool:
        """Check whether ancestor_id appears on candidate_id's parent chain.

        The visited set stops the walk on already-cyclic data.
        """
        current = candidate_id
        visited: set[str] = set()
        while current in self._parent_of:
            if current in visited:
                return False
            visited.add(current)
            current = self._parent_of[current]
            if current == ancestor_id:
                return True
        return False

    # --- Sorting ---

    def sort(self, items: Iterable[Item], default_sort: DefaultSort) -> list[Item]:
        """Explicitly ranked items first by rank, the rest by the default policy."""
        rank = {item_id: i for i, item_id in enumerate(self._priority_order)}

        def key(item: Item) -> tuple[int, int, object]:
            pos = rank.get(item.id)
            if pos is not None:
                return (0, pos, 0)
            if default_sort == DefaultSort.DATE:
                return (1, 0, -item.captured_at.timestamp())
            if default_sort == DefaultSort.SOURCE:
                return (1, 0, item.source.path)
            return (1, 0, 0)

        return sorted(items, key=key)

    # --- Internal removal helpers ---

    def _remove_nesting(self, item_id: str) -> bool:
        changed = self._parent_of.pop(item_id, None) is not None
        for parent_id in list(self._children_of):
            children = self._children_of[parent_id]
            if _remove_all(children, item_id):
                changed = True
                if not children:
                    del self._children_of[parent_id]
        return changed

    def _remove_section_membership(self, item_id: str) -> bool:
        changed = self._assignment_of.pop(item_id, None) is not None
        for section_id in list(self._order_within_section):
            order = self._order_within_section[section_id]
            if _remove_all(order, item_id):
                changed = True
                if not order:
                    del self._order_within_section[section_id]
        return changed

    # --- Mutations ---

    def detach(self, item_id: str) -> set[Slice]:
        """Remove every overlay reference to the item (its own children stay)."""
        changed: set[Slice] = set()
        if self._remove_nesting(item_id):
            changed.add(Slice.NESTING)
        if _remove_all(self._priority_order, item_id):
            changed.add(Slice.PRIORITIES)
        if self._remove_section_membership(item_id):
            changed.add(Slice.SECTIONS)
        return changed

    def reorder(
        self,
        dragged_id: str,
        target_id: str,
        position: DropPosition,
        *,
        root_ids: Sequence[str] = (),
    ) -> set[Slice]:
        """Move dragged next to target, at target's level.

        Nested target: dragged becomes its sibling. Sectioned target: dragged
        joins the section. Otherwise dragged is placed in the global priority
        order. When target has no explicit rank, that order is first completed
        with the current roots (``root_ids``, in display order); a target still
        unranked after that gets dragged appended.
        """
        if dragged_id == target_id:
            return set()
        if self.is_descendant(target_id, dragged_id):
            logger.debug("Refusing to place {} beside its own descendant {}", dragged_id, target_id)
            return set()

        changed = self.detach(dragged_id)
        offset = 1 if position == DropPosition.AFTER else 0

        parent_id = self._parent_of.get(target_id)
        if parent_id is not None:
            self._parent_of[dragged_id] = parent_id
            _insert_relative(self._children_of.setdefault(parent_id, []), dragged_id, target_id, offset)
            changed.add(Slice.NESTING)
            return changed

        section_id = self.section_of(target_id)
        if section_id is not None:
            self._assignment_of[dragged_id] = section_id
            order = self._order_within_section.setdefault(section_id, [])
            _insert_relative(order, dragged_id, target_id, offset)
            changed.add(Slice.SECTIONS)
            return changed

        if target_id not in self._priority_order:
            _complete(self._priority_order, (r for r in root_ids if r != dragged_id))
        _insert_relative(self._priority_order, dragged_id, target_id, offset)
        changed.add(Slice.PRIORITIES)
        return changed

    def nest_under(self, dragged_id: str, new_parent_id: str) -> set[Slice]:
        """Make dragged the last child of new_parent, unless that creates a cycle."""
        if dragged_id == new_parent_id or self.is_descendant(new_parent_id, dragged_id):
            logger.debug("Refusing to nest {} under {}: would create a cycle", dragged_id, new_parent_id)
            return set()

        changed = self.detach(dragged_id)
        self._parent_of[dragged_id] = new_parent_id
        self._children_of.setdefault(new_parent_id, []).append(dragged_id)
        changed.add(Slice.NESTING)
        return changed

    def assign_to_section(self, item_id: str, section_id: str) -> set[Slice]:
        """Put a root item into a section, appended to the section order.

        Nesting and prior section membership are removed; the global priority
        position is left alone.
        """
        if self.section(section_id) is None:
            return set()

        changed: set[Slice] = set()
        if self._remove_nesting(item_id):
            changed.add(Slice.NESTING)
        if self._assignment_of.get(item_id) != section_id:
            self._remove_section_membership(item_id)
        self._assignment_of[item_id] = section_id
        order = self._order_within_section.setdefault(section_id, [])
        if item_id not in order:
            order.append(item_id)
        changed.add(Slice.SECTIONS)
        return changed

    def unassign(self, item_id: str) -> set[Slice]:
        """Return a sectioned item to the ungrouped bucket."""
        if self._remove_section_membership(item_id):
            return {Slice.SECTIONS}
        return set()

    def unnest(self, item_id: str, *, root_ids: Sequence[str] = ()) -> set[Slice]:
        """Lift a nested item back to the root level, right after its former parent.

        ``root_ids`` is the current root display order. When the parent has no
        explicit rank, the priority order is first completed with those roots
        so that "right after the parent" is well defined; if the parent is
        still unranked the item is appended.
        """
        parent_id = self._parent_of.get(item_id)
        if parent_id is None:
            return set()

        changed = {Slice.NESTING, Slice.PRIORITIES}
        self._remove_nesting(item_id)
        if self._remove_section_membership(item_id):
            changed.add(Slice.SECTIONS)
        _remove_all(self._priority_order, item_id)

        if parent_id not in self._priority_order:
            _complete(self._priority_order, (r for r in root_ids if r != item_id))
        _insert_relative(self._priority_order, item_id, parent_id, 1)
        return changed

    def move_adjacent(
        self,
        item_id: str,
        direction: Direction,
        *,
        root_ids: Sequence[str] = (),
    ) -> set[Slice]:
        """Shift an item one position up or down among its visible peers.

        Nested items move within their parent's child order. Root items move
        within their section's order, or within the global priority order when
        ungrouped; that order is first completed with the current roots
        (``root_ids``, in display order) since it may be only partially populated.
        """
        delta = -1 if direction == Direction.UP else 1

        parent_id = self._parent_of.get(item_id)
        if parent_id is not None:
            siblings = self._children_of.get(parent_id, [])
            return {Slice.NESTING} if _shift(siblings, item_id, delta) else set()

        section_id = self.section_of(item_id)
        if section_id is not None:
            members = [r for r in root_ids if self.section_of(r) == section_id]
            order = self._order_within_section.setdefault(section_id, [])
            added = _complete(order, members)
            moved = _shift(order, item_id, delta, set(members) if members else None)
            return {Slice.SECTIONS} if added or moved else set()

        ungrouped = [r for r in root_ids if self.section_of(r) is None]
        added = _complete(self._priority_order, root_ids)
        moved = _shift(self._priority_order, item_id, delta, set(ungrouped) if ungrouped else None)
        return {Slice.PRIORITIES} if added or moved else set()

    def set_priority_order(self, item_ids: Iterable[str]) -> set[Slice]:
        """Replace the global priority order wholesale."""
        self._priority_order = _dedupe(item_ids)
        return {Slice.PRIORITIES}

    # --- Sections ---

    def create_section(self, name: str) -> Section:
        existing = {s.id for s in self._sections}
        section_id = uuid.uuid4().hex[:8]
        while section_id in existing:
            section_id = uuid.uuid4().hex[:8]
        section = Section(id=section_id, name=name.strip() or "Untitled")
        self._sections.append(section)
        return section

    def _replace_section(self, section_id: str, **changes: object) -> set[Slice]:
        for i, s in enumerate(self._sections):
            if s.id == section_id:
                self._sections[i] = Section(
                    id=s.id,
                    name=str(changes.get("name", s.name)),
                    collapsed=bool(changes.get("collapsed", s.collapsed)),
                )
                return {Slice.SECTIONS}
        return set()

    def rename_section(self, section_id: str, name: str) -> set[Slice]:
        if not name.strip():
            return set()
        return self._replace_section(section_id, name=name.strip())

    def set_section_collapsed(self, section_id: str, collapsed: bool) -> set[Slice]:
        return self._replace_section(section_id, collapsed=collapsed)

    def delete_section(self, section_id: str) -> set[Slice]:
        """Remove a section; its members become ungrouped."""
        if self.section(section_id) is None:
            return set()
        self._sections = [s for s in self._sections if s.id != section_id]
        self._assignment_of = {k: v for k, v in self._assignment_of.items() if v != section_id}
        self._order_within_section.pop(section_id, None)
        return {Slice.SECTIONS}

    def move_section(self, section_id: str, direction: Direction) -> set[Slice]:
        ids = [s.id for s in self._sections]
        if not _shift(ids, section_id, -1 if direction == Direction.UP else 1):
            return set()
        by_id = {s.id: s for s in self._sections}
        self._sections = [by_id[i] for i in ids]
        return {Slice.SECTIONS}

    # --- Reconciliation ---

    def gc(self, live_ids: Iterable[str]) -> set[Slice]:
        """Drop references to items that no longer exist.

        A nesting edge goes when either end is gone. Empty child lists and
        empty section orders are dropped, as are assignments and orders
        pointing at sections that no longer exist. Returns changed slices only.
        """
        live = set(live_ids)
        changed: set[Slice] = set()

        for child_id, parent_id in list(self._parent_of.items()):
            if child_id not in live or parent_id not in live:
                del self._parent_of[child_id]
                changed.add(Slice.NESTING)

        for parent_id, children in list(self._children_of.items()):
            kept = [c for c in children if c in live] if parent_id in live else []
            if kept != children:
                changed.add(Slice.NESTING)
            if kept:
                self._children_of[parent_id] = kept
            else:
                del self._children_of[parent_id]
                changed.add(Slice.NESTING)

        kept_priority = [i for i in self._priority_order if i in live]
        if kept_priority != self._priority_order:
            self._priority_order = kept_priority
            changed.add(Slice.PRIORITIES)

        known_sections = {s.id for s in self._sections}
        for item_id, section_id in list(self._assignment_of.items()):
            if item_id not in live or section_id not in known_sections:
                del self._assignment_of[item_id]
                changed.add(Slice.SECTIONS)

        for section_id, order in list(self._order_within_section.items()):
            kept = [i for i in order if i in live] if section_id in known_sections else []
            if kept != order:
                changed.add(Slice.SECTIONS)
            if kept:
                self._order_within_section[section_id] = kept
            else:
                del self._order_within_section[section_id]
                changed.add(Slice.SECTIONS)

        if changed:
            logger.debug("Reconciliation changed: {}", ", ".join(sorted(changed)))
        return changed
