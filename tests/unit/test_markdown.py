"""Tests for markdown and JSON rendering of the display tree."""

from focus_todos.core.tree.markdown import render_display_tree_as_markdown
from focus_todos.core.tree.serialize import item_to_dict, tree_to_dict
from focus_todos.models.ordering import DisplayTree, Section, SectionBucket, TreeNode
from tests.unit.fakes import make_item


def _tree(*, collapsed: bool = False) -> DisplayTree:
    a = make_item("a", path="TODO.md", line=2)
    b = make_item("b", path="2026/2026-10-18.md", line=5)
    w = make_item("w", path="TODO.md", line=9)
    return DisplayTree(
        ungrouped=(TreeNode(item=a, children=(TreeNode(item=b),)),),
        sections=(
            SectionBucket(
                section=Section(id="s1", name="Work", collapsed=collapsed),
                roots=(TreeNode(item=w),),
            ),
        ),
    )


def test_render_with_sources() -> None:
    assert render_display_tree_as_markdown(_tree()) == (
        "- [ ] a  (TODO:2)\n"
        "    - [ ] b  (2026-10-18:5)\n"
        "\n"
        "## Work\n"
        "- [ ] w  (TODO:9)\n"
    )


def test_render_without_sources_with_ids() -> None:
    md = render_display_tree_as_markdown(_tree(), include_source=False, include_ids=True)
    assert md.splitlines()[:2] == ["- [ ] a  id=a", "    - [ ] b  id=b"]


def test_collapsed_section_shows_count_only() -> None:
    md = render_display_tree_as_markdown(_tree(collapsed=True))
    assert "## Work\n(collapsed, 1 item)\n" in md
    assert "- [ ] w" not in md


def test_empty_tree_renders_empty_string() -> None:
    assert render_display_tree_as_markdown(DisplayTree()) == ""


def test_section_only_tree_has_no_leading_blank_line() -> None:
    tree = DisplayTree(sections=(SectionBucket(section=Section(id="s", name="Later")),))
    assert render_display_tree_as_markdown(tree) == "## Later\n"


def test_item_to_dict() -> None:
    data = item_to_dict(make_item("a", path="TODO.md", line=3))
    assert data["id"] == "a"
    assert data["path"] == "TODO.md"
    assert data["line"] == 3
    assert data["captured_at"] == "2024-01-01T00:00:00+00:00"
    assert "linked_document" not in data


def test_tree_to_dict_nests_children_and_sections() -> None:
    data = tree_to_dict(_tree(collapsed=True))
    assert [n["id"] for n in data["ungrouped"]] == ["a"]
    assert [c["id"] for c in data["ungrouped"][0]["children"]] == ["b"]
    assert data["sections"][0]["name"] == "Work"
    assert data["sections"][0]["collapsed"] is True
    assert [n["id"] for n in data["sections"][0]["items"]] == ["w"]
