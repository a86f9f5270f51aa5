"""Tests for cached per-document extraction."""

from focus_todos.core.extract.extractor import ItemExtractor
from focus_todos.models.document import DocumentRef
from tests.unit.fakes import FakeVault


def _doc(vault: FakeVault, path: str) -> DocumentRef:
    doc = vault.get_document(path)
    assert doc is not None
    return doc


def test_unchanged_document_is_not_reread() -> None:
    vault = FakeVault({"TODO.md": "- [ ] A\n- [ ] B\n"})
    extractor = ItemExtractor(vault)

    first = extractor.parse_document(_doc(vault, "TODO.md"))
    second = extractor.parse_document(_doc(vault, "TODO.md"))

    assert vault.reads == ["TODO.md"]
    assert first == second
    assert extractor.is_cached(_doc(vault, "TODO.md"))


def test_mtime_change_triggers_rescan() -> None:
    vault = FakeVault({"TODO.md": "- [ ] A\n"})
    extractor = ItemExtractor(vault)
    extractor.parse_document(_doc(vault, "TODO.md"))

    vault.set("TODO.md", "- [ ] A\n- [ ] B\n")
    items = extractor.parse_document(_doc(vault, "TODO.md"))

    assert [i.text for i in items] == ["A", "B"]
    assert vault.reads == ["TODO.md", "TODO.md"]


def test_same_mtime_serves_stale_cache_until_invalidated() -> None:
    vault = FakeVault({"TODO.md": "- [ ] A\n"})
    extractor = ItemExtractor(vault)
    extractor.parse_document(_doc(vault, "TODO.md"))

    vault.set("TODO.md", "- [ ] Changed\n", mtime=1000.0)
    assert [i.text for i in extractor.parse_document(_doc(vault, "TODO.md"))] == ["A"]

    extractor.invalidate("TODO.md")
    assert [i.text for i in extractor.parse_document(_doc(vault, "TODO.md"))] == ["Changed"]


def test_clear_drops_every_entry() -> None:
    vault = FakeVault({"a.md": "- [ ] A\n", "b.md": "- [ ] B\n"})
    extractor = ItemExtractor(vault)
    extractor.parse_documents(vault.list_documents())
    extractor.clear()
    assert not extractor.is_cached(_doc(vault, "a.md"))
    assert not extractor.is_cached(_doc(vault, "b.md"))


def test_missing_document_yields_no_items() -> None:
    vault = FakeVault()
    extractor = ItemExtractor(vault)
    assert extractor.parse_document(DocumentRef(path="gone.md", mtime=1.0)) == []
    assert not extractor.is_cached(DocumentRef(path="gone.md", mtime=1.0))


def test_parse_documents_concatenates_in_order() -> None:
    vault = FakeVault({"a.md": "- [ ] A\n", "b.md": "- [ ] B1\n- [ ] B2\n"})
    extractor = ItemExtractor(vault)
    items = extractor.parse_documents(vault.list_documents())
    assert [i.text for i in items] == ["A", "B1", "B2"]


def test_documents_leaving_the_scanned_set_are_evicted() -> None:
    vault = FakeVault({"a.md": "- [ ] A\n", "b.md": "- [ ] B\n"})
    extractor = ItemExtractor(vault)
    extractor.parse_documents(vault.list_documents())
    a, b = _doc(vault, "a.md"), _doc(vault, "b.md")

    items = extractor.parse_documents([b])

    assert [i.text for i in items] == ["B"]
    assert not extractor.is_cached(a)
    assert extractor.is_cached(b)
