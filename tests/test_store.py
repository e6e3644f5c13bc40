from doctrine.loader import entry_id_for
from doctrine.store import (
    adjacent_chapters,
    chapters_by_tag,
    get_chapter,
    get_children,
    get_entry,
    get_flat,
    get_summary,
    get_tree,
    read_chapter,
    search_entries,
    tag_chapter,
    add_tag,
)


def test_tree_shape(loaded_db):
    roots = get_tree(loaded_db)
    assert [r.title for r in roots] == [
        "The Doctrine of God",
        "The Doctrine of the Application of Redemption",
    ]
    part2 = roots[1]
    assert [c.chapter_number for c in part2.children] == [32, 33]
    ch32 = part2.children[0]
    assert [s.section_letter for s in ch32.children] == ["A", "B"]
    assert [s.subsection_number for s in ch32.children[0].children] == ["1", "2"]


def test_flat_is_document_order(loaded_db):
    labels = [e.label for e in get_flat(loaded_db)]
    assert labels == [
        "Part 1", "Ch 1", "Ch 1:A", "Ch 2",
        "Part 2", "Ch 32", "Ch 32:A", "Ch 32:A.1", "Ch 32:A.2", "Ch 32:B", "Ch 33",
    ]


def test_get_entry_leaves_children_empty(loaded_db):
    entry = get_entry(entry_id_for("chapter:32"), loaded_db)
    assert entry.children == []
    assert [c.section_letter for c in get_children(entry.id, loaded_db)] == ["A", "B"]


def test_get_chapter_atomic_view(loaded_db):
    view = get_chapter(32, loaded_db)
    assert view.chapter.title == "Election and Reprobation"
    assert all(s.entry_type == "section" for s in view.sections)
    assert [s.title for s in view.sections] == [
        "Is Election Taught in Scripture?",
        "Misunderstandings of Election",
    ]
    section_a = view.sections[0]
    assert [s.title for s in view.subsections[section_a.id]] == ["Foreknowledge", "Predestination"]
    assert len(view.scripture_rows) == 9
    flags = [r.is_primary for r in view.scripture_rows]
    assert flags == sorted(flags, reverse=True)
    assert [r.chapter_number for r in view.related] == [33]
    assert [t.id for t in view.tags] == ["part-2"]


def test_missing_chapter(loaded_db):
    assert get_chapter(99, loaded_db) is None
    assert read_chapter(99, loaded_db) is None
    assert get_entry("no-such-id", loaded_db) is None


def test_read_chapter_is_continuous(loaded_db):
    text = read_chapter(32, loaded_db)
    assert text.startswith("Chapter 32: Election and Reprobation")
    positions = [
        text.index("God chose some"),
        text.index("A. Is Election Taught in Scripture?"),
        text.index("Foreknowledge is personal"),
        text.index("Predestination is a broader"),
        text.index("B. Misunderstandings of Election"),
    ]
    assert positions == sorted(positions)


def test_adjacent_chapters_skip_gaps(loaded_db):
    assert adjacent_chapters(32, loaded_db) == (2, 33)
    assert adjacent_chapters(1, loaded_db) == (None, 2)
    assert adjacent_chapters(33, loaded_db) == (32, None)
    assert adjacent_chapters(10, loaded_db) == (2, 32)


def test_search_entries(loaded_db):
    results = search_entries("Foreknowledge", db_path=loaded_db)
    assert results[0].entry_type == "subsection"
    assert search_entries("a", db_path=loaded_db) == []
    assert search_entries("nothing matches this", db_path=loaded_db) == []


def test_tags(loaded_db):
    assert [c.chapter_number for c in chapters_by_tag("part-2", loaded_db)] == [32, 33]
    add_tag("election", "Election", color="#aa0000", db_path=loaded_db)
    tag_chapter(32, "election", db_path=loaded_db)
    assert [c.chapter_number for c in chapters_by_tag("election", loaded_db)] == [32]
    assert {t.id for t in get_chapter(32, loaded_db).tags} == {"part-2", "election"}


def test_missing_database_is_empty(tmp_path, capsys):
    missing = tmp_path / "missing.sqlite"
    assert get_tree(missing) == []
    assert get_chapter(1, missing) is None
    assert get_summary(missing)["chapters"] == 0
    assert "[warn]" in capsys.readouterr().out
