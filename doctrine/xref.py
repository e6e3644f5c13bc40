"""
Scripture cross-reference index: entry -> ranges and range -> entries.

The scripture_index table is written once by the import pipeline and
only read here. Reverse lookups narrow candidates in SQL by book and
chapter span (the (book, start_chapter, end_chapter) index) and then
apply the exact overlap test in Python.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .canon import chapter_count, resolve_book_id
from .db import get_conn
from .model import CanonicalRange, Entry, PassageMatch, ScriptureIndexRow
from .reference import parse_reference
from .store import row_sort_key
from .util import warn

DbPath = Optional[Union[str, Path]]


def ranges_for(entry_id: str, db_path: DbPath = None) -> List[ScriptureIndexRow]:
    """
    Cited ranges of one entry: primary first, then canonical order.
    """
    try:
        with get_conn(db_path, readonly=True) as conn:
            rows = conn.execute(
                "SELECT * FROM scripture_index WHERE entry_id = ?;",
                (entry_id,),
            ).fetchall()
    except sqlite3.Error as e:
        warn(f"Database error while reading ranges for {entry_id}: {e}")
        return []
    return sorted((ScriptureIndexRow.from_db_row(r) for r in rows), key=row_sort_key)


def _position(row: sqlite3.Row) -> Tuple[int, int, int]:
    """
    (chapter sort_order, section position, subsection position) of the
    entry owning an index row.
    """
    entry_type = row["entry_type"]
    own = row["sort_order"]
    parent = row["parent_sort"] or 0
    grandparent = row["grandparent_sort"] or 0
    if entry_type == "subsection":
        return grandparent, parent, own
    if entry_type == "section":
        return parent, own, 0
    if entry_type == "chapter":
        return own, 0, 0
    return 0, 0, 0


def entries_for(query: CanonicalRange, db_path: DbPath = None) -> List[PassageMatch]:
    """
    Every index row whose range overlaps the query, with its entry.

    Parameters
    ----------
    query:
        A validated range. Overlap is inclusive and partial overlap counts;
        verse positions are compared only when both ranges carry verses.

    Returns
    -------
    List of PassageMatch, ordered: primary rows first, then by the
    containing chapter's sort_order, then by the entry's position in the
    chapter, then by row id.
    """
    try:
        with get_conn(db_path, readonly=True) as conn:
            rows = conn.execute(
                """
                SELECT si.id              AS row_id,
                       si.entry_id        AS row_entry_id,
                       si.book,
                       si.start_chapter,
                       si.start_verse,
                       si.end_chapter,
                       si.end_verse,
                       si.is_primary,
                       si.context_snippet,
                       e.id, e.entry_type, e.part_number, e.chapter_number,
                       e.section_letter, e.subsection_number, e.title, e.content,
                       e.summary, e.parent_id, e.sort_order, e.word_count,
                       p.sort_order       AS parent_sort,
                       gp.sort_order      AS grandparent_sort
                FROM scripture_index si
                JOIN systematic_entries e ON e.id = si.entry_id
                LEFT JOIN systematic_entries p ON p.id = e.parent_id
                LEFT JOIN systematic_entries gp ON gp.id = p.parent_id
                WHERE si.book = ?
                  AND si.start_chapter <= ?
                  AND si.end_chapter >= ?;
                """,
                (query.book, query.end_chapter, query.start_chapter),
            ).fetchall()
    except sqlite3.Error as e:
        warn(f"Database error during passage lookup: {e}")
        return []

    keyed: List[Tuple[Tuple[int, int, int, int, str], PassageMatch]] = []
    for r in rows:
        index_row = ScriptureIndexRow(
            id=r["row_id"],
            entry_id=r["row_entry_id"],
            range=CanonicalRange(
                book=r["book"],
                start_chapter=r["start_chapter"],
                start_verse=r["start_verse"],
                end_chapter=r["end_chapter"],
                end_verse=r["end_verse"],
            ),
            is_primary=bool(r["is_primary"]),
            context_snippet=r["context_snippet"],
        )
        if not index_row.range.overlaps(query):
            continue
        chapter_sort, section_pos, subsection_pos = _position(r)
        key = (
            0 if index_row.is_primary else 1,
            chapter_sort,
            section_pos,
            subsection_pos,
            index_row.id,
        )
        keyed.append(
            (key, PassageMatch(entry=Entry.from_db_row(r), row=index_row, is_primary=index_row.is_primary))
        )

    keyed.sort(key=lambda item: item[0])
    return [match for _, match in keyed]


def _distinct_entries(matches: List[PassageMatch]) -> List[PassageMatch]:
    seen: Dict[str, PassageMatch] = {}
    for match in matches:
        if match.entry.id not in seen:
            seen[match.entry.id] = match
    return list(seen.values())


def doctrines_for_passage(
    book: str,
    chapter: int,
    verse: Optional[int] = None,
    db_path: DbPath = None,
) -> List[PassageMatch]:
    """
    Entries citing a chapter, or a single verse, of a book.

    Each entry appears once, with its highest-priority matching row.

    Raises
    ------
    ValueError
        For an unknown book, or a chapter/verse outside the valid bounds.
    """
    code = resolve_book_id(book)
    if code is None:
        raise ValueError(f"Unknown book: {book!r}")
    max_chapter = chapter_count(code)
    if isinstance(chapter, bool) or not isinstance(chapter, int) or not 1 <= chapter <= max_chapter:
        raise ValueError(f"Chapter {chapter!r} is outside 1..{max_chapter} for {code}")
    if verse is not None and (isinstance(verse, bool) or not isinstance(verse, int) or verse < 1):
        raise ValueError(f"Verse must be a positive integer, got {verse!r}")

    query = CanonicalRange(
        book=code,
        start_chapter=chapter,
        start_verse=verse,
        end_chapter=chapter,
        end_verse=verse,
    )
    return _distinct_entries(entries_for(query, db_path))


def doctrines_for_reference(text: str, db_path: DbPath = None) -> List[PassageMatch]:
    """
    Entries citing any part of a free-text reference ("Rom 8:28-30").
    Unparsable text yields no results.
    """
    query = parse_reference(text)
    if query is None:
        return []
    return _distinct_entries(entries_for(query, db_path))
