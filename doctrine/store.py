"""
Read access to the systematic theology store.

This module provides:

- get_tree()                  roots (parts) with nested children
- get_chapter(n)              atomic view: chapter, sections, citations, links, tags
- get_entry(id), get_children(id), get_flat()
- read_chapter(n)             continuous view: the whole chapter as one text
- adjacent_chapters(n)        previous/next chapter numbers (gaps allowed)
- list_tags(), chapters_by_tag(tag_id), add_tag(...), tag_chapter(...)
- search_entries(query)       LIKE search over titles, content and summaries
- get_summary()               counts for the status report

Every reader opens its own read-only connection; database errors are
reported with a warning and an empty result.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .canon import book_order
from .db import get_conn
from .model import ChapterView, Entry, RelatedChapter, ScriptureIndexRow, Tag
from .util import warn

DbPath = Optional[Union[str, Path]]

ENTRY_COLUMNS = """
    id, entry_type, part_number, chapter_number, section_letter,
    subsection_number, title, content, summary, parent_id,
    sort_order, word_count
"""


def _fetch_entries(sql: str, params: tuple = (), db_path: DbPath = None) -> List[Entry]:
    try:
        with get_conn(db_path, readonly=True) as conn:
            rows = conn.execute(sql, params).fetchall()
    except sqlite3.Error as e:
        warn(f"Database error while reading entries: {e}")
        return []
    return [Entry.from_db_row(r) for r in rows]


def get_entry(entry_id: str, db_path: DbPath = None) -> Optional[Entry]:
    entries = _fetch_entries(
        f"SELECT {ENTRY_COLUMNS} FROM systematic_entries WHERE id = ?;",
        (entry_id,),
        db_path,
    )
    return entries[0] if entries else None


def get_children(entry_id: str, db_path: DbPath = None) -> List[Entry]:
    return _fetch_entries(
        f"""
        SELECT {ENTRY_COLUMNS}
        FROM systematic_entries
        WHERE parent_id = ?
        ORDER BY sort_order, title;
        """,
        (entry_id,),
        db_path,
    )


def get_flat(db_path: DbPath = None) -> List[Entry]:
    """
    Every entry in document order (depth-first over get_tree()).
    """
    flat: List[Entry] = []

    def walk(nodes: List[Entry]) -> None:
        for node in nodes:
            flat.append(node)
            walk(node.children)

    walk(get_tree(db_path))
    return flat


def row_sort_key(row: ScriptureIndexRow) -> Tuple[int, int, int, int, str]:
    """Primary first, then canonical book order, chapter and verse."""
    return (
        0 if row.is_primary else 1,
        book_order(row.range.book),
        row.range.start_chapter,
        row.range.start_verse or 0,
        row.id,
    )


def get_tree(db_path: DbPath = None) -> List[Entry]:
    """
    Build the part -> chapter -> section -> subsection forest.

    Siblings are ordered by (sort_order, title). An entry whose parent is
    missing is returned as a root.

    Returns
    -------
    List of root Entry objects with `children` populated.
    """
    entries = _fetch_entries(
        f"SELECT {ENTRY_COLUMNS} FROM systematic_entries ORDER BY sort_order, title;",
        (),
        db_path,
    )
    by_id: Dict[str, Entry] = {e.id: e for e in entries}
    roots: List[Entry] = []
    for entry in entries:
        parent = by_id.get(entry.parent_id) if entry.parent_id else None
        if parent is None:
            roots.append(entry)
        else:
            parent.children.append(entry)
    return roots


def _chapter_entry(conn: sqlite3.Connection, chapter_number: int) -> Optional[Entry]:
    row = conn.execute(
        f"""
        SELECT {ENTRY_COLUMNS}
        FROM systematic_entries
        WHERE entry_type = 'chapter' AND chapter_number = ?;
        """,
        (chapter_number,),
    ).fetchone()
    return Entry.from_db_row(row) if row else None


def get_chapter(chapter_number: int, db_path: DbPath = None) -> Optional[ChapterView]:
    """
    Atomic view of one chapter.

    Parameters
    ----------
    chapter_number:
        The chapter to load.

    Returns
    -------
    ChapterView or None if the chapter does not exist.
        sections       : section entries only, in reading order
        subsections    : section id -> its subsections, in reading order
        scripture_rows : citations of the chapter and everything under it,
                         primary first
        related        : "see also" chapters that exist in the store
        tags           : tags assigned to the chapter
    """
    try:
        with get_conn(db_path, readonly=True) as conn:
            chapter = _chapter_entry(conn, chapter_number)
            if chapter is None:
                return None

            sections = [
                Entry.from_db_row(r)
                for r in conn.execute(
                    f"""
                    SELECT {ENTRY_COLUMNS}
                    FROM systematic_entries
                    WHERE parent_id = ? AND entry_type = 'section'
                    ORDER BY sort_order, title;
                    """,
                    (chapter.id,),
                ).fetchall()
            ]

            subsections: Dict[str, List[Entry]] = {}
            for section in sections:
                subsections[section.id] = [
                    Entry.from_db_row(r)
                    for r in conn.execute(
                        f"""
                        SELECT {ENTRY_COLUMNS}
                        FROM systematic_entries
                        WHERE parent_id = ? AND entry_type = 'subsection'
                        ORDER BY sort_order, title;
                        """,
                        (section.id,),
                    ).fetchall()
                ]

            index_rows = conn.execute(
                """
                SELECT si.*
                FROM scripture_index si
                JOIN systematic_entries e ON e.id = si.entry_id
                WHERE e.entry_type <> 'part' AND e.chapter_number = ?;
                """,
                (chapter_number,),
            ).fetchall()
            scripture_rows = sorted(
                (ScriptureIndexRow.from_db_row(r) for r in index_rows),
                key=row_sort_key,
            )

            related = [
                RelatedChapter(
                    chapter_number=r["chapter_number"],
                    title=r["title"],
                    relationship_type=r["relationship_type"],
                )
                for r in conn.execute(
                    """
                    SELECT e.chapter_number, e.title, rc.relationship_type
                    FROM related_chapters rc
                    JOIN systematic_entries e
                      ON e.entry_type = 'chapter' AND e.chapter_number = rc.target_chapter
                    WHERE rc.source_chapter = ?
                    ORDER BY e.sort_order;
                    """,
                    (chapter_number,),
                ).fetchall()
            ]

            tags = [
                Tag(id=r["id"], name=r["name"], color=r["color"], sort_order=r["sort_order"])
                for r in conn.execute(
                    """
                    SELECT t.id, t.name, t.color, t.sort_order
                    FROM chapter_tags ct
                    JOIN systematic_tags t ON t.id = ct.tag_id
                    WHERE ct.chapter_number = ?
                    ORDER BY t.sort_order, t.name;
                    """,
                    (chapter_number,),
                ).fetchall()
            ]
    except sqlite3.Error as e:
        warn(f"Database error while loading chapter {chapter_number}: {e}")
        return None

    return ChapterView(
        chapter=chapter,
        sections=sections,
        subsections=subsections,
        scripture_rows=scripture_rows,
        related=related,
        tags=tags,
    )


def read_chapter(chapter_number: int, db_path: DbPath = None) -> Optional[str]:
    """
    Continuous reading view: chapter heading and intro, then each section's
    heading and its stored (already aggregated) content.
    """
    view = get_chapter(chapter_number, db_path)
    if view is None:
        return None

    blocks: List[str] = [f"Chapter {chapter_number}: {view.chapter.title}"]
    if view.chapter.content:
        blocks.append(view.chapter.content)
    for section in view.sections:
        blocks.append(f"{section.section_letter}. {section.title}")
        if section.content:
            blocks.append(section.content)
    return "\n\n".join(blocks)


def adjacent_chapters(
    chapter_number: int,
    db_path: DbPath = None,
) -> Tuple[Optional[int], Optional[int]]:
    """
    (previous, next) chapter numbers that actually exist, skipping gaps.
    """
    try:
        with get_conn(db_path, readonly=True) as conn:
            prev_row = conn.execute(
                """
                SELECT MAX(chapter_number) FROM systematic_entries
                WHERE entry_type = 'chapter' AND chapter_number < ?;
                """,
                (chapter_number,),
            ).fetchone()
            next_row = conn.execute(
                """
                SELECT MIN(chapter_number) FROM systematic_entries
                WHERE entry_type = 'chapter' AND chapter_number > ?;
                """,
                (chapter_number,),
            ).fetchone()
    except sqlite3.Error as e:
        warn(f"Database error during chapter navigation: {e}")
        return None, None
    return prev_row[0], next_row[0]


# ---------- Tags ----------


def list_tags(db_path: DbPath = None) -> List[Tag]:
    """
    All tags with the number of chapters assigned to each.
    """
    try:
        with get_conn(db_path, readonly=True) as conn:
            rows = conn.execute(
                """
                SELECT t.id, t.name, t.color, t.sort_order, COUNT(ct.chapter_number) AS chapter_count
                FROM systematic_tags t
                LEFT JOIN chapter_tags ct ON ct.tag_id = t.id
                GROUP BY t.id
                ORDER BY t.sort_order, t.name;
                """
            ).fetchall()
    except sqlite3.Error as e:
        warn(f"Database error while listing tags: {e}")
        return []
    return [
        Tag(
            id=r["id"],
            name=r["name"],
            color=r["color"],
            sort_order=r["sort_order"],
            chapter_count=int(r["chapter_count"]),
        )
        for r in rows
    ]


def chapters_by_tag(tag_id: str, db_path: DbPath = None) -> List[Entry]:
    return _fetch_entries(
        f"""
        SELECT {ENTRY_COLUMNS}
        FROM systematic_entries
        WHERE entry_type = 'chapter'
          AND chapter_number IN (SELECT chapter_number FROM chapter_tags WHERE tag_id = ?)
        ORDER BY sort_order, title;
        """,
        (tag_id,),
        db_path,
    )


def add_tag(
    tag_id: str,
    name: str,
    color: Optional[str] = None,
    sort_order: int = 0,
    db_path: DbPath = None,
) -> None:
    """
    Insert or rename a tag. Import never overwrites tags that already exist.
    """
    with get_conn(db_path) as conn:
        conn.execute(
            """
            INSERT INTO systematic_tags (id, name, color, sort_order)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                name       = excluded.name,
                color      = excluded.color,
                sort_order = excluded.sort_order;
            """,
            (tag_id, name, color, sort_order),
        )
        conn.commit()


def tag_chapter(chapter_number: int, tag_id: str, db_path: DbPath = None) -> None:
    with get_conn(db_path) as conn:
        conn.execute(
            "INSERT OR IGNORE INTO chapter_tags (chapter_number, tag_id) VALUES (?, ?);",
            (chapter_number, tag_id),
        )
        conn.commit()


# ---------- Search & summary ----------


def search_entries(query: str, limit: int = 20, db_path: DbPath = None) -> List[Entry]:
    """
    Simple LIKE search over title, content and summary.

    Queries shorter than two characters return no results.
    """
    query = (query or "").strip()
    if len(query) < 2:
        return []
    pattern = f"%{query}%"
    return _fetch_entries(
        f"""
        SELECT {ENTRY_COLUMNS}
        FROM systematic_entries
        WHERE title LIKE ? OR content LIKE ? OR summary LIKE ?
        ORDER BY title LIKE ? DESC, entry_type = 'chapter' DESC, COALESCE(chapter_number, 0), sort_order
        LIMIT ?;
        """,
        (pattern, pattern, pattern, pattern, limit),
        db_path,
    )


def get_summary(db_path: DbPath = None) -> Dict[str, int]:
    """
    Counts by entry type plus scripture rows, related links and tags.
    """
    summary = {
        "parts": 0,
        "chapters": 0,
        "sections": 0,
        "subsections": 0,
        "scripture_rows": 0,
        "primary_rows": 0,
        "related_links": 0,
        "tags": 0,
    }
    try:
        with get_conn(db_path, readonly=True) as conn:
            for entry_type, count in conn.execute(
                "SELECT entry_type, COUNT(*) FROM systematic_entries GROUP BY entry_type;"
            ).fetchall():
                summary[f"{entry_type}s"] = int(count)
            summary["scripture_rows"] = conn.execute(
                "SELECT COUNT(*) FROM scripture_index;"
            ).fetchone()[0]
            summary["primary_rows"] = conn.execute(
                "SELECT COUNT(*) FROM scripture_index WHERE is_primary = 1;"
            ).fetchone()[0]
            summary["related_links"] = conn.execute(
                "SELECT COUNT(*) FROM related_chapters;"
            ).fetchone()[0]
            summary["tags"] = conn.execute(
                "SELECT COUNT(*) FROM systematic_tags;"
            ).fetchone()[0]
    except sqlite3.Error as e:
        warn(f"Database error while summarizing: {e}")
    return summary
