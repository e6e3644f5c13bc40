"""
Systematic theology import pipeline for the Doctrine Index.

This module:
- Ensures the systematic schema exists.
- Turns a batch of ImportRecord rows into a part/chapter/section/subsection
  forest, with section content aggregated from its subsections.
- Parses every cited range through doctrine.reference and flags the first
  few citations of each chapter as primary.
- Extracts "see chapter N" links and seeds one tag per part.
- Refuses batches that carry only part of a chapter already in the store.
- Writes everything in a single transaction (unless dry-run is enabled).
"""

from __future__ import annotations

import re
import sqlite3
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set, Tuple, Union

from . import config
from .db import apply_schema, get_conn
from .paths import resolve_db_path
from .model import CanonicalRange
from .records import ImportRecord, RecordError, normalize_subsection
from .reference import format_reference, parse_reference
from .util import info, ok, warn

# Namespace for deterministic entry and index-row ids.
ID_NAMESPACE = uuid.UUID("5b0f4a62-3c1e-5d8e-9a47-2f6d0c1b7e93")

SEE_CHAPTER_PATTERN = re.compile(
    r"see\s+(?:also\s+)?(?:chapters?|ch\.?)\s*(\d+)(?:\s*[-–]\s*(\d+))?",
    re.IGNORECASE,
)
TAG_PATTERN = re.compile(r"<[^>]+>")

PART_TAG_COLORS = [
    "#6b8e23",
    "#4682b4",
    "#b8860b",
    "#8b4513",
    "#6a5acd",
    "#2f4f4f",
    "#a0522d",
]


class ImportBatchError(Exception):
    """A structural problem that aborts the whole batch; nothing is written."""


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0
    scripture_rows_created: int = 0
    entries: int = 0
    dry_run: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "imported": self.imported,
            "skipped": self.skipped,
            "scripture_rows_created": self.scripture_rows_created,
            "entries": self.entries,
            "dry_run": self.dry_run,
        }


@dataclass
class _PlannedEntry:
    id: str
    entry_type: str
    part_number: int
    chapter_number: Optional[int]
    section_letter: Optional[str]
    subsection_number: Optional[str]
    parent_id: Optional[str]
    sort_order: int
    title: str = ""
    summary: Optional[str] = None
    texts: List[str] = field(default_factory=list)
    child_ids: List[str] = field(default_factory=list)
    content: str = ""


@dataclass
class _PlannedRow:
    id: str
    entry_id: str
    range: CanonicalRange
    is_primary: bool
    snippet: str


@dataclass
class _Plan:
    entries: Dict[str, _PlannedEntry] = field(default_factory=dict)
    rows: List[_PlannedRow] = field(default_factory=list)
    related: List[Tuple[int, int]] = field(default_factory=list)
    part_titles: Dict[int, str] = field(default_factory=dict)
    chapter_parts: Dict[int, int] = field(default_factory=dict)
    addressed: Set[str] = field(default_factory=set)
    skipped: int = 0


def entry_id_for(key: str) -> str:
    """
    Deterministic id for a natural key such as 'chapter:32' or 'section:32:A'.
    """
    return str(uuid.uuid5(ID_NAMESPACE, key))


def count_words(content: str) -> int:
    """Count words after stripping markup tags."""
    text = TAG_PATTERN.sub(" ", content or "")
    return len(text.split())


def extract_see_chapters(content: str) -> List[int]:
    """
    Chapter numbers named by "see chapter 35", "see also ch. 36-37" phrases,
    in order of first mention.
    """
    found: List[int] = []
    for m in SEE_CHAPTER_PATTERN.finditer(content or ""):
        start = int(m.group(1))
        end = int(m.group(2)) if m.group(2) else start
        for chapter in range(start, end + 1):
            if chapter not in found:
                found.append(chapter)
    return found


def ensure_schema(db_path: Optional[Union[str, Path]] = None) -> None:
    """
    Apply the systematic schema SQL file to the database (idempotent).
    """
    apply_schema(db_path)


# ---------- Planning ----------


def _coerce_records(records: Iterable[Union[ImportRecord, Mapping[str, Any]]]) -> List[ImportRecord]:
    result: List[ImportRecord] = []
    for idx, rec in enumerate(records):
        if isinstance(rec, ImportRecord):
            number = normalize_subsection(rec.subsection_number)
            if number != rec.subsection_number:
                rec = replace(rec, subsection_number=number)
            result.append(rec)
        elif isinstance(rec, Mapping):
            try:
                result.append(ImportRecord.from_dict(rec, source_row=idx))
            except RecordError as e:
                raise ImportBatchError(f"Record {idx}: {e}") from e
        else:
            raise ImportBatchError(f"Record {idx}: expected a mapping, got {type(rec).__name__}")
    return result


def _primary_limit() -> int:
    return max(config.PRIMARY_REFS_MIN, min(config.PRIMARY_REFS_MAX, config.PRIMARY_REFS_PER_CHAPTER))


def _build_plan(records: List[ImportRecord]) -> _Plan:
    """
    Validate the batch and lay out every entry, index row and link in memory.

    Raises ImportBatchError on structural problems.
    """
    plan = _Plan()
    entries = plan.entries
    sibling_counts: Dict[str, int] = {}
    primary_counts: Dict[int, int] = {}
    citation_ordinals: Dict[str, int] = {}
    primary_limit = _primary_limit()

    def ensure(
        key: str,
        entry_type: str,
        parent: Optional[_PlannedEntry],
        part_number: int,
        chapter_number: Optional[int] = None,
        section_letter: Optional[str] = None,
        subsection_number: Optional[str] = None,
        sort_order: Optional[int] = None,
    ) -> _PlannedEntry:
        entry_id = entry_id_for(key)
        if entry_id in entries:
            return entries[entry_id]
        if sort_order is None:
            parent_key = parent.id if parent else ""
            sibling_counts[parent_key] = sibling_counts.get(parent_key, 0) + 1
            sort_order = sibling_counts[parent_key]
        node = _PlannedEntry(
            id=entry_id,
            entry_type=entry_type,
            part_number=part_number,
            chapter_number=chapter_number,
            section_letter=section_letter,
            subsection_number=subsection_number,
            parent_id=parent.id if parent else None,
            sort_order=sort_order,
        )
        entries[entry_id] = node
        if parent is not None:
            parent.child_ids.append(entry_id)
        return node

    for idx, rec in enumerate(records):
        where = f"Record {rec.source_row if rec.source_row is not None else idx}"

        if rec.part_number is None or rec.chapter_number is None:
            raise ImportBatchError(f"{where}: partNumber and chapterNumber are required")

        part_no = rec.part_number
        chapter_no = rec.chapter_number

        known_part = plan.chapter_parts.get(chapter_no)
        if known_part is not None and known_part != part_no:
            raise ImportBatchError(
                f"{where}: chapter {chapter_no} appears under part {known_part} and part {part_no}"
            )
        plan.chapter_parts[chapter_no] = part_no

        if rec.subsection_number is not None and rec.section_letter is None:
            raise ImportBatchError(
                f"{where}: subsection {rec.subsection_number} of chapter {chapter_no} has no section letter"
            )

        part = ensure(f"part:{part_no}", "part", None, part_no, sort_order=part_no)
        if rec.part_title and not part.title:
            part.title = rec.part_title

        chapter = ensure(
            f"chapter:{chapter_no}", "chapter", part, part_no,
            chapter_number=chapter_no, sort_order=chapter_no,
        )
        if rec.chapter_title and not chapter.title:
            chapter.title = rec.chapter_title

        target = chapter
        if rec.section_letter is not None:
            letter = rec.section_letter
            section_key = f"section:{chapter_no}:{letter}"
            if (
                rec.subsection_number is not None
                and entry_id_for(section_key) not in entries
                and not rec.section_title
            ):
                raise ImportBatchError(
                    f"{where}: subsection {letter}.{rec.subsection_number} of chapter {chapter_no} "
                    f"refers to section {letter}, which was never introduced"
                )
            section = ensure(
                section_key, "section", chapter, part_no,
                chapter_number=chapter_no, section_letter=letter,
            )
            if rec.section_title and not section.title:
                section.title = rec.section_title
            target = section

            if rec.subsection_number is not None:
                number = rec.subsection_number
                subsection = ensure(
                    f"subsection:{chapter_no}:{letter}.{number}", "subsection", section, part_no,
                    chapter_number=chapter_no, section_letter=letter, subsection_number=number,
                )
                if rec.subsection_title and not subsection.title:
                    subsection.title = rec.subsection_title
                target = subsection

        plan.addressed.add(target.id)
        if rec.raw_content:
            target.texts.append(rec.raw_content)
        if rec.summary:
            target.summary = rec.summary

        for citation in rec.cited_ranges:
            parsed = parse_reference(citation)
            if parsed is None:
                warn(f"{where}: could not parse citation {citation!r} ({target.entry_type} {chapter_no}); skipping.")
                plan.skipped += 1
                continue
            ordinal = citation_ordinals.get(target.id, 0)
            citation_ordinals[target.id] = ordinal + 1
            used = primary_counts.get(chapter_no, 0)
            primary_counts[chapter_no] = used + 1
            row_key = f"{target.id}#{ordinal}:{format_reference(parsed)}"
            plan.rows.append(
                _PlannedRow(
                    id=entry_id_for(row_key),
                    entry_id=target.id,
                    range=parsed,
                    is_primary=used < primary_limit,
                    snippet=citation,
                )
            )

    _finish_plan(plan)
    return plan


def _finish_plan(plan: _Plan) -> None:
    """Fill placeholder titles, aggregate content and collect related chapters."""
    entries = plan.entries

    for node in entries.values():
        if node.title:
            continue
        if node.entry_type == "part":
            node.title = f"Part {node.part_number}"
        elif node.entry_type == "chapter":
            node.title = f"Chapter {node.chapter_number}"
        elif node.entry_type == "section":
            node.title = f"Section {node.section_letter}"
        else:
            node.title = str(node.subsection_number)
        warn(f"Missing title for {node.entry_type} {_describe(node)}; using {node.title!r}.")

    for node in entries.values():
        node.content = "\n".join(node.texts)

    for node in entries.values():
        if node.entry_type != "section" or not node.child_ids:
            continue
        pieces = [node.content] if node.content else []
        for child_id in node.child_ids:
            child = entries[child_id]
            pieces.append(f"{child.subsection_number}. {child.title}")
            if child.content:
                pieces.append(child.content)
        node.content = "\n".join(pieces)

    for node in entries.values():
        if node.entry_type != "chapter":
            continue
        plan.part_titles.setdefault(node.part_number, entries[node.parent_id].title)
        for target in extract_see_chapters(node.content):
            if target != node.chapter_number:
                plan.related.append((node.chapter_number, target))


def _describe(node: _PlannedEntry) -> str:
    if node.entry_type == "part":
        return str(node.part_number)
    if node.entry_type == "chapter":
        return str(node.chapter_number)
    if node.entry_type == "section":
        return f"{node.chapter_number}:{node.section_letter}"
    return f"{node.chapter_number}:{node.section_letter}.{node.subsection_number}"


# ---------- Writing ----------


def _stored_own_text(row: sqlite3.Row, children: List[sqlite3.Row]) -> bool:
    """True when a stored entry holds text of its own, beyond re-embedded subsections."""
    content = row["content"] or ""
    if row["entry_type"] != "section":
        return bool(content)
    pieces = []
    for child in children:
        pieces.append(f"{child['subsection_number']}. {child['title']}")
        if child["content"]:
            pieces.append(child["content"])
    return content != "\n".join(pieces)


def find_partial_chapters(conn: sqlite3.Connection, plan: _Plan) -> List[str]:
    """
    Stored entries a batch would damage by carrying only part of their chapter.

    A batch that touches a stored chapter replaces that chapter: its
    content, citations and sibling order are rebuilt from the batch alone.
    So every stored section and subsection of the chapter must appear in
    the batch, and every stored entry with its own text or citations must
    be addressed by a record.

    Returns
    -------
    Labels of the offending entries ("32:B", "32:A.1", ...); empty when the
    batch is safe to write.
    """
    chapters = sorted(plan.chapter_parts)
    if not chapters:
        return []
    placeholders = ", ".join("?" for _ in chapters)
    rows = conn.execute(
        f"""
        SELECT id, entry_type, chapter_number, section_letter, subsection_number,
               title, content, parent_id, sort_order
        FROM systematic_entries
        WHERE entry_type != 'part' AND chapter_number IN ({placeholders})
        ORDER BY sort_order;
        """,
        chapters,
    ).fetchall()
    cited = {
        r["entry_id"]
        for r in conn.execute(
            f"""
            SELECT DISTINCT si.entry_id
            FROM scripture_index si
            JOIN systematic_entries e ON e.id = si.entry_id
            WHERE e.chapter_number IN ({placeholders});
            """,
            chapters,
        )
    }

    children: Dict[str, List[sqlite3.Row]] = {}
    for r in rows:
        if r["entry_type"] == "subsection":
            children.setdefault(r["parent_id"], []).append(r)

    offending: List[str] = []
    for r in rows:
        if r["entry_type"] == "chapter":
            label = str(r["chapter_number"])
        elif r["entry_type"] == "section":
            label = f"{r['chapter_number']}:{r['section_letter']}"
        else:
            label = f"{r['chapter_number']}:{r['section_letter']}.{r['subsection_number']}"
        if r["id"] not in plan.entries:
            offending.append(label)
        elif r["id"] not in plan.addressed and (
            r["id"] in cited or _stored_own_text(r, children.get(r["id"], []))
        ):
            offending.append(label)
    return offending


def _check_partial_chapters(conn: sqlite3.Connection, plan: _Plan) -> None:
    offending = find_partial_chapters(conn, plan)
    if offending:
        shown = ", ".join(offending[:10])
        more = f" (and {len(offending) - 10} more)" if len(offending) > 10 else ""
        raise ImportBatchError(
            f"Batch carries only part of an existing chapter; missing records for {shown}{more}. "
            "Import every record of the chapter, or use clear."
        )


def _clear_tables(conn: sqlite3.Connection) -> None:
    conn.execute("DELETE FROM chapter_tags;")
    conn.execute("DELETE FROM systematic_tags;")
    conn.execute("DELETE FROM related_chapters;")
    conn.execute("DELETE FROM scripture_index;")
    conn.execute("DELETE FROM systematic_entries;")


def _write_plan(conn: sqlite3.Connection, plan: _Plan) -> None:
    imported_utc = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

    # Parents before children so parent_id always resolves.
    depth = {"part": 0, "chapter": 1, "section": 2, "subsection": 3}
    ordered = sorted(plan.entries.values(), key=lambda n: depth[n.entry_type])

    conn.executemany(
        """
        INSERT INTO systematic_entries (
            id, entry_type, part_number, chapter_number, section_letter,
            subsection_number, title, content, summary, parent_id,
            sort_order, word_count, imported_utc
        ) VALUES (
            :id, :entry_type, :part_number, :chapter_number, :section_letter,
            :subsection_number, :title, :content, :summary, :parent_id,
            :sort_order, :word_count, :imported_utc
        )
        ON CONFLICT(id) DO UPDATE SET
            entry_type        = excluded.entry_type,
            part_number       = excluded.part_number,
            chapter_number    = excluded.chapter_number,
            section_letter    = excluded.section_letter,
            subsection_number = excluded.subsection_number,
            title             = excluded.title,
            content           = excluded.content,
            summary           = COALESCE(excluded.summary, systematic_entries.summary),
            parent_id         = excluded.parent_id,
            sort_order        = excluded.sort_order,
            word_count        = excluded.word_count,
            imported_utc      = excluded.imported_utc;
        """,
        [
            {
                "id": n.id,
                "entry_type": n.entry_type,
                "part_number": n.part_number,
                "chapter_number": n.chapter_number,
                "section_letter": n.section_letter,
                "subsection_number": n.subsection_number,
                "title": n.title,
                "content": n.content,
                "summary": n.summary,
                "parent_id": n.parent_id,
                "sort_order": n.sort_order,
                "word_count": count_words(n.content),
                "imported_utc": imported_utc,
            }
            for n in ordered
        ],
    )

    conn.executemany(
        "DELETE FROM scripture_index WHERE entry_id = ?;",
        [(entry_id,) for entry_id in plan.entries],
    )
    conn.executemany(
        """
        INSERT INTO scripture_index (
            id, entry_id, book, start_chapter, start_verse,
            end_chapter, end_verse, is_primary, context_snippet
        ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
        """,
        [
            (
                r.id,
                r.entry_id,
                r.range.book,
                r.range.start_chapter,
                r.range.start_verse,
                r.range.end_chapter,
                r.range.end_verse,
                1 if r.is_primary else 0,
                r.snippet,
            )
            for r in plan.rows
        ],
    )

    chapters = sorted(plan.chapter_parts)
    conn.executemany(
        "DELETE FROM related_chapters WHERE source_chapter = ?;",
        [(c,) for c in chapters],
    )
    conn.executemany(
        """
        INSERT OR IGNORE INTO related_chapters (source_chapter, target_chapter, relationship_type)
        VALUES (?, ?, 'see_also');
        """,
        plan.related,
    )

    tag_ids: Dict[int, str] = {}
    for part_no, title in sorted(plan.part_titles.items()):
        tag_id = f"part-{part_no}"
        color = PART_TAG_COLORS[(part_no - 1) % len(PART_TAG_COLORS)]
        conn.execute(
            """
            INSERT INTO systematic_tags (id, name, color, sort_order)
            VALUES (?, ?, ?, ?)
            ON CONFLICT DO NOTHING;
            """,
            (tag_id, title, color, part_no),
        )
        row = conn.execute(
            "SELECT id FROM systematic_tags WHERE id = ? OR name = ? ORDER BY id = ? DESC LIMIT 1;",
            (tag_id, title, tag_id),
        ).fetchone()
        tag_ids[part_no] = row["id"]

    conn.executemany(
        "INSERT OR IGNORE INTO chapter_tags (chapter_number, tag_id) VALUES (?, ?);",
        [(c, tag_ids[plan.chapter_parts[c]]) for c in chapters],
    )


def import_batch(
    records: Iterable[Union[ImportRecord, Mapping[str, Any]]],
    db_path: Optional[Union[str, Path]] = None,
    clear: bool = False,
    dry_run: bool = False,
) -> ImportResult:
    """
    Import a batch of records into the systematic theology store.

    Parameters
    ----------
    records:
        ImportRecord objects or mappings with camelCase/snake_case keys.
    db_path:
        Optional database path (default: DOCTRINE_DB or doctrine.sqlite).
    clear:
        If True, the whole corpus is deleted first, in the same transaction.
    dry_run:
        If True, build and validate the batch but write nothing.

    Returns
    -------
    ImportResult
        imported  : records accepted
        skipped   : cited ranges that failed to parse
        scripture_rows_created / entries : rows written (or planned, in a dry run)

    Raises
    ------
    ImportBatchError
        On structural problems (missing numbers, a chapter under two parts,
        an orphan subsection), a batch carrying only part of a
        stored chapter, or an integrity failure during the write.
        Nothing is committed in either case.
    """
    batch = _coerce_records(records)
    info(f"=== IMPORT === {len(batch)} record(s), clear={clear}, dry_run={dry_run}")

    plan = _build_plan(batch)
    result = ImportResult(
        imported=len(batch),
        skipped=plan.skipped,
        scripture_rows_created=len(plan.rows),
        entries=len(plan.entries),
        dry_run=dry_run,
    )

    by_type: Dict[str, int] = {}
    for node in plan.entries.values():
        by_type[node.entry_type] = by_type.get(node.entry_type, 0) + 1
    info(f"Planned entries by type: {by_type}")
    info(f"Planned {len(plan.rows)} scripture row(s); skipped {plan.skipped} citation(s).")

    if dry_run:
        if not clear and resolve_db_path(db_path).exists():
            try:
                with get_conn(db_path, readonly=True) as conn:
                    _check_partial_chapters(conn, plan)
            except sqlite3.Error as e:
                warn(f"Could not compare the batch with the stored corpus: {e}")
        info("Dry run enabled – nothing will be written to the database.")
        return result

    ensure_schema(db_path)

    with get_conn(db_path) as conn:
        conn.isolation_level = None
        conn.execute("BEGIN IMMEDIATE;")
        try:
            if clear:
                info("Clearing existing systematic theology corpus...")
                _clear_tables(conn)
            else:
                _check_partial_chapters(conn, plan)
            _write_plan(conn, plan)
            conn.execute("COMMIT;")
        except sqlite3.IntegrityError as e:
            conn.execute("ROLLBACK;")
            raise ImportBatchError(f"Integrity error during import: {e}") from e
        except BaseException:
            conn.execute("ROLLBACK;")
            raise

    ok(
        f"Imported {result.imported} record(s): {result.entries} entries, "
        f"{result.scripture_rows_created} scripture row(s), {result.skipped} skipped."
    )
    return result


def clear_corpus(db_path: Optional[Union[str, Path]] = None) -> None:
    """
    Delete every entry, index row, related link and tag.
    """
    ensure_schema(db_path)
    with get_conn(db_path) as conn:
        try:
            _clear_tables(conn)
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
    info("Systematic theology corpus cleared.")
