#!/usr/bin/env python
"""
doctrines.py – unified CLI for the Doctrine Index

Commands:

  python doctrines.py init-schema
      Create/ensure the systematic theology schema

  python doctrines.py import records.json [--clear] [--dry-run]
      Import a batch of systematic theology records (.json, .csv, .xlsx)

  python doctrines.py tree
      Print the part/chapter/section/subsection outline

  python doctrines.py chapter 32 | read 32 | outline 32
      Atomic view, continuous reading view, or outline of a chapter

  python doctrines.py parse "Rom 8:28-30"
      Parse a citation and print its canonical form

  python doctrines.py resolve "[[ST:Ch32:A]]"
      Resolve a link token to its entry

  python doctrines.py for-passage Romans 8 28
  python doctrines.py passage "Rom 8:28-30"
      Entries that cite a passage, primary citations first

  python doctrines.py export-pdf 32 reports/ch32.pdf
      Export the continuous reading view of a chapter to PDF

Every command accepts --db (default: $DOCTRINE_DB or doctrine.sqlite).
"""

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from doctrine import config
from doctrine.db import apply_schema
from doctrine.links import find_links, render
from doctrine.loader import ImportBatchError, clear_corpus, import_batch
from doctrine.model import Entry, PassageMatch
from doctrine.outline import chapter_outline
from doctrine.pdfgen import export_chapter_pdf
from doctrine.records import iter_records_from_file
from doctrine.reference import format_reference, parse_reference
from doctrine.status import print_status
from doctrine.store import (
    adjacent_chapters,
    chapters_by_tag,
    get_chapter,
    get_entry,
    get_tree,
    list_tags,
    read_chapter,
    search_entries,
)
from doctrine.util import error, info, warn
from doctrine.xref import doctrines_for_passage, doctrines_for_reference, ranges_for


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _print_matches(matches: List[PassageMatch]) -> None:
    if not matches:
        info("No entries cite this passage.")
        return
    for m in matches:
        star = "*" if m.is_primary else " "
        print(f"{star} [{m.entry.label}] {m.entry.title}  ({format_reference(m.row.range)})")


# ---------- Command handlers ----------


def cmd_init_schema(args: argparse.Namespace) -> None:
    """
    Apply the systematic schema SQL to the database (idempotent).
    """
    apply_schema(args.db)
    info("Systematic schema initialized / verified.")


def cmd_import(args: argparse.Namespace) -> None:
    """
    Read a record file and wire through to doctrine.loader.import_batch.
    """
    path = Path(args.file)
    records = list(iter_records_from_file(path, sheet_name=args.sheet, max_rows=args.max_rows))
    if not records:
        warn(f"No usable records found in {path}.")
        return
    result = import_batch(records, db_path=args.db, clear=args.clear, dry_run=args.dry_run)
    if args.json:
        _print_json(result.to_dict())


def cmd_clear(args: argparse.Namespace) -> None:
    """
    Delete the whole systematic theology corpus.
    """
    if not args.yes:
        warn("Refusing to clear without --yes.")
        return
    clear_corpus(args.db)


def cmd_tree(args: argparse.Namespace) -> None:
    """
    Print the outline of parts, chapters, sections and subsections.
    """
    roots = get_tree(args.db)
    if args.json:
        _print_json([r.to_dict(include_children=True) for r in roots])
        return
    if not roots:
        warn("No entries loaded.")
        return

    def walk(nodes: List[Entry], depth: int) -> None:
        for node in nodes:
            if depth < args.depth:
                print(f"{'  ' * depth}{node.label}  {node.title}")
                walk(node.children, depth + 1)

    walk(roots, 0)


def cmd_chapter(args: argparse.Namespace) -> None:
    """
    Atomic view of a chapter: sections, citations, related chapters, tags.
    """
    view = get_chapter(args.number, args.db)
    if view is None:
        warn(f"Chapter {args.number} not found.")
        return
    if args.json:
        _print_json(view.to_dict())
        return

    print(f"Chapter {args.number}: {view.chapter.title}")
    for section in view.sections:
        print(f"  {section.section_letter}. {section.title}")
        for sub in view.subsections.get(section.id, []):
            print(f"      {sub.subsection_number}. {sub.title}")
    if view.scripture_rows:
        print("Scripture:")
        for row in view.scripture_rows:
            star = "*" if row.is_primary else " "
            print(f"  {star} {format_reference(row.range)}")
    if view.related:
        print("See also: " + ", ".join(f"Ch {r.chapter_number} ({r.title})" for r in view.related))
    if view.tags:
        print("Tags: " + ", ".join(t.name for t in view.tags))
    prev_no, next_no = adjacent_chapters(args.number, args.db)
    print(f"Prev: {prev_no or '-'}  Next: {next_no or '-'}")


def cmd_read(args: argparse.Namespace) -> None:
    """
    Continuous reading view of a chapter.
    """
    text = read_chapter(args.number, args.db)
    if text is None:
        warn(f"Chapter {args.number} not found.")
        return
    print(text)


def cmd_entry(args: argparse.Namespace) -> None:
    entry = get_entry(args.id, args.db)
    if entry is None:
        warn(f"Entry not found: {args.id}")
        return
    if args.json:
        _print_json(entry.to_dict())
        return
    print(f"[{entry.label}] {entry.title}")
    print(entry.content)


def cmd_parse(args: argparse.Namespace) -> None:
    """
    Parse a citation and print the canonical form.
    """
    ref = parse_reference(args.ref)
    if ref is None:
        warn(f"Could not parse reference: {args.ref!r}")
        return
    if args.json:
        _print_json(dict(ref.to_dict(), formatted=format_reference(ref)))
        return
    print(format_reference(ref))


def cmd_resolve(args: argparse.Namespace) -> None:
    """
    Resolve a [[ST:...]] token; print the entry or report a dangling link.
    """
    desc = render(args.token, db_path=args.db)
    if args.json:
        _print_json(desc.to_dict())
        return
    if not desc.resolved:
        warn(f"Link does not resolve: {args.token}")
        return
    print(f"[{desc.entry_type}] {desc.title}  (id={desc.entry_id})")
    if args.html:
        print(desc.to_html())


def cmd_links(args: argparse.Namespace) -> None:
    """
    List every link token found in a text file, with its resolution.
    """
    text = Path(args.file).read_text(encoding="utf-8")
    refs = find_links(text)
    if not refs:
        info("No link tokens found.")
        return
    for ref in refs:
        desc = render(ref, db_path=args.db)
        status = desc.title if desc.resolved else "(unresolved)"
        print(f"{desc.reference}  {status}")


def cmd_for_passage(args: argparse.Namespace) -> None:
    """
    Entries citing a chapter or verse: BOOK CHAPTER [VERSE].
    """
    matches = doctrines_for_passage(args.book, args.chapter, args.verse, db_path=args.db)
    if args.json:
        _print_json([m.to_dict() for m in matches])
        return
    _print_matches(matches)


def cmd_passage(args: argparse.Namespace) -> None:
    """
    Entries citing any part of a free-text reference.
    """
    if parse_reference(args.ref) is None:
        warn(f"Could not parse reference: {args.ref!r}")
        return
    matches = doctrines_for_reference(args.ref, db_path=args.db)
    if args.json:
        _print_json([m.to_dict() for m in matches])
        return
    _print_matches(matches)


def cmd_ranges(args: argparse.Namespace) -> None:
    rows = ranges_for(args.id, args.db)
    if args.json:
        _print_json([r.to_dict() for r in rows])
        return
    if not rows:
        info("No scripture ranges for this entry.")
        return
    for row in rows:
        star = "*" if row.is_primary else " "
        print(f"{star} {format_reference(row.range)}")


def cmd_tags(args: argparse.Namespace) -> None:
    tags = list_tags(args.db)
    if args.json:
        _print_json([t.to_dict() for t in tags])
        return
    for tag in tags:
        print(f"{tag.id}  {tag.name}  ({tag.chapter_count} chapter(s))")


def cmd_by_tag(args: argparse.Namespace) -> None:
    chapters = chapters_by_tag(args.tag, args.db)
    if not chapters:
        info(f"No chapters tagged {args.tag!r}.")
        return
    for ch in chapters:
        print(f"Ch {ch.chapter_number}  {ch.title}")


def cmd_search(args: argparse.Namespace) -> None:
    """
    Search entry titles, content and summaries.
    """
    results = search_entries(args.query, limit=args.limit, db_path=args.db)
    if args.json:
        _print_json([e.to_dict() for e in results])
        return
    info(f"Search returned {len(results)} entr{'y' if len(results) == 1 else 'ies'}.")
    for entry in results:
        print(f"[{entry.label}] {entry.title}")


def cmd_outline(args: argparse.Namespace) -> None:
    outline = chapter_outline(args.number, args.db)
    if outline is None:
        warn(f"Chapter {args.number} not found.")
        return
    if args.json:
        _print_json(outline.to_dict())
        return
    print(outline.to_text())


def cmd_export_pdf(args: argparse.Namespace) -> None:
    export_chapter_pdf(args.number, Path(args.outfile), db_path=args.db)


def cmd_status(args: argparse.Namespace) -> None:
    """
    Print a quick system status report.
    """
    print_status(args.db)


# ---------- Parser setup ----------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="doctrines",
        description=f"{config.APP_NAME} CLI (v{config.__version__})",
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Path to SQLite DB (default: $DOCTRINE_DB or doctrine.sqlite at project root)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def add(name: str, func, help_text: str, json_flag: bool = True) -> argparse.ArgumentParser:
        p = sub.add_parser(name, help=help_text)
        if json_flag:
            p.add_argument("--json", action="store_true", help="Print JSON instead of text")
        p.set_defaults(func=func)
        return p

    add("init-schema", cmd_init_schema, "Create/ensure the systematic theology schema", json_flag=False)

    p_import = add("import", cmd_import, "Import systematic theology records from .json, .csv or .xlsx")
    p_import.add_argument("file", type=str, help="Path to the record file")
    p_import.add_argument(
        "--clear",
        action="store_true",
        help="Delete the existing corpus first (same transaction)",
    )
    p_import.add_argument(
        "--dry-run",
        action="store_true",
        help="Do not write to the DB; just parse, validate and report",
    )
    p_import.add_argument(
        "--sheet",
        type=str,
        default=None,
        help="Worksheet name (default: active sheet)",
    )
    p_import.add_argument(
        "--max-rows",
        type=int,
        default=None,
        help="Maximum number of records to read (for testing)",
    )

    p_clear = add("clear", cmd_clear, "Delete the whole systematic theology corpus", json_flag=False)
    p_clear.add_argument("--yes", action="store_true", help="Confirm deletion")

    p_tree = add("tree", cmd_tree, "Print the part/chapter/section/subsection outline")
    p_tree.add_argument(
        "--depth",
        type=int,
        default=4,
        help="How many levels to print (default: 4)",
    )

    p_chapter = add("chapter", cmd_chapter, "Show a chapter with its sections and citations")
    p_chapter.add_argument("number", type=int, help="Chapter number")

    p_read = add("read", cmd_read, "Print a chapter as continuous text", json_flag=False)
    p_read.add_argument("number", type=int, help="Chapter number")

    p_entry = add("entry", cmd_entry, "Show a single entry by id")
    p_entry.add_argument("id", type=str, help="Entry id")

    p_parse = add("parse", cmd_parse, "Parse a Bible reference (e.g. 'Rom 8:28-30')")
    p_parse.add_argument("ref", type=str, help="Reference string")

    p_resolve = add("resolve", cmd_resolve, "Resolve a [[ST:Ch..]] link token")
    p_resolve.add_argument("token", type=str, help="Link token, e.g. '[[ST:Ch32:A]]'")
    p_resolve.add_argument("--html", action="store_true", help="Also print the HTML span")

    p_links = add("links", cmd_links, "List link tokens found in a text file", json_flag=False)
    p_links.add_argument("file", type=str, help="Text or HTML file to scan")

    p_for = add("for-passage", cmd_for_passage, "Entries citing BOOK CHAPTER [VERSE]")
    p_for.add_argument("book", type=str, help="Book name, code or abbreviation")
    p_for.add_argument("chapter", type=int, help="Chapter number")
    p_for.add_argument("verse", type=int, nargs="?", default=None, help="Optional verse")

    p_passage = add("passage", cmd_passage, "Entries citing a free-text reference")
    p_passage.add_argument("ref", type=str, help="Reference string, e.g. 'John 3:16-18'")

    p_ranges = add("ranges", cmd_ranges, "Scripture ranges cited by an entry")
    p_ranges.add_argument("id", type=str, help="Entry id")

    add("tags", cmd_tags, "List tags with chapter counts")

    p_by_tag = add("by-tag", cmd_by_tag, "List chapters carrying a tag", json_flag=False)
    p_by_tag.add_argument("tag", type=str, help="Tag id, e.g. 'part-3'")

    p_search = add("search", cmd_search, "Search entry titles, content and summaries")
    p_search.add_argument("query", type=str, help="Search text")
    p_search.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Maximum number of entries to return (default: 20)",
    )

    p_outline = add("outline", cmd_outline, "Outline of a chapter: key points, scriptures, related")
    p_outline.add_argument("number", type=int, help="Chapter number")

    p_pdf = add("export-pdf", cmd_export_pdf, "Export a chapter to PDF", json_flag=False)
    p_pdf.add_argument("number", type=int, help="Chapter number")
    p_pdf.add_argument("outfile", type=str, help="Output PDF path")

    add("status", cmd_status, "Show DB and corpus status summary", json_flag=False)

    return parser


# ---------- Main ----------


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        args.func(args)
    except (ImportBatchError, ValueError, FileNotFoundError) as e:
        error(str(e))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
