"""
Bible reference parsing and formatting.

This module provides:

- parse_reference(text)
    "Romans 8:28-30", "Rom 8", "1 Cor 15:3-4", "Genesis 1:1-2:3", "Rom 8-9"
    -> CanonicalRange, or None when the text is not a valid reference

- resolve_book_id(name)
    "Rom", "romans", "1 Corinthians", "1Co" -> canonical code

- format_reference(range)
    CanonicalRange -> "Romans 8:28-30" (canonical name and spacing)

Parsing never raises for malformed input; callers get None.
"""

from __future__ import annotations

import re
from typing import Optional

from .canon import book_name, chapter_count, resolve_book_id
from .model import CanonicalRange

__all__ = ["parse_reference", "resolve_book_id", "format_reference"]


# Book token, then "<ch>[:<v>][-<ch2>[:<v2>]]" after whitespace collapsing.
REFERENCE_PATTERN = re.compile(
    r"""
    ^(?P<book>(?:[1-3]\s?)?[^\W\d_][\w .]*?)\.?
    \s*(?P<sc>\d{1,3})
    (?::(?P<sv>\d{1,3}))?
    (?:\s*[-–—]\s*(?P<ec>\d{1,3})(?::(?P<ev>\d{1,3}))?)?$
    """,
    re.VERBOSE | re.ASCII,
)


def parse_reference(text: object) -> Optional[CanonicalRange]:
    """
    Parse a free-text citation into a validated CanonicalRange.

    Accepted shapes (book matching is case-insensitive):

        Romans 8           whole chapter
        Romans 8-9         whole chapters
        Romans 8:28        single verse
        Romans 8:28-30     verse range in one chapter
        Genesis 1:1-2:3    cross-chapter range

    Parameters
    ----------
    text:
        The citation. Non-string input is treated as unparsable.

    Returns
    -------
    CanonicalRange or None
        None for an unknown book, a chapter outside 1..chapter count,
        verse 0, a reversed range, or anything that does not match
        the grammar.
    """
    if not isinstance(text, str):
        return None
    cleaned = " ".join(text.split())
    if not cleaned:
        return None

    m = REFERENCE_PATTERN.match(cleaned)
    if not m:
        return None

    code = resolve_book_id(m.group("book"))
    if code is None:
        return None

    start_chapter = int(m.group("sc"))
    start_verse = int(m.group("sv")) if m.group("sv") else None
    end_chapter_raw = m.group("ec")
    end_verse_raw = m.group("ev")

    if end_chapter_raw is None:
        end_chapter = start_chapter
        end_verse = start_verse
    elif start_verse is None:
        # "Rom 8-9" is a chapter range; "Rom 8-9:3" names an end verse
        # without a start verse and is rejected.
        if end_verse_raw is not None:
            return None
        end_chapter = int(end_chapter_raw)
        end_verse = None
    elif end_verse_raw is None:
        # "Rom 8:28-30": the number after the dash is a verse.
        end_chapter = start_chapter
        end_verse = int(end_chapter_raw)
    else:
        end_chapter = int(end_chapter_raw)
        end_verse = int(end_verse_raw)

    return _validated(code, start_chapter, start_verse, end_chapter, end_verse)


def _validated(
    code: str,
    start_chapter: int,
    start_verse: Optional[int],
    end_chapter: int,
    end_verse: Optional[int],
) -> Optional[CanonicalRange]:
    max_chapter = chapter_count(code)
    if not (1 <= start_chapter <= max_chapter and 1 <= end_chapter <= max_chapter):
        return None
    if start_chapter > end_chapter:
        return None
    if start_verse is not None:
        if start_verse < 1 or end_verse is None or end_verse < 1:
            return None
        if start_chapter == end_chapter and start_verse > end_verse:
            return None
    return CanonicalRange(
        book=code,
        start_chapter=start_chapter,
        start_verse=start_verse,
        end_chapter=end_chapter,
        end_verse=end_verse,
    )


def format_reference(ref: CanonicalRange) -> str:
    """
    Render a range with the canonical book name and spacing.

    Whole-chapter ranges omit verses ("Romans 8", "Romans 8-9");
    verse ranges collapse to the shortest unambiguous form
    ("Romans 8:28", "Romans 8:28-30", "Genesis 1:1-2:3").
    """
    name = book_name(ref.book)
    if ref.start_verse is None:
        if ref.end_chapter == ref.start_chapter:
            return f"{name} {ref.start_chapter}"
        return f"{name} {ref.start_chapter}-{ref.end_chapter}"

    head = f"{name} {ref.start_chapter}:{ref.start_verse}"
    if ref.end_chapter != ref.start_chapter:
        return f"{head}-{ref.end_chapter}:{ref.end_verse}"
    if ref.end_verse != ref.start_verse:
        return f"{head}-{ref.end_verse}"
    return head
