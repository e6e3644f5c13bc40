"""
Data model definitions for the Doctrine Index.

For now we define:
- CanonicalRange   : a validated Bible range (book, chapters, optional verses)
- Entry            : a node of the systematic theology (part/chapter/section/subsection)
- ScriptureIndexRow: one cited range attached to an entry
- LinkReference    : a parsed [[ST:...]] token
- Tag              : a chapter grouping
- RelatedChapter   : a "see also" link between chapters
- ChapterView      : a chapter with its sections, citations, links and tags
- PassageMatch     : one reverse-lookup hit
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

ENTRY_TYPES = ("part", "chapter", "section", "subsection")


@dataclass(frozen=True)
class CanonicalRange:
    """
    A validated reference to one or more chapters or verses of one book.

    book         : canonical code, e.g. 'ROM'
    start_chapter: 1..chapter count
    start_verse  : None means whole chapter(s)
    end_chapter  : >= start_chapter
    end_verse    : None exactly when start_verse is None
    """
    book: str
    start_chapter: int
    start_verse: Optional[int]
    end_chapter: int
    end_verse: Optional[int]

    @property
    def is_whole_range(self) -> bool:
        return self.start_verse is None and self.end_verse is None

    @property
    def has_verses(self) -> bool:
        return self.start_verse is not None and self.end_verse is not None

    def overlaps(self, other: "CanonicalRange") -> bool:
        """
        Inclusive overlap test against another range of the same book.

        Compares (chapter, verse) positions when both ranges carry verses,
        otherwise compares chapter spans only. Partial overlap counts.
        """
        if self.book != other.book:
            return False
        if self.has_verses and other.has_verses:
            start_a = (self.start_chapter, self.start_verse)
            end_a = (self.end_chapter, self.end_verse)
            start_b = (other.start_chapter, other.start_verse)
            end_b = (other.end_chapter, other.end_verse)
            return start_a <= end_b and start_b <= end_a
        return (
            self.start_chapter <= other.end_chapter
            and other.start_chapter <= self.end_chapter
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "book": self.book,
            "start_chapter": self.start_chapter,
            "start_verse": self.start_verse,
            "end_chapter": self.end_chapter,
            "end_verse": self.end_verse,
            "is_whole_range": self.is_whole_range,
        }


@dataclass
class Entry:
    """
    Representation of a row of the `systematic_entries` table.

    `children` is only populated by store.get_tree().
    """
    id: str
    entry_type: str
    part_number: int
    chapter_number: Optional[int]
    section_letter: Optional[str]
    subsection_number: Optional[str]
    title: str
    content: str
    summary: Optional[str]
    parent_id: Optional[str]
    sort_order: int
    word_count: int = 0
    children: List["Entry"] = field(default_factory=list)

    @classmethod
    def from_db_row(cls, row: sqlite3.Row) -> "Entry":
        """
        Construct from a SELECT * row of `systematic_entries`.
        """
        return cls(
            id=row["id"],
            entry_type=row["entry_type"],
            part_number=row["part_number"],
            chapter_number=row["chapter_number"],
            section_letter=row["section_letter"],
            subsection_number=row["subsection_number"],
            title=row["title"],
            content=row["content"] or "",
            summary=row["summary"],
            parent_id=row["parent_id"],
            sort_order=row["sort_order"],
            word_count=row["word_count"] or 0,
        )

    @property
    def label(self) -> str:
        """Short address such as 'Part 2', 'Ch 32', 'Ch 32:A' or 'Ch 32:A.1'."""
        if self.entry_type == "part":
            return f"Part {self.part_number}"
        label = f"Ch {self.chapter_number}"
        if self.section_letter:
            label += f":{self.section_letter}"
        if self.subsection_number:
            label += f".{self.subsection_number}"
        return label

    def to_dict(self, include_children: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "entry_type": self.entry_type,
            "part_number": self.part_number,
            "chapter_number": self.chapter_number,
            "section_letter": self.section_letter,
            "subsection_number": self.subsection_number,
            "title": self.title,
            "content": self.content,
            "summary": self.summary,
            "parent_id": self.parent_id,
            "sort_order": self.sort_order,
            "word_count": self.word_count,
        }
        if include_children:
            data["children"] = [c.to_dict(include_children=True) for c in self.children]
        return data


@dataclass
class ScriptureIndexRow:
    id: str
    entry_id: str
    range: CanonicalRange
    is_primary: bool
    context_snippet: Optional[str] = None

    @classmethod
    def from_db_row(cls, row: sqlite3.Row) -> "ScriptureIndexRow":
        return cls(
            id=row["id"],
            entry_id=row["entry_id"],
            range=CanonicalRange(
                book=row["book"],
                start_chapter=row["start_chapter"],
                start_verse=row["start_verse"],
                end_chapter=row["end_chapter"],
                end_verse=row["end_verse"],
            ),
            is_primary=bool(row["is_primary"]),
            context_snippet=row["context_snippet"],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "entry_id": self.entry_id,
            "range": self.range.to_dict(),
            "is_primary": self.is_primary,
            "context_snippet": self.context_snippet,
        }


@dataclass(frozen=True)
class LinkReference:
    """
    A parsed [[ST:Ch<n>[:<L>[.<m>]]]] token.
    """
    chapter_number: int
    section_letter: Optional[str] = None
    subsection_number: Optional[str] = None

    @property
    def granularity(self) -> str:
        if self.subsection_number is not None:
            return "subsection"
        if self.section_letter is not None:
            return "section"
        return "chapter"

    @property
    def token(self) -> str:
        inner = f"ST:Ch{self.chapter_number}"
        if self.section_letter is not None:
            inner += f":{self.section_letter}"
            if self.subsection_number is not None:
                inner += f".{self.subsection_number}"
        return f"[[{inner}]]"


@dataclass
class Tag:
    id: str
    name: str
    color: Optional[str]
    sort_order: int
    chapter_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "sort_order": self.sort_order,
            "chapter_count": self.chapter_count,
        }


@dataclass
class RelatedChapter:
    chapter_number: int
    title: str
    relationship_type: str = "see_also"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chapter_number": self.chapter_number,
            "title": self.title,
            "relationship_type": self.relationship_type,
        }


@dataclass
class ChapterView:
    """
    A chapter in atomic form: the chapter entry, its sections in reading
    order, the subsections of each section, its cited ranges, "see also"
    chapters and tags.
    """
    chapter: Entry
    sections: List[Entry]
    subsections: Dict[str, List[Entry]]
    scripture_rows: List[ScriptureIndexRow]
    related: List[RelatedChapter]
    tags: List[Tag]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chapter": self.chapter.to_dict(),
            "sections": [
                dict(s.to_dict(), subsections=[x.to_dict() for x in self.subsections.get(s.id, [])])
                for s in self.sections
            ],
            "scripture_rows": [r.to_dict() for r in self.scripture_rows],
            "related": [r.to_dict() for r in self.related],
            "tags": [t.to_dict() for t in self.tags],
        }


@dataclass
class PassageMatch:
    entry: Entry
    row: ScriptureIndexRow
    is_primary: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entry": self.entry.to_dict(),
            "row": self.row.to_dict(),
            "is_primary": self.is_primary,
        }
