"""
Chapter outlines: a compact digest of one chapter for teaching or
sermon preparation (key points, key scriptures, related chapters).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from . import config
from .links import link_token_for
from .reference import format_reference
from .store import get_chapter

NO_SUMMARY = "No summary available"


@dataclass
class ChapterOutline:
    chapter_number: int
    title: str
    summary: str
    key_points: List[Dict[str, Any]] = field(default_factory=list)
    key_scriptures: List[Dict[str, Any]] = field(default_factory=list)
    related: List[Dict[str, Any]] = field(default_factory=list)
    link: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chapter_number": self.chapter_number,
            "title": self.title,
            "summary": self.summary,
            "key_points": self.key_points,
            "key_scriptures": self.key_scriptures,
            "related": self.related,
            "link": self.link,
        }

    def to_text(self) -> str:
        lines = [f"Chapter {self.chapter_number}: {self.title}", "", self.summary, ""]
        if self.key_points:
            lines.append("Key points:")
            for point in self.key_points:
                lines.append(f"  {point['letter']}. {point['title']}")
        if self.key_scriptures:
            lines.append("Key scriptures:")
            for scripture in self.key_scriptures:
                lines.append(f"  - {scripture['reference']}")
        if self.related:
            lines.append("See also:")
            for rel in self.related:
                lines.append(f"  - Chapter {rel['chapter_number']}: {rel['title']}")
        lines.append(f"Link: {self.link}")
        return "\n".join(lines)


def chapter_outline(
    chapter_number: int,
    db_path: Optional[Union[str, Path]] = None,
) -> Optional[ChapterOutline]:
    """
    Build the outline for a chapter, or None when the chapter is absent.

    Key scriptures are the chapter's primary citations (at most
    OUTLINE_KEY_SCRIPTURES), in canonical order.
    """
    view = get_chapter(chapter_number, db_path)
    if view is None:
        return None

    primary = [r for r in view.scripture_rows if r.is_primary][: config.OUTLINE_KEY_SCRIPTURES]

    return ChapterOutline(
        chapter_number=chapter_number,
        title=view.chapter.title,
        summary=view.chapter.summary or NO_SUMMARY,
        key_points=[
            {"letter": s.section_letter, "title": s.title, "summary": s.summary}
            for s in view.sections
        ],
        key_scriptures=[
            {"reference": format_reference(r.range), "context": r.context_snippet}
            for r in primary
        ],
        related=[r.to_dict() for r in view.related],
        link=link_token_for(view.chapter) or "",
    )
