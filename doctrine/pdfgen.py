"""
PDF export of the continuous reading view (ReportLab).
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Union
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import LETTER
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer

from .reference import format_reference
from .store import get_chapter
from .util import info, warn


def _paragraphs(text: str) -> List[str]:
    return [escape(p.strip()) for p in text.split("\n") if p.strip()]


def export_chapter_pdf(
    chapter_number: int,
    outfile: Path,
    db_path: Optional[Union[str, Path]] = None,
) -> bool:
    """
    Write one chapter, sections in reading order, to a PDF file.

    Returns False (and writes nothing) when the chapter does not exist.
    """
    view = get_chapter(chapter_number, db_path)
    if view is None:
        warn(f"Chapter {chapter_number} not found; no PDF generated.")
        return False

    outfile = Path(outfile)
    outfile.parent.mkdir(parents=True, exist_ok=True)

    styles = getSampleStyleSheet()
    story = []

    title = f"Chapter {chapter_number}: {view.chapter.title}"
    story.append(Paragraph(escape(title), styles["Heading1"]))
    story.append(Spacer(1, 12))

    for para in _paragraphs(view.chapter.content):
        story.append(Paragraph(para, styles["Normal"]))
        story.append(Spacer(1, 6))

    for section in view.sections:
        story.append(Paragraph(escape(f"{section.section_letter}. {section.title}"), styles["Heading2"]))
        story.append(Spacer(1, 6))
        for para in _paragraphs(section.content):
            story.append(Paragraph(para, styles["Normal"]))
            story.append(Spacer(1, 4))

    primary = [r for r in view.scripture_rows if r.is_primary]
    if primary:
        story.append(Spacer(1, 12))
        story.append(Paragraph("Key Scriptures", styles["Heading3"]))
        for row in primary:
            story.append(Paragraph(escape(format_reference(row.range)), styles["Normal"]))

    doc = SimpleDocTemplate(str(outfile), pagesize=LETTER, title=title)
    doc.build(story)
    info(f"PDF exported: {outfile}")
    return True
