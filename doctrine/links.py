"""
In-prose links into the systematic theology.

Grammar (no whitespace or other punctuation inside the brackets):

    [[ST:Ch32]]       chapter 32
    [[ST:Ch32:A]]     section A of chapter 32
    [[ST:Ch32:A.1]]   subsection 1 of section A of chapter 32

The section letter is case-sensitive. A token resolves only to the exact
node it names; a missing section never falls back to its chapter.
"""

from __future__ import annotations

import html
import re
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .db import get_conn
from .model import Entry, LinkReference
from .records import normalize_subsection
from .store import ENTRY_COLUMNS
from .util import warn

LINK_PATTERN = re.compile(r"\[\[ST:Ch(\d{1,6})(?::([A-Za-z])(?:\.(\d{1,6}))?)?\]\]", re.ASCII)

LINK_CLASS = "systematic-link"
BROKEN_LINK_CLASS = "systematic-link--broken"

DbPath = Optional[Union[str, Path]]


@dataclass
class LinkDescriptor:
    """
    What an editor needs to display a link: the token, the text to show,
    and the target entry when it exists.
    """
    reference: str
    display: str
    resolved: bool
    entry_id: Optional[str] = None
    entry_type: Optional[str] = None
    title: Optional[str] = None
    summary: Optional[str] = None

    @property
    def css_class(self) -> str:
        return LINK_CLASS if self.resolved else f"{LINK_CLASS} {BROKEN_LINK_CLASS}"

    def to_html(self) -> str:
        attrs = [
            f'class="{self.css_class}"',
            f'data-st-ref="{html.escape(self.reference, quote=True)}"',
            f'data-st-display="{html.escape(self.display, quote=True)}"',
        ]
        if self.entry_id:
            attrs.append(f'data-st-id="{html.escape(self.entry_id, quote=True)}"')
        if self.summary:
            attrs.append(f'title="{html.escape(self.summary, quote=True)}"')
        return f"<span {' '.join(attrs)}>{html.escape(self.display)}</span>"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference": self.reference,
            "display": self.display,
            "resolved": self.resolved,
            "entry_id": self.entry_id,
            "entry_type": self.entry_type,
            "title": self.title,
            "summary": self.summary,
            "css_class": self.css_class,
        }


def _from_match(m: "re.Match[str]") -> LinkReference:
    return LinkReference(
        chapter_number=int(m.group(1)),
        section_letter=m.group(2),
        subsection_number=m.group(3),
    )


def parse_link_token(token: object) -> Optional[LinkReference]:
    """
    Parse a single link token. Returns None for anything that is not
    exactly one well-formed token.
    """
    if not isinstance(token, str):
        return None
    m = LINK_PATTERN.fullmatch(token)
    if not m:
        return None
    return _from_match(m)


def find_links(text: str) -> List[LinkReference]:
    """
    Every well-formed link token in a piece of prose, in order of appearance.
    """
    if not text:
        return []
    return [_from_match(m) for m in LINK_PATTERN.finditer(text)]


def link_token_for(entry: Entry) -> Optional[str]:
    """
    The token addressing an entry ([[ST:Ch32:A.1]]); None for parts.
    """
    if entry.entry_type == "part" or entry.chapter_number is None:
        return None
    if entry.entry_type == "chapter":
        ref = LinkReference(entry.chapter_number)
    elif entry.entry_type == "section":
        ref = LinkReference(entry.chapter_number, entry.section_letter)
    else:
        ref = LinkReference(entry.chapter_number, entry.section_letter, entry.subsection_number)
    return ref.token


def resolve(ref: LinkReference, db_path: DbPath = None) -> Optional[Entry]:
    """
    Find the entry a link reference names, at exactly its granularity.

    Parameters
    ----------
    ref:
        A parsed link reference.

    Returns
    -------
    Entry or None when the named chapter, section or subsection is absent.
    """
    if ref.subsection_number is not None:
        sql = f"""
            SELECT {ENTRY_COLUMNS}
            FROM systematic_entries
            WHERE entry_type = 'subsection'
              AND chapter_number = ?
              AND section_letter = ?
              AND subsection_number = ?;
        """
        params: tuple = (ref.chapter_number, ref.section_letter, normalize_subsection(ref.subsection_number))
    elif ref.section_letter is not None:
        sql = f"""
            SELECT {ENTRY_COLUMNS}
            FROM systematic_entries
            WHERE entry_type = 'section'
              AND chapter_number = ?
              AND section_letter = ?;
        """
        params = (ref.chapter_number, ref.section_letter)
    else:
        sql = f"""
            SELECT {ENTRY_COLUMNS}
            FROM systematic_entries
            WHERE entry_type = 'chapter'
              AND chapter_number = ?;
        """
        params = (ref.chapter_number,)

    try:
        with get_conn(db_path, readonly=True) as conn:
            row = conn.execute(sql, params).fetchone()
    except sqlite3.Error as e:
        warn(f"Database error while resolving {ref.token}: {e}")
        return None
    return Entry.from_db_row(row) if row else None


def resolve_link(token: str, db_path: DbPath = None) -> Optional[Entry]:
    """Parse and resolve a token in one step."""
    ref = parse_link_token(token)
    if ref is None:
        return None
    return resolve(ref, db_path)


def render(
    target: Union[Entry, LinkReference, str],
    display_text: Optional[str] = None,
    db_path: DbPath = None,
) -> LinkDescriptor:
    """
    Describe how a link should be displayed.

    `target` may be an Entry, a parsed LinkReference or a raw token. The
    display text defaults to the target's title, or to the token itself
    when the link does not resolve. Rendering never writes to the store.
    """
    entry: Optional[Entry] = None
    if isinstance(target, Entry):
        entry = target
        token = link_token_for(target)
        if token is None:
            raise ValueError(f"{target.label} has no link token; only chapters and below are linkable")
        reference = token
    elif isinstance(target, LinkReference):
        reference = target.token
        entry = resolve(target, db_path)
    else:
        reference = target
        ref = parse_link_token(target)
        entry = resolve(ref, db_path) if ref is not None else None

    if entry is None:
        return LinkDescriptor(
            reference=reference,
            display=display_text or reference,
            resolved=False,
        )
    return LinkDescriptor(
        reference=reference,
        display=display_text or entry.title,
        resolved=True,
        entry_id=entry.id,
        entry_type=entry.entry_type,
        title=entry.title,
        summary=entry.summary,
    )
