"""
The 66-book canon used to validate and normalize references.

The table lives in data/canon.json. Each entry carries the canonical
three-character code, the display name, the testament, the number of
chapters, and the abbreviations accepted by the reference parser.
"""

from __future__ import annotations

import json
from functools import lru_cache
from typing import Any, Dict, Optional

from .paths import DATA_DIR


@lru_cache(maxsize=1)
def load_canon() -> Dict[str, Dict[str, Any]]:
    """
    Load the canon definition from data/canon.json.

    Returns
    -------
    dict:
        Map of book code -> { "book_num", "code", "name", "testament",
        "chapters", "abbreviations" }, in canonical order.
    """
    canon_path = DATA_DIR / "canon.json"
    data = json.loads(canon_path.read_text(encoding="utf-8"))

    result: Dict[str, Dict[str, Any]] = {}
    for entry in sorted(data, key=lambda e: int(e["book_num"])):
        code = entry["code"].upper()
        result[code] = {
            "book_num": int(entry["book_num"]),
            "code": code,
            "name": entry["name"],
            "testament": entry.get("testament", "unknown"),
            "chapters": int(entry["chapters"]),
            "abbreviations": list(entry.get("abbreviations", [])),
        }
    return result


def _lookup_key(value: str) -> str:
    return " ".join(value.lower().split())


@lru_cache(maxsize=1)
def book_lookup() -> Dict[str, str]:
    """
    Build a mapping from book strings to canonical codes.

    Keys include:
    - the code (gen, 1co)
    - the full name (genesis, 1 corinthians)
    - every listed abbreviation
    - each of the above with internal spaces removed (1corinthians)
    """
    lookup: Dict[str, str] = {}
    for code, meta in load_canon().items():
        for raw in [code, meta["name"], *meta["abbreviations"]]:
            key = _lookup_key(raw)
            lookup[key] = code
            lookup[key.replace(" ", "")] = code
    return lookup


def resolve_book_id(name: str) -> Optional[str]:
    """
    Resolve a book name, code or abbreviation to its canonical code.

    Matching is case-insensitive and whitespace-tolerant; a single trailing
    period is ignored ("Rom." -> "ROM"). Returns None for unknown books.
    """
    if not isinstance(name, str):
        return None
    key = _lookup_key(name)
    if key.endswith("."):
        key = key[:-1].rstrip()
    if not key:
        return None
    lookup = book_lookup()
    if key in lookup:
        return lookup[key]
    return lookup.get(key.replace(" ", ""))


def book_meta(code: str) -> Optional[Dict[str, Any]]:
    """Return the canon entry for a code, or None."""
    return load_canon().get(code.upper()) if code else None


def chapter_count(code: str) -> int:
    """Number of chapters in the book, or 0 for an unknown code."""
    meta = book_meta(code)
    return meta["chapters"] if meta else 0


def book_name(code: str) -> str:
    """Display name for a code (falls back to the code itself)."""
    meta = book_meta(code)
    return meta["name"] if meta else code


def book_order(code: str) -> int:
    """Canonical position 1-66 (unknown codes sort last)."""
    meta = book_meta(code)
    return meta["book_num"] if meta else 999
