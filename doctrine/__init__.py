"""
doctrine - Systematic theology reference index core package

This package contains the core functionality for the Doctrine Index:
- config: Project configuration and versioning
- paths: Path management and database location
- util: Utility functions for console output
- reference: Bible citation parsing and formatting
- loader: Systematic theology import pipeline
- store: Hierarchical document store (tree, chapters, tags, search)
- links: [[ST:...]] link parsing, resolution and rendering
- xref: Scripture cross-reference index (forward and reverse lookup)
"""

from . import config
from .paths import PROJECT_ROOT, DB_PATH, resolve_db_path
from .util import info, warn, ok
from .reference import parse_reference, resolve_book_id, format_reference
from .loader import import_batch, clear_corpus, ImportBatchError, ImportResult
from .store import get_tree, get_chapter, get_entry, read_chapter
from .links import parse_link_token, resolve, resolve_link, render
from .xref import ranges_for, entries_for, doctrines_for_passage

__version__ = config.__version__
__all__ = [
    "config",
    "PROJECT_ROOT",
    "DB_PATH",
    "resolve_db_path",
    "info",
    "warn",
    "ok",
    "parse_reference",
    "resolve_book_id",
    "format_reference",
    "import_batch",
    "clear_corpus",
    "ImportBatchError",
    "ImportResult",
    "get_tree",
    "get_chapter",
    "get_entry",
    "read_chapter",
    "parse_link_token",
    "resolve",
    "resolve_link",
    "render",
    "ranges_for",
    "entries_for",
    "doctrines_for_passage",
]
