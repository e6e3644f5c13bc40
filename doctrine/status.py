"""
Status and health-report helpers for the Doctrine Index.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from .db import ping
from .paths import resolve_db_path
from .store import get_summary, list_tags
from .util import info, warn


def print_status(db_path: Optional[Union[str, Path]] = None) -> None:
    """
    Print a human-readable status report:

    - DB path and reachability
    - Entry counts per type, scripture rows, related links
    - Tags with their chapter counts
    """
    info(f"Database: {resolve_db_path(db_path)}")

    if not ping(db_path):
        warn("Database is not reachable yet. Run `doctrines.py init-schema` or import a batch.")
        return

    summary = get_summary(db_path)
    if not summary["chapters"]:
        warn("No systematic theology entries loaded (or tables missing).")
    else:
        info("Systematic theology entries:")
        for key in ("parts", "chapters", "sections", "subsections"):
            print(f"  - {key}: {summary[key]}")
        info(
            f"Scripture index: {summary['scripture_rows']} row(s), "
            f"{summary['primary_rows']} primary"
        )
        info(f"Related chapter links: {summary['related_links']}")

    tags = list_tags(db_path)
    if not tags:
        warn("No tags recorded in `systematic_tags` table (or table missing).")
    else:
        info("Tags:")
        for tag in tags:
            print(f"  - {tag.id}: {tag.name} ({tag.chapter_count} chapter(s))")
