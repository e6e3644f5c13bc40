"""
Import records and file readers for the Doctrine Index.

An import record addresses one node of the systematic theology (its
deepest populated level) and carries that node's raw text and cited
ranges. This module:
- Defines ImportRecord and its dict constructor (camelCase or snake_case keys).
- Reads records from .json files, .csv files (csv module) or .xlsx files (openpyxl).
- Detects the header row and column mapping for tabular files.
"""

from __future__ import annotations

import csv
import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional

from openpyxl import load_workbook

from .util import info, warn


class RecordError(ValueError):
    """Raised when a record field cannot be coerced to its type."""


# Separator for citedRanges when packed into a single CSV/Excel cell.
CITATION_SEPARATOR = ";"


@dataclass
class ImportRecord:
    part_number: Optional[int]
    part_title: str = ""
    chapter_number: Optional[int] = None
    chapter_title: str = ""
    section_letter: Optional[str] = None
    section_title: Optional[str] = None
    subsection_number: Optional[str] = None
    subsection_title: Optional[str] = None
    raw_content: str = ""
    cited_ranges: List[str] = field(default_factory=list)
    summary: Optional[str] = None
    source_row: Optional[int] = None  # for diagnostics

    @property
    def level(self) -> str:
        """The entry type this record addresses."""
        if self.subsection_number is not None:
            return "subsection"
        if self.section_letter is not None:
            return "section"
        return "chapter"

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], source_row: Optional[int] = None) -> "ImportRecord":
        """
        Build a record from a mapping with camelCase or snake_case keys.

        Missing part/chapter numbers are kept as None; the import pipeline
        decides whether that is fatal. Non-integer numbers raise RecordError.
        """
        def pick(*names: str) -> Any:
            for name in names:
                if name in data and data[name] is not None:
                    return data[name]
            return None

        return cls(
            part_number=_as_int(pick("partNumber", "part_number"), "partNumber"),
            part_title=_as_text(pick("partTitle", "part_title")) or "",
            chapter_number=_as_int(pick("chapterNumber", "chapter_number"), "chapterNumber"),
            chapter_title=_as_text(pick("chapterTitle", "chapter_title")) or "",
            section_letter=_as_text(pick("sectionLetter", "section_letter")),
            section_title=_as_text(pick("sectionTitle", "section_title")),
            subsection_number=normalize_subsection(pick("subsectionNumber", "subsection_number")),
            subsection_title=_as_text(pick("subsectionTitle", "subsection_title")),
            raw_content=_as_content(pick("rawContent", "raw_content", "content")),
            cited_ranges=_as_citations(pick("citedRanges", "cited_ranges", "citations")),
            summary=_as_text(pick("summary")),
            source_row=source_row,
        )


def _as_int(value: Any, name: str) -> Optional[int]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise RecordError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, float):
        if not value.is_integer():
            raise RecordError(f"{name} must be an integer, got {value!r}")
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        raise RecordError(f"{name} must be an integer, got {value!r}") from None


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _as_content(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def normalize_subsection(value: Any) -> Optional[str]:
    """Subsection numbers are stored as text; numeric input is canonicalized ('01' -> '1')."""
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    if not text:
        return None
    if text.isascii() and text.isdigit():
        return text.lstrip("0") or "0"
    return text


def _as_citations(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        parts = value.split(CITATION_SEPARATOR)
    else:
        parts = [str(v) for v in value if v is not None]
    return [p.strip() for p in parts if p.strip()]


# ---------- Tabular readers ----------


HEADER_CANDIDATES: Dict[str, List[str]] = {
    "partNumber": ["partnumber", "part", "partno", "partnum"],
    "partTitle": ["parttitle", "partname"],
    "chapterNumber": ["chapternumber", "chapter", "chapterno", "chapnum", "ch"],
    "chapterTitle": ["chaptertitle", "chaptername"],
    "sectionLetter": ["sectionletter", "section", "sec"],
    "sectionTitle": ["sectiontitle", "sectionname"],
    "subsectionNumber": ["subsectionnumber", "subsection", "subsec", "subno"],
    "subsectionTitle": ["subsectiontitle", "subsectionname"],
    "rawContent": ["rawcontent", "content", "text", "body"],
    "citedRanges": ["citedranges", "citations", "scripture", "references", "refs"],
    "summary": ["summary"],
}

REQUIRED_COLUMNS = ("partNumber", "chapterNumber")


def _normalize_header(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip().lower().replace(" ", "").replace("-", "").replace("_", "")


def _detect_column_mapping(headers: List[object]) -> Optional[Dict[str, int]]:
    """
    Find which column index corresponds to each record field.

    Returns a mapping { 'partNumber': idx, 'chapterNumber': idx, ... } holding
    every column that was found, or None if a required column is missing.
    """
    norm_headers = [_normalize_header(h) for h in headers]
    mapping: Dict[str, int] = {}

    for logical_name, candidates in HEADER_CANDIDATES.items():
        for i, norm in enumerate(norm_headers):
            if norm in candidates and i not in mapping.values():
                mapping[logical_name] = i
                break

    missing = [name for name in REQUIRED_COLUMNS if name not in mapping]
    if missing:
        warn(f"Could not detect column(s) {missing}. Headers were: {headers}")
        return None
    return mapping


def _record_from_row(
    row: List[object],
    mapping: Dict[str, int],
    row_idx: int,
) -> Optional[ImportRecord]:
    values: Dict[str, Any] = {}
    for logical_name, idx in mapping.items():
        values[logical_name] = row[idx] if idx < len(row) else None

    if values.get("chapterNumber") in (None, ""):
        warn(f"Row {row_idx}: missing chapter number; skipping.")
        return None

    try:
        return ImportRecord.from_dict(values, source_row=row_idx)
    except RecordError as e:
        warn(f"Row {row_idx}: {e}; skipping.")
        return None


def iter_records_from_file(
    path: Path,
    sheet_name: Optional[str] = None,
    max_rows: Optional[int] = None,
) -> Iterator[ImportRecord]:
    """
    Yield ImportRecord objects from a .json, .csv or .xlsx file.

    Parameters
    ----------
    path:
        Path to the record file.
    sheet_name:
        Optional worksheet name (Excel only). If None, the active sheet is used.
    max_rows:
        Optional limit on number of records yielded (for testing).

    Yields
    ------
    ImportRecord instances.
    """
    path = Path(path).resolve()
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    suffix = path.suffix.lower()

    if suffix == ".json":
        yield from _iter_records_from_json(path, max_rows)
    elif suffix == ".csv":
        yield from _iter_records_from_csv(path, max_rows)
    elif suffix in (".xlsx", ".xlsm"):
        yield from _iter_records_from_xlsx(path, sheet_name, max_rows)
    else:
        raise ValueError(f"Unsupported file format: {suffix}. Expected .json, .csv, .xlsx or .xlsm")


def _iter_records_from_json(
    json_path: Path,
    max_rows: Optional[int] = None,
) -> Iterator[ImportRecord]:
    """Handle JSON import: a list of records or {"records": [...]}."""
    info(f"Opening JSON file: {json_path}")
    data = json.loads(json_path.read_text(encoding="utf-8"))
    if isinstance(data, dict):
        data = data.get("records", [])
    if not isinstance(data, list):
        raise ValueError(f"{json_path.name}: expected a list of records")

    for idx, item in enumerate(data):
        if max_rows is not None and idx >= max_rows:
            info(f"Stopping after max_rows={max_rows} records.")
            break
        if not isinstance(item, dict):
            raise RecordError(f"record {idx}: expected an object, got {type(item).__name__}")
        yield ImportRecord.from_dict(item, source_row=idx)


def _iter_records_from_csv(
    csv_path: Path,
    max_rows: Optional[int] = None,
) -> Iterator[ImportRecord]:
    """Handle CSV file import."""
    info(f"Opening CSV file: {csv_path}")

    with open(csv_path, "r", encoding="utf-8-sig", newline="") as f:
        reader = csv.reader(f)

        try:
            headers = next(reader)
        except StopIteration:
            warn("CSV file is empty.")
            return

        info(f"Detected header row: {headers}")
        mapping = _detect_column_mapping(list(headers))
        if mapping is None:
            warn("Failed to detect required columns; aborting CSV import.")
            return

        count = 0
        for row_idx, row in enumerate(reader, start=2):  # 1-based, +1 for header
            if max_rows is not None and count >= max_rows:
                info(f"Stopping after max_rows={max_rows} rows.")
                break
            if not any(cell.strip() for cell in row):
                continue

            record = _record_from_row(list(row), mapping, row_idx)
            if record is None:
                continue
            yield record
            count += 1


def _iter_records_from_xlsx(
    excel_path: Path,
    sheet_name: Optional[str] = None,
    max_rows: Optional[int] = None,
) -> Iterator[ImportRecord]:
    """Handle Excel file import."""
    info(f"Opening Excel file: {excel_path}")
    wb = load_workbook(filename=str(excel_path), read_only=True, data_only=True)

    try:
        if sheet_name is None:
            ws = wb.active
            info(f"Using active sheet: {ws.title!r}")
        else:
            if sheet_name not in wb.sheetnames:
                raise ValueError(
                    f"Sheet {sheet_name!r} not found. Available: {wb.sheetnames}"
                )
            ws = wb[sheet_name]
            info(f"Using sheet: {ws.title!r}")

        rows = ws.iter_rows(values_only=True)
        try:
            headers = next(rows)
        except StopIteration:
            warn("Excel sheet is empty.")
            return

        headers_list = list(headers)
        info(f"Detected header row: {headers_list}")
        mapping = _detect_column_mapping(headers_list)
        if mapping is None:
            warn("Failed to detect required columns; aborting Excel import.")
            return

        count = 0
        for row_idx, row in enumerate(rows, start=2):  # 1-based row index; +1 for header
            if max_rows is not None and count >= max_rows:
                info(f"Stopping after max_rows={max_rows} rows.")
                break
            row_list = list(row)
            if all(v is None or str(v).strip() == "" for v in row_list):
                continue

            record = _record_from_row(row_list, mapping, row_idx)
            if record is None:
                continue
            yield record
            count += 1
    finally:
        wb.close()
