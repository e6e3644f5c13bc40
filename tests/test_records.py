import json

import pytest
from openpyxl import Workbook

from doctrine.loader import import_batch
from doctrine.records import ImportRecord, RecordError, iter_records_from_file
from doctrine.store import get_summary


def test_from_dict_accepts_both_key_styles():
    camel = ImportRecord.from_dict(
        {"partNumber": "2", "chapterNumber": 32, "sectionLetter": "A",
         "subsectionNumber": 1.0, "rawContent": " text ", "citedRanges": ["Rom 8:28", ""]}
    )
    snake = ImportRecord.from_dict(
        {"part_number": 2, "chapter_number": "32", "section_letter": "A",
         "subsection_number": "01", "raw_content": "text", "cited_ranges": "Rom 8:28; "}
    )
    for rec in (camel, snake):
        assert rec.part_number == 2
        assert rec.chapter_number == 32
        assert rec.subsection_number == "1"
        assert rec.raw_content == "text"
        assert rec.cited_ranges == ["Rom 8:28"]
        assert rec.level == "subsection"


def test_from_dict_rejects_non_integer_numbers():
    with pytest.raises(RecordError):
        ImportRecord.from_dict({"partNumber": 1, "chapterNumber": "3a"})
    with pytest.raises(RecordError):
        ImportRecord.from_dict({"partNumber": 1.5, "chapterNumber": 3})


def test_json_file(tmp_path, sample_records):
    path = tmp_path / "records.json"
    path.write_text(json.dumps({"records": sample_records}), encoding="utf-8")
    records = list(iter_records_from_file(path))
    assert len(records) == len(sample_records)
    assert records[3].summary == "Election is an act of God before creation."
    assert list(iter_records_from_file(path, max_rows=2))[-1].source_row == 1


def test_csv_file(tmp_path, db_path, capsys):
    path = tmp_path / "records.csv"
    path.write_text(
        "Part Number,Part Title,Chapter,Chapter Title,Section Letter,Section Title,"
        "Subsection Number,Subsection Title,Content,Cited Ranges\n"
        "6,Salvation,32,Election,,,,,God chose.,Rom 8:28-30; Eph 1:4\n"
        "6,Salvation,32,Election,A,Is it taught?,,,Yes.,Rom 8:29\n"
        "6,Salvation,,Election,,,,,No chapter.,\n"
        "6,Salvation,32,Election,A,,1,Foreknowledge,Known.,\n",
        encoding="utf-8",
    )
    records = list(iter_records_from_file(path))
    assert [r.level for r in records] == ["chapter", "section", "subsection"]
    assert records[0].cited_ranges == ["Rom 8:28-30", "Eph 1:4"]
    assert "Row 4: missing chapter number" in capsys.readouterr().out

    result = import_batch(records, db_path=db_path)
    assert result.entries == 4
    assert result.scripture_rows_created == 3


def test_csv_without_required_columns(tmp_path, capsys):
    path = tmp_path / "bad.csv"
    path.write_text("title,content\nx,y\n", encoding="utf-8")
    assert list(iter_records_from_file(path)) == []
    assert "Failed to detect required columns" in capsys.readouterr().out


def test_xlsx_file(tmp_path, db_path):
    wb = Workbook()
    ws = wb.active
    ws.title = "Theology"
    ws.append(["partNumber", "partTitle", "chapterNumber", "chapterTitle", "rawContent", "citedRanges"])
    ws.append([1, "God", 2, "The Word of God", "Scripture is God's word.", "Ps 19:1-2; 2 Tim 3:16"])
    ws.append([1, "God", 3, "The Canon", "Which writings belong.", "Rev 22:18-19; Nowhere 1:1"])
    path = tmp_path / "records.xlsx"
    wb.save(path)

    records = list(iter_records_from_file(path, sheet_name="Theology"))
    assert [r.chapter_number for r in records] == [2, 3]

    result = import_batch(records, db_path=db_path)
    assert result.skipped == 1
    assert get_summary(db_path)["scripture_rows"] == 3

    with pytest.raises(ValueError):
        list(iter_records_from_file(path, sheet_name="Missing"))


def test_unsupported_and_missing_files(tmp_path):
    other = tmp_path / "records.txt"
    other.write_text("nothing", encoding="utf-8")
    with pytest.raises(ValueError):
        list(iter_records_from_file(other))
    with pytest.raises(FileNotFoundError):
        list(iter_records_from_file(tmp_path / "absent.json"))
