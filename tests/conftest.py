from __future__ import annotations

import pytest
from hypothesis import HealthCheck, settings

from doctrine.loader import import_batch

settings.register_profile(
    "ci",
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
settings.load_profile("ci")


def _record(part, part_title, chapter, chapter_title, content="", cited=None, **extra):
    rec = {
        "partNumber": part,
        "partTitle": part_title,
        "chapterNumber": chapter,
        "chapterTitle": chapter_title,
        "rawContent": content,
        "citedRanges": cited or [],
    }
    rec.update(extra)
    return rec


GOD = "The Doctrine of God"
SALVATION = "The Doctrine of the Application of Redemption"


@pytest.fixture
def sample_records():
    return [
        _record(1, GOD, 1, "Introduction to Systematic Theology",
                "Systematic theology asks what the whole Bible teaches; see chapter 2.",
                ["Matt 28:19-20", "Acts 20:27"]),
        _record(1, GOD, 1, "Introduction to Systematic Theology",
                "Doctrine is what the whole Bible teaches us today.",
                ["2 Tim 3:16"],
                sectionLetter="A", sectionTitle="Definition of Systematic Theology"),
        _record(1, GOD, 2, "The Word of God",
                "The several forms of the Word of God.",
                ["Ps 19:1-2", "Rom 8:28"]),
        _record(2, SALVATION, 32, "Election and Reprobation",
                "God chose some to be saved. See also chapters 33-34, and see chapter 32.",
                ["Rom 8:28-30", "Eph 1:4-5", "Rom 9", "John 6:44", "Acts 13:48", "2 Thess 2:13"],
                summary="Election is an act of God before creation."),
        _record(2, SALVATION, 32, "Election and Reprobation",
                "Several passages teach election.",
                ["Rom 8:29", "Bogus 1:1"],
                sectionLetter="A", sectionTitle="Is Election Taught in Scripture?"),
        _record(2, SALVATION, 32, "Election and Reprobation",
                "Foreknowledge is personal, relational knowledge.",
                ["Rom 8:28-39"],
                sectionLetter="A", subsectionNumber=1, subsectionTitle="Foreknowledge"),
        _record(2, SALVATION, 32, "Election and Reprobation",
                "Predestination is a broader term.",
                [],
                sectionLetter="A", subsectionNumber=2, subsectionTitle="Predestination"),
        _record(2, SALVATION, 32, "Election and Reprobation",
                "Election is not fatalistic.",
                ["Rom 9:10-13"],
                sectionLetter="B", sectionTitle="Misunderstandings of Election"),
        _record(2, SALVATION, 33, "The Gospel Call and Effective Calling",
                "The gospel call is offered to all.",
                ["Rom 10:13-17", "Matt 11:28"]),
    ]


@pytest.fixture
def db_path(tmp_path):
    return tmp_path / "doctrine.sqlite"


@pytest.fixture
def loaded_db(db_path, sample_records):
    import_batch(sample_records, db_path=db_path)
    return db_path
