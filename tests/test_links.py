import pytest

from doctrine.links import find_links, link_token_for, parse_link_token, render, resolve, resolve_link
from doctrine.loader import entry_id_for
from doctrine.model import LinkReference
from doctrine.store import get_entry


@pytest.mark.parametrize(
    "token, expected",
    [
        ("[[ST:Ch32]]", LinkReference(32)),
        ("[[ST:Ch32:A]]", LinkReference(32, "A")),
        ("[[ST:Ch32:A.1]]", LinkReference(32, "A", "1")),
        ("[[ST:Ch5:b.12]]", LinkReference(5, "b", "12")),
    ],
)
def test_parse_link_token(token, expected):
    assert parse_link_token(token) == expected
    assert expected.token == token


@pytest.mark.parametrize(
    "token",
    [
        "[[ST:Ch32 ]]",
        "[[ST: Ch32]]",
        "[[ST:Ch]]",
        "[[ST:32]]",
        "[ST:Ch32]",
        "[[ST:Ch32:AB]]",
        "[[ST:Ch32:A.]]",
        "[[ST:Ch32:1]]",
        "[[st:ch32]]",
        "see [[ST:Ch32]]",
        "[[ST:Ch" + "9" * 5000 + "]]",
        "[[ST:Ch32:A." + "1" * 5000 + "]]",
        "[[ST:Ch\u0663\u0662]]",
        "[[ST:Ch32:A.\u0661]]",
        "",
        None,
        32,
    ],
)
def test_parse_link_token_rejects(token):
    assert parse_link_token(token) is None


def test_granularity():
    assert LinkReference(1).granularity == "chapter"
    assert LinkReference(1, "A").granularity == "section"
    assert LinkReference(1, "A", "2").granularity == "subsection"


def test_resolve_each_granularity(loaded_db):
    chapter = resolve_link("[[ST:Ch32]]", loaded_db)
    assert chapter.entry_type == "chapter"
    assert chapter.id == entry_id_for("chapter:32")

    section = resolve_link("[[ST:Ch32:A]]", loaded_db)
    assert section.entry_type == "section"
    assert section.id == entry_id_for("section:32:A")

    sub = resolve_link("[[ST:Ch32:A.1]]", loaded_db)
    assert sub.entry_type == "subsection"
    assert sub.title == "Foreknowledge"


def test_no_fallback_to_parent(loaded_db):
    assert resolve_link("[[ST:Ch32]]", loaded_db) is not None
    assert resolve_link("[[ST:Ch32:Z]]", loaded_db) is None
    assert resolve_link("[[ST:Ch32:A.9]]", loaded_db) is None
    assert resolve_link("[[ST:Ch32:a]]", loaded_db) is None
    assert resolve_link("[[ST:Ch99]]", loaded_db) is None
    assert resolve_link("not a link", loaded_db) is None


def test_resolve_reference_object(loaded_db):
    assert resolve(LinkReference(33), loaded_db).title == "The Gospel Call and Effective Calling"


def test_render_resolved(loaded_db):
    desc = render("[[ST:Ch32]]", db_path=loaded_db)
    assert desc.resolved
    assert desc.display == "Election and Reprobation"
    assert desc.summary == "Election is an act of God before creation."
    assert desc.css_class == "systematic-link"
    html = desc.to_html()
    assert html.startswith('<span class="systematic-link"')
    assert 'data-st-ref="[[ST:Ch32]]"' in html
    assert 'data-st-display="Election and Reprobation"' in html


def test_render_explicit_display_and_broken(loaded_db):
    desc = render(LinkReference(32, "Z"), display_text="Election <Z>", db_path=loaded_db)
    assert not desc.resolved
    assert desc.entry_id is None
    assert "systematic-link--broken" in desc.css_class
    assert "Election &lt;Z&gt;" in desc.to_html()


def test_render_entry(loaded_db):
    entry = get_entry(entry_id_for("subsection:32:A.2"), loaded_db)
    desc = render(entry)
    assert desc.reference == "[[ST:Ch32:A.2]]"
    assert desc.display == "Predestination"

    part = get_entry(entry_id_for("part:1"), loaded_db)
    with pytest.raises(ValueError):
        render(part)


def test_find_links():
    text = "Compare [[ST:Ch32:A]] with [[ST:Ch 33]] and [[ST:Ch33]]."
    assert [r.token for r in find_links(text)] == ["[[ST:Ch32:A]]", "[[ST:Ch33]]"]
    assert find_links("") == []


def test_link_token_for(loaded_db):
    chapter = get_entry(entry_id_for("chapter:32"), loaded_db)
    section = get_entry(entry_id_for("section:32:B"), loaded_db)
    part = get_entry(entry_id_for("part:2"), loaded_db)
    assert link_token_for(chapter) == "[[ST:Ch32]]"
    assert link_token_for(section) == "[[ST:Ch32:B]]"
    assert link_token_for(part) is None
