from pathlib import Path

from doctrine import config
from doctrine.db import apply_schema, get_conn, ping
from doctrine.paths import DB_PATH, resolve_db_path


def test_resolve_db_path_order(monkeypatch, tmp_path):
    monkeypatch.delenv(config.DB_ENV_VAR, raising=False)
    assert resolve_db_path(None) == DB_PATH

    monkeypatch.setenv(config.DB_ENV_VAR, str(tmp_path / "env.sqlite"))
    assert resolve_db_path(None) == tmp_path / "env.sqlite"
    assert resolve_db_path("explicit.sqlite") == Path("explicit.sqlite")


def test_env_var_is_used_by_connections(monkeypatch, tmp_path):
    target = tmp_path / "env.sqlite"
    monkeypatch.setenv(config.DB_ENV_VAR, str(target))
    apply_schema(quiet=True)
    assert target.exists()
    assert ping()


def test_schema_is_idempotent_and_enforces_foreign_keys(db_path):
    apply_schema(db_path)
    apply_schema(db_path)
    with get_conn(db_path, readonly=True) as conn:
        assert conn.execute("PRAGMA foreign_keys;").fetchone()[0] == 1
        tables = {
            r["name"]
            for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table';")
        }
    assert {"systematic_entries", "scripture_index", "related_chapters",
            "systematic_tags", "chapter_tags"} <= tables


def test_ping_missing(tmp_path):
    assert not ping(tmp_path / "absent.sqlite")
