from __future__ import annotations

import sqlite3
from pathlib import Path

from medsim_api.config.settings import get_settings
from medsim_api.db.migrations import HEAD_REVISION, _ensure_schema_created, run_migrations


def _fetch_version_sync(db_file: Path) -> str | None:
    with sqlite3.connect(db_file) as conn:
        row = conn.execute("SELECT version_num FROM alembic_version").fetchone()
        return row[0] if row else None


def _table_names(db_file: Path) -> list[str]:
    with sqlite3.connect(db_file) as conn:
        cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
        return [row[0] for row in cursor.fetchall()]


def _use_database(monkeypatch, db_path: Path) -> None:
    monkeypatch.setenv("MEDSIM_DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    get_settings.cache_clear()


def test_ensure_schema_created_bootstraps_when_missing(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "bootstrap.sqlite"
    _use_database(monkeypatch, db_path)

    _ensure_schema_created()

    tables = _table_names(db_path)
    assert "alembic_version" in tables
    assert "user_stats" in tables
    assert _fetch_version_sync(db_path) == HEAD_REVISION
    get_settings.cache_clear()


def test_ensure_schema_created_skips_when_version_present(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "bootstrap.sqlite"
    _use_database(monkeypatch, db_path)

    from medsim_api.db import Base

    _ensure_schema_created()

    def _fail_create_all(*args, **kwargs) -> None:
        raise AssertionError("create_all should not run when alembic_version exists")

    monkeypatch.setattr(Base.metadata, "create_all", _fail_create_all)

    _ensure_schema_created()

    assert _fetch_version_sync(db_path) == HEAD_REVISION
    get_settings.cache_clear()


def test_run_migrations_applies_alembic_head(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "alembic.sqlite"
    _use_database(monkeypatch, db_path)
    monkeypatch.delenv("MEDSIM_SKIP_MIGRATIONS", raising=False)

    run_migrations()

    assert "user_stats" in _table_names(db_path)
    assert _fetch_version_sync(db_path) == HEAD_REVISION
    get_settings.cache_clear()


def test_run_migrations_can_be_skipped(tmp_path, monkeypatch) -> None:
    db_path = tmp_path / "skipped.sqlite"
    _use_database(monkeypatch, db_path)
    monkeypatch.setenv("MEDSIM_SKIP_MIGRATIONS", "1")

    run_migrations()

    assert not db_path.exists()
    get_settings.cache_clear()
