"""State DB migration, pragma and transaction tests."""

from __future__ import annotations

import sqlite3
import time
from typing import TYPE_CHECKING

import pytest

from readiness_orchestrator.constants import STATE_DB_SCHEMA_VERSION
from readiness_orchestrator.persistence.state_db import (
    StateDB,
    StateDBBusyError,
    StateDBMigrationError,
    canonical_json,
)

if TYPE_CHECKING:
    from pathlib import Path


def _insert_project(
    db: StateDB, project_id: str, *, conn: sqlite3.Connection | None = None
) -> None:
    db.execute(
        """
        INSERT INTO projects (id, status, version, frozen, payload_json, updated_at)
        VALUES (?, 'draft', 1, 0, '{}', '2026-10-19T00:00:00.000000Z')
        """,
        (project_id,),
        conn=conn,
    )


def _count(db: StateDB) -> int:
    row = db.query_one("SELECT COUNT(*) AS total FROM projects")
    assert row is not None
    value = row["total"]
    assert isinstance(value, int)
    return value


def test_migration_idempotence_schema_version_and_pragmas(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "state" / "readiness.sqlite", busy_timeout_ms=4_321)

    version_first = db.migrate()
    version_second = db.migrate()

    assert version_first == STATE_DB_SCHEMA_VERSION
    assert version_second == STATE_DB_SCHEMA_VERSION
    assert db.schema_version() == STATE_DB_SCHEMA_VERSION

    with db.connection() as conn:
        tables = {
            str(row[0])
            for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'table' ORDER BY name"
            ).fetchall()
        }
        assert {"schema_versions", "projects"}.issubset(tables)

        index_names = {
            str(row[0])
            for row in conn.execute(
                "SELECT name FROM sqlite_master WHERE type = 'index' ORDER BY name"
            ).fetchall()
        }
        assert "idx_projects_updated_at" in index_names

        pragma_journal = conn.execute("PRAGMA journal_mode").fetchone()
        pragma_busy_timeout = conn.execute("PRAGMA busy_timeout").fetchone()
        assert pragma_journal is not None
        assert str(pragma_journal[0]).lower() == "wal"
        assert pragma_busy_timeout is not None
        assert int(pragma_busy_timeout[0]) == 4_321

    history = db.schema_history()
    assert [record.version for record in history] == [1]
    assert history[0].name == "initial_readiness_schema"
    assert len(history[0].checksum) == 64


def test_checksum_mismatch_is_refused(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "readiness.sqlite")
    db.migrate()
    db.execute("UPDATE schema_versions SET checksum = ? WHERE version = 1", ("0" * 64,))

    with pytest.raises(StateDBMigrationError, match="checksum mismatch"):
        db.migrate()


def test_newer_database_schema_is_refused(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "readiness.sqlite")
    db.migrate()
    db.execute(
        "INSERT INTO schema_versions (version, name, checksum, applied_at) VALUES (?, ?, ?, ?)",
        (STATE_DB_SCHEMA_VERSION + 1, "future", "f" * 64, "2030-01-01T00:00:00Z"),
    )

    with pytest.raises(StateDBMigrationError, match="newer than supported"):
        db.migrate()


def test_status_check_constraint(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "readiness.sqlite")
    db.migrate()

    with pytest.raises(sqlite3.IntegrityError):
        db.execute(
            """
            INSERT INTO projects (id, status, version, frozen, payload_json, updated_at)
            VALUES ('proj-x', 'shipped', 1, 0, '{}', 'now')
            """
        )


def test_transaction_rolls_back_on_error(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "readiness.sqlite")
    db.migrate()

    with pytest.raises(RuntimeError, match="boom"):
        with db.transaction() as conn:
            _insert_project(db, "proj-a", conn=conn)
            raise RuntimeError("boom")

    assert _count(db) == 0


def test_nested_transaction_uses_savepoint(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "readiness.sqlite")
    db.migrate()

    with db.transaction() as conn:
        _insert_project(db, "proj-outer", conn=conn)
        with pytest.raises(ValueError):
            with db.transaction(conn=conn):
                _insert_project(db, "proj-inner", conn=conn)
                raise ValueError("inner failure")

    rows = db.query_all("SELECT id FROM projects ORDER BY id")
    assert rows == [{"id": "proj-outer"}]


def test_context_manager_migrates(tmp_path: Path) -> None:
    with StateDB(tmp_path / "readiness.sqlite") as db:
        assert db.schema_version() == STATE_DB_SCHEMA_VERSION


@pytest.mark.parametrize(
    "kwargs",
    [{"busy_timeout_ms": -1}, {"busy_retry_limit": -1}, {"busy_retry_backoff_ms": -1}],
)
def test_negative_settings_are_rejected(tmp_path: Path, kwargs: dict[str, int]) -> None:
    with pytest.raises(ValueError):
        StateDB(tmp_path / "readiness.sqlite", **kwargs)


def test_reader_sees_committed_rows_while_writer_holds_the_lock(tmp_path: Path) -> None:
    db = StateDB(tmp_path / "state" / "readiness.sqlite")
    db.migrate()
    _insert_project(db, "proj-a")
    impatient = StateDB(db.path, busy_timeout_ms=0, busy_retry_limit=0)

    writer, reader, contender = db.connect(), db.connect(), impatient.connect()
    try:
        writer.execute("BEGIN IMMEDIATE")
        writer.execute("UPDATE projects SET status = 'patched' WHERE id = 'proj-a'")

        started = time.monotonic()
        row = db.query_one("SELECT status FROM projects WHERE id = ?", ("proj-a",), conn=reader)
        assert time.monotonic() - started < 0.5
        assert row == {"status": "draft"}

        with pytest.raises(StateDBBusyError):
            impatient.execute("UPDATE projects SET version = 2", conn=contender)

        writer.execute("COMMIT")
    finally:
        for conn in (writer, reader, contender):
            conn.close()

    assert db.query_one("SELECT status, version FROM projects") == {
        "status": "patched",
        "version": 1,
    }


def test_canonical_json_is_sorted_and_compact() -> None:
    assert canonical_json({"b": 1, "a": [1, "é"]}) == '{"a":[1,"é"],"b":1}'
