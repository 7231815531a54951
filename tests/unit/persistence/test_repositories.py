"""
readiness-orchestrator — unit tests for project repositories

File: tests/unit/persistence/test_repositories.py
Last updated: 2026-10-19

Purpose
- Validate the ProjectStore contract on both the SQLite and the in-memory backend:
  version increments, the compare-and-swap, paging and payload decoding.
"""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

import pytest

from readiness_orchestrator.domain.errors import (
    ConcurrentModificationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from readiness_orchestrator.domain.lifecycle import ProjectStatus
from readiness_orchestrator.persistence import InMemoryProjectStore, SQLiteProjectStore, StateDB

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture(params=["sqlite", "memory"])
def any_store(request, tmp_path: Path, clock, recording_logger):
    if request.param == "sqlite":
        db = StateDB(tmp_path / "state" / "readiness.sqlite")
        return SQLiteProjectStore(db, clock=clock, logger=recording_logger)
    return InMemoryProjectStore(clock=clock, logger=recording_logger)


def test_save_increments_version_and_stamps_time(any_store, clock, make_clean_project) -> None:
    project = make_clean_project(version=7)

    first = any_store.save(project.id, project)
    second = any_store.save(project.id, replace(first, title="renamed"))

    assert first.version == 1
    assert first.updated_at == clock.start
    assert second.version == 2
    loaded = any_store.load(project.id)
    assert loaded == second
    assert loaded.title == "renamed"
    assert loaded.test_plan == project.test_plan


def test_load_unknown_project(any_store) -> None:
    with pytest.raises(NotFoundError, match="proj-nope"):
        any_store.load("proj-nope")


def test_load_rejects_bad_id(any_store) -> None:
    with pytest.raises(ValidationError):
        any_store.load("not valid")


def test_save_rejects_mismatched_ids(any_store, make_project) -> None:
    with pytest.raises(ValidationError, match="does not match"):
        any_store.save("proj-other", make_project())


def test_expected_version_compare_and_swap(any_store, make_project) -> None:
    project = make_project()
    created = any_store.save(project.id, project, expected_version=0)

    updated = any_store.save(project.id, created, expected_version=1)
    assert updated.version == 2

    with pytest.raises(ConcurrentModificationError) as excinfo:
        any_store.save(project.id, created, expected_version=1)

    assert excinfo.value.expected == 1
    assert excinfo.value.actual == 2
    assert isinstance(excinfo.value, PersistenceError)
    assert any_store.load(project.id).version == 2


def test_first_save_with_nonzero_expected_version_conflicts(any_store, make_project) -> None:
    with pytest.raises(ConcurrentModificationError) as excinfo:
        any_store.save("proj-1", make_project(), expected_version=3)

    assert excinfo.value.actual is None
    assert not any_store.exists("proj-1")


def test_list_pages(any_store, make_project) -> None:
    for project_id in ("proj-a", "proj-b", "proj-c"):
        any_store.save(project_id, make_project(project_id))

    everything = [record.id for record in any_store.list()]
    page = any_store.list(limit=1, offset=1)

    assert sorted(everything) == ["proj-a", "proj-b", "proj-c"]
    assert len(page) == 1
    assert page[0].id == everything[1]


@pytest.mark.parametrize(("limit", "offset"), [(0, 0), (1_001, 0), (10, -1)])
def test_list_rejects_bad_paging(any_store, limit: int, offset: int) -> None:
    with pytest.raises(ValidationError):
        any_store.list(limit=limit, offset=offset)


def test_save_logs_backend(any_store, recording_logger, make_project) -> None:
    any_store.save("proj-1", make_project(status=ProjectStatus.PATCHED))

    (event,) = recording_logger.events("project_saved")
    assert event.fields["version"] == 1
    assert event.fields["status"] == "patched"
    assert event.fields["backend"] in {"sqlite", "memory"}


def test_sqlite_lists_newest_first(tmp_path: Path, clock, make_project) -> None:
    store = SQLiteProjectStore(StateDB(tmp_path / "readiness.sqlite"), clock=clock)
    store.save("proj-old", make_project("proj-old"))
    store.save("proj-new", make_project("proj-new"))

    assert [record.id for record in store.list()] == ["proj-new", "proj-old"]


def test_sqlite_row_columns_mirror_payload(tmp_path: Path, clock, make_project) -> None:
    store = SQLiteProjectStore(StateDB(tmp_path / "readiness.sqlite"), clock=clock)
    store.save("proj-1", make_project(status=ProjectStatus.LOCKED, frozen=True))

    row = store.db.query_one("SELECT status, version, frozen FROM projects WHERE id = 'proj-1'")

    assert row == {"status": "locked", "version": 1, "frozen": 1}


def test_sqlite_invalid_payload_is_a_persistence_error(tmp_path: Path, clock, make_project) -> None:
    store = SQLiteProjectStore(StateDB(tmp_path / "readiness.sqlite"), clock=clock)
    store.save("proj-1", make_project())
    store.db.execute("UPDATE projects SET payload_json = ? WHERE id = 'proj-1'", ('{"id": 5}',))

    with pytest.raises(PersistenceError, match="invalid"):
        store.load("proj-1")


def test_sqlite_store_survives_reopen(tmp_path: Path, clock, make_clean_project) -> None:
    path = tmp_path / "state" / "readiness.sqlite"
    project = make_clean_project()
    SQLiteProjectStore(StateDB(path), clock=clock).save(project.id, project)

    reopened = SQLiteProjectStore(StateDB(path), clock=clock)

    assert reopened.load(project.id).docs_pack == project.docs_pack
    assert reopened.exists(project.id)


def test_memory_store_seeds_and_copies(clock, make_project) -> None:
    project = make_project()
    store = InMemoryProjectStore({"proj-1": project}, clock=clock)

    loaded = store.load("proj-1")

    assert loaded == project
    assert loaded is not project
