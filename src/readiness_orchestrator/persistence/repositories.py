"""
readiness-orchestrator — project repositories

File: src/readiness_orchestrator/persistence/repositories.py
Last updated: 2026-10-19

Purpose
- Load and save `ProjectRecord` documents through a small `ProjectStore` protocol.

What should be included in this file
- `SQLiteProjectStore`: one row per project in the state DB, canonical JSON payload.
- `InMemoryProjectStore`: the same contract without I/O, for tests and embedding.

Functional requirements
- `save` is atomic, increments `version`, and honours an optional version compare-and-swap.
- `load` raises `NotFoundError` for unknown ids.
- Storage failures surface as `PersistenceError`; they are never retried here.
"""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Final, Protocol

import structlog

from readiness_orchestrator.domain.errors import (
    ConcurrentModificationError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from readiness_orchestrator.domain.ids import validate_project_id
from readiness_orchestrator.domain.models import (
    ProjectRecord,
    datetime_to_iso8601z,
    utc_now,
)
from readiness_orchestrator.persistence.state_db import StateDB, StateDBError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from readiness_orchestrator.domain.models import Clock
    from readiness_orchestrator.persistence.state_db import RowValue, SQLParams

_MAX_PAGE_SIZE: Final[int] = 1_000


class ProjectStore(Protocol):
    """Persistence collaborator used by the control plane."""

    def load(self, project_id: str) -> ProjectRecord: ...

    def save(
        self,
        project_id: str,
        record: ProjectRecord,
        *,
        expected_version: int | None = None,
    ) -> ProjectRecord: ...

    def list(self, *, limit: int = 100, offset: int = 0) -> list[ProjectRecord]: ...


def _validate_page(limit: int, offset: int) -> None:
    if limit <= 0 or limit > _MAX_PAGE_SIZE:
        raise ValidationError(f"limit must be in [1, {_MAX_PAGE_SIZE}]")
    if offset < 0:
        raise ValidationError("offset must be >= 0")


def _checked_ids(project_id: str, record: ProjectRecord) -> str:
    try:
        clean_id = validate_project_id(project_id)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if record.id != clean_id:
        raise ValidationError(f"record id {record.id!r} does not match project id {clean_id!r}")
    return clean_id


def _check_version(project_id: str, expected: int | None, actual: int | None) -> None:
    if expected is None:
        return
    # A missing row behaves like version 0 so first saves can use the CAS too.
    if (actual if actual is not None else 0) != expected:
        raise ConcurrentModificationError(project_id, expected=expected, actual=actual)


class SQLiteProjectStore:
    """StateDB-backed project repository."""

    def __init__(
        self,
        db: StateDB,
        *,
        clock: Clock | None = None,
        logger: Any | None = None,
    ) -> None:
        self._db = db
        self._clock = clock if clock is not None else utc_now
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        try:
            self._db.migrate()
        except StateDBError as exc:
            raise PersistenceError(str(exc)) from exc

    @property
    def db(self) -> StateDB:
        return self._db

    def load(self, project_id: str) -> ProjectRecord:
        try:
            clean_id = validate_project_id(project_id)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        try:
            row = self._db.query_one(
                "SELECT payload_json FROM projects WHERE id = ?",
                (clean_id,),
            )
        except StateDBError as exc:
            raise PersistenceError(str(exc)) from exc
        if row is None:
            raise NotFoundError(f"project not found: {clean_id}")
        return _decode_row(row, clean_id)

    def exists(self, project_id: str) -> bool:
        try:
            row = self._db.query_one("SELECT 1 AS present FROM projects WHERE id = ?", (project_id,))
        except StateDBError as exc:
            raise PersistenceError(str(exc)) from exc
        return row is not None

    def list(self, *, limit: int = 100, offset: int = 0) -> list[ProjectRecord]:
        _validate_page(limit, offset)
        try:
            rows = self._db.query_all(
                """
                SELECT id, payload_json FROM projects
                ORDER BY updated_at DESC, id ASC
                LIMIT ? OFFSET ?
                """,
                (limit, offset),
            )
        except StateDBError as exc:
            raise PersistenceError(str(exc)) from exc
        return [_decode_row(row, str(row.get("id", ""))) for row in rows]

    def save(
        self,
        project_id: str,
        record: ProjectRecord,
        *,
        expected_version: int | None = None,
    ) -> ProjectRecord:
        clean_id = _checked_ids(project_id, record)
        updated_at = self._clock()
        try:
            with self._db.transaction(immediate=True) as conn:
                actual = self._stored_version(conn, clean_id)
                _check_version(clean_id, expected_version, actual)
                saved = replace(
                    record,
                    version=(actual if actual is not None else 0) + 1,
                    updated_at=updated_at,
                )
                params: SQLParams = (
                    clean_id,
                    saved.status.value,
                    saved.version,
                    1 if saved.frozen else 0,
                    saved.to_json(),
                    datetime_to_iso8601z(updated_at),
                )
                self._db.execute(
                    """
                    INSERT INTO projects (id, status, version, frozen, payload_json, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        status=excluded.status,
                        version=excluded.version,
                        frozen=excluded.frozen,
                        payload_json=excluded.payload_json,
                        updated_at=excluded.updated_at
                    """,
                    params,
                    conn=conn,
                )
        except (StateDBError, sqlite3.Error) as exc:
            raise PersistenceError(str(exc)) from exc

        self._logger.info(
            "project_saved",
            project_id=clean_id,
            version=saved.version,
            status=saved.status.value,
            backend="sqlite",
        )
        return saved

    def _stored_version(self, conn: sqlite3.Connection, project_id: str) -> int | None:
        row = self._db.query_one(
            "SELECT version FROM projects WHERE id = ?",
            (project_id,),
            conn=conn,
        )
        if row is None:
            return None
        value = row["version"]
        if not isinstance(value, int):
            raise PersistenceError(f"projects.version for {project_id!r} must be an integer")
        return value


class InMemoryProjectStore:
    """Dictionary-backed store with the same contract as ``SQLiteProjectStore``.

    Records are kept as canonical JSON so callers never share objects with the store.
    """

    def __init__(
        self,
        records: Mapping[str, ProjectRecord] | None = None,
        *,
        clock: Clock | None = None,
        logger: Any | None = None,
    ) -> None:
        self._clock = clock if clock is not None else utc_now
        self._logger = logger if logger is not None else structlog.get_logger(__name__)
        self._lock = threading.Lock()
        self._payloads: dict[str, str] = {}
        for project_id, record in (records or {}).items():
            self._payloads[_checked_ids(project_id, record)] = record.to_json()

    def load(self, project_id: str) -> ProjectRecord:
        try:
            clean_id = validate_project_id(project_id)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        with self._lock:
            payload = self._payloads.get(clean_id)
        if payload is None:
            raise NotFoundError(f"project not found: {clean_id}")
        return ProjectRecord.from_json(payload)

    def exists(self, project_id: str) -> bool:
        with self._lock:
            return project_id in self._payloads

    def list(self, *, limit: int = 100, offset: int = 0) -> list[ProjectRecord]:
        _validate_page(limit, offset)
        with self._lock:
            payloads = [self._payloads[key] for key in sorted(self._payloads)]
        return [ProjectRecord.from_json(item) for item in payloads[offset : offset + limit]]

    def save(
        self,
        project_id: str,
        record: ProjectRecord,
        *,
        expected_version: int | None = None,
    ) -> ProjectRecord:
        clean_id = _checked_ids(project_id, record)
        updated_at = self._clock()
        with self._lock:
            current = self._payloads.get(clean_id)
            actual = None if current is None else ProjectRecord.from_json(current).version
            _check_version(clean_id, expected_version, actual)
            saved = replace(
                record,
                version=(actual if actual is not None else 0) + 1,
                updated_at=updated_at,
            )
            self._payloads[clean_id] = saved.to_json()
        self._logger.info(
            "project_saved",
            project_id=clean_id,
            version=saved.version,
            status=saved.status.value,
            backend="memory",
        )
        return saved


def _row_text(row: Mapping[str, RowValue], key: str, path: str) -> str:
    value = row.get(key)
    if not isinstance(value, str):
        raise PersistenceError(f"{path}: expected text column")
    return value


def _decode_row(row: Mapping[str, RowValue], project_id: str) -> ProjectRecord:
    payload = _row_text(row, "payload_json", "projects.payload_json")
    try:
        return ProjectRecord.from_json(payload)
    except ValueError as exc:
        raise PersistenceError(f"stored payload for project {project_id!r} is invalid: {exc}") from exc


__all__ = ["InMemoryProjectStore", "ProjectStore", "SQLiteProjectStore"]
