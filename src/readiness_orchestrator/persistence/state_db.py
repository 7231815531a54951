"""
readiness-orchestrator — SQLite state database

File: src/readiness_orchestrator/persistence/state_db.py
Last updated: 2026-10-19

Purpose
- Owns the SQLite file that stores project records: schema, migrations, connections.

What this module includes
- A checksummed, append-only migration list tracked in ``schema_versions``.
- WAL journal, busy timeout and a bounded retry with exponential backoff on SQLITE_BUSY.
- Nested transactions mapped onto savepoints.

Notes
- Connections are opened per operation and closed afterwards.
- One logical write is one ``BEGIN IMMEDIATE`` transaction.
"""

from __future__ import annotations

import hashlib
import itertools
import json
import sqlite3
import time
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Final, NoReturn

from readiness_orchestrator.constants import STATE_DB_SCHEMA_VERSION
from readiness_orchestrator.domain.lifecycle import ProjectStatus

SQLValue = str | int | float | bytes | None
SQLParams = Sequence[SQLValue]
RowValue = str | int | float | bytes | None

DEFAULT_BUSY_TIMEOUT_MS: Final[int] = 5_000
DEFAULT_BUSY_RETRY_LIMIT: Final[int] = 4
DEFAULT_BUSY_RETRY_BACKOFF_MS: Final[int] = 25


class StateDBError(RuntimeError):
    """Any failure talking to the state database."""


class StateDBBusyError(StateDBError):
    """The database stayed locked through every retry."""


class StateDBMigrationError(StateDBError):
    """The on-disk schema and the migrations shipped with this package disagree."""


class StateDBCorruptionError(StateDBError):
    """SQLite reported a malformed or foreign file."""


# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_VERSIONS_DDL: Final[str] = """
CREATE TABLE IF NOT EXISTS schema_versions (
    version INTEGER PRIMARY KEY CHECK (version > 0),
    name TEXT NOT NULL,
    checksum TEXT NOT NULL CHECK (length(checksum) = 64),
    applied_at TEXT NOT NULL
)
"""

_ALLOWED_STATUSES: Final[str] = ", ".join(
    sorted(f"'{status.value}'" for status in ProjectStatus)
)


@dataclass(frozen=True, slots=True)
class Migration:
    """One forward-only schema step; its checksum pins the SQL that was applied."""

    version: int
    name: str
    statements: tuple[str, ...]

    @property
    def checksum(self) -> str:
        hasher = hashlib.sha256(f"{self.version}:{self.name}\n".encode())
        for statement in self.statements:
            lines = (line.rstrip() for line in statement.strip().splitlines())
            hasher.update("\n".join(lines).encode("utf-8") + b"\n--\n")
        return hasher.hexdigest()


@dataclass(frozen=True, slots=True)
class MigrationRecord:
    version: int
    name: str
    checksum: str
    applied_at: str


MIGRATIONS: Final[tuple[Migration, ...]] = (
    Migration(
        version=1,
        name="initial_readiness_schema",
        statements=(
            _VERSIONS_DDL,
            f"""
            CREATE TABLE IF NOT EXISTS projects (
                id TEXT PRIMARY KEY,
                status TEXT NOT NULL CHECK (status IN ({_ALLOWED_STATUSES})),
                version INTEGER NOT NULL CHECK (version >= 0),
                frozen INTEGER NOT NULL DEFAULT 0 CHECK (frozen IN (0, 1)),
                payload_json TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """,
            "CREATE INDEX IF NOT EXISTS idx_projects_updated_at ON projects(updated_at DESC)",
        ),
    ),
)


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


def _codes(*names: str) -> frozenset[int]:
    return frozenset(
        code for code in (getattr(sqlite3, name, None) for name in names) if isinstance(code, int)
    )


_BUSY: Final[tuple[frozenset[int], tuple[str, ...]]] = (
    _codes("SQLITE_BUSY", "SQLITE_BUSY_RECOVERY", "SQLITE_BUSY_SNAPSHOT", "SQLITE_LOCKED"),
    ("database is locked", "database table is locked", "database schema is locked"),
)
_CORRUPT: Final[tuple[frozenset[int], tuple[str, ...]]] = (
    _codes("SQLITE_CORRUPT", "SQLITE_NOTADB"),
    ("database disk image is malformed", "malformed database", "file is not a database"),
)


def _matches(exc: sqlite3.Error, signature: tuple[frozenset[int], tuple[str, ...]]) -> bool:
    codes, fragments = signature
    if getattr(exc, "sqlite_errorcode", None) in codes:
        return True
    text = str(exc).lower()
    return any(fragment in text for fragment in fragments)


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


class StateDB:
    """Short-lived connections over one SQLite file, with migrations and retries."""

    def __init__(
        self,
        path: str | Path,
        *,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        busy_retry_limit: int = DEFAULT_BUSY_RETRY_LIMIT,
        busy_retry_backoff_ms: int = DEFAULT_BUSY_RETRY_BACKOFF_MS,
    ) -> None:
        for name, value in (
            ("busy_timeout_ms", busy_timeout_ms),
            ("busy_retry_limit", busy_retry_limit),
            ("busy_retry_backoff_ms", busy_retry_backoff_ms),
        ):
            if value < 0:
                raise ValueError(f"{name} must be >= 0")
        self._path = Path(path).expanduser()
        self._timeout_ms = busy_timeout_ms
        self._retries = busy_retry_limit
        self._backoff_s = busy_retry_backoff_ms / 1000.0
        self._savepoints = itertools.count(1)

    @property
    def path(self) -> Path:
        return self._path

    def __enter__(self) -> StateDB:
        self.migrate()
        return self

    def __exit__(self, *exc_info: object) -> None:
        return None

    # -- connections --------------------------------------------------------

    def connect(self) -> sqlite3.Connection:
        """Open a connection in autocommit mode with WAL and the busy timeout applied."""

        self._path.parent.mkdir(parents=True, exist_ok=True)
        try:
            conn = sqlite3.connect(
                self._path,
                timeout=self._timeout_ms / 1000.0,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            self._fail(exc, "open connection")
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys=ON")
            conn.execute(f"PRAGMA busy_timeout={self._timeout_ms}")
            mode = conn.execute("PRAGMA journal_mode=WAL").fetchone()
            journal = "" if mode is None else str(mode[0]).lower()
            if journal != "wal":
                raise StateDBError(f"journal_mode must be WAL, got {journal!r}")
        except sqlite3.Error as exc:
            conn.close()
            self._fail(exc, "configure connection")
        except StateDBError:
            conn.close()
            raise
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(
        self,
        *,
        conn: sqlite3.Connection | None = None,
        immediate: bool = True,
    ) -> Iterator[sqlite3.Connection]:
        """Atomic block; inside an open transaction it becomes a savepoint."""

        if conn is None:
            with self.connection() as owned:
                with self.transaction(conn=owned, immediate=immediate) as tx:
                    yield tx
        elif conn.in_transaction:
            with self._savepoint(conn):
                yield conn
        else:
            self._run(conn, "BEGIN IMMEDIATE" if immediate else "BEGIN", (), "begin transaction")
            try:
                yield conn
            except BaseException:
                self._run(conn, "ROLLBACK", (), "rollback transaction")
                raise
            self._run(conn, "COMMIT", (), "commit transaction")

    @contextmanager
    def _savepoint(self, conn: sqlite3.Connection) -> Iterator[None]:
        name = f"sp_{next(self._savepoints)}"
        self._run(conn, f"SAVEPOINT {name}", (), "savepoint")
        try:
            yield
        except BaseException:
            self._run(conn, f"ROLLBACK TO SAVEPOINT {name}", (), "rollback to savepoint")
            raise
        finally:
            self._run(conn, f"RELEASE SAVEPOINT {name}", (), "release savepoint")

    # -- migrations ---------------------------------------------------------

    def migrate(self) -> int:
        """Bring the schema up to ``STATE_DB_SCHEMA_VERSION``; safe to call repeatedly."""

        pending = _migrations_through(STATE_DB_SCHEMA_VERSION)
        with self.connection() as conn:
            self._run(conn, _VERSIONS_DDL, (), "create schema_versions table")
            applied = self._applied(conn)
            newest = max(applied, default=0)
            if newest > STATE_DB_SCHEMA_VERSION:
                raise StateDBMigrationError(
                    "database schema is newer than supported by this binary "
                    f"(db={newest}, code={STATE_DB_SCHEMA_VERSION})"
                )
            for migration in pending:
                recorded = applied.get(migration.version)
                if recorded is None:
                    self._apply(conn, migration)
                elif recorded.checksum != migration.checksum:
                    raise StateDBMigrationError(
                        f"migration checksum mismatch for version {migration.version}: "
                        f"db={recorded.checksum} code={migration.checksum}"
                    )
            return self.schema_version(conn=conn)

    def _apply(self, conn: sqlite3.Connection, migration: Migration) -> None:
        step = f"apply migration {migration.version}"
        with self.transaction(conn=conn) as tx:
            for statement in migration.statements:
                self._run(tx, statement, (), step)
            self._run(
                tx,
                "INSERT INTO schema_versions (version, name, checksum, applied_at)"
                " VALUES (?, ?, ?, ?)",
                (migration.version, migration.name, migration.checksum, _utc_now_iso()),
                step,
            )

    def _applied(self, conn: sqlite3.Connection) -> dict[int, MigrationRecord]:
        rows = self._run(
            conn,
            "SELECT version, name, checksum, applied_at FROM schema_versions ORDER BY version",
            (),
            "load schema_versions",
        ).fetchall()
        history: dict[int, MigrationRecord] = {}
        for row in rows:
            version = row["version"]
            texts = (row["name"], row["checksum"], row["applied_at"])
            if not isinstance(version, int) or not all(isinstance(t, str) for t in texts):
                raise StateDBMigrationError(f"malformed schema_versions row: {tuple(row)!r}")
            history[version] = MigrationRecord(version, *texts)
        return history

    def schema_version(self, *, conn: sqlite3.Connection | None = None) -> int:
        row = self.query_one(
            "SELECT COALESCE(MAX(version), 0) AS version FROM schema_versions", conn=conn
        )
        version = 0 if row is None else row["version"]
        if not isinstance(version, int):
            raise StateDBMigrationError("schema_versions.version must be an integer")
        return version

    def schema_history(self) -> list[MigrationRecord]:
        with self.connection() as conn:
            return list(self._applied(conn).values())

    # -- statements ---------------------------------------------------------

    def execute(
        self,
        sql: str,
        params: SQLParams = (),
        *,
        conn: sqlite3.Connection | None = None,
    ) -> int:
        """Run one write statement and return the affected row count."""

        if conn is not None:
            return self._run(conn, sql, params, "execute statement").rowcount
        with self.transaction() as tx:
            return self._run(tx, sql, params, "execute statement").rowcount

    def query_all(
        self,
        sql: str,
        params: SQLParams = (),
        *,
        conn: sqlite3.Connection | None = None,
    ) -> list[dict[str, RowValue]]:
        with self._reading(conn) as reader:
            return [dict(row) for row in self._run(reader, sql, params, "query all").fetchall()]

    def query_one(
        self,
        sql: str,
        params: SQLParams = (),
        *,
        conn: sqlite3.Connection | None = None,
    ) -> dict[str, RowValue] | None:
        with self._reading(conn) as reader:
            row = self._run(reader, sql, params, "query one").fetchone()
            return None if row is None else dict(row)

    @contextmanager
    def _reading(self, conn: sqlite3.Connection | None) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
        else:
            with self.connection() as owned:
                yield owned

    # -- internals ----------------------------------------------------------

    def _run(
        self, conn: sqlite3.Connection, sql: str, params: SQLParams, operation: str
    ) -> sqlite3.Cursor:
        attempt = 0
        while True:
            try:
                return conn.execute(sql, tuple(params))
            except sqlite3.IntegrityError:
                raise
            except sqlite3.Error as exc:
                if attempt >= self._retries or not _matches(exc, _BUSY):
                    self._fail(exc, operation)
                time.sleep(self._backoff_s * 2**attempt)
                attempt += 1

    def _fail(self, exc: sqlite3.Error, operation: str) -> NoReturn:
        where = f"{operation} failed for {self._path}"
        if _matches(exc, _CORRUPT):
            raise StateDBCorruptionError(
                f"{where}: {exc}. The database file is damaged; restore it from a copy."
            ) from exc
        if _matches(exc, _BUSY):
            raise StateDBBusyError(
                f"{where}: still locked after {self._retries + 1} attempt(s): {exc}"
            ) from exc
        raise StateDBError(f"{where}: {exc}") from exc


def _migrations_through(target: int) -> tuple[Migration, ...]:
    known = {migration.version: migration for migration in MIGRATIONS}
    missing = [version for version in range(1, target + 1) if version not in known]
    if target < 0 or missing:
        raise StateDBMigrationError(
            f"no migration chain to schema version {target} (missing: {missing or 'n/a'})"
        )
    return tuple(known[version] for version in range(1, target + 1))


def _utc_now_iso() -> str:
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def canonical_json(value: object) -> str:
    """Sorted, compact JSON used for stored payloads."""

    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


__all__ = [
    "DEFAULT_BUSY_RETRY_BACKOFF_MS",
    "DEFAULT_BUSY_RETRY_LIMIT",
    "DEFAULT_BUSY_TIMEOUT_MS",
    "MIGRATIONS",
    "Migration",
    "MigrationRecord",
    "RowValue",
    "SQLParams",
    "SQLValue",
    "StateDB",
    "StateDBBusyError",
    "StateDBCorruptionError",
    "StateDBError",
    "StateDBMigrationError",
    "canonical_json",
]
