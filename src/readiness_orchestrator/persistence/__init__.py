"""
readiness-orchestrator — persistence layer

File: src/readiness_orchestrator/persistence/__init__.py
Last updated: 2026-10-19

Purpose
- Persistence layer: state DB access, migrations, project repositories.

Functional requirements
- One atomic write per save; optimistic version check on request.

Non-functional requirements
- SQLite-first; avoid heavy DB dependencies.
"""

from readiness_orchestrator.persistence.repositories import (
    InMemoryProjectStore,
    ProjectStore,
    SQLiteProjectStore,
)
from readiness_orchestrator.persistence.state_db import (
    StateDB,
    StateDBBusyError,
    StateDBCorruptionError,
    StateDBError,
    StateDBMigrationError,
)

__all__ = [
    "InMemoryProjectStore",
    "ProjectStore",
    "SQLiteProjectStore",
    "StateDB",
    "StateDBBusyError",
    "StateDBCorruptionError",
    "StateDBError",
    "StateDBMigrationError",
]
