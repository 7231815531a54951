"""Process boundary for the ``readiness`` command: maps failures onto exit codes."""

from __future__ import annotations

import sys
import traceback
from enum import IntEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator, Sequence


class ExitCode(IntEnum):
    SUCCESS = 0
    NOTHING_TO_FIX = 1
    INPUT_ERROR = 2
    PERSISTENCE_ERROR = 3
    INTERNAL_ERROR = 4


_KNOWN_CODES = frozenset(int(code) for code in ExitCode)


def cli_entrypoint(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return a process exit code; never raises.

    Known failures print a one-line message; anything unexpected prints its traceback
    and exits with ``INTERNAL_ERROR``.
    """

    try:
        from readiness_orchestrator.ui.cli import run_cli

        return _as_exit_code(run_cli(argv))
    except SystemExit as exc:
        return _as_exit_code(exc.code)
    except BaseException as exc:  # noqa: BLE001 - process boundary.
        code = _classify(exc)
        if code is ExitCode.INTERNAL_ERROR:
            traceback.print_exception(exc, file=sys.stderr)
        else:
            _stderr(str(exc).strip() or type(exc).__name__)
        return int(code)


def _as_exit_code(raw: object) -> int:
    if raw is None:
        return int(ExitCode.SUCCESS)
    if isinstance(raw, int) and raw in _KNOWN_CODES:
        return int(raw)
    if isinstance(raw, str) and raw.strip():
        _stderr(raw.strip())
    return int(ExitCode.INTERNAL_ERROR)


def _exit_code_routes() -> tuple[tuple[tuple[type[BaseException], ...], ExitCode], ...]:
    import yaml

    from readiness_orchestrator.config.loader import ConfigLoadError
    from readiness_orchestrator.config.schema import ConfigValidationError
    from readiness_orchestrator.domain.errors import (
        NoDiagnosticsError,
        NotFoundError,
        PersistenceError,
        ValidationError,
    )
    from readiness_orchestrator.persistence.state_db import StateDBError

    # Checked in order against each exception in the cause chain.
    return (
        ((NoDiagnosticsError,), ExitCode.NOTHING_TO_FIX),
        ((PersistenceError, StateDBError), ExitCode.PERSISTENCE_ERROR),
        (
            (
                ValidationError,
                NotFoundError,
                ConfigLoadError,
                ConfigValidationError,
                FileNotFoundError,
                IsADirectoryError,
                PermissionError,
                UnicodeDecodeError,
                yaml.YAMLError,
            ),
            ExitCode.INPUT_ERROR,
        ),
    )


def _classify(exc: BaseException) -> ExitCode:
    routes = _exit_code_routes()
    for link in _causes(exc):
        for kinds, code in routes:
            if isinstance(link, kinds):
                return code
    return ExitCode.INTERNAL_ERROR


def _causes(exc: BaseException) -> Iterator[BaseException]:
    """``exc`` then its explicit or implicit causes, stopping at a cycle."""

    visited: set[int] = set()
    link: BaseException | None = exc
    while link is not None and id(link) not in visited:
        visited.add(id(link))
        yield link
        if link.__cause__ is not None:
            link = link.__cause__
        elif not link.__suppress_context__:
            link = link.__context__
        else:
            link = None


def _stderr(message: str) -> None:
    print(message.rstrip("\n"), file=sys.stderr)


__all__ = ["ExitCode", "cli_entrypoint"]
