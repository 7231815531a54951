"""
readiness-orchestrator — session logging.

File: src/readiness_orchestrator/observability/logging.py
Last updated: 2026-10-19

Purpose
- One JSON-lines file per CLI session at ``<log_dir>/<session_id>/readiness.jsonl``.
- Component loggers come from ``structlog.get_logger(__name__)``; once a session is set
  up, structlog renders through the stdlib tree, so engine, ledger, store and service
  events all land in the same sink.

What this module includes
- A bounded queue between the emitting thread and the file writer. A full queue drops
  the record and counts it rather than blocking an operation.
- Correlation fields (``project_id``, ``patch_id``, ...) bound with
  :func:`correlation_scope` and stamped onto records on the emitting thread.
- Deep redaction of secret-looking keys and inline credentials.
"""

from __future__ import annotations

import atexit
import contextvars
import copy
import json
import logging
import logging.handlers
import math
import queue
import re
import sys
import threading
import time
from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Final

import structlog

from readiness_orchestrator.constants import LOG_DIR

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]
LogRedactor = Callable[[JSONValue], JSONValue]

REDACTED: Final[str] = "***REDACTED***"
LOG_FILENAME: Final[str] = "readiness.jsonl"
ROOT_LOGGER_NAME: Final[str] = "readiness_orchestrator"

# Record attributes promoted to top-level keys of the JSON line.
CORRELATION_FIELDS: Final[tuple[str, ...]] = ("session_id", "project_id", "patch_id", "refine_id")

_SECRET_KEY: Final[re.Pattern[str]] = re.compile(
    r"(?i)(secret|token|password|passphrase|api_?key|authorization|credential|cookie|private_key)"
)
_INLINE_ASSIGNMENT: Final[re.Pattern[str]] = re.compile(
    r"(?i)\b(api[_-]?key|token|password|secret|client_secret|authorization)\b\s*([:=])\s*([^\s,;]+)"
)
_INLINE_BEARER: Final[re.Pattern[str]] = re.compile(r"(?i)\bbearer\s+[A-Za-z0-9._~+/-]+=*")

_RESERVED_RECORD_KEYS: Final[frozenset[str]] = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"message", "asctime", "correlation"}

_correlation: contextvars.ContextVar[tuple[tuple[str, str], ...]] = contextvars.ContextVar(
    "readiness_correlation", default=()
)

_active_lock = threading.Lock()
_active: StructuredLoggingHandle | None = None
_atexit_hooked = False


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Settings for one logging session; mirrors the ``[observability]`` config table."""

    session_id: str
    base_log_dir: Path | str = Path(LOG_DIR)
    logger_name: str = ROOT_LOGGER_NAME
    level: int | str = "INFO"
    queue_size: int = 4096
    log_filename: str = LOG_FILENAME
    log_to_stderr: bool = False
    redact: bool = True
    configure_structlog: bool = True


# ---------------------------------------------------------------------------
# Correlation
# ---------------------------------------------------------------------------


def get_correlation_context() -> dict[str, str]:
    return dict(_correlation.get())


def set_correlation_fields(**fields: str | None) -> contextvars.Token[tuple[tuple[str, str], ...]]:
    """Bind (or, with ``None``, unbind) correlation fields; returns a reset token."""

    bound = get_correlation_context()
    for key, value in fields.items():
        name = _non_blank(key, "correlation key")
        if value is None:
            bound.pop(name, None)
        else:
            bound[name] = _non_blank(value, "correlation value")
    return _correlation.set(tuple(bound.items()))


def reset_correlation_fields(token: contextvars.Token[tuple[tuple[str, str], ...]]) -> None:
    _correlation.reset(token)


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Bind correlation fields for every record logged inside the block."""

    token = set_correlation_fields(**fields)
    try:
        yield
    finally:
        reset_correlation_fields(token)


# ---------------------------------------------------------------------------
# Redaction
# ---------------------------------------------------------------------------


def default_log_redactor(value: JSONValue) -> JSONValue:
    """Mask values under secret-looking keys and inline ``token=...``/bearer credentials."""

    if isinstance(value, str):
        masked = _INLINE_ASSIGNMENT.sub(lambda m: f"{m.group(1)}{m.group(2)}{REDACTED}", value)
        return _INLINE_BEARER.sub(f"Bearer {REDACTED}", masked)
    if isinstance(value, list):
        return [default_log_redactor(item) for item in value]
    if isinstance(value, dict):
        return {
            key: REDACTED if _SECRET_KEY.search(key) else default_log_redactor(item)
            for key, item in value.items()
        }
    return value


def _no_redaction(value: JSONValue) -> JSONValue:
    return value


# ---------------------------------------------------------------------------
# Record shaping
# ---------------------------------------------------------------------------


def _jsonable(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, Enum):
        return _jsonable(value.value)
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, datetime):
        aware = value if value.tzinfo is not None else value.replace(tzinfo=UTC)
        return aware.astimezone(UTC).isoformat().replace("+00:00", "Z")
    if isinstance(value, Path):
        return value.as_posix()
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return repr(value)


class _JsonLinesFormatter(logging.Formatter):
    """One canonical JSON object per record."""

    def __init__(self, *, session_id: str, redactor: LogRedactor) -> None:
        super().__init__()
        self._session_id = session_id
        self._redactor = redactor

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, JSONValue] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC)
            .isoformat(timespec="milliseconds")
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "event": _as_text(self._redactor(record.getMessage())),
        }
        line.update(self._correlation(record))

        extras = {
            key: _jsonable(value)
            for key, value in vars(record).items()
            if key not in _RESERVED_RECORD_KEYS
            and key not in CORRELATION_FIELDS
            and not key.startswith("_")
        }
        if extras:
            line["fields"] = self._redactor(extras)
        trace = record.exc_text
        if not trace and record.exc_info:
            trace = self.formatException(record.exc_info)
        if trace:
            line["exception"] = _as_text(self._redactor(trace))
        return json.dumps(line, sort_keys=True, separators=(",", ":"), ensure_ascii=False)

    def _correlation(self, record: logging.LogRecord) -> dict[str, str]:
        merged = {"session_id": self._session_id}
        stamped = getattr(record, "correlation", None)
        if isinstance(stamped, Mapping):
            merged.update({k: v for k, v in stamped.items() if isinstance(v, str) and v})
        for key in CORRELATION_FIELDS:
            value = getattr(record, key, None)
            if isinstance(value, str) and value.strip():
                merged[key] = value.strip()
        return merged


def _as_text(value: JSONValue) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class _StampCorrelation(logging.Filter):
    """Copies the caller's correlation context onto the record before it is queued."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = get_correlation_context()
        if context:
            record.correlation = context
        return True


class _DroppingQueueHandler(logging.handlers.QueueHandler):
    """Never blocks the caller; a full queue drops the record and counts it."""

    def __init__(self, log_queue: queue.Queue[logging.LogRecord]) -> None:
        super().__init__(log_queue)
        self._drop_lock = threading.Lock()
        self.dropped = 0

    def prepare(self, record: logging.LogRecord) -> logging.LogRecord:
        prepared = copy.copy(record)
        prepared.msg = record.getMessage()
        prepared.args = None
        if record.exc_info and not record.exc_text:
            prepared.exc_text = logging.Formatter().formatException(record.exc_info)
        prepared.exc_info = None
        return prepared

    def enqueue(self, record: logging.LogRecord) -> None:
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            with self._drop_lock:
                self.dropped += 1


# ---------------------------------------------------------------------------
# Session handle
# ---------------------------------------------------------------------------


@dataclass(eq=False, slots=True)
class StructuredLoggingHandle:
    """A running session: the queue, its listener and the sinks it writes to."""

    logger: logging.Logger
    session_id: str
    session_log_dir: Path
    log_path: Path
    _queue: queue.Queue[logging.LogRecord]
    _queue_handler: _DroppingQueueHandler
    _sinks: tuple[logging.Handler, ...]
    _listener: logging.handlers.QueueListener
    _lock: threading.Lock = field(default_factory=threading.Lock)
    _closed: bool = False

    @property
    def dropped_records(self) -> int:
        return self._queue_handler.dropped

    @property
    def is_shutdown(self) -> bool:
        return self._closed

    def flush(self, *, timeout_seconds: float = 2.0) -> None:
        deadline = time.monotonic() + max(timeout_seconds, 0.0)
        while self._queue.unfinished_tasks and time.monotonic() < deadline:
            time.sleep(0.01)
        for sink in self._sinks:
            sink.flush()

    def shutdown(self, *, timeout_seconds: float = 2.0) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self.flush(timeout_seconds=timeout_seconds)
        self._listener.stop()
        self.logger.removeHandler(self._queue_handler)
        self._queue_handler.close()
        for sink in self._sinks:
            sink.flush()
            sink.close()


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    """Start a logging session; any previously active session is shut down first."""

    shutdown_logging()

    session_id = _non_blank(config.session_id, "session_id")
    logger_name = _non_blank(config.logger_name, "logger_name")
    filename = _non_blank(config.log_filename, "log_filename")
    if Path(filename).name != filename:
        raise ValueError("log_filename must not include path separators")
    if config.queue_size <= 0:
        raise ValueError("queue_size must be > 0")
    level = _level_number(config.level)

    session_dir = Path(config.base_log_dir) / session_id
    session_dir.mkdir(parents=True, exist_ok=True)
    log_path = session_dir / filename

    formatter = _JsonLinesFormatter(
        session_id=session_id,
        redactor=default_log_redactor if config.redact else _no_redaction,
    )
    sinks: list[logging.Handler] = [logging.FileHandler(log_path, encoding="utf-8")]
    if config.log_to_stderr:
        sinks.append(logging.StreamHandler(sys.stderr))
    for sink in sinks:
        sink.setLevel(level)
        sink.setFormatter(formatter)

    logger = logging.getLogger(logger_name)
    for stale in list(logger.handlers):
        logger.removeHandler(stale)
        stale.close()
    logger.setLevel(level)
    logger.propagate = False

    log_queue: queue.Queue[logging.LogRecord] = queue.Queue(maxsize=config.queue_size)
    queue_handler = _DroppingQueueHandler(log_queue)
    queue_handler.setLevel(level)
    queue_handler.addFilter(_StampCorrelation())
    listener = logging.handlers.QueueListener(log_queue, *sinks, respect_handler_level=True)

    handle = StructuredLoggingHandle(
        logger=logger,
        session_id=session_id,
        session_log_dir=session_dir,
        log_path=log_path,
        _queue=log_queue,
        _queue_handler=queue_handler,
        _sinks=tuple(sinks),
        _listener=listener,
    )

    listener.start()
    logger.addHandler(queue_handler)
    if config.configure_structlog:
        configure_structlog()

    global _active, _atexit_hooked
    with _active_lock:
        _active = handle
        if not _atexit_hooked:
            atexit.register(shutdown_logging)
            _atexit_hooked = True
    return handle


def configure_structlog() -> None:
    """Route structlog events into the stdlib logger tree as ``extra`` fields."""

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    with _active_lock:
        return _active


def flush_logging(
    handle: StructuredLoggingHandle | None = None, *, timeout_seconds: float = 2.0
) -> None:
    target = handle or get_active_logging_handle()
    if target is not None:
        target.flush(timeout_seconds=timeout_seconds)


def shutdown_logging(
    handle: StructuredLoggingHandle | None = None, *, timeout_seconds: float = 2.0
) -> None:
    """Drain the queue, stop the listener and close every sink."""

    global _active
    target = handle or get_active_logging_handle()
    if target is None:
        return
    target.shutdown(timeout_seconds=timeout_seconds)
    with _active_lock:
        if _active is target:
            _active = None


def _non_blank(value: object, name: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{name} must be a string, got {type(value).__name__}")
    stripped = value.strip()
    if not stripped:
        raise ValueError(f"{name} must not be empty")
    return stripped


def _level_number(value: int | str) -> int:
    if isinstance(value, int):
        return value
    resolved = logging.getLevelName(str(value).strip().upper())
    if not isinstance(resolved, int):
        raise ValueError(f"unsupported logging level {value!r}")
    return resolved


__all__ = [
    "CORRELATION_FIELDS",
    "JSONScalar",
    "JSONValue",
    "LogRedactor",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "configure_structlog",
    "correlation_scope",
    "default_log_redactor",
    "flush_logging",
    "get_active_logging_handle",
    "get_correlation_context",
    "reset_correlation_fields",
    "set_correlation_fields",
    "setup_structured_logging",
    "shutdown_logging",
]
