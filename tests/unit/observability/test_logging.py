"""Session JSON-lines logging: redaction, correlation fields, structlog routing, queue drain."""

from __future__ import annotations

import json
import logging
import logging.handlers
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING
from uuid import uuid4

import pytest
import structlog

from readiness_orchestrator.observability.logging import (
    LoggingConfig,
    correlation_scope,
    default_log_redactor,
    get_active_logging_handle,
    get_correlation_context,
    setup_structured_logging,
    shutdown_logging,
)

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _reset_logging() -> Iterator[None]:
    yield
    shutdown_logging()
    structlog.reset_defaults()


def _fresh_logger_name() -> str:
    return f"readiness_orchestrator.tests.{uuid4().hex}"


def _events(path: Path) -> list[dict[str, object]]:
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_secrets_are_masked_and_correlation_is_top_level(tmp_path: Path) -> None:
    logger_name = _fresh_logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            session_id="sess-redaction",
            base_log_dir=tmp_path,
            logger_name=logger_name,
        )
    )
    logger = logging.getLogger(logger_name)

    with correlation_scope(project_id="proj-1", patch_id="patch-0001"):
        logger.info(
            "deploying with token=tok-PLAIN and api_key=sk-PLAIN0000",
            extra={"nested": {"password": "hunter2", "safe": "ok"}},
        )

    shutdown_logging(handle)

    assert handle.log_path == tmp_path / "sess-redaction" / "readiness.jsonl"
    (first,) = _events(handle.log_path)
    assert first["session_id"] == "sess-redaction"
    assert first["project_id"] == "proj-1"
    assert first["patch_id"] == "patch-0001"
    assert first["level"] == "INFO"
    assert first["fields"] == {"nested": {"password": "***REDACTED***", "safe": "ok"}}

    line = handle.log_path.read_text(encoding="utf-8")
    assert "tok-PLAIN" not in line
    assert "sk-PLAIN" not in line
    assert "hunter2" not in line


def test_redaction_can_be_disabled(tmp_path: Path) -> None:
    logger_name = _fresh_logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            session_id="sess-plain",
            base_log_dir=tmp_path,
            logger_name=logger_name,
            redact=False,
        )
    )

    logging.getLogger(logger_name).info("token=visible")
    shutdown_logging(handle)

    (first,) = _events(handle.log_path)
    assert first["event"] == "token=visible"


def test_structlog_component_events_land_in_the_session_file(tmp_path: Path) -> None:
    logger_name = _fresh_logger_name()
    handle = setup_structured_logging(
        LoggingConfig(
            session_id="sess-structlog",
            base_log_dir=tmp_path,
            logger_name=logger_name,
        )
    )
    component = structlog.get_logger(f"{logger_name}.persistence")

    with correlation_scope(refine_id="ref-0001"):
        component.info("project_saved", project_id="proj-9", version=2, api_key="sk-live")
    component.debug("too_quiet")

    shutdown_logging(handle)

    (first,) = _events(handle.log_path)
    assert first["event"] == "project_saved"
    assert first["logger"] == f"{logger_name}.persistence"
    assert first["project_id"] == "proj-9"
    assert first["refine_id"] == "ref-0001"
    assert first["fields"]["version"] == 2
    assert first["fields"]["api_key"] == "***REDACTED***"


def test_correlation_scope_nests_and_resets() -> None:
    assert get_correlation_context() == {}

    with correlation_scope(project_id="proj-1"):
        with correlation_scope(patch_id="patch-0002", project_id=None):
            assert get_correlation_context() == {"patch_id": "patch-0002"}
        assert get_correlation_context() == {"project_id": "proj-1"}

    assert get_correlation_context() == {}


def test_correlation_scope_rejects_blank_values() -> None:
    with pytest.raises(ValueError, match="correlation value"):
        with correlation_scope(project_id="  "):
            pass


def test_default_redactor_handles_nested_values() -> None:
    redacted = default_log_redactor(
        {
            "headers": {"Authorization": "Bearer abc.def"},
            "notes": ["Bearer xyz123", "password: hunter2"],
            "count": 3,
        }
    )

    assert redacted == {
        "headers": {"Authorization": "***REDACTED***"},
        "notes": ["Bearer ***REDACTED***", "password:***REDACTED***"],
        "count": 3,
    }


@pytest.mark.parametrize(
    "overrides",
    [
        {"session_id": " "},
        {"queue_size": 0},
        {"log_filename": "nested/readiness.jsonl"},
        {"level": "LOUD"},
    ],
)
def test_invalid_logging_config_is_rejected(tmp_path: Path, overrides: dict[str, object]) -> None:
    settings: dict[str, object] = {
        "session_id": "sess-invalid",
        "base_log_dir": tmp_path,
        "logger_name": _fresh_logger_name(),
    }
    settings.update(overrides)

    with pytest.raises(ValueError):
        setup_structured_logging(LoggingConfig(**settings))  # type: ignore[arg-type]


def test_each_thread_keeps_its_own_correlation(tmp_path: Path) -> None:
    logger_name = _fresh_logger_name()
    handle = setup_structured_logging(
        LoggingConfig(session_id="sess-threads", base_log_dir=tmp_path, logger_name=logger_name)
    )
    logger = logging.getLogger(logger_name)

    def emit_for(project_index: int) -> None:
        with correlation_scope(project_id=f"proj-{project_index}"):
            for step in range(25):
                logger.info(
                    "refined step=%s token=tok-%s",
                    step,
                    project_index,
                    extra={"project_index": project_index, "api_key": f"sk-{project_index}"},
                )

    with ThreadPoolExecutor(max_workers=6) as pool:
        list(pool.map(emit_for, range(6)))
    shutdown_logging(handle)

    events = _events(handle.log_path)
    assert len(events) == 6 * 25
    for event in events:
        assert event["project_id"] == f"proj-{event['fields']['project_index']}"
        assert event["fields"]["api_key"] == "***REDACTED***"
        assert "token=***REDACTED***" in event["event"]


def test_exceptions_are_captured_as_text(tmp_path: Path) -> None:
    logger_name = _fresh_logger_name()
    handle = setup_structured_logging(
        LoggingConfig(session_id="sess-exc", base_log_dir=tmp_path, logger_name=logger_name)
    )

    try:
        raise ValueError("bad password=hunter2")
    except ValueError:
        logging.getLogger(logger_name).exception("save_failed")
    shutdown_logging(handle)

    (event,) = _events(handle.log_path)
    assert event["event"] == "save_failed"
    assert "ValueError" in event["exception"]
    assert "hunter2" not in event["exception"]


def test_shutdown_drains_the_queue_once(tmp_path: Path) -> None:
    logger_name = _fresh_logger_name()
    handle = setup_structured_logging(
        LoggingConfig(session_id="sess-drain", base_log_dir=tmp_path, logger_name=logger_name)
    )
    logger = logging.getLogger(logger_name)
    assert get_active_logging_handle() is handle
    assert any(isinstance(h, logging.handlers.QueueHandler) for h in logger.handlers)

    for index in range(300):
        logger.info("tick %s", index)
    shutdown_logging(handle)
    shutdown_logging(handle)

    events = _events(handle.log_path)
    assert [event["event"] for event in events[:2]] == ["tick 0", "tick 1"]
    assert len(events) == 300
    assert handle.dropped_records == 0
    assert handle.is_shutdown
    assert get_active_logging_handle() is None
    assert not any(isinstance(h, logging.handlers.QueueHandler) for h in logger.handlers)
