"""
readiness-orchestrator — configuration schema and validation.

File: src/readiness_orchestrator/config/schema.py
Last updated: 2026-10-19

Purpose
- Built-in defaults for ``readiness.toml`` and the strict checks applied to every layer.

Layout
- ``_SCHEMA`` maps each table to its fields and each field to a checker. A checker
  returns the normalized value or raises ``_Invalid`` carrying one or more issues.
- Every table and field is required after merging with defaults; unknown keys are errors.
- ``meta.schema_version`` must equal the version this package understands.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Final, Literal, TypedDict

from readiness_orchestrator.constants import (
    CONFIG_SCHEMA_VERSION,
    DEFAULT_DB_PATH,
    DEFAULT_DEPLOY_KEYWORDS,
    LOG_DIR,
)
from readiness_orchestrator.persistence.state_db import DEFAULT_BUSY_TIMEOUT_MS

ConfigSchemaVersion: Final[int] = CONFIG_SCHEMA_VERSION

LOG_LEVELS: Final[tuple[str, ...]] = ("DEBUG", "INFO", "WARNING", "ERROR")
ID_STRATEGIES: Final[tuple[str, ...]] = ("ulid", "sequential")

# Anchored at the config file's directory by the loader.
PATH_FIELDS: Final[tuple[tuple[str, ...], ...]] = (
    ("storage", "db_path"),
    ("observability", "log_dir"),
)


class MetaConfig(TypedDict):
    schema_version: int


class StorageConfig(TypedDict):
    db_path: str
    busy_timeout_ms: int


class ObservabilityConfig(TypedDict):
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"]
    log_dir: str
    log_to_stderr: bool
    redact_secrets: bool


class EngineConfig(TypedDict):
    deploy_keywords: list[str]
    id_strategy: Literal["ulid", "sequential"]


class ReadinessConfig(TypedDict):
    meta: MetaConfig
    storage: StorageConfig
    observability: ObservabilityConfig
    engine: EngineConfig


DEFAULT_CONFIG: Final[ReadinessConfig] = {
    "meta": {"schema_version": ConfigSchemaVersion},
    "storage": {"db_path": str(DEFAULT_DB_PATH), "busy_timeout_ms": DEFAULT_BUSY_TIMEOUT_MS},
    "observability": {
        "log_level": "INFO",
        "log_dir": f"{LOG_DIR}/",
        "log_to_stderr": False,
        "redact_secrets": True,
    },
    "engine": {"deploy_keywords": list(DEFAULT_DEPLOY_KEYWORDS), "id_strategy": "ulid"},
}


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    path: str
    message: str


@dataclass(frozen=True, slots=True)
class ConfigValidationResult:
    config: dict[str, Any] | None
    issues: tuple[ConfigValidationIssue, ...]

    @property
    def is_valid(self) -> bool:
        return self.config is not None and not self.issues


class ConfigValidationError(ValueError):
    """One or more config values failed validation; ``issues`` lists each by dotted path."""

    def __init__(self, issues: Sequence[ConfigValidationIssue]) -> None:
        self.issues = tuple(issues)
        lines = [f"- {issue.path}: {issue.message}" for issue in self.issues]
        super().__init__("invalid config:\n" + ("\n".join(lines) or "unknown validation failure"))


class _Invalid(Exception):
    def __init__(self, *issues: ConfigValidationIssue) -> None:
        super().__init__(issues)
        self.issues = issues


def _invalid(path: str, message: str) -> _Invalid:
    return _Invalid(ConfigValidationIssue(path, message))


# ---------------------------------------------------------------------------
# Field checkers
# ---------------------------------------------------------------------------

_Checker = Callable[[object, str], Any]


def _text(value: object, path: str) -> str:
    if not isinstance(value, str):
        raise _invalid(path, f"expected string, got {type(value).__name__}")
    stripped = value.strip()
    if not stripped:
        raise _invalid(path, "must not be empty")
    return stripped


def _path_text(value: object, path: str) -> str:
    text = _text(value, path)
    if "\x00" in text:
        raise _invalid(path, "must not contain NUL bytes")
    return text


def _flag(value: object, path: str) -> bool:
    if not isinstance(value, bool):
        raise _invalid(path, f"expected boolean, got {type(value).__name__}")
    return value


def _integer(minimum: int) -> _Checker:
    def check(value: object, path: str) -> int:
        if isinstance(value, bool) or not isinstance(value, int):
            raise _invalid(path, f"expected integer, got {type(value).__name__}")
        if value < minimum:
            raise _invalid(path, f"must be >= {minimum}")
        return value

    return check


def _choice(options: tuple[str, ...], *, fold: Callable[[str], str] = str) -> _Checker:
    def check(value: object, path: str) -> str:
        picked = fold(_text(value, path))
        if picked not in options:
            expected = ", ".join(sorted(options))
            raise _invalid(path, f"invalid value {picked!r}; expected one of: {expected}")
        return picked

    return check


def _schema_version(value: object, path: str) -> int:
    version = _integer(1)(value, path)
    if version != ConfigSchemaVersion:
        raise _invalid(path, migration_guidance(version))
    return version


def _keywords(value: object, path: str) -> list[str]:
    if isinstance(value, str) or not isinstance(value, Sequence):
        raise _invalid(path, f"expected array of strings, got {type(value).__name__}")
    if not value:
        raise _invalid(path, "must contain at least one keyword")
    keywords: list[str] = []
    problems: list[ConfigValidationIssue] = []
    for index, item in enumerate(value):
        try:
            keywords.append(_text(item, f"{path}[{index}]").lower())
        except _Invalid as exc:
            problems.extend(exc.issues)
    if problems:
        raise _Invalid(*problems)
    return keywords


_SCHEMA: Final[dict[str, dict[str, _Checker]]] = {
    "meta": {"schema_version": _schema_version},
    "storage": {"db_path": _path_text, "busy_timeout_ms": _integer(0)},
    "observability": {
        "log_level": _choice(LOG_LEVELS, fold=str.upper),
        "log_dir": _path_text,
        "log_to_stderr": _flag,
        "redact_secrets": _flag,
    },
    "engine": {"deploy_keywords": _keywords, "id_strategy": _choice(ID_STRATEGIES)},
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def default_config() -> ReadinessConfig:
    return copy.deepcopy(DEFAULT_CONFIG)


def migration_guidance(found_version: int) -> str:
    """Human-readable next step for a config written against another schema version."""

    if found_version < ConfigSchemaVersion:
        return (
            f"schema version {found_version} is older than supported {ConfigSchemaVersion}; "
            "upgrade readiness.toml to the current schema"
        )
    if found_version > ConfigSchemaVersion:
        return (
            f"schema version {found_version} is newer than supported {ConfigSchemaVersion}; "
            "upgrade the readiness-orchestrator runtime"
        )
    return "schema version is current"


def merge_config(base: Mapping[str, object], overlay: Mapping[str, object]) -> dict[str, Any]:
    """Recursive merge returning new containers; neither input is modified."""

    merged: dict[str, Any] = {key: copy.deepcopy(value) for key, value in base.items()}
    for key, value in overlay.items():
        if isinstance(value, Mapping):
            current = merged.get(key)
            merged[key] = merge_config(current if isinstance(current, Mapping) else {}, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def validate_config(config: Mapping[str, object] | object) -> ConfigValidationResult:
    """Check every table and field, collecting all issues rather than stopping at the first."""

    if not isinstance(config, Mapping):
        issue = ConfigValidationIssue("<root>", f"expected object, got {type(config).__name__}")
        return ConfigValidationResult(config=None, issues=(issue,))

    issues = _key_issues(config, _SCHEMA, prefix="")
    normalized: dict[str, Any] = {}
    for table, fields in _SCHEMA.items():
        raw = config.get(table)
        if raw is None:
            continue
        if not isinstance(raw, Mapping):
            kind = type(raw).__name__
            issues.append(ConfigValidationIssue(table, f"expected object, got {kind}"))
            continue
        issues.extend(_key_issues(raw, fields, prefix=f"{table}."))
        section: dict[str, Any] = {}
        for name, check in fields.items():
            if name not in raw:
                continue
            try:
                section[name] = check(raw[name], f"{table}.{name}")
            except _Invalid as exc:
                issues.extend(exc.issues)
        normalized[table] = section

    if issues:
        return ConfigValidationResult(config=None, issues=tuple(issues))
    return ConfigValidationResult(config=normalized, issues=())


def assert_valid_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    result = validate_config(config)
    if result.config is None:
        raise ConfigValidationError(result.issues)
    return result.config


def _key_issues(
    payload: Mapping[object, object], expected: Mapping[str, object], *, prefix: str
) -> list[ConfigValidationIssue]:
    unknown = sorted((str(key) for key in payload if key not in expected))
    missing = sorted(key for key in expected if key not in payload)
    return [ConfigValidationIssue(prefix + key, "unknown field") for key in unknown] + [
        ConfigValidationIssue(prefix + key, "missing required field") for key in missing
    ]


__all__ = [
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "EngineConfig",
    "ID_STRATEGIES",
    "LOG_LEVELS",
    "ObservabilityConfig",
    "PATH_FIELDS",
    "ReadinessConfig",
    "StorageConfig",
    "assert_valid_config",
    "default_config",
    "merge_config",
    "migration_guidance",
    "validate_config",
]
