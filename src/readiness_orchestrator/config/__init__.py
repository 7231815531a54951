"""
readiness-orchestrator config package public API.

File: src/readiness_orchestrator/config/__init__.py
Last updated: 2026-10-19

Purpose
- Entry points for loading, validating and merging ``readiness.toml`` settings.

Functional requirements
- Support loading from ``readiness.toml`` + ``READINESS_`` env overrides.
- Load failures raise ``ConfigLoadError``; bad values raise ``ConfigValidationError``
  listing every offending dotted path.
"""

from readiness_orchestrator.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    load_config,
    normalize_paths,
)
from readiness_orchestrator.config.schema import (
    DEFAULT_CONFIG,
    PATH_FIELDS,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    ReadinessConfig,
    assert_valid_config,
    default_config,
    merge_config,
    migration_guidance,
    validate_config,
)

__all__ = [
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "PATH_FIELDS",
    "ReadinessConfig",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "load_config",
    "merge_config",
    "migration_guidance",
    "normalize_paths",
    "validate_config",
]
