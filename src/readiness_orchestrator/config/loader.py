"""
readiness-orchestrator — runtime config loader.

File: src/readiness_orchestrator/config/loader.py
Last updated: 2026-10-19

Purpose
- Build the effective configuration from four layers, later layers winning:
  built-in defaults, ``readiness.toml``, ``READINESS_*`` environment variables, CLI flags.

Notes
- The file layer is validated on its own first, so a typo in the file is reported
  against the file rather than after env and CLI values are mixed in.
- Environment variables are derived from the config's own leaves:
  ``storage.busy_timeout_ms`` is read from ``READINESS_STORAGE_BUSY_TIMEOUT_MS``.
- Relative paths are anchored at the directory that holds the config file.
"""

from __future__ import annotations

import json
import os
import tomllib
from collections.abc import Callable, Iterator, Mapping
from pathlib import Path
from typing import Any, Final

from readiness_orchestrator.config.schema import (
    PATH_FIELDS,
    assert_valid_config,
    default_config,
    merge_config,
)

DEFAULT_CONFIG_FILE: Final[str] = "readiness.toml"
ENV_PREFIX: Final[str] = "READINESS_"

_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "t", "yes", "y", "on"})
_FALSY: Final[frozenset[str]] = frozenset({"0", "false", "f", "no", "n", "off"})

KeyPath = tuple[str, ...]


class ConfigLoadError(ValueError):
    """The config file or an override could not be read or coerced."""


def load_config(
    config_path: str | Path | None = None,
    *,
    cli_overrides: Mapping[str, object] | None = None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Return the validated, path-normalized effective config.

    Without ``config_path`` the loader looks for ``readiness.toml`` in the working
    directory and silently falls back to defaults if it is absent. An explicit path
    must exist.
    """

    source = (
        Path.cwd() / DEFAULT_CONFIG_FILE
        if config_path is None
        else Path(config_path).expanduser()
    ).resolve()

    from_file = assert_valid_config(
        merge_config(default_config(), _read_toml(source, required=config_path is not None))
    )
    env = os.environ if environ is None else environ
    layered = merge_config(from_file, _env_layer(from_file, env))
    layered = merge_config(layered, _cli_layer(cli_overrides or {}))
    return normalize_paths(assert_valid_config(layered), base_dir=source.parent)


def normalize_paths(config: Mapping[str, object], *, base_dir: Path) -> dict[str, Any]:
    """Copy of ``config`` with every path field made absolute against ``base_dir``."""

    normalized = merge_config({}, config)
    for key_path in PATH_FIELDS:
        *parents, leaf = key_path
        section: object = normalized
        for part in parents:
            section = section.get(part) if isinstance(section, dict) else None
        if isinstance(section, dict) and isinstance(section.get(leaf), str):
            section[leaf] = _anchor(section[leaf], base_dir)
    return normalized


def dump_effective_config(config: Mapping[str, object]) -> str:
    """Compact JSON with sorted keys, suitable for diffing two runs."""

    return json.dumps(config, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


# ---------------------------------------------------------------------------
# Layers
# ---------------------------------------------------------------------------


def _read_toml(path: Path, *, required: bool) -> dict[str, Any]:
    if not path.exists():
        if required:
            raise ConfigLoadError(f"config file not found: {path}")
        return {}
    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc


def _env_layer(config: Mapping[str, object], environ: Mapping[str, str]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for key_path, current in sorted(_leaves(config), key=lambda leaf: leaf[0]):
        env_name = ENV_PREFIX + "_".join(key_path).upper()
        raw = environ.get(env_name)
        if raw is None:
            continue
        coerce = _coercer_for(current)
        if coerce is None:
            continue
        try:
            value = coerce(raw.strip())
        except ValueError as exc:
            raise ConfigLoadError(f"{env_name} -> {'.'.join(key_path)} {exc}") from exc
        _assign(layer, key_path, value)
    return layer


def _cli_layer(overrides: Mapping[str, object]) -> dict[str, Any]:
    layer: dict[str, Any] = {}
    for dotted, value in sorted(overrides.items()):
        if value is None:
            continue
        key_path = tuple(filter(None, dotted.split(".")))
        if not key_path:
            raise ConfigLoadError(f"invalid CLI override key {dotted!r}")
        _assign(layer, key_path, value)
    return layer


# ---------------------------------------------------------------------------
# Env coercion
# ---------------------------------------------------------------------------


def _to_int(raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError("must be an integer") from None


def _to_bool(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError("must be a boolean (true/false/1/0/yes/no/on/off)")


def _to_list(raw: str) -> list[str]:
    # READINESS_ENGINE_DEPLOY_KEYWORDS="deploy,ship"
    return [item.strip() for item in raw.split(",") if item.strip()]


def _coercer_for(current: object) -> Callable[[str], object] | None:
    if isinstance(current, bool):
        return _to_bool
    if isinstance(current, int):
        return _to_int
    if isinstance(current, list):
        return _to_list
    if isinstance(current, str):
        return str
    return None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _leaves(
    payload: Mapping[str, object], prefix: KeyPath = ()
) -> Iterator[tuple[KeyPath, object]]:
    for key, value in payload.items():
        if isinstance(value, Mapping):
            yield from _leaves(value, (*prefix, key))
        else:
            yield (*prefix, key), value


def _assign(target: dict[str, Any], key_path: KeyPath, value: object) -> None:
    *parents, leaf = key_path
    for part in parents:
        child = target.get(part)
        if not isinstance(child, dict):
            child = target[part] = {}
        target = child
    target[leaf] = value


def _anchor(raw: str, base_dir: Path) -> str:
    candidate = Path(os.path.expandvars(raw)).expanduser()
    if not candidate.is_absolute():
        candidate = base_dir / candidate
    return Path(os.path.normpath(candidate)).as_posix()


__all__ = [
    "ConfigLoadError",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "dump_effective_config",
    "load_config",
    "normalize_paths",
]
