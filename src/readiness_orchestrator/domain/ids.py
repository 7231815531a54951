"""Record identifiers.

Engine components never mint ids from ambient randomness; they are handed an
:class:`IdGenerator`. Production wiring uses :class:`UlidIdGenerator`, tests and the
``sequential`` id strategy use :class:`SequentialIdGenerator` for stable output.
"""

from __future__ import annotations

import re
import secrets
import threading
import time
from collections.abc import Callable
from typing import Final, Protocol

# Record id prefixes.
TEST_CASE_ID_PREFIX: Final[str] = "tc"
DIAGNOSTIC_ID_PREFIX: Final[str] = "diag"
REFINEMENT_ID_PREFIX: Final[str] = "ref"
PATCH_ID_PREFIX: Final[str] = "patch"
LOCKED_FIX_ID_PREFIX: Final[str] = "lock"
SESSION_ID_PREFIX: Final[str] = "sess"

PROJECT_ID_MAX_LENGTH: Final[int] = 128

_ALPHABET: Final[str] = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_ULID_CHARS: Final[int] = 26
_ENTROPY_BYTES: Final[int] = 10
_TIMESTAMP_BITS: Final[int] = 48
_ENTROPY_BITS: Final[int] = _ENTROPY_BYTES * 8
_SEP: Final[str] = "-"

_ULID_RE: Final[re.Pattern[str]] = re.compile(rf"[{_ALPHABET}]{{{_ULID_CHARS}}}", re.IGNORECASE)
_PROJECT_ID_RE: Final[re.Pattern[str]] = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.:-]*")

EntropySource = Callable[[int], bytes]


class IdGenerator(Protocol):
    def new_id(self, prefix: str) -> str: ...


class UlidIdGenerator:
    """``<prefix>-<ULID>`` ids; clock and entropy can be pinned for tests."""

    def __init__(
        self,
        *,
        timestamp_ms: Callable[[], int] | None = None,
        randbytes: EntropySource | None = None,
    ) -> None:
        self._clock = timestamp_ms
        self._entropy = randbytes

    def new_id(self, prefix: str) -> str:
        return generate_prefixed_id(
            prefix,
            timestamp_ms=self._clock() if self._clock else None,
            randbytes=self._entropy,
        )


class SequentialIdGenerator:
    """Zero-padded counters kept per prefix: ``tc-0001``, ``tc-0002``, ``diag-0001``."""

    def __init__(self, *, start: int = 1, width: int = 4) -> None:
        if start < 0 or width <= 0:
            raise ValueError(f"need start >= 0 and width > 0 (got start={start}, width={width})")
        self._start = start
        self._width = width
        self._next: dict[str, int] = {}
        self._lock = threading.Lock()

    def new_id(self, prefix: str) -> str:
        _check_prefix(prefix)
        with self._lock:
            number = self._next.get(prefix, self._start)
            self._next[prefix] = number + 1
        return f"{prefix}{_SEP}{number:0{self._width}d}"

    def issued(self, prefix: str) -> int:
        with self._lock:
            return self._next.get(prefix, self._start) - self._start


def generate_ulid(
    *, timestamp_ms: int | None = None, randbytes: EntropySource | None = None
) -> str:
    """A 26-character Crockford base32 ULID: 48-bit millisecond time, 80 bits of entropy."""

    millis = time.time_ns() // 1_000_000 if timestamp_ms is None else timestamp_ms
    if not isinstance(millis, int) or not 0 <= millis < 1 << _TIMESTAMP_BITS:
        raise ValueError(f"timestamp_ms must be an int in [0, 2**48), got {millis!r}")

    entropy = bytes((randbytes or secrets.token_bytes)(_ENTROPY_BYTES))
    if len(entropy) != _ENTROPY_BYTES:
        raise ValueError(f"randbytes must return exactly {_ENTROPY_BYTES} bytes")

    value = millis << _ENTROPY_BITS | int.from_bytes(entropy, "big")
    digits = []
    for _ in range(_ULID_CHARS):
        value, digit = divmod(value, 32)
        digits.append(_ALPHABET[digit])
    return "".join(reversed(digits))


def parse_ulid_timestamp_ms(ulid: str) -> int:
    """Millisecond timestamp encoded in the first ten characters of ``ulid``."""

    if not isinstance(ulid, str) or not _ULID_RE.fullmatch(ulid):
        raise ValueError(f"not a ULID: {ulid!r}")
    if ulid[0] > "7":
        raise ValueError(f"ULID exceeds 128 bits: {ulid!r}")
    value = 0
    for char in ulid.upper():
        value = value * 32 + _ALPHABET.index(char)
    return value >> _ENTROPY_BITS


def generate_prefixed_id(
    prefix: str,
    *,
    timestamp_ms: int | None = None,
    randbytes: EntropySource | None = None,
) -> str:
    _check_prefix(prefix)
    return prefix + _SEP + generate_ulid(timestamp_ms=timestamp_ms, randbytes=randbytes)


def validate_prefixed_id(id_str: str, expected_prefix: str) -> None:
    """Raise ``ValueError`` unless ``id_str`` is ``<expected_prefix>-<ULID>``."""

    _check_prefix(expected_prefix)
    lead = expected_prefix + _SEP
    if not isinstance(id_str, str) or not id_str.startswith(lead):
        raise ValueError(f"expected prefix '{lead}' in {id_str!r}")
    try:
        parse_ulid_timestamp_ms(id_str[len(lead) :])
    except ValueError as exc:
        raise ValueError(f"invalid ULID part for prefix '{expected_prefix}': {exc}") from exc


def validate_project_id(project_id: object) -> str:
    """Externally assigned project ids: stripped, 1-128 safe characters."""

    if not isinstance(project_id, str):
        raise ValueError(f"project_id must be a string, got {type(project_id).__name__}")
    candidate = project_id.strip()
    if not candidate:
        raise ValueError("project_id must not be empty")
    if len(candidate) > PROJECT_ID_MAX_LENGTH:
        raise ValueError(f"project_id must be <= {PROJECT_ID_MAX_LENGTH} characters")
    if not _PROJECT_ID_RE.fullmatch(candidate):
        raise ValueError(
            "project_id may only contain letters, digits, '_', '.', ':' and '-' "
            f"and must start with a letter or digit (got {candidate!r})"
        )
    return candidate


def _check_prefix(prefix: object) -> None:
    if not isinstance(prefix, str) or not prefix or _SEP in prefix:
        raise ValueError(f"id prefix must be a non-empty string without '{_SEP}', got {prefix!r}")


__all__ = [
    "DIAGNOSTIC_ID_PREFIX",
    "IdGenerator",
    "LOCKED_FIX_ID_PREFIX",
    "PATCH_ID_PREFIX",
    "PROJECT_ID_MAX_LENGTH",
    "REFINEMENT_ID_PREFIX",
    "SESSION_ID_PREFIX",
    "SequentialIdGenerator",
    "TEST_CASE_ID_PREFIX",
    "UlidIdGenerator",
    "generate_prefixed_id",
    "generate_ulid",
    "parse_ulid_timestamp_ms",
    "validate_prefixed_id",
    "validate_project_id",
]
