"""Per-key lock behavior: exclusion, independence, timeouts and registry cleanup."""

from __future__ import annotations

import threading

import pytest

from readiness_orchestrator.utils.concurrency import KeyedLock


def test_hold_marks_key_and_cleans_up() -> None:
    locks = KeyedLock()

    with locks.hold("proj-1"):
        assert locks.is_held("proj-1")
        assert not locks.is_held("proj-2")
        assert locks.snapshot() == {"proj-1": 1}

    assert not locks.is_held("proj-1")
    assert locks.snapshot() == {}


def test_distinct_keys_do_not_contend() -> None:
    locks = KeyedLock()

    with locks.hold("proj-a"), locks.hold("proj-b", timeout=0.05):
        assert locks.snapshot() == {"proj-a": 1, "proj-b": 1}


def test_same_key_times_out_while_held() -> None:
    locks = KeyedLock()
    holding = threading.Event()
    release = threading.Event()

    def holder() -> None:
        with locks.hold("proj-1"):
            holding.set()
            release.wait(timeout=2.0)

    thread = threading.Thread(target=holder, daemon=True)
    thread.start()
    assert holding.wait(timeout=2.0)
    try:
        with pytest.raises(TimeoutError, match="proj-1"):
            with locks.hold("proj-1", timeout=0.05):
                pass
        assert locks.snapshot() == {"proj-1": 1}
    finally:
        release.set()
        thread.join(timeout=2.0)

    assert locks.snapshot() == {}


def test_waiters_are_serialized() -> None:
    locks = KeyedLock()
    inside = 0
    peak = 0
    counter_guard = threading.Lock()

    def worker() -> None:
        nonlocal inside, peak
        for _ in range(50):
            with locks.hold("proj-1"):
                with counter_guard:
                    inside += 1
                    peak = max(peak, inside)
                with counter_guard:
                    inside -= 1

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert peak == 1
    assert locks.snapshot() == {}


def test_exception_inside_hold_releases_the_key() -> None:
    locks = KeyedLock()

    with pytest.raises(RuntimeError):
        with locks.hold("proj-1"):
            raise RuntimeError("boom")

    with locks.hold("proj-1", timeout=0.05):
        assert locks.is_held("proj-1")


@pytest.mark.parametrize(("key", "timeout"), [("", None), (None, None), ("proj-1", 0), ("proj-1", -1)])
def test_invalid_arguments_are_rejected(key: object, timeout: float | None) -> None:
    locks = KeyedLock()

    with pytest.raises(ValueError):
        with locks.hold(key, timeout=timeout):  # type: ignore[arg-type]
            pass
