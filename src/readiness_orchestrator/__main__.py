"""Module entrypoint for ``python -m readiness_orchestrator``."""

from __future__ import annotations

from readiness_orchestrator.main import cli_entrypoint

if __name__ == "__main__":
    raise SystemExit(cli_entrypoint())
