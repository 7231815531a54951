"""
readiness-orchestrator — CLI end-to-end contracts

File: tests/integration/test_cli.py
Last updated: 2026-10-19

Purpose
- Drive the ``readiness`` command router against a real SQLite state file.
- Verify exit codes, JSON payloads, stored history and the per-session JSON-lines log.
"""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest
import structlog
import yaml

from readiness_orchestrator.main import ExitCode, cli_entrypoint
from readiness_orchestrator.observability import shutdown_logging

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"

PLAN_YAML = """\
id: proj-cli
title: CLI demo
buildType: app
"""


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    for name in list(os.environ):
        if name.startswith("READINESS_"):
            monkeypatch.delenv(name)
    monkeypatch.delenv("NO_COLOR", raising=False)
    monkeypatch.chdir(tmp_path)
    yield tmp_path
    shutdown_logging()
    structlog.reset_defaults()


def _run(capsys: pytest.CaptureFixture[str], *args: str) -> tuple[int, str, str]:
    code = cli_entrypoint(list(args))
    captured = capsys.readouterr()
    return code, captured.out, captured.err


def _run_json(capsys: pytest.CaptureFixture[str], *args: str) -> dict[str, object]:
    code, out, err = _run(capsys, *args, "--json")
    assert code == 0, err
    return json.loads(out)


def _import_plan(workspace: Path, capsys: pytest.CaptureFixture[str]) -> dict[str, object]:
    (workspace / "plan.yaml").write_text(PLAN_YAML, encoding="utf-8")
    return _run_json(capsys, "import", "plan.yaml")


def test_import_score_diagnose_autofix_roundtrip(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    imported = _import_plan(workspace, capsys)
    assert imported["project"]["id"] == "proj-cli"
    assert imported["project"]["version"] == 1
    assert (workspace / "state" / "readiness.sqlite").exists()

    score = _run_json(capsys, "score", "proj-cli")["score"]
    assert score["overall"] == 6
    assert score["badge"] == "red"
    assert len(score["nextActions"]) == 5

    diagnosed = _run_json(capsys, "diagnose", "proj-cli", "--save")
    assert diagnosed["saved"] is True
    assert diagnosed["report"]["items"][0]["rule"] == "intent_missing"

    fixed = _run_json(capsys, "autofix", "proj-cli")
    assert fixed["status"] == "locked"
    assert fixed["steps"][0] == "start"
    assert fixed["patch"]["source"] == "autofix"
    assert fixed["locked_fix"]["title"] == "Locked autofix for top diagnostic: Intent"

    history = _run_json(capsys, "history", "proj-cli")
    assert [len(history[key]) for key in ("refinements", "patches", "lockedFixes")] == [1, 1, 1]

    exported = _run_json(capsys, "export", "proj-cli")
    assert exported["intentDocument"] is not None
    assert exported["status"] == "locked"


def test_rollback_restores_and_flags_regression(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _import_plan(workspace, capsys)
    patch_id = _run_json(capsys, "autofix", "proj-cli")["patch"]["id"]

    rolled = _run_json(capsys, "rollback", "proj-cli", patch_id)
    assert rolled["rolled_back"] == patch_id
    assert rolled["patch"]["source"] == "rollback"

    exported = _run_json(capsys, "export", "proj-cli")
    assert exported.get("intentDocument") is None
    assert len(exported["exportPlan"]["patches"]) == 2

    regressions = _run_json(capsys, "regressions", "proj-cli")["regressions"]
    assert len(regressions) == 1

    code, _out, err = _run(capsys, "rollback", "proj-cli", "patch-missing")
    assert code == ExitCode.INPUT_ERROR
    assert "patch-missing" in err


def test_clean_project_autofix_exits_one(
    workspace: Path, capsys: pytest.CaptureFixture[str], make_clean_project
) -> None:
    document = make_clean_project("proj-clean").to_dict()
    (workspace / "clean.json").write_text(json.dumps(document), encoding="utf-8")
    _run_json(capsys, "import", "clean.json")

    code, _out, err = _run(capsys, "autofix", "proj-clean")

    assert code == ExitCode.NOTHING_TO_FIX
    assert "proj-clean" in err
    history = _run_json(capsys, "history", "proj-clean")
    assert history["patches"] == []


def test_frozen_project_rejects_patch(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _import_plan(workspace, capsys)

    frozen = _run_json(capsys, "freeze", "proj-cli", "--reason", "release")
    assert frozen["frozen"] is True
    assert frozen["frozen_reason"] == "release"

    preview = _run_json(capsys, "patch", "proj-cli", "--dry-run")
    assert preview["dry_run"] is True
    assert preview["applied"] is False

    code, _out, err = _run(capsys, "patch", "proj-cli")
    assert code == ExitCode.INPUT_ERROR
    assert "release" in err

    assert _run_json(capsys, "unfreeze", "proj-cli")["frozen"] is False
    applied = _run_json(capsys, "patch", "proj-cli", "--intent", "deploy to vercel")
    assert applied["applied"] is True
    assert applied["status"] == "patched"


@pytest.mark.parametrize(
    "args",
    [
        ("score", "proj-missing"),
        ("import", "absent.yaml"),
        ("status", "proj-cli", "shipped"),
    ],
)
def test_input_errors_exit_two(
    workspace: Path, capsys: pytest.CaptureFixture[str], args: tuple[str, ...]
) -> None:
    _import_plan(workspace, capsys)

    code, _out, err = _run(capsys, *args)

    assert code == ExitCode.INPUT_ERROR
    assert err.strip()


def test_invalid_yaml_document_is_rejected(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    (workspace / "broken.yaml").write_text("id: [unterminated\n", encoding="utf-8")

    code, _out, err = _run(capsys, "import", "broken.yaml")

    assert code == ExitCode.INPUT_ERROR
    assert "invalid YAML" in err


def test_export_yaml_to_file_and_plain_listing(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _import_plan(workspace, capsys)

    code, out, _err = _run(
        capsys, "export", "proj-cli", "--format", "yaml", "--output", "out/proj.yaml"
    )
    assert code == 0
    assert "Exported" in out
    loaded = yaml.safe_load((workspace / "out" / "proj.yaml").read_text(encoding="utf-8"))
    assert loaded["id"] == "proj-cli"
    assert loaded["title"] == "CLI demo"

    code, out, _err = _run(capsys, "list", "--no-color")
    assert code == 0
    assert "proj-cli" in out
    assert "\x1b[" not in out


def test_config_file_and_db_override(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    (workspace / "conf").mkdir()
    (workspace / "conf" / "readiness.toml").write_text(
        '[storage]\ndb_path = "data/projects.sqlite"\n', encoding="utf-8"
    )
    (workspace / "plan.yaml").write_text(PLAN_YAML, encoding="utf-8")

    _run_json(capsys, "import", "plan.yaml", "--config", "conf/readiness.toml")
    assert (workspace / "conf" / "data" / "projects.sqlite").exists()

    _run_json(capsys, "import", "plan.yaml", "--db", "elsewhere.sqlite")
    assert (workspace / "elsewhere.sqlite").exists()

    code, _out, err = _run(capsys, "list", "--config", "missing.toml")
    assert code == ExitCode.INPUT_ERROR
    assert "config file not found" in err


def test_session_log_records_component_events(
    workspace: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    _import_plan(workspace, capsys)

    log_files = sorted((workspace / "logs").glob("sess*/readiness.jsonl"))
    assert len(log_files) == 1
    events = [json.loads(line) for line in log_files[0].read_text(encoding="utf-8").splitlines()]
    imported = [event for event in events if event["event"] == "project_imported"]
    assert imported
    assert imported[0]["project_id"] == "proj-cli"
    assert imported[0]["session_id"] == log_files[0].parent.name


def test_module_entrypoint_subprocess(tmp_path: Path) -> None:
    env = {key: value for key, value in os.environ.items() if not key.startswith("READINESS_")}
    existing_pythonpath = env.get("PYTHONPATH")
    env["PYTHONPATH"] = (
        str(SRC_PATH) if not existing_pythonpath else f"{SRC_PATH}:{existing_pythonpath}"
    )

    completed = subprocess.run(
        [sys.executable, "-m", "readiness_orchestrator", "list", "--json"],
        cwd=tmp_path,
        text=True,
        capture_output=True,
        check=False,
        env=env,
    )

    assert completed.returncode == 0, completed.stderr
    assert json.loads(completed.stdout) == {"command": "list", "projects": []}
