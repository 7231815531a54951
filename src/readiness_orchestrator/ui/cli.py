"""Command-line interface router for readiness-orchestrator."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Final

import yaml

from readiness_orchestrator.config import (
    ConfigLoadError,
    ConfigValidationError,
    load_config,
)
from readiness_orchestrator.control_plane import ReadinessService
from readiness_orchestrator.domain.ids import (
    SESSION_ID_PREFIX,
    IdGenerator,
    SequentialIdGenerator,
    UlidIdGenerator,
    generate_prefixed_id,
)
from readiness_orchestrator.domain.models import (
    DiagnosticHeadline,
    DiagnosticsReport,
    PatchEntry,
    ProjectRecord,
    TestPlan,
)
from readiness_orchestrator.engine.virtual_tests import summarize_plan
from readiness_orchestrator.observability import (
    LoggingConfig,
    StructuredLoggingHandle,
    setup_structured_logging,
    shutdown_logging,
)
from readiness_orchestrator.persistence import SQLiteProjectStore, StateDB
from readiness_orchestrator.ui.render import CLIRenderer, create_renderer

YAML_SUFFIXES: Final[frozenset[str]] = frozenset({".yaml", ".yml"})
EXPORT_FORMATS: Final[tuple[str, ...]] = ("json", "yaml")


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog="readiness",
        description=(
            "readiness-orchestrator — score, diagnose and patch project plans.\n\n"
            "Common workflows:\n"
            "  readiness import plan.yaml     Store a project document\n"
            "  readiness score <id>           Show pillar scores and next actions\n"
            "  readiness diagnose <id>        Rank what to fix first\n"
            "  readiness autofix <id>         Fix the top issue and lock the result\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to readiness TOML config (default: ./readiness.toml if present).",
    )
    common.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Override storage.db_path for this invocation.",
    )
    common.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Emit machine-readable JSON.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser(
        "import", parents=[common], help="Load a JSON or YAML project document"
    )
    import_parser.add_argument("document_path", help="Path to a .json, .yaml or .yml document.")
    import_parser.set_defaults(handler=_cmd_import)

    export_parser = subparsers.add_parser(
        "export", parents=[common], help="Emit the stored project document"
    )
    export_parser.add_argument("project_id")
    export_parser.add_argument(
        "--format",
        dest="export_format",
        choices=EXPORT_FORMATS,
        default="json",
        help="Document format (default: json).",
    )
    export_parser.add_argument(
        "--output", "-o", default=None, help="Write to this file instead of stdout."
    )
    export_parser.set_defaults(handler=_cmd_export)

    list_parser = subparsers.add_parser("list", parents=[common], help="List stored projects")
    list_parser.add_argument("--limit", type=int, default=100)
    list_parser.add_argument("--offset", type=int, default=0)
    list_parser.set_defaults(handler=_cmd_list)

    score_parser = subparsers.add_parser(
        "score", parents=[common], help="Readiness pillars, badge and next actions"
    )
    score_parser.add_argument("project_id")
    score_parser.set_defaults(handler=_cmd_score)

    diagnose_parser = subparsers.add_parser(
        "diagnose", parents=[common], help="Ranked diagnostics for a project"
    )
    diagnose_parser.add_argument("project_id")
    diagnose_parser.add_argument(
        "--save", action="store_true", default=False, help="Store the report on the project."
    )
    diagnose_parser.set_defaults(handler=_cmd_diagnose)

    test_parser = subparsers.add_parser(
        "test", parents=[common], help="Generate and grade the virtual test plan"
    )
    test_parser.add_argument("project_id")
    test_parser.add_argument(
        "--save", action="store_true", default=False, help="Store the plan on the project."
    )
    test_parser.set_defaults(handler=_cmd_test)

    patch_parser = subparsers.add_parser(
        "patch", parents=[common], help="Plan and apply the safe structural patch"
    )
    patch_parser.add_argument("project_id")
    patch_parser.add_argument("--intent", dest="intent_text", default="", help="Intent text hint.")
    patch_parser.add_argument(
        "--dry-run", action="store_true", default=False, help="Show the plan without saving."
    )
    patch_parser.set_defaults(handler=_cmd_patch)

    refine_parser = subparsers.add_parser(
        "apply-refinement",
        parents=[common],
        help="Apply the patch for a stored autofix refinement",
    )
    refine_parser.add_argument("project_id")
    refine_parser.add_argument(
        "--refine-id", default=None, help="Refinement id (default: the newest one)."
    )
    refine_parser.set_defaults(handler=_cmd_apply_refinement)

    autofix_parser = subparsers.add_parser(
        "autofix", parents=[common], help="Fix the top diagnostic and lock the result"
    )
    autofix_parser.add_argument("project_id")
    autofix_parser.set_defaults(handler=_cmd_autofix)

    history_parser = subparsers.add_parser(
        "history", parents=[common], help="Refinements, patches and locked fixes"
    )
    history_parser.add_argument("project_id")
    history_parser.set_defaults(handler=_cmd_history)

    rollback_parser = subparsers.add_parser(
        "rollback", parents=[common], help="Restore a patch's before snapshot"
    )
    rollback_parser.add_argument("project_id")
    rollback_parser.add_argument("patch_id")
    rollback_parser.set_defaults(handler=_cmd_rollback)

    regressions_parser = subparsers.add_parser(
        "regressions", parents=[common], help="Locked fixes whose issue resurfaced"
    )
    regressions_parser.add_argument("project_id")
    regressions_parser.set_defaults(handler=_cmd_regressions)

    status_parser = subparsers.add_parser(
        "status", parents=[common], help="Move a project through its lifecycle"
    )
    status_parser.add_argument("project_id")
    status_parser.add_argument("status")
    status_parser.set_defaults(handler=_cmd_status)

    freeze_parser = subparsers.add_parser(
        "freeze", parents=[common], help="Reject further patches on a project"
    )
    freeze_parser.add_argument("project_id")
    freeze_parser.add_argument("--reason", default=None)
    freeze_parser.set_defaults(handler=_cmd_freeze)

    unfreeze_parser = subparsers.add_parser(
        "unfreeze", parents=[common], help="Lift the frozen guard"
    )
    unfreeze_parser.add_argument("project_id")
    unfreeze_parser.set_defaults(handler=_cmd_unfreeze)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    """Compatibility wrapper for main-module wiring."""

    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_import(args: argparse.Namespace) -> int:
    document_path = Path(_require_str(getattr(args, "document_path", None), "document_path"))
    document = _read_document(document_path)

    with _open_service(args) as service:
        project = service.import_project(document)

    if _flag(args, "json"):
        _emit_json({"command": "import", "project": project.to_dict()})
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Imported", project.id)
    renderer.kv("Status", project.status.value)
    renderer.kv("Version", project.version)
    renderer.next_steps([f"readiness score {project.id}", f"readiness diagnose {project.id}"])
    return 0


def _cmd_export(args: argparse.Namespace) -> int:
    project_id = _require_str(getattr(args, "project_id", None), "project_id")
    with _open_service(args) as service:
        project = service.export(project_id)

    document = project.to_dict()
    if getattr(args, "export_format", "json") == "yaml":
        rendered = yaml.safe_dump(document, sort_keys=False, allow_unicode=True)
    else:
        rendered = json.dumps(document, indent=2, ensure_ascii=False) + "\n"

    output = _optional_str(getattr(args, "output", None))
    if output is None:
        sys.stdout.write(rendered)
        return 0

    target = Path(output).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(rendered, encoding="utf-8")
    if not _flag(args, "json"):
        _get_renderer(args).kv("Exported", target.as_posix())
    return 0


def _cmd_list(args: argparse.Namespace) -> int:
    limit = int(getattr(args, "limit", 100))
    offset = int(getattr(args, "offset", 0))
    with _open_service(args) as service:
        projects = service.list_projects(limit=limit, offset=offset)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "list",
                "projects": [
                    {
                        "id": project.id,
                        "status": project.status.value,
                        "version": project.version,
                        "frozen": project.frozen,
                    }
                    for project in projects
                ],
            }
        )
        return 0

    renderer = _get_renderer(args)
    if not projects:
        renderer.text("No projects stored.")
        renderer.next_steps(["readiness import <document>"])
        return 0
    renderer.table(
        ["ID", "STATUS", "VERSION", "FROZEN"],
        [
            [project.id, project.status.value, str(project.version), _yes_no(project.frozen)]
            for project in projects
        ],
    )
    return 0


def _cmd_score(args: argparse.Namespace) -> int:
    project_id = _require_str(getattr(args, "project_id", None), "project_id")
    with _open_service(args) as service:
        score = service.score(project_id)

    if _flag(args, "json"):
        _emit_json({"command": "score", "score": score.to_dict()})
        return 0

    renderer = _get_renderer(args)
    renderer.heading(f"Readiness for {score.project_id}")
    renderer.kv("Overall", score.overall)
    renderer.badge("Badge", score.badge.value)
    renderer.table(
        ["PILLAR", "SCORE", "MISSING"],
        [
            [name, str(pillar.score), ", ".join(pillar.missing) or "-"]
            for name, pillar in (
                ("intent", score.intent),
                ("architecture", score.architecture),
                ("tests", score.tests),
                ("scan", score.scan),
            )
        ],
        title="Pillars:",
    )
    summary = score.test_summary
    renderer.section("Signals:")
    renderer.kv(
        "  Architecture",
        f"{score.counts.screens} screens, {score.counts.entities} entities, "
        f"{score.counts.apis} APIs",
    )
    renderer.kv(
        "  Tests",
        f"{summary.passed}/{summary.total} passed, {summary.failed} failed, "
        f"{summary.not_run} not run",
    )
    renderer.kv("  Scan issues", score.scan_issues)
    if score.next_actions:
        renderer.section("Next actions:")
        renderer.items(list(score.next_actions))
    return 0


def _cmd_diagnose(args: argparse.Namespace) -> int:
    project_id = _require_str(getattr(args, "project_id", None), "project_id")
    save = _flag(args, "save")
    with _open_service(args) as service:
        report = service.diagnose(project_id, save=save)

    if _flag(args, "json"):
        _emit_json({"command": "diagnose", "saved": save, "report": report.to_dict()})
        return 0

    renderer = _get_renderer(args)
    renderer.heading(report.summary)
    _render_diagnostics(renderer, report)
    if save:
        renderer.kv("Saved", "yes")
    if report.top is not None:
        renderer.next_steps([f"readiness autofix {project_id}"])
    return 0


def _cmd_test(args: argparse.Namespace) -> int:
    project_id = _require_str(getattr(args, "project_id", None), "project_id")
    save = _flag(args, "save")
    with _open_service(args) as service:
        plan = service.run_tests(project_id, save=save)

    summary = summarize_plan(plan)
    if _flag(args, "json"):
        _emit_json(
            {
                "command": "test",
                "saved": save,
                "plan": plan.to_dict(),
                "summary": summary.to_dict(),
            }
        )
        return 0

    renderer = _get_renderer(args)
    renderer.heading(plan.summary)
    _render_test_plan(renderer, plan)
    renderer.kv(
        "Result",
        f"{summary.passed} pass / {summary.failed} fail / {summary.not_run} not run "
        f"(score {summary.score})",
    )
    if save:
        renderer.kv("Saved", "yes")
    return 0


def _cmd_patch(args: argparse.Namespace) -> int:
    project_id = _require_str(getattr(args, "project_id", None), "project_id")
    intent_text = str(getattr(args, "intent_text", "") or "")
    dry_run = _flag(args, "dry_run")
    with _open_service(args) as service:
        outcome = service.patch(project_id, intent_text, dry_run=dry_run)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "patch",
                "dry_run": outcome.dry_run,
                "applied": outcome.applied,
                "actions": list(outcome.plan.actions),
                "patch": None if outcome.patch is None else outcome.patch.to_dict(),
                "status": outcome.project.status.value,
            }
        )
        return 0

    renderer = _get_renderer(args)
    if outcome.plan.is_empty:
        renderer.text("No structural changes were required.")
        return 0
    renderer.section("Planned actions:" if outcome.dry_run else "Applied actions:")
    renderer.items(list(outcome.plan.actions))
    if outcome.patch is not None:
        renderer.kv("Patch", outcome.patch.id)
        renderer.kv("Status", outcome.project.status.value)
    elif outcome.dry_run:
        renderer.next_steps([f"readiness patch {project_id}"])
    return 0


def _cmd_apply_refinement(args: argparse.Namespace) -> int:
    project_id = _require_str(getattr(args, "project_id", None), "project_id")
    refine_id = _optional_str(getattr(args, "refine_id", None))
    with _open_service(args) as service:
        outcome = service.apply_refinement(project_id, refine_id)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "apply-refinement",
                "refinement": outcome.refinement.to_dict(),
                "patch": outcome.patch.to_dict(),
                "status": outcome.project.status.value,
            }
        )
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Refinement", outcome.refinement.id)
    renderer.kv("Patch", outcome.patch.id)
    renderer.kv("Status", outcome.project.status.value)
    renderer.section("Actions:")
    renderer.items(list(outcome.patch.actions))
    return 0


def _cmd_autofix(args: argparse.Namespace) -> int:
    project_id = _require_str(getattr(args, "project_id", None), "project_id")
    with _open_service(args) as service:
        result = service.autofix(project_id)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "autofix",
                "improved": result.improved,
                "refinement": result.refinement.to_dict(),
                "patch": result.patch.to_dict(),
                "locked_fix": result.locked_fix.to_dict(),
                "steps": [step.value for step in result.steps],
                "status": result.project.status.value,
            }
        )
        return 0

    renderer = _get_renderer(args)
    renderer.heading(result.locked_fix.title)
    renderer.kv("Before", _headline_text(result.before_top))
    renderer.kv("After", _headline_text(result.after_top))
    renderer.kv("Test score", f"{result.before_test_score} -> {result.after_test_score}")
    renderer.kv("Locked fix", result.locked_fix.id)
    renderer.kv("Status", result.project.status.value)
    renderer.section("Actions:")
    renderer.items(list(result.patch.actions))
    if not result.improved:
        renderer.warning("the top diagnostic did not change and the test score did not rise")
    return 0


def _cmd_history(args: argparse.Namespace) -> int:
    project_id = _require_str(getattr(args, "project_id", None), "project_id")
    with _open_service(args) as service:
        history = service.history(project_id)

    if _flag(args, "json"):
        _emit_json({"command": "history", "project_id": project_id, **history.to_dict()})
        return 0

    renderer = _get_renderer(args)
    if not (history.refinements or history.patches or history.locked_fixes):
        renderer.text(f"No history recorded for {project_id}.")
        return 0
    renderer.table(
        ["ID", "CREATED", "SOURCE", "TARGET"],
        [
            [
                refinement.id,
                refinement.created_at.isoformat(),
                refinement.source.value,
                _headline_text(refinement.target),
            ]
            for refinement in history.refinements
        ],
        title="Refinements:",
    )
    renderer.table(
        ["ID", "CREATED", "SOURCE", "ACTIONS"],
        [_patch_row(patch) for patch in history.patches],
        title="Patches:",
    )
    renderer.table(
        ["ID", "CREATED", "RULE", "TESTS"],
        [
            [
                fix.id,
                fix.created_at.isoformat(),
                fix.rule,
                f"{fix.proof.before_test_score} -> {fix.proof.after_test_score}",
            ]
            for fix in history.locked_fixes
        ],
        title="Locked fixes:",
    )
    return 0


def _cmd_rollback(args: argparse.Namespace) -> int:
    project_id = _require_str(getattr(args, "project_id", None), "project_id")
    patch_id = _require_str(getattr(args, "patch_id", None), "patch_id")
    with _open_service(args) as service:
        outcome = service.rollback(project_id, patch_id)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "rollback",
                "rolled_back": outcome.rolled_back,
                "patch": outcome.patch.to_dict(),
            }
        )
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Rolled back", outcome.rolled_back)
    renderer.kv("Patch", outcome.patch.id)
    return 0


def _cmd_regressions(args: argparse.Namespace) -> int:
    project_id = _require_str(getattr(args, "project_id", None), "project_id")
    with _open_service(args) as service:
        regressed = service.regressions(project_id)

    if _flag(args, "json"):
        _emit_json(
            {
                "command": "regressions",
                "project_id": project_id,
                "regressions": [fix.to_dict() for fix in regressed],
            }
        )
        return 0

    renderer = _get_renderer(args)
    if not regressed:
        renderer.ok("no locked fix has regressed")
        return 0
    for fix in regressed:
        renderer.fail(f"{fix.id}: {fix.title} ({_headline_text(fix.proof.before_top)})")
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    project_id = _require_str(getattr(args, "project_id", None), "project_id")
    status = _require_str(getattr(args, "status", None), "status")
    with _open_service(args) as service:
        project = service.set_status(project_id, status)
    return _report_project(args, "status", project)


def _cmd_freeze(args: argparse.Namespace) -> int:
    project_id = _require_str(getattr(args, "project_id", None), "project_id")
    reason = _optional_str(getattr(args, "reason", None))
    with _open_service(args) as service:
        project = service.freeze(project_id, reason)
    return _report_project(args, "freeze", project)


def _cmd_unfreeze(args: argparse.Namespace) -> int:
    project_id = _require_str(getattr(args, "project_id", None), "project_id")
    with _open_service(args) as service:
        project = service.unfreeze(project_id)
    return _report_project(args, "unfreeze", project)


def _report_project(args: argparse.Namespace, command: str, project: ProjectRecord) -> int:
    if _flag(args, "json"):
        _emit_json(
            {
                "command": command,
                "project_id": project.id,
                "status": project.status.value,
                "frozen": project.frozen,
                "frozen_reason": project.frozen_reason,
                "version": project.version,
            }
        )
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Project", project.id)
    renderer.kv("Status", project.status.value)
    frozen = _yes_no(project.frozen)
    if project.frozen and project.frozen_reason:
        frozen = f"{frozen} ({project.frozen_reason})"
    renderer.kv("Frozen", frozen)
    return 0


# ---------------------------------------------------------------------------
# Rendering helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    """Retrieve or create a CLI renderer from the parsed namespace."""

    return create_renderer(no_color=_flag(args, "no_color"))


def _render_diagnostics(renderer: CLIRenderer, report: DiagnosticsReport) -> None:
    renderer.table(
        ["#", "SEVERITY", "AREA", "SYMPTOM", "MIN", "ROI"],
        [
            [
                str(item.priority),
                item.severity.value,
                item.area,
                item.symptom,
                str(item.estimated_minutes),
                f"{item.roi:.1f}",
            ]
            for item in report.items
        ],
        severity_column=1,
    )
    actionable = report.actionable
    if actionable:
        renderer.section("Suggested fix for the top item:")
        renderer.text(f"  {actionable[0].suggested_fix}")


def _render_test_plan(renderer: CLIRenderer, plan: TestPlan) -> None:
    renderer.table(
        ["ID", "AREA", "RISK", "STATUS", "TITLE"],
        [
            [case.id, case.area.value, case.risk.value, case.status.value, case.title]
            for case in plan.cases
        ],
    )


def _patch_row(patch: PatchEntry) -> list[str]:
    return [
        patch.id,
        patch.created_at.isoformat(),
        patch.source.value,
        str(len(patch.actions)),
    ]


def _headline_text(headline: DiagnosticHeadline | None) -> str:
    if headline is None:
        return "-"
    return f"[{headline.severity.value}] {headline.area}: {headline.symptom}"


def _yes_no(value: bool) -> str:
    return "yes" if value else "no"


# ---------------------------------------------------------------------------
# Helpers: config and service wiring
# ---------------------------------------------------------------------------


def _load_effective_config(args: argparse.Namespace) -> dict[str, Any]:
    config_path = _optional_str(getattr(args, "config_path", None))
    overrides: dict[str, object] = {"storage.db_path": _optional_str(getattr(args, "db_path", None))}

    try:
        return load_config(config_path, cli_overrides=overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _read_document(path: Path) -> dict[str, object]:
    resolved = path.expanduser()
    if not resolved.is_file():
        raise CLIError(f"document not found: {resolved}", exit_code=2)
    raw = resolved.read_text(encoding="utf-8")

    try:
        if resolved.suffix.lower() in YAML_SUFFIXES:
            parsed = yaml.safe_load(raw)
        else:
            parsed = json.loads(raw)
    except yaml.YAMLError as exc:
        raise CLIError(f"invalid YAML in {resolved}: {exc}", exit_code=2) from exc
    except json.JSONDecodeError as exc:
        raise CLIError(f"invalid JSON in {resolved}: {exc}", exit_code=2) from exc

    if not isinstance(parsed, dict):
        raise CLIError(f"project document must be an object: {resolved}", exit_code=2)
    return parsed


def _id_generator(strategy: str) -> IdGenerator:
    if strategy == "sequential":
        return SequentialIdGenerator()
    return UlidIdGenerator()


def _start_logging(config: Mapping[str, Any]) -> StructuredLoggingHandle:
    observability = config["observability"]
    return setup_structured_logging(
        LoggingConfig(
            session_id=generate_prefixed_id(SESSION_ID_PREFIX),
            base_log_dir=Path(observability["log_dir"]),
            level=observability["log_level"],
            log_to_stderr=bool(observability["log_to_stderr"]),
            redact=bool(observability["redact_secrets"]),
        )
    )


@contextmanager
def _open_service(args: argparse.Namespace) -> Iterator[ReadinessService]:
    """Yield a service over the configured SQLite store inside a logging session."""

    config = _load_effective_config(args)
    handle = _start_logging(config)
    try:
        storage = config["storage"]
        engine = config["engine"]
        store = SQLiteProjectStore(
            StateDB(storage["db_path"], busy_timeout_ms=int(storage["busy_timeout_ms"]))
        )
        yield ReadinessService(
            store,
            ids=_id_generator(str(engine["id_strategy"])),
            deploy_keywords=tuple(engine["deploy_keywords"]),
        )
    finally:
        shutdown_logging(handle)


def _require_str(value: object, name: str) -> str:
    if not isinstance(value, str):
        raise CLIError(f"invalid {name}: expected string", exit_code=2)
    cleaned = value.strip()
    if not cleaned:
        raise CLIError(f"invalid {name}: value cannot be empty", exit_code=2)
    return cleaned


def _optional_str(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise CLIError("invalid optional string argument", exit_code=2)
    cleaned = value.strip()
    return cleaned or None


def _flag(args: argparse.Namespace, name: str) -> bool:
    value = getattr(args, name, False)
    return bool(value)


__all__ = ["CLIError", "build_parser", "main", "run_cli"]
