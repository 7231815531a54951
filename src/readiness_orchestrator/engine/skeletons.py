"""Fixed artifact skeletons rendered from Jinja2 YAML templates.

Only the build type and the project title flow into a template, so rendering the same
inputs twice always yields the same document.
"""

from __future__ import annotations

import json
from importlib import resources
from typing import TYPE_CHECKING, Final, cast

import yaml
from jinja2 import Environment, StrictUndefined, TemplateError

from readiness_orchestrator.constants import AGENT_BUILD_TYPES
from readiness_orchestrator.domain.models import freeze_document

if TYPE_CHECKING:
    from jinja2 import Template

    from readiness_orchestrator.domain.models import Document

INTENT_TEMPLATE: Final[str] = "intent.yaml.j2"
ARCHITECTURE_TEMPLATE: Final[str] = "architecture.yaml.j2"
DEPLOYMENT_PLAN_TEMPLATE: Final[str] = "deployment_plan.yaml.j2"

_TEMPLATE_PACKAGE: Final[str] = "readiness_orchestrator.engine"
_TEMPLATE_DIR: Final[str] = "templates"


class SkeletonTemplateError(RuntimeError):
    """A bundled skeleton template is missing, fails to render, or is not a YAML object."""


def _yaml_str(value: object) -> str:
    # JSON string literals are valid YAML double-quoted scalars.
    return json.dumps(str(value), ensure_ascii=False)


class SkeletonRenderer:
    """Load bundled templates once and render them into frozen documents."""

    def __init__(self) -> None:
        self._environment = Environment(
            undefined=StrictUndefined,
            autoescape=False,
            trim_blocks=False,
            lstrip_blocks=False,
            newline_sequence="\n",
            keep_trailing_newline=True,
        )
        self._environment.filters["yaml_str"] = _yaml_str
        self._templates: dict[str, Template] = {}

    def intent(self, build_type: str) -> Document:
        return self._render(INTENT_TEMPLATE, agent_build=_is_agent_build_type(build_type))

    def architecture(self, build_type: str) -> Document:
        return self._render(ARCHITECTURE_TEMPLATE, agent_build=_is_agent_build_type(build_type))

    def deployment_plan(self, title: str) -> Document:
        display_title = title.strip() or "untitled project"
        return self._render(DEPLOYMENT_PLAN_TEMPLATE, display_title=display_title)

    def _template(self, name: str) -> Template:
        cached = self._templates.get(name)
        if cached is not None:
            return cached
        source = resources.files(_TEMPLATE_PACKAGE).joinpath(_TEMPLATE_DIR, name)
        try:
            text = source.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise SkeletonTemplateError(f"skeleton template not found: {name}") from exc
        template = self._environment.from_string(text)
        self._templates[name] = template
        return template

    def _render(self, name: str, **variables: object) -> Document:
        try:
            rendered = self._template(name).render(**variables)
        except TemplateError as exc:
            raise SkeletonTemplateError(f"failed to render skeleton {name}: {exc}") from exc
        try:
            loaded = yaml.safe_load(rendered)
        except yaml.YAMLError as exc:
            raise SkeletonTemplateError(f"skeleton {name} is not valid YAML: {exc}") from exc
        if not isinstance(loaded, dict):
            raise SkeletonTemplateError(f"skeleton {name} must render a YAML mapping")
        # A mapping input always freezes to a mapping.
        return cast("Document", freeze_document(loaded, name))


def _is_agent_build_type(build_type: str) -> bool:
    return build_type.strip().lower() in AGENT_BUILD_TYPES


__all__ = [
    "ARCHITECTURE_TEMPLATE",
    "DEPLOYMENT_PLAN_TEMPLATE",
    "INTENT_TEMPLATE",
    "SkeletonRenderer",
    "SkeletonTemplateError",
]
