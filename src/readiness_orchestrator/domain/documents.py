"""Read-only fact extraction from free-form intent and architecture documents.

Documents are schemaless JSON authored elsewhere. The engine only ever needs a handful
of counts and flags from them, so every reader here is lenient: a missing or mistyped
field reads as empty rather than raising.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from readiness_orchestrator.constants import AGENT_BUILD_TYPES
from readiness_orchestrator.domain.models import as_text_list

if TYPE_CHECKING:
    from readiness_orchestrator.domain.models import Document, ProjectRecord


def _lens(document: Mapping[str, object] | None, name: str) -> Mapping[str, object]:
    if document is None:
        return {}
    value = document.get(name)
    if isinstance(value, Mapping):
        return value
    return {}


def _text(value: object) -> str:
    if isinstance(value, str):
        return value.strip()
    return ""


def _count(value: object) -> int:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        return len(value)
    return 0


@dataclass(frozen=True, slots=True)
class IntentFacts:
    present: bool
    problem: str
    users: int
    core_flows: tuple[str, ...]
    acceptance_tests: tuple[str, ...]
    what_you_get: int
    roi_narrative: str
    agents: int

    @property
    def has_problem(self) -> bool:
        return bool(self.problem)

    @classmethod
    def of(cls, document: Document | None) -> IntentFacts:
        founder = _lens(document, "founderLens")
        qa = _lens(document, "qaLens")
        client = _lens(document, "clientLens")
        agent = _lens(document, "agentLens")
        return cls(
            present=document is not None,
            problem=_text(founder.get("problem")),
            users=_count(founder.get("users")),
            core_flows=as_text_list(founder.get("coreFlows")),
            acceptance_tests=as_text_list(qa.get("acceptanceTests")),
            what_you_get=_count(client.get("whatYouGet")),
            roi_narrative=_text(client.get("roiNarrative")),
            agents=_count(agent.get("agents")),
        )


@dataclass(frozen=True, slots=True)
class ArchitectureFacts:
    present: bool
    screens: int
    entities: int
    apis: int
    auth_provider: str
    database: str
    hosting: str
    billing_provider: str

    @property
    def has_auth(self) -> bool:
        return bool(self.auth_provider) and self.auth_provider.lower() != "none"

    @classmethod
    def of(cls, document: Document | None) -> ArchitectureFacts:
        infra = _lens(document, "infra")
        return cls(
            present=document is not None,
            screens=_count(document.get("screens")) if document is not None else 0,
            entities=_count(document.get("entities")) if document is not None else 0,
            apis=_count(document.get("apis")) if document is not None else 0,
            auth_provider=_text(infra.get("authProvider")),
            database=_text(infra.get("database")),
            hosting=_text(infra.get("hosting")),
            billing_provider=_text(infra.get("billingProvider")),
        )


def is_agent_build(project: ProjectRecord, intent: IntentFacts | None = None) -> bool:
    """Agent or workflow build type, or any agent declared in the intent document."""

    facts = intent if intent is not None else IntentFacts.of(project.intent)
    return project.build_kind in AGENT_BUILD_TYPES or facts.agents > 0


__all__ = ["ArchitectureFacts", "IntentFacts", "is_agent_build"]
