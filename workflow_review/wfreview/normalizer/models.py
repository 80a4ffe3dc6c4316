"""Typed workflow constructs produced by the schema normalizer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from wfreview.loader.models import MappingNode, Node, ScalarNode, WorkflowDocument

PUSH_EVENTS = frozenset({"push"})
PULL_REQUEST_EVENTS = frozenset({"pull_request", "pull_request_target"})


class SecretScope(str, Enum):
    """Where a secret expression appears."""

    root_env = "root_env"
    job_env = "job_env"
    step_env = "step_env"
    step_with = "step_with"
    job_secrets = "job_secrets"
    job_with = "job_with"
    run = "run"
    other = "other"


@dataclass(frozen=True)
class SecretRef:
    path: str
    expression: str
    scope: SecretScope
    job_id: str | None = None
    line: int = 0


@dataclass(frozen=True)
class Trigger:
    event: str
    path: str
    config: Node | None = None

    @property
    def filters(self) -> MappingNode | None:
        return self.config if isinstance(self.config, MappingNode) else None


@dataclass(frozen=True)
class PermissionSet:
    """Either a single level (``read-all``) or a scope -> level mapping."""

    path: str
    level: str | None = None
    scopes: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class Step:
    index: int
    path: str
    node: MappingNode
    name: ScalarNode | None = None
    id: ScalarNode | None = None
    uses: ScalarNode | None = None
    run: ScalarNode | None = None
    with_: MappingNode | None = None
    env: MappingNode | None = None
    shell: ScalarNode | None = None
    working_directory: ScalarNode | None = None
    continue_on_error: bool = False
    if_: ScalarNode | None = None
    extras: tuple[str, ...] = ()

    @property
    def action(self) -> str:
        """The action reference without its ``@ref`` suffix, lowercased."""
        if self.uses is None:
            return ""
        return self.uses.value.split("@", 1)[0].strip().lower()

    def with_value(self, key: str) -> Node | None:
        return self.with_.get(key) if self.with_ is not None else None


@dataclass(frozen=True)
class Job:
    job_id: str
    path: str
    node: MappingNode
    key: ScalarNode | None = None
    name: ScalarNode | None = None
    runs_on: tuple[tuple[str, ScalarNode], ...] = ()
    timeout_minutes: int | None = None
    timeout_node: ScalarNode | None = None
    permissions: PermissionSet | None = None
    env: MappingNode | None = None
    concurrency: Node | None = None
    matrix: Node | None = None
    uses: ScalarNode | None = None
    if_: ScalarNode | None = None
    outputs: MappingNode | None = None
    steps: tuple[Step, ...] = ()
    extras: tuple[str, ...] = ()

    @property
    def is_reusable_call(self) -> bool:
        return self.uses is not None


@dataclass(frozen=True)
class NormalizedDocument:
    source: WorkflowDocument
    name: ScalarNode | None = None
    triggers: tuple[Trigger, ...] = ()
    permissions: PermissionSet | None = None
    concurrency: Node | None = None
    env: MappingNode | None = None
    jobs: tuple[Job, ...] = ()
    extras: tuple[str, ...] = ()
    secret_refs: tuple[SecretRef, ...] = field(default=())

    @property
    def events(self) -> set[str]:
        return {t.event for t in self.triggers}

    def trigger(self, event: str) -> Trigger | None:
        for t in self.triggers:
            if t.event == event:
                return t
        return None

    @property
    def has_push_and_pull_request(self) -> bool:
        events = self.events
        return bool(events & PUSH_EVENTS) and bool(events & PULL_REQUEST_EVENTS)
