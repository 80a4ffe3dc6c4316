"""Schema normalizer: classify a loaded document into workflow constructs."""

from __future__ import annotations

import logging

from wfreview.loader.models import (
    MappingNode,
    Node,
    ScalarNode,
    SequenceNode,
    WorkflowDocument,
    join_pointer,
)
from wfreview.normalizer.expressions import find_secret_refs
from wfreview.normalizer.models import (
    Job,
    NormalizedDocument,
    PermissionSet,
    SecretRef,
    SecretScope,
    Step,
    Trigger,
)

logger = logging.getLogger(__name__)

ROOT_KEYS = ("name", "run-name", "on", "permissions", "concurrency", "defaults", "env", "jobs")

JOB_KEYS = (
    "name", "needs", "if", "snapshot", "permissions", "strategy", "environment",
    "runs-on", "container", "timeout-minutes", "continue-on-error", "concurrency",
    "outputs", "defaults", "services", "env", "uses", "secrets", "with", "steps",
)

STEP_KEYS = (
    "name", "id", "if", "continue-on-error", "timeout-minutes", "uses", "with",
    "secrets", "shell", "env", "working-directory", "run",
)


def _mapping(node: Node | None) -> MappingNode | None:
    return node if isinstance(node, MappingNode) else None


def _scalar(node: Node | None) -> ScalarNode | None:
    if isinstance(node, ScalarNode) and not node.is_null:
        return node
    return None


def _scalars(node: Node | None) -> tuple[ScalarNode, ...]:
    """Flatten a scalar or a sequence of scalars."""
    if isinstance(node, ScalarNode):
        return () if node.is_null else (node,)
    if isinstance(node, SequenceNode):
        return tuple(item for item in node.items if isinstance(item, ScalarNode) and not item.is_null)
    return ()


def _extras(node: MappingNode, known: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(k for k in node.keys() if k not in known)


def _triggers(node: Node | None) -> tuple[Trigger, ...]:
    if isinstance(node, ScalarNode):
        return () if node.is_null else (Trigger(event=node.value, path="/on"),)
    if isinstance(node, SequenceNode):
        return tuple(
            Trigger(event=item.value, path=join_pointer("/on", i))
            for i, item in enumerate(node.items)
            if isinstance(item, ScalarNode) and not item.is_null
        )
    if isinstance(node, MappingNode):
        return tuple(
            Trigger(event=event, path=join_pointer("/on", event), config=config)
            for event, config in node.items()
        )
    return ()


def _permissions(node: Node | None, path: str) -> PermissionSet | None:
    if node is None:
        return None
    if isinstance(node, ScalarNode):
        return PermissionSet(path=path, level=None if node.is_null else node.value)
    if isinstance(node, MappingNode):
        scopes = tuple(
            (scope, level.value)
            for scope, level in node.items()
            if isinstance(level, ScalarNode)
        )
        return PermissionSet(path=path, scopes=scopes)
    return PermissionSet(path=path)


def pointed_scalars(node: Node | None, path: str) -> tuple[tuple[str, ScalarNode], ...]:
    """Like _scalars, paired with each scalar's pointer."""
    if isinstance(node, SequenceNode):
        return tuple(
            (join_pointer(path, i), item)
            for i, item in enumerate(node.items)
            if isinstance(item, ScalarNode) and not item.is_null
        )
    return tuple((path, item) for item in _scalars(node))


def _runs_on(node: Node | None, path: str) -> tuple[tuple[str, ScalarNode], ...]:
    mapping = _mapping(node)
    if mapping is not None:
        return pointed_scalars(mapping.get("labels"), join_pointer(path, "labels"))
    return pointed_scalars(node, path)


def _step(index: int, path: str, node: MappingNode) -> Step:
    continue_on_error = _scalar(node.get("continue-on-error"))
    return Step(
        index=index,
        path=path,
        node=node,
        name=_scalar(node.get("name")),
        id=_scalar(node.get("id")),
        uses=_scalar(node.get("uses")),
        run=_scalar(node.get("run")),
        with_=_mapping(node.get("with")),
        env=_mapping(node.get("env")),
        shell=_scalar(node.get("shell")),
        working_directory=_scalar(node.get("working-directory")),
        continue_on_error=continue_on_error is not None and continue_on_error.as_bool(),
        if_=_scalar(node.get("if")),
        extras=_extras(node, STEP_KEYS),
    )


def _job(job_id: str, key: ScalarNode, node: MappingNode) -> Job:
    path = join_pointer("/jobs", job_id)
    timeout_node = _scalar(node.get("timeout-minutes"))
    strategy = _mapping(node.get("strategy"))

    steps: list[Step] = []
    steps_node = node.get("steps")
    if isinstance(steps_node, SequenceNode):
        for i, item in enumerate(steps_node.items):
            if isinstance(item, MappingNode):
                steps.append(_step(i, join_pointer(path, "steps", i), item))

    return Job(
        job_id=job_id,
        path=path,
        node=node,
        key=key,
        name=_scalar(node.get("name")),
        runs_on=_runs_on(node.get("runs-on"), join_pointer(path, "runs-on")),
        timeout_minutes=timeout_node.as_int() if timeout_node is not None else None,
        timeout_node=timeout_node,
        permissions=_permissions(node.get("permissions"), join_pointer(path, "permissions")),
        env=_mapping(node.get("env")),
        concurrency=node.get("concurrency"),
        matrix=strategy.get("matrix") if strategy is not None else None,
        uses=_scalar(node.get("uses")),
        if_=_scalar(node.get("if")),
        outputs=_mapping(node.get("outputs")),
        steps=tuple(steps),
        extras=_extras(node, JOB_KEYS),
    )


def _classify_secret(pointer: str) -> tuple[SecretScope, str | None]:
    """Map a secret reference pointer to its scope and owning job."""
    segments = [s.replace("~1", "/").replace("~0", "~") for s in pointer.split("/")[1:]]
    if not segments:
        return SecretScope.other, None
    if segments[0] == "env":
        return SecretScope.root_env, None
    if segments[0] != "jobs" or len(segments) < 3:
        return SecretScope.other, None

    job_id, section = segments[1], segments[2]
    job_scopes = {
        "env": SecretScope.job_env,
        "secrets": SecretScope.job_secrets,
        "with": SecretScope.job_with,
    }
    if section in job_scopes:
        return job_scopes[section], job_id
    if section == "steps" and len(segments) >= 5:
        step_scopes = {
            "env": SecretScope.step_env,
            "with": SecretScope.step_with,
            "run": SecretScope.run,
        }
        return step_scopes.get(segments[4], SecretScope.other), job_id
    return SecretScope.other, job_id


def normalize(document: WorkflowDocument) -> NormalizedDocument:
    """Classify a loaded document into typed workflow constructs.

    Never raises: a document that does not look like a workflow
    normalizes to an empty structure.
    """
    root = document.root
    if not isinstance(root, MappingNode):
        logger.debug("Workflow root is not a mapping; normalizing to empty document")
        return NormalizedDocument(source=document)

    jobs: list[Job] = []
    jobs_node = root.get("jobs")
    if isinstance(jobs_node, MappingNode):
        for key, value in jobs_node.entries:
            if isinstance(value, MappingNode):
                jobs.append(_job(key.value, key, value))

    secret_refs = []
    for pointer, expression, line in find_secret_refs(root, ""):
        scope, job_id = _classify_secret(pointer)
        secret_refs.append(
            SecretRef(path=pointer, expression=expression, scope=scope, job_id=job_id, line=line)
        )

    normalized = NormalizedDocument(
        source=document,
        name=_scalar(root.get("name")),
        triggers=_triggers(root.get("on")),
        permissions=_permissions(root.get("permissions"), "/permissions"),
        concurrency=root.get("concurrency"),
        env=_mapping(root.get("env")),
        jobs=tuple(jobs),
        extras=_extras(root, ROOT_KEYS),
        secret_refs=tuple(secret_refs),
    )
    logger.debug(
        "Normalized workflow: %d trigger(s), %d job(s), %d secret reference(s)",
        len(normalized.triggers),
        len(normalized.jobs),
        len(normalized.secret_refs),
    )
    return normalized
