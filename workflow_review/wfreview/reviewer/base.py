"""Rule definition and shared helpers for the deterministic rule modules."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, Iterator

from wfreview.config import LintConfig
from wfreview.normalizer.models import Job, NormalizedDocument, Step
from wfreview.reviewer.models import Finding, FindingCategory, FindingSeverity

CheckFn = Callable[[NormalizedDocument, LintConfig], Iterable[Finding]]


@dataclass(frozen=True)
class Rule:
    """One entry of the rule catalog."""

    rule_id: str
    category: FindingCategory
    severity: FindingSeverity
    description: str
    check: CheckFn


def new_finding(
    doc: NormalizedDocument,
    rule_id: str,
    severity: FindingSeverity,
    category: FindingCategory,
    location: str,
    title: str,
    why: str = "",
    change: str = "",
    patch: str | None = None,
) -> Finding:
    """Build a Finding, stamping it with the document order of *location*."""
    return Finding(
        rule_id=rule_id,
        severity=severity,
        category=category,
        location=location,
        order=doc.source.order_of(location),
        title=title,
        why=why,
        change=change,
        patch=patch,
    )


def iter_steps(doc: NormalizedDocument) -> Iterator[tuple[Job, Step]]:
    for job in doc.jobs:
        for step in job.steps:
            yield job, step


def job_label(job: Job) -> str:
    return job.name.value if job.name is not None else job.job_id


def step_label(job: Job, step: Step) -> str:
    if step.name is not None:
        return f"'{step.name.value}' in job '{job.job_id}'"
    return f"step {step.index + 1} of job '{job.job_id}'"
