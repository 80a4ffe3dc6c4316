"""Report rendering: ranked findings to the fixed review report text."""

from __future__ import annotations

from wfreview.loader.models import WorkflowDocument
from wfreview.normalizer.engine import normalize
from wfreview.normalizer.models import NormalizedDocument
from wfreview.reviewer.aggregator import checklist, partition
from wfreview.reviewer.models import Finding


def _plural(count: int, word: str) -> str:
    return f"{count} {word}" if count == 1 else f"{count} {word}s"


def render_summary(doc: NormalizedDocument, findings: list[Finding]) -> str:
    """One or two sentences describing the workflow and the finding counts."""
    subject = f"Workflow '{doc.name.value}'" if doc.name is not None else "This workflow"
    events = [t.event for t in doc.triggers]
    trigger_part = f"runs on {', '.join(events)}" if events else "has no triggers"
    if doc.jobs:
        job_names = ", ".join(job.job_id for job in doc.jobs)
        jobs_part = f"defines {_plural(len(doc.jobs), 'job')} ({job_names})"
    else:
        jobs_part = "defines no jobs"

    must_fix, improvements = partition(findings)
    if findings:
        verdict = (
            f"Found {_plural(len(must_fix), 'must-fix issue')} "
            f"and {_plural(len(improvements), 'improvement')}."
        )
    else:
        verdict = "No issues found."
    return f"{subject} {trigger_part} and {jobs_part}. {verdict}"


def _render_finding(index: int, finding: Finding) -> list[str]:
    location = finding.location or "/"
    lines = [f"{index}. **{finding.title}** (`{finding.rule_id}` at `{location}`)"]
    if finding.why:
        lines.append(f"   - Why it matters: {finding.why}")
    if finding.change:
        lines.append(f"   - Requested change: {finding.change}")
    if finding.patch:
        lines.append("   - Patch:")
        lines.append("     ```yaml")
        lines.extend(f"     {line}" if line else "" for line in finding.patch.splitlines())
        lines.append("     ```")
    return lines


def _render_section(title: str, findings: list[Finding]) -> list[str]:
    lines = [f"## {title}"]
    if not findings:
        lines.append("None.")
    for i, finding in enumerate(findings, start=1):
        lines.extend(_render_finding(i, finding))
    return lines


def render(document: WorkflowDocument, findings: list[Finding]) -> str:
    """Render the review report. Pure: same inputs give byte-identical text."""
    normalized = normalize(document)
    must_fix, improvements = partition(findings)

    lines = ["## Summary", render_summary(normalized, findings), ""]
    lines += _render_section("Must-fix", must_fix)
    lines.append("")
    lines += _render_section("Improvements", improvements)
    lines.append("")
    lines.append("## Quick Checklist")
    for item in checklist(findings):
        mark = "x" if item.flagged else " "
        suffix = f" ({_plural(item.count, 'finding')})" if item.flagged else ""
        lines.append(f"- [{mark}] {item.label}{suffix}")
    return "\n".join(lines) + "\n"
