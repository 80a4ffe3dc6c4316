"""Finding aggregation: deduplicate, rank and summarize by checklist category."""

from __future__ import annotations

from wfreview.reviewer.models import (
    CATEGORY_LABELS,
    SEVERITY_RANK,
    ChecklistItem,
    Finding,
    FindingSeverity,
    RuleResult,
)


def sort_key(finding: Finding) -> tuple[int, int, str]:
    return (SEVERITY_RANK[finding.severity], finding.order, finding.rule_id)


def aggregate(results: list[RuleResult]) -> list[Finding]:
    """Merge rule results into one ranked list.

    Exact (rule_id, location) duplicates are dropped, first wins. Findings
    from different rules at the same location are all kept. Order is
    must-fix first, then document order, then rule id.
    """
    seen: set[tuple[str, str]] = set()
    merged: list[Finding] = []
    for result in results:
        for finding in result.findings:
            key = (finding.rule_id, finding.location)
            if key in seen:
                continue
            seen.add(key)
            merged.append(finding)

    merged.sort(key=sort_key)
    return merged


def partition(findings: list[Finding]) -> tuple[list[Finding], list[Finding]]:
    """Split ranked findings into (must_fix, improvements)."""
    must_fix = [f for f in findings if f.severity is FindingSeverity.must_fix]
    improvements = [f for f in findings if f.severity is FindingSeverity.improvement]
    return must_fix, improvements


def checklist(findings: list[Finding]) -> list[ChecklistItem]:
    """One item per category, flagged when any finding falls in it."""
    counts = {category: 0 for category in CATEGORY_LABELS}
    for f in findings:
        counts[f.category] += 1
    return [
        ChecklistItem(
            category=category,
            label=label,
            flagged=counts[category] > 0,
            count=counts[category],
        )
        for category, label in CATEGORY_LABELS.items()
    ]
