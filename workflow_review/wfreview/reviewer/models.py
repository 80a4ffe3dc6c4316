"""Data models for the workflow review system."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class FindingSeverity(str, Enum):
    must_fix = "must-fix"
    improvement = "improvement"


SEVERITY_RANK = {
    FindingSeverity.must_fix: 0,
    FindingSeverity.improvement: 1,
}


class FindingCategory(str, Enum):
    """Quick Checklist categories, in report order."""

    triggers_permissions = "triggers_permissions"
    pinning_timeouts = "pinning_timeouts"
    caching_artifacts = "caching_artifacts"
    ordering_naming = "ordering_naming"
    concurrency = "concurrency"
    idempotent_operations = "idempotent_operations"


CATEGORY_LABELS = {
    FindingCategory.triggers_permissions: "Triggers & Permissions",
    FindingCategory.pinning_timeouts: "Pinning & Timeouts",
    FindingCategory.caching_artifacts: "Caching & Artifacts",
    FindingCategory.ordering_naming: "Key Ordering & Naming",
    FindingCategory.concurrency: "Concurrency",
    FindingCategory.idempotent_operations: "Idempotent Operations",
}


class Finding(BaseModel):
    """A single finding from a rule. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    rule_id: str
    severity: FindingSeverity
    category: FindingCategory
    location: str = ""
    order: int = 0
    title: str
    why: str = ""
    change: str = ""
    patch: str | None = None


class RuleResult(BaseModel):
    """Findings one rule produced for one document."""

    rule_id: str
    findings: list[Finding] = Field(default_factory=list)
    error: str | None = None


class ChecklistItem(BaseModel):
    category: FindingCategory
    label: str
    flagged: bool = False
    count: int = 0


class ReviewResult(BaseModel):
    """Complete result of a review run."""

    findings: list[Finding] = Field(default_factory=list)
    checklist: list[ChecklistItem] = Field(default_factory=list)
    summary: str = ""
    report: str = ""
    jobs_reviewed: int = 0
    failed_rules: list[str] = Field(default_factory=list)

    @property
    def must_fix(self) -> list[Finding]:
        return [f for f in self.findings if f.severity is FindingSeverity.must_fix]

    @property
    def improvements(self) -> list[Finding]:
        return [f for f in self.findings if f.severity is FindingSeverity.improvement]
