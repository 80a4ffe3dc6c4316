"""Lint API endpoints: review a workflow document and list the rule catalog."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field, ValidationError

from wfreview.config import LintConfig
from wfreview.deps import get_review_engine
from wfreview.loader import ParseError
from wfreview.reviewer.engine import ReviewEngine
from wfreview.reviewer.models import ChecklistItem, Finding

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["lint"])


class LintRequest(BaseModel):
    content: str = Field("", description="Workflow YAML text to review")
    config: dict | None = Field(
        None, description="Per-request overrides of the active lint settings"
    )


class LintResponse(BaseModel):
    summary: str
    report: str
    findings: list[Finding]
    must_fix_count: int = 0
    improvement_count: int = 0
    checklist: list[ChecklistItem]
    failed_rules: list[str] = Field(default_factory=list)


class RuleInfo(BaseModel):
    rule_id: str
    category: str
    severity: str
    description: str


def _request_engine(engine: ReviewEngine, overrides: dict | None) -> ReviewEngine:
    if not overrides:
        return engine
    try:
        config = LintConfig.model_validate({**engine.config.model_dump(), **overrides})
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=e.errors(include_url=False, include_context=False),
        ) from e
    return ReviewEngine(config, engine.rules)


@router.post("/lint", response_model=LintResponse)
def lint_workflow(
    body: LintRequest,
    engine: ReviewEngine = Depends(get_review_engine),
) -> LintResponse:
    """Review a workflow document and return ranked findings plus the report."""
    if not body.content.strip():
        raise HTTPException(status_code=400, detail="content is required")

    engine = _request_engine(engine, body.config)
    try:
        result = engine.review(body.content)
    except ParseError as e:
        logger.info("Rejected unparseable workflow: %s", e)
        raise HTTPException(
            status_code=422,
            detail={"message": e.message, "line": e.line, "column": e.column},
        ) from e

    return LintResponse(
        summary=result.summary,
        report=result.report,
        findings=result.findings,
        must_fix_count=len(result.must_fix),
        improvement_count=len(result.improvements),
        checklist=result.checklist,
        failed_rules=result.failed_rules,
    )


@router.get("/rules", response_model=list[RuleInfo])
def list_rules(
    engine: ReviewEngine = Depends(get_review_engine),
) -> list[RuleInfo]:
    """Return the rule catalog in evaluation order."""
    return [
        RuleInfo(
            rule_id=rule.rule_id,
            category=rule.category.value,
            severity=rule.severity.value,
            description=rule.description,
        )
        for rule in engine.rules
    ]
