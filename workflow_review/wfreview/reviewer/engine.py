"""Review engine: load, normalize, run rules, aggregate and render."""

from __future__ import annotations

import logging
from pathlib import Path

from wfreview.config import LintConfig
from wfreview.loader import WorkflowDocument, load, load_file
from wfreview.normalizer import normalize
from wfreview.report.renderer import render, render_summary
from wfreview.reviewer.aggregator import aggregate, checklist
from wfreview.reviewer.base import Rule
from wfreview.reviewer.models import ReviewResult
from wfreview.reviewer.registry import RULES, run_all_rules

logger = logging.getLogger(__name__)


class ReviewEngine:
    """Runs the deterministic review pipeline over workflow documents."""

    def __init__(self, config: LintConfig | None = None, rules: tuple[Rule, ...] = RULES) -> None:
        self._config = config or LintConfig()
        self._rules = rules

    @property
    def config(self) -> LintConfig:
        return self._config

    @property
    def rules(self) -> tuple[Rule, ...]:
        return self._rules

    def review(self, text: str) -> ReviewResult:
        """Review workflow text. Raises ParseError if it cannot be loaded."""
        return self.review_document(load(text))

    def review_file(self, path: str | Path) -> ReviewResult:
        return self.review_document(load_file(path))

    def review_document(self, document: WorkflowDocument) -> ReviewResult:
        normalized = normalize(document)
        results = run_all_rules(normalized, self._config, self._rules)
        findings = aggregate(results)
        failed = [r.rule_id for r in results if r.error]
        if failed:
            logger.warning("Rules failed during review: %s", ", ".join(failed))

        result = ReviewResult(
            findings=findings,
            checklist=checklist(findings),
            summary=render_summary(normalized, findings),
            report=render(document, findings),
            jobs_reviewed=len(normalized.jobs),
            failed_rules=failed,
        )
        logger.info(
            "Reviewed %d job(s): %d must-fix, %d improvement(s)",
            result.jobs_reviewed,
            len(result.must_fix),
            len(result.improvements),
        )
        return result
