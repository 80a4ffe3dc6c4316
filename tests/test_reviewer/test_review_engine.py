"""Tests for the review engine pipeline."""

from __future__ import annotations

from pathlib import Path

import pytest

from wfreview.config import LintConfig
from wfreview.loader import ParseError
from wfreview.reviewer.engine import ReviewEngine
from wfreview.reviewer.models import FindingSeverity
from wfreview.reviewer.registry import RULES


class TestReviewEngine:
    def test_ci_fixture(self, ci_workflow_path: Path) -> None:
        result = ReviewEngine().review_file(ci_workflow_path)
        rule_ids = {f.rule_id for f in result.findings}
        assert {
            "top-level-permissions",
            "runner-pinning",
            "job-timeout",
            "concurrency-required",
            "shell-strict-mode",
            "destructive-command",
        } <= {f.rule_id for f in result.must_fix}
        assert {
            "push-branch-filter",
            "checkout-credentials",
            "working-directory",
            "name-casing",
            "key-order",
            "step-name-missing",
        } <= rule_ids
        assert result.jobs_reviewed == 1
        assert result.failed_rules == []

    def test_must_fix_ranked_first(self, ci_workflow_path: Path) -> None:
        result = ReviewEngine().review_file(ci_workflow_path)
        severities = [f.severity for f in result.findings]
        first_improvement = severities.index(FindingSeverity.improvement)
        assert all(s is FindingSeverity.improvement for s in severities[first_improvement:])

    def test_clean_fixture(self, clean_workflow_path: Path) -> None:
        result = ReviewEngine().review_file(clean_workflow_path)
        assert result.findings == []
        assert "No issues found." in result.summary
        assert not any(item.flagged for item in result.checklist)

    def test_report_matches_findings(self, ci_workflow_path: Path) -> None:
        result = ReviewEngine().review_file(ci_workflow_path)
        for finding in result.findings:
            assert f"`{finding.rule_id}` at `{finding.location}`" in result.report

    def test_config_changes_outcome(self) -> None:
        text = (
            "permissions: read-all\n"
            "jobs:\n"
            "  build:\n"
            "    runs-on: ubuntu-24.04\n"
            "    timeout-minutes: 45\n"
        )
        strict = ReviewEngine().review(text)
        relaxed = ReviewEngine(LintConfig(max_timeout_minutes=60)).review(text)
        assert "job-timeout" in {f.rule_id for f in strict.findings}
        assert "job-timeout" not in {f.rule_id for f in relaxed.findings}

    def test_parse_error_propagates(self) -> None:
        with pytest.raises(ParseError):
            ReviewEngine().review("jobs:\n  a: 1\n  a: 2\n")

    def test_deep_nesting_is_a_parse_error(self) -> None:
        with pytest.raises(ParseError, match="nests"):
            ReviewEngine().review("a: " + "[" * 3000 + "]" * 3000 + "\n")

    def test_rules_default_to_registry(self) -> None:
        assert ReviewEngine().rules == RULES

    def test_repeat_runs_are_identical(self, ci_workflow_path: Path) -> None:
        engine = ReviewEngine()
        assert engine.review_file(ci_workflow_path).report == engine.review_file(ci_workflow_path).report

    def test_unrelated_key_keeps_existing_findings(self, ci_workflow_path: Path) -> None:
        text = ci_workflow_path.read_text()
        before = {(f.rule_id, f.location) for f in ReviewEngine().review(text).findings}
        after = {(f.rule_id, f.location) for f in ReviewEngine().review(text + "x-owner: platform\n").findings}
        assert before == after
