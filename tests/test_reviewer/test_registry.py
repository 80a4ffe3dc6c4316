"""Tests for the rule registry and runner."""

from __future__ import annotations

from wfreview.config import LintConfig
from wfreview.loader import load
from wfreview.normalizer import normalize
from wfreview.reviewer.base import Rule, new_finding
from wfreview.reviewer.models import FindingCategory, FindingSeverity
from wfreview.reviewer.registry import RULES, evaluate_rule, get_rule, run_all_rules

_TEXT = "on: push\njobs:\n  build:\n    runs-on: ubuntu-latest\n"


def _doc():
    return normalize(load(_TEXT))


def _partial_then_fail(doc, config):
    yield new_finding(
        doc, "flaky", FindingSeverity.improvement,
        FindingCategory.ordering_naming, "/jobs/build", title="First",
    )
    raise RuntimeError("rule bug")


def _always_one(doc, config):
    yield new_finding(
        doc, "steady", FindingSeverity.must_fix,
        FindingCategory.pinning_timeouts, "/jobs/build/runs-on", title="Steady",
    )


FLAKY = Rule("flaky", FindingCategory.ordering_naming, FindingSeverity.improvement, "Fails midway", _partial_then_fail)
STEADY = Rule("steady", FindingCategory.pinning_timeouts, FindingSeverity.must_fix, "Always one", _always_one)


class TestCatalog:
    def test_rule_ids_are_unique(self) -> None:
        ids = [rule.rule_id for rule in RULES]
        assert len(ids) == len(set(ids))

    def test_get_rule(self) -> None:
        assert get_rule("job-timeout").severity is FindingSeverity.must_fix
        assert get_rule("does-not-exist") is None

    def test_every_category_has_a_rule(self) -> None:
        assert {rule.category for rule in RULES} == set(FindingCategory)


class TestFaultIsolation:
    def test_partial_results_are_kept(self) -> None:
        result = evaluate_rule(FLAKY, _doc(), LintConfig())
        assert [f.title for f in result.findings] == ["First"]
        assert result.error == "RuntimeError: rule bug"

    def test_other_rules_still_run(self) -> None:
        results = run_all_rules(_doc(), LintConfig(), (FLAKY, STEADY))
        assert [r.rule_id for r in results] == ["flaky", "steady"]
        assert results[0].error is not None
        assert results[1].error is None
        assert len(results[1].findings) == 1


class TestRunAllRules:
    def test_results_follow_registry_order(self) -> None:
        results = run_all_rules(_doc())
        assert [r.rule_id for r in results] == [rule.rule_id for rule in RULES]
        assert all(r.error is None for r in results)

    def test_deterministic(self) -> None:
        first = run_all_rules(_doc(), LintConfig(max_workers=4))
        second = run_all_rules(_doc(), LintConfig(max_workers=1))
        assert first == second

    def test_findings_carry_document_order(self) -> None:
        results = run_all_rules(_doc())
        pinning = next(r for r in results if r.rule_id == "runner-pinning")
        (finding,) = pinning.findings
        assert finding.order == _doc().source.order_of("/jobs/build/runs-on")
