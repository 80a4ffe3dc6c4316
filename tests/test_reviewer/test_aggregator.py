"""Tests for finding aggregation."""

from __future__ import annotations

from wfreview.reviewer.aggregator import aggregate, checklist, partition
from wfreview.reviewer.models import (
    CATEGORY_LABELS,
    Finding,
    FindingCategory,
    FindingSeverity,
    RuleResult,
)


def _finding(
    rule_id: str = "rule-a",
    severity: FindingSeverity = FindingSeverity.improvement,
    category: FindingCategory = FindingCategory.ordering_naming,
    location: str = "/jobs/build",
    order: int = 5,
    title: str = "Test finding",
) -> Finding:
    return Finding(
        rule_id=rule_id,
        severity=severity,
        category=category,
        location=location,
        order=order,
        title=title,
    )


class TestAggregate:
    def test_exact_duplicates_are_dropped(self) -> None:
        results = [
            RuleResult(rule_id="rule-a", findings=[_finding(title="first"), _finding(title="second")]),
        ]
        (f,) = aggregate(results)
        assert f.title == "first"

    def test_different_rules_at_same_location_are_kept(self) -> None:
        results = [
            RuleResult(rule_id="rule-a", findings=[_finding("rule-a")]),
            RuleResult(rule_id="rule-b", findings=[_finding("rule-b")]),
        ]
        assert [f.rule_id for f in aggregate(results)] == ["rule-a", "rule-b"]

    def test_ranking(self) -> None:
        results = [
            RuleResult(rule_id="z", findings=[
                _finding("z", FindingSeverity.improvement, order=1, location="/a"),
                _finding("z", FindingSeverity.must_fix, order=9, location="/b"),
            ]),
            RuleResult(rule_id="a", findings=[
                _finding("a", FindingSeverity.must_fix, order=9, location="/b"),
                _finding("a", FindingSeverity.must_fix, order=2, location="/c"),
            ]),
        ]
        ranked = aggregate(results)
        assert [(f.rule_id, f.location) for f in ranked] == [
            ("a", "/c"),
            ("a", "/b"),
            ("z", "/b"),
            ("z", "/a"),
        ]

    def test_failed_rule_results_still_count(self) -> None:
        results = [RuleResult(rule_id="rule-a", findings=[_finding()], error="RuntimeError: boom")]
        assert len(aggregate(results)) == 1

    def test_empty(self) -> None:
        assert aggregate([]) == []


class TestPartition:
    def test_split_by_severity(self) -> None:
        must = _finding("a", FindingSeverity.must_fix)
        imp = _finding("b", FindingSeverity.improvement)
        assert partition([must, imp]) == ([must], [imp])


class TestChecklist:
    def test_six_items_in_fixed_order(self) -> None:
        items = checklist([])
        assert [i.label for i in items] == [
            "Triggers & Permissions",
            "Pinning & Timeouts",
            "Caching & Artifacts",
            "Key Ordering & Naming",
            "Concurrency",
            "Idempotent Operations",
        ]
        assert not any(i.flagged for i in items)
        assert len(items) == len(CATEGORY_LABELS)

    def test_flagged_when_category_has_findings(self) -> None:
        items = checklist([
            _finding("a", category=FindingCategory.concurrency),
            _finding("b", category=FindingCategory.concurrency, location="/x"),
        ])
        flagged = {i.category: i.count for i in items if i.flagged}
        assert flagged == {FindingCategory.concurrency: 2}
