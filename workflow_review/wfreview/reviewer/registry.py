"""Rule registry and runner: evaluates every rule against a document."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor

from wfreview.config import LintConfig
from wfreview.normalizer.models import NormalizedDocument
from wfreview.reviewer.base import Rule
from wfreview.reviewer.models import Finding, RuleResult
from wfreview.reviewer.practice_rules import PRACTICE_RULES
from wfreview.reviewer.security_rules import SECURITY_RULES
from wfreview.reviewer.style_rules import STYLE_RULES

logger = logging.getLogger(__name__)

RULES: tuple[Rule, ...] = SECURITY_RULES + PRACTICE_RULES + STYLE_RULES


def get_rule(rule_id: str) -> Rule | None:
    for rule in RULES:
        if rule.rule_id == rule_id:
            return rule
    return None


def evaluate_rule(rule: Rule, doc: NormalizedDocument, config: LintConfig) -> RuleResult:
    """Run one rule, keeping the findings it yielded before any fault."""
    findings: list[Finding] = []
    try:
        for finding in rule.check(doc, config):
            findings.append(finding)
    except Exception as e:
        logger.exception(
            "Rule %s failed after %d finding(s); keeping partial results",
            rule.rule_id,
            len(findings),
        )
        return RuleResult(
            rule_id=rule.rule_id,
            findings=findings,
            error=f"{type(e).__name__}: {e}",
        )
    return RuleResult(rule_id=rule.rule_id, findings=findings)


def run_all_rules(
    doc: NormalizedDocument,
    config: LintConfig | None = None,
    rules: tuple[Rule, ...] | None = None,
) -> list[RuleResult]:
    """Evaluate all rules concurrently; results come back in registry order."""
    config = config or LintConfig()
    rules = RULES if rules is None else rules

    with ThreadPoolExecutor(max_workers=config.max_workers) as pool:
        results = list(pool.map(lambda rule: evaluate_rule(rule, doc, config), rules))

    logger.info(
        "Rules produced %d finding(s) across %d rule(s), %d failed",
        sum(len(r.findings) for r in results),
        len(results),
        sum(1 for r in results if r.error),
    )
    return results
