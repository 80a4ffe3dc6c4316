"""Tests for the style and consistency rules."""

from __future__ import annotations

from wfreview.config import LintConfig
from wfreview.loader import load
from wfreview.normalizer import normalize
from wfreview.reviewer.models import FindingCategory, FindingSeverity
from wfreview.reviewer.style_rules import (
    check_anchor_usage,
    check_block_scalar_single_line,
    check_identifier_case,
    check_if_expression_wrapper,
    check_key_order,
    check_matrix_job_name,
    check_name_casing,
    check_step_name_missing,
    suggest_title,
    title_case_violations,
)


def _check(check, text: str, **options) -> list:
    return list(check(normalize(load(text)), LintConfig(**options)))


def _steps(steps: str) -> str:
    return "jobs:\n  build:\n    runs-on: ubuntu-24.04\n    steps:\n" + steps


class TestTitleCase:
    def test_all_words_policy(self) -> None:
        assert title_case_violations("Build and test", "all_words_capitalized") == ["and", "test"]

    def test_standard_policy_allows_inner_minor_words(self) -> None:
        assert title_case_violations("Build and Test", "standard_title_case") == []
        assert title_case_violations("Build and Test", "all_words_capitalized") == ["and"]

    def test_minor_word_at_edges(self) -> None:
        assert title_case_violations("of Mice", "standard_title_case") == ["of"]

    def test_expressions_and_identifiers_are_ignored(self) -> None:
        assert title_case_violations("Test ${{ matrix.os }}", "all_words_capitalized") == []
        assert title_case_violations("Upload coverage.xml", "all_words_capitalized") == []
        assert title_case_violations("Build (3.12)", "all_words_capitalized") == []

    def test_suggestion(self) -> None:
        assert suggest_title("build and test", "all_words_capitalized") == "Build And Test"
        assert suggest_title("build and test", "standard_title_case") == "Build and Test"


class TestNameCasing:
    def test_job_and_step_names(self) -> None:
        text = (
            "jobs:\n"
            "  build:\n"
            "    name: build app\n"
            "    steps:\n"
            "      - name: Run Tests\n"
            "      - name: upload results\n"
        )
        findings = _check(check_name_casing, text)
        assert [f.location for f in findings] == ["/jobs/build/name", "/jobs/build/steps/1/name"]
        assert findings[0].patch == "name: Build App"
        assert findings[0].severity is FindingSeverity.improvement
        assert findings[0].category is FindingCategory.ordering_naming

    def test_casing_policy_is_configurable(self) -> None:
        text = "jobs:\n  build:\n    name: Lint and Test\n"
        assert len(_check(check_name_casing, text)) == 1
        assert _check(check_name_casing, text, casing_policy="standard_title_case") == []


class TestIdentifierCase:
    def test_camel_case_step_id(self) -> None:
        (f,) = _check(check_identifier_case, _steps("      - id: buildStep\n        run: make\n"))
        assert f.location == "/jobs/build/steps/0/id"
        assert "`buildstep`" in f.change

    def test_snake_case_passes(self) -> None:
        assert _check(check_identifier_case, _steps("      - id: build_step\n        run: make\n")) == []

    def test_dispatch_inputs(self) -> None:
        text = "on:\n  workflow_dispatch:\n    inputs:\n      dry-run:\n        type: boolean\n"
        (f,) = _check(check_identifier_case, text)
        assert f.location == "/on/workflow_dispatch/inputs/dry-run"
        assert "`dry_run`" in f.change


class TestMatrixJobName:
    BASE = (
        "jobs:\n"
        "  test:\n"
        "    name: {name}\n"
        "    strategy:\n"
        "      matrix:\n"
        "        os: [ubuntu-24.04, windows-2022]\n"
    )

    def test_static_name(self) -> None:
        (f,) = _check(check_matrix_job_name, self.BASE.format(name="Test"))
        assert f.location == "/jobs/test/name"

    def test_interpolated_name(self) -> None:
        assert _check(check_matrix_job_name, self.BASE.format(name="Test (${{ matrix.os }})")) == []


class TestBlockScalarSingleLine:
    def test_single_line_block(self) -> None:
        text = _steps("      - run: |\n          make\n        name: Build\n")
        (f,) = _check(check_block_scalar_single_line, text)
        assert f.location == "/jobs/build/steps/0/run"
        assert f.patch == "run: make"

    def test_multi_line_block(self) -> None:
        text = _steps("      - run: |\n          make\n          make test\n")
        assert _check(check_block_scalar_single_line, text) == []

    def test_block_at_end_of_file(self) -> None:
        assert len(_check(check_block_scalar_single_line, "description: >\n  One line\n")) == 1


class TestAnchorUsage:
    def test_anchor_and_alias(self) -> None:
        findings = _check(check_anchor_usage, "x: &base 1\ny: *base\n")
        assert [f.location for f in findings] == ["/x", "/y"]
        assert "&base" in findings[0].title
        assert "*base" in findings[1].title

    def test_nested_anchor_reported_once(self) -> None:
        findings = _check(check_anchor_usage, "x: &outer {inner: &in 1}\ny: *outer\n")
        assert [f.location for f in findings] == ["/x", "/x/inner", "/y"]


class TestIfExpressionWrapper:
    def test_bare_condition(self) -> None:
        text = _steps("      - if: github.ref == 'refs/heads/main'\n        run: make\n")
        (f,) = _check(check_if_expression_wrapper, text)
        assert f.location == "/jobs/build/steps/0/if"
        assert f.patch == "if: ${{ github.ref == 'refs/heads/main' }}"

    def test_wrapped_condition(self) -> None:
        text = _steps("      - if: ${{ success() }}\n        run: make\n")
        assert _check(check_if_expression_wrapper, text) == []


class TestKeyOrder:
    def test_jobs_name_on(self) -> None:
        text = "jobs:\n  build:\n    runs-on: ubuntu-24.04\nname: CI\non: push\n"
        findings = _check(check_key_order, text)
        assert len(findings) == 2
        assert [f.location for f in findings] == ["/name", "/on"]
        assert "name, on, jobs" in findings[0].change

    def test_canonical_order_passes(self) -> None:
        text = "name: CI\non: push\npermissions: read-all\njobs:\n  build:\n    runs-on: x\n"
        assert _check(check_key_order, text) == []

    def test_step_keys(self) -> None:
        text = _steps("      - run: make\n        name: Build\n")
        (f,) = _check(check_key_order, text)
        assert f.location == "/jobs/build/steps/0/name"

    def test_unknown_keys_are_ignored(self) -> None:
        text = "jobs:\n  build:\n    custom: 1\n    runs-on: x\n"
        assert _check(check_key_order, text) == []


class TestStepNameMissing:
    def test_unnamed_step(self) -> None:
        text = _steps("      - uses: actions/checkout@v4\n      - name: Build\n        run: make\n")
        (f,) = _check(check_step_name_missing, text)
        assert f.location == "/jobs/build/steps/0"
        assert "actions/checkout@v4" in f.title
