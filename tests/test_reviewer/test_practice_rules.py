"""Tests for the best-practice rules."""

from __future__ import annotations

from wfreview.config import LintConfig
from wfreview.loader import load
from wfreview.normalizer import normalize
from wfreview.reviewer.models import FindingCategory, FindingSeverity
from wfreview.reviewer.practice_rules import (
    check_artifact_retention,
    check_checkout_credentials,
    check_inline_script_length,
    check_native_cache,
    check_push_branch_filter,
    check_schedule_notification,
    check_working_directory,
)


def _check(check, text: str, **options) -> list:
    return list(check(normalize(load(text)), LintConfig(**options)))


def _steps(steps: str) -> str:
    return "jobs:\n  build:\n    runs-on: ubuntu-24.04\n    steps:\n" + steps


class TestPushBranchFilter:
    def test_unfiltered_push(self) -> None:
        (f,) = _check(check_push_branch_filter, "on:\n  push:\n  pull_request:\n")
        assert f.location == "/on/push"
        assert f.severity is FindingSeverity.improvement

    def test_push_in_event_list(self) -> None:
        (f,) = _check(check_push_branch_filter, "on: [push, pull_request]\n")
        assert f.location == "/on/0"

    def test_filtered_push(self) -> None:
        assert _check(check_push_branch_filter, "on:\n  push:\n    branches: [main]\n") == []

    def test_tag_filter_counts(self) -> None:
        assert _check(check_push_branch_filter, "on:\n  push:\n    tags: ['v*']\n") == []

    def test_no_push(self) -> None:
        assert _check(check_push_branch_filter, "on: pull_request\n") == []


class TestScheduleNotification:
    SCHEDULE = "on:\n  schedule:\n    - cron: '0 3 * * *'\n"

    def test_schedule_without_notification(self) -> None:
        text = self.SCHEDULE + _steps("      - name: Nightly\n        run: make nightly\n")
        (f,) = _check(check_schedule_notification, text)
        assert f.location == "/on/schedule"

    def test_schedule_with_notification(self) -> None:
        text = self.SCHEDULE + _steps(
            "      - name: Nightly\n"
            "        run: make nightly\n"
            "      - name: Notify Slack\n"
            "        if: ${{ failure() }}\n"
            "        uses: slackapi/slack-github-action@v2\n"
        )
        assert _check(check_schedule_notification, text) == []


class TestNativeCache:
    def test_manual_npm_cache(self) -> None:
        text = _steps(
            "      - uses: actions/setup-node@v4\n"
            "      - uses: actions/cache@v4\n"
            "        with:\n"
            "          path: ~/.npm\n"
            "          key: npm-${{ hashFiles('package-lock.json') }}\n"
        )
        (f,) = _check(check_native_cache, text)
        assert f.location == "/jobs/build/steps/1"
        assert f.category is FindingCategory.caching_artifacts
        assert "cache: npm" in f.patch

    def test_build_output_cache_is_fine(self) -> None:
        text = _steps(
            "      - uses: actions/setup-node@v4\n"
            "      - uses: actions/cache@v4\n"
            "        with:\n"
            "          path: build/output\n"
        )
        assert _check(check_native_cache, text) == []

    def test_cache_without_setup_action(self) -> None:
        text = _steps(
            "      - uses: actions/cache@v4\n"
            "        with:\n"
            "          path: ~/.npm\n"
        )
        assert _check(check_native_cache, text) == []


class TestArtifactRetention:
    def test_missing_retention(self) -> None:
        text = _steps("      - uses: actions/upload-artifact@v4\n        with:\n          name: dist\n")
        (f,) = _check(check_artifact_retention, text)
        assert f.location == "/jobs/build/steps/0"

    def test_long_retention(self) -> None:
        text = _steps("      - uses: actions/upload-artifact@v4\n        with:\n          retention-days: 30\n")
        (f,) = _check(check_artifact_retention, text)
        assert f.location == "/jobs/build/steps/0/with/retention-days"

    def test_short_retention(self) -> None:
        text = _steps("      - uses: actions/upload-artifact@v4\n        with:\n          retention-days: 3\n")
        assert _check(check_artifact_retention, text) == []

    def test_configured_limit(self) -> None:
        text = _steps("      - uses: actions/upload-artifact@v4\n        with:\n          retention-days: 7\n")
        assert _check(check_artifact_retention, text, max_retention_days=7) == []


class TestWorkingDirectory:
    def test_cd_in_script(self) -> None:
        (f,) = _check(check_working_directory, _steps("      - run: cd app && make\n"))
        assert f.location == "/jobs/build/steps/0/run"

    def test_cd_after_separator(self) -> None:
        text = _steps("      - run: |\n          make\n          make -C docs; cd out\n")
        assert len(_check(check_working_directory, text)) == 1

    def test_no_cd(self) -> None:
        assert _check(check_working_directory, _steps("      - run: make -C app\n")) == []


class TestInlineScriptLength:
    LONG = "      - run: |\n" + "".join(f"          echo {i}\n" for i in range(11))

    def test_long_script(self) -> None:
        (f,) = _check(check_inline_script_length, _steps(self.LONG))
        assert "11 lines" in f.title

    def test_configured_limit(self) -> None:
        assert _check(check_inline_script_length, _steps(self.LONG), max_inline_script_lines=20) == []

    def test_comments_and_blank_lines_do_not_count(self) -> None:
        script = "      - run: |\n" + "".join(
            f"          # step {i}\n\n          echo {i}\n" for i in range(5)
        )
        assert _check(check_inline_script_length, _steps(script)) == []


class TestCheckoutCredentials:
    def test_default_checkout(self) -> None:
        (f,) = _check(check_checkout_credentials, _steps("      - uses: actions/checkout@v4\n"))
        assert f.location == "/jobs/build/steps/0"
        assert "persist-credentials: false" in f.patch

    def test_disabled_persistence(self) -> None:
        text = _steps(
            "      - uses: actions/checkout@v4\n"
            "        with:\n"
            "          persist-credentials: false\n"
        )
        assert _check(check_checkout_credentials, text) == []
