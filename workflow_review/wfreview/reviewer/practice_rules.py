"""Logic and best-practice rules: improvement candidates."""

from __future__ import annotations

import re
from typing import Iterator

from wfreview.config import LintConfig
from wfreview.loader.models import join_pointer, scalar_text
from wfreview.normalizer.expressions import logical_lines
from wfreview.normalizer.models import NormalizedDocument, Step
from wfreview.reviewer.base import Rule, iter_steps, new_finding, step_label
from wfreview.reviewer.models import Finding, FindingCategory, FindingSeverity

PUSH_FILTER_KEYS = ("branches", "branches-ignore", "tags", "tags-ignore", "paths", "paths-ignore")

NOTIFICATION_HINTS = (
    "slack", "notify", "notification", "discord", "teams", "mail",
    "webhook", "pagerduty", "opsgenie", "create-an-issue", "gh issue create",
)

# Setup actions with a built-in dependency cache, and the input enabling it
NATIVE_CACHE_SETUP = {
    "actions/setup-node": "cache: npm",
    "actions/setup-python": "cache: pip",
    "actions/setup-java": "cache: maven",
    "actions/setup-go": "cache: true",
    "actions/setup-dotnet": "cache: true",
    "ruby/setup-ruby": "bundler-cache: true",
}

DEPENDENCY_DIRS = (
    "node_modules", ".npm", ".yarn", ".pnpm-store", ".cache/pip", "pip-cache",
    ".venv", ".m2", ".gradle", "go/pkg/mod", "go-build", "vendor/bundle", ".nuget",
)

CD_RE = re.compile(r"(?:^|&&|;|\|\||\()\s*(?:cd|pushd)\s+\S")


def _runs(doc: NormalizedDocument) -> Iterator[tuple[str, Step, str]]:
    for job, step in iter_steps(doc):
        if step.run is not None:
            yield step_label(job, step), step, step.run.value


def check_push_branch_filter(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """push triggers are restricted to branches, tags or paths."""
    trigger = doc.trigger("push")
    if trigger is None:
        return
    filters = trigger.filters
    if filters is not None and any(key in filters for key in PUSH_FILTER_KEYS):
        return
    yield new_finding(
        doc, "push-branch-filter", FindingSeverity.improvement,
        FindingCategory.triggers_permissions, trigger.path,
        title="`push` trigger has no branch filter",
        why="Every push to every branch starts a run; pull_request already covers feature branches.",
        change="Restrict `push` to the default branch and rely on `pull_request` for the rest.",
        patch="on:\n  push:\n    branches: [main]\n  pull_request:",
    )


def _is_notification(step: Step) -> bool:
    text = " ".join(
        part.value for part in (step.uses, step.name, step.run) if part is not None
    ).lower()
    return any(hint in text for hint in NOTIFICATION_HINTS)


def check_schedule_notification(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Scheduled workflows report their failures somewhere."""
    trigger = doc.trigger("schedule")
    if trigger is None:
        return
    if any(_is_notification(step) for _, step in iter_steps(doc)):
        return
    yield new_finding(
        doc, "schedule-notification", FindingSeverity.improvement,
        FindingCategory.triggers_permissions, trigger.path,
        title="Scheduled workflow has no failure notification",
        why="Nobody watches scheduled runs, so failures go unnoticed.",
        change="Add a notification step that runs on failure.",
        patch=(
            "- name: Notify On Failure\n"
            "  if: ${{ failure() }}\n"
            "  uses: slackapi/slack-github-action@v2"
        ),
    )


def check_native_cache(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Prefer the setup action's own cache over a manual actions/cache step."""
    for job in doc.jobs:
        setups = [s.action for s in job.steps if s.action in NATIVE_CACHE_SETUP]
        if not setups:
            continue
        for step in job.steps:
            if not step.action.startswith("actions/cache"):
                continue
            path = scalar_text(step.with_value("path")) or ""
            if not any(d in path for d in DEPENDENCY_DIRS):
                continue
            setup = setups[0]
            yield new_finding(
                doc, "native-cache", FindingSeverity.improvement,
                FindingCategory.caching_artifacts, step.path,
                title=f"Manual dependency cache where `{setup}` can cache natively",
                why="The built-in cache derives keys from the lock file and needs no extra step.",
                change=f"Remove the `actions/cache` step and enable caching on `{setup}`.",
                patch=f"- uses: {setup}@v4\n  with:\n    {NATIVE_CACHE_SETUP[setup]}",
            )


def check_artifact_retention(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Uploaded artifacts carry a short retention period."""
    limit = config.max_retention_days
    for job, step in iter_steps(doc):
        if step.action != "actions/upload-artifact":
            continue
        retention = step.with_value("retention-days")
        if retention is None:
            yield new_finding(
                doc, "artifact-retention", FindingSeverity.improvement,
                FindingCategory.caching_artifacts, step.path,
                title=f"Artifact upload in {step_label(job, step)} has no `retention-days`",
                why="Artifacts default to 90 days of storage.",
                change=f"Set `retention-days` to {limit} or fewer.",
                patch=f"with:\n  retention-days: {limit}",
            )
            continue
        days = scalar_text(retention)
        if days is not None and days.strip().isdigit() and int(days) > limit:
            yield new_finding(
                doc, "artifact-retention", FindingSeverity.improvement,
                FindingCategory.caching_artifacts,
                join_pointer(step.path, "with", "retention-days"),
                title=f"Artifact retention of {int(days)} days exceeds {limit}",
                why="Long retention costs storage for artifacts nobody downloads.",
                change=f"Lower `retention-days` to {limit} or fewer.",
                patch=f"retention-days: {limit}",
            )


def check_working_directory(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Use `working-directory` instead of `cd` in scripts."""
    for label, step, script in _runs(doc):
        if any(CD_RE.search(line) for line in logical_lines(script)):
            yield new_finding(
                doc, "working-directory", FindingSeverity.improvement,
                FindingCategory.idempotent_operations, join_pointer(step.path, "run"),
                title=f"Directory change inside the script of {label}",
                why="`cd` hides the step's real working directory and leaks into later commands.",
                change="Set `working-directory` on the step instead.",
                patch="working-directory: <dir>",
            )


def check_inline_script_length(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Long inline scripts belong in a versioned script file."""
    limit = config.max_inline_script_lines
    for label, step, script in _runs(doc):
        count = len(logical_lines(script))
        if count > limit:
            yield new_finding(
                doc, "inline-script-length", FindingSeverity.improvement,
                FindingCategory.idempotent_operations, join_pointer(step.path, "run"),
                title=f"Inline script of {label} has {count} lines (limit {limit})",
                why="Long inline scripts cannot be linted, tested or reused.",
                change="Extract the script to a file under the repository and call it.",
                patch="run: ./scripts/<name>.sh",
            )


def check_checkout_credentials(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """actions/checkout should not persist the token in .git/config."""
    for job, step in iter_steps(doc):
        if step.action != "actions/checkout":
            continue
        persist = scalar_text(step.with_value("persist-credentials"))
        if persist is not None and persist.strip().lower() == "false":
            continue
        yield new_finding(
            doc, "checkout-credentials", FindingSeverity.improvement,
            FindingCategory.triggers_permissions, step.path,
            title=f"Checkout in {step_label(job, step)} persists credentials",
            why="The token stays in .git/config for every later step to read.",
            change="Set `persist-credentials: false` unless later steps push.",
            patch="with:\n  persist-credentials: false",
        )


PRACTICE_RULES: tuple[Rule, ...] = (
    Rule("push-branch-filter", FindingCategory.triggers_permissions, FindingSeverity.improvement,
         "push triggers are filtered", check_push_branch_filter),
    Rule("schedule-notification", FindingCategory.triggers_permissions, FindingSeverity.improvement,
         "Scheduled workflows notify on failure", check_schedule_notification),
    Rule("native-cache", FindingCategory.caching_artifacts, FindingSeverity.improvement,
         "Setup actions cache dependencies natively", check_native_cache),
    Rule("artifact-retention", FindingCategory.caching_artifacts, FindingSeverity.improvement,
         "Artifacts have short retention", check_artifact_retention),
    Rule("working-directory", FindingCategory.idempotent_operations, FindingSeverity.improvement,
         "working-directory instead of cd", check_working_directory),
    Rule("inline-script-length", FindingCategory.idempotent_operations, FindingSeverity.improvement,
         "Inline scripts stay short", check_inline_script_length),
    Rule("checkout-credentials", FindingCategory.triggers_permissions, FindingSeverity.improvement,
         "Checkout does not persist credentials", check_checkout_credentials),
)
