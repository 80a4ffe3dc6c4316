"""Security and reliability rules: the must-fix candidates."""

from __future__ import annotations

import re
from typing import Iterator

from wfreview.config import LintConfig
from wfreview.loader.models import MappingNode, ScalarNode, join_pointer, scalar_text
from wfreview.normalizer.engine import pointed_scalars
from wfreview.normalizer.expressions import (
    EXPRESSION_RE,
    MATRIX_REF_RE,
    is_wrapped_expression,
    logical_lines,
)
from wfreview.normalizer.models import Job, NormalizedDocument, SecretScope
from wfreview.reviewer.base import Rule, iter_steps, job_label, new_finding, step_label
from wfreview.reviewer.models import Finding, FindingCategory, FindingSeverity

STRICT_MODE_PREFIX = "set -euo pipefail"

# Shells for which `set -euo pipefail` is meaningless
NON_POSIX_SHELLS = {"pwsh", "powershell", "cmd", "python"}

DESTRUCTIVE_RE = re.compile(
    r"\brm\s+(?:-\S+\s+)*?(?:-[A-Za-z]*[rR][A-Za-z]*|--recursive)\b|\bfind\b.*\s-delete\b"
)
EXISTENCE_CHECK_RE = re.compile(r"\[\[?\s*-[defL]\s|\btest\s+-[defL]\s")

MOVING_REFS = {"main", "master", "latest", "head", "dev", "develop", "trunk"}

UNTRUSTED_INPUT_RE = re.compile(
    r"github\.head_ref\b"
    r"|github\.event\.[\w.\[\]*'\"-]*?\b"
    r"(?:title|body|message|email|label|page_name|head_branch|head\.ref|head\.label)\b"
)

PR_HEAD_RE = re.compile(r"github\.event\.pull_request\.head\.|github\.head_ref\b")

CONCURRENCY_GROUP_PATTERNS = {
    "head_ref_or_ref_name": (
        re.compile(r"github\.head_ref\s*\|\|\s*github\.ref_name\b"),
        "${{ github.workflow }}-${{ github.head_ref || github.ref_name }}",
    ),
    "head_ref_or_ref": (
        re.compile(r"github\.head_ref\s*\|\|\s*github\.ref\b"),
        "${{ github.workflow }}-${{ github.head_ref || github.ref }}",
    ),
}


def resolved_runner_labels(job: Job) -> Iterator[tuple[str, str]]:
    """Yield (pointer, label) for a job's runners, expanding ``${{ matrix.x }}``."""
    matrix = job.matrix if isinstance(job.matrix, MappingNode) else None
    for pointer, label in job.runs_on:
        match = MATRIX_REF_RE.match(label.value.strip())
        if match and matrix is not None:
            var = match.group(1)
            values_path = join_pointer(job.path, "strategy", "matrix", var)
            for value_pointer, value in pointed_scalars(matrix.get(var), values_path):
                yield value_pointer, value.value
        else:
            yield pointer, label.value


def check_top_level_permissions(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Workflows must declare top-level permissions."""
    if doc.permissions is None:
        yield new_finding(
            doc, "top-level-permissions", FindingSeverity.must_fix,
            FindingCategory.triggers_permissions, "/permissions",
            title="Missing top-level `permissions`",
            why=(
                "Without an explicit block the GITHUB_TOKEN gets the repository "
                "default scopes, which are often read/write."
            ),
            change="Declare least-privilege permissions at the workflow root.",
            patch="permissions:\n  contents: read",
        )


def check_write_all_permissions(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Flag blanket write-all grants."""
    scopes = [doc.permissions] + [job.permissions for job in doc.jobs]
    for perms in scopes:
        if perms is not None and perms.level == "write-all":
            yield new_finding(
                doc, "permissions-write-all", FindingSeverity.must_fix,
                FindingCategory.triggers_permissions, perms.path,
                title="`permissions: write-all` grants every scope",
                why="A compromised step could push code, publish packages or edit releases.",
                change="List only the scopes the jobs need.",
                patch="permissions:\n  contents: read",
            )


def check_runner_pinning(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Runner labels must name a fixed image version."""
    denylist = config.runner_denylist
    for job in doc.jobs:
        for pointer, label in resolved_runner_labels(job):
            if label in config.exempt_runners or not denylist.search(label):
                continue
            pinned = label.replace("-latest", "-24.04") if label.startswith("ubuntu") else None
            yield new_finding(
                doc, "runner-pinning", FindingSeverity.must_fix,
                FindingCategory.pinning_timeouts, pointer,
                title=f"Job '{job_label(job)}' runs on floating image `{label}`",
                why="Floating runner images change underneath the workflow and break builds without a code change.",
                change="Pin the runner to an explicit image version.",
                patch=f"runs-on: {pinned}" if pinned else None,
            )


def check_slim_runner_secrets(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Exempt (slim) runners must not handle secrets unless declared safe."""
    for job in doc.jobs:
        slim = [(p, label) for p, label in resolved_runner_labels(job) if label in config.exempt_runners]
        if not slim:
            continue
        if not any(ref.job_id == job.job_id for ref in doc.secret_refs):
            continue
        if job.key is not None and doc.source.has_marker(job.key.line, config.justification):
            continue
        pointer, label = slim[0]
        yield new_finding(
            doc, "slim-runner-secrets", FindingSeverity.must_fix,
            FindingCategory.triggers_permissions, pointer,
            title=f"Job '{job_label(job)}' references secrets on `{label}`",
            why=f"`{label}` is exempt from image pinning, so it must not receive credentials unreviewed.",
            change="Move the secret-consuming steps to a pinned runner, or mark the job as reviewed.",
            patch=f"{job.job_id}:  # reviewed: secrets required on {label}",
        )


def check_secret_scope(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Secrets belong in step-level `with`/`env`, not workflow or job env."""
    jobs = {job.job_id: job for job in doc.jobs}
    for ref in doc.secret_refs:
        if ref.scope is SecretScope.root_env:
            yield new_finding(
                doc, "secret-scope", FindingSeverity.must_fix,
                FindingCategory.triggers_permissions, ref.path,
                title=f"Secret `{ref.expression}` exposed in workflow-level `env`",
                why="Workflow-level env is visible to every step of every job, including third-party actions.",
                change="Pass the secret only to the step that needs it.",
                patch=f"- name: Use Secret\n  env:\n    TOKEN: {ref.expression}",
            )
        elif ref.scope is SecretScope.job_env:
            job = jobs.get(ref.job_id or "")
            env_key = job.node.key_node("env") if job is not None else None
            if doc.source.has_marker(ref.line, config.justification):
                continue
            if env_key is not None and doc.source.has_marker(env_key.line, config.justification):
                continue
            yield new_finding(
                doc, "secret-scope", FindingSeverity.must_fix,
                FindingCategory.triggers_permissions, ref.path,
                title=f"Secret `{ref.expression}` exposed in job-level `env` of '{ref.job_id}'",
                why="Job-level env is visible to every step of the job.",
                change="Move the secret to the step that uses it, or add a `# reviewed` justification comment.",
            )


def check_shell_strict_mode(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Multi-line scripts must start with strict mode."""
    for job, step in iter_steps(doc):
        if step.run is None or not step.run.is_block:
            continue
        shell = step.shell.value.split() if step.shell is not None else []
        if shell and shell[0] in NON_POSIX_SHELLS:
            continue
        lines = logical_lines(step.run.value)
        if len(lines) <= 1 or step.run.value.lstrip().startswith(STRICT_MODE_PREFIX):
            continue
        yield new_finding(
            doc, "shell-strict-mode", FindingSeverity.must_fix,
            FindingCategory.idempotent_operations, join_pointer(step.path, "run"),
            title=f"Multi-line script of {step_label(job, step)} lacks `{STRICT_MODE_PREFIX}`",
            why="Without strict mode a failing command in the middle of the script is silently ignored.",
            change=f"Begin the script with `{STRICT_MODE_PREFIX}`.",
            patch=f"run: |\n  {STRICT_MODE_PREFIX}\n  {lines[0]}",
        )


def check_job_timeout(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Every job declares a bounded timeout."""
    for job in doc.jobs:
        if job.is_reusable_call:
            continue
        if job.timeout_node is None:
            yield new_finding(
                doc, "job-timeout", FindingSeverity.must_fix,
                FindingCategory.pinning_timeouts, job.path,
                title=f"Job '{job_label(job)}' has no `timeout-minutes`",
                why="A hung job holds a runner for the 6 hour default.",
                change="Set an explicit `timeout-minutes`.",
                patch=f"timeout-minutes: {min(15, config.max_timeout_minutes)}",
            )
            continue
        minutes = job.timeout_minutes
        if minutes is None or minutes <= config.max_timeout_minutes:
            continue
        if doc.source.has_marker(job.timeout_node.line, config.justification):
            continue
        yield new_finding(
            doc, "job-timeout", FindingSeverity.improvement,
            FindingCategory.pinning_timeouts, join_pointer(job.path, "timeout-minutes"),
            title=f"Job '{job_label(job)}' timeout of {minutes} minutes exceeds {config.max_timeout_minutes}",
            why="Long timeouts hide hangs and waste runner minutes.",
            change=(
                f"Lower the timeout to {config.max_timeout_minutes} minutes or less, "
                "or add a justification comment."
            ),
            patch=f"timeout-minutes: {minutes}  # justification: <reason>",
        )


def check_concurrency_required(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """push + pull_request triggers need a concurrency block."""
    if not doc.has_push_and_pull_request or doc.concurrency is not None:
        return
    if doc.jobs and all(job.concurrency is not None for job in doc.jobs):
        return
    _, example = CONCURRENCY_GROUP_PATTERNS[config.concurrency_group_pattern]
    yield new_finding(
        doc, "concurrency-required", FindingSeverity.must_fix,
        FindingCategory.concurrency, "/concurrency",
        title="`push` and `pull_request` triggers without a `concurrency` block",
        why="The same commit runs twice and overlapping runs compete for shared resources.",
        change="Add a workflow-level concurrency group that cancels superseded runs.",
        patch=f"concurrency:\n  group: {example}\n  cancel-in-progress: true",
    )


def check_concurrency_group(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Concurrency groups use the configured head-ref fallback."""
    pattern, example = CONCURRENCY_GROUP_PATTERNS[config.concurrency_group_pattern]
    blocks = [("/concurrency", doc.concurrency)]
    blocks += [(join_pointer(job.path, "concurrency"), job.concurrency) for job in doc.jobs]
    for pointer, block in blocks:
        if block is None:
            continue
        if isinstance(block, MappingNode):
            group = scalar_text(block.get("group"))
            pointer = join_pointer(pointer, "group")
        else:
            group = scalar_text(block)
        if group is not None and pattern.search(group):
            continue
        yield new_finding(
            doc, "concurrency-group-fallback", FindingSeverity.improvement,
            FindingCategory.concurrency, pointer,
            title="Concurrency group does not fall back from the PR head ref",
            why="Without the fallback, push runs and pull request runs share or split groups unpredictably.",
            change="Build the group from the head ref with a fallback to the current ref.",
            patch=f"group: {example}",
        )


def check_destructive_commands(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Recursive deletes need an existence guard or continue-on-error."""
    for job, step in iter_steps(doc):
        if step.run is None or step.continue_on_error:
            continue
        guarded = False
        for line in logical_lines(step.run.value):
            match = DESTRUCTIVE_RE.search(line)
            if match is None:
                guarded = guarded or bool(EXISTENCE_CHECK_RE.search(line))
                continue
            if guarded or EXISTENCE_CHECK_RE.search(line[: match.start()]):
                continue
            yield new_finding(
                doc, "destructive-command", FindingSeverity.must_fix,
                FindingCategory.idempotent_operations, join_pointer(step.path, "run"),
                title=f"Unguarded recursive delete in {step_label(job, step)}",
                why="Re-running the step on a different workspace state can delete the wrong tree or fail.",
                change="Check that the target exists first, or mark the step `continue-on-error: true`.",
                patch=f"if [ -d \"<dir>\" ]; then {match.group(0).strip()} \"<dir>\"; fi",
            )
            break


def check_action_ref_pinning(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Actions and reusable workflows are pinned to a version."""
    targets: list[tuple[str, ScalarNode]] = []
    for job in doc.jobs:
        if job.uses is not None:
            targets.append((join_pointer(job.path, "uses"), job.uses))
        for step in job.steps:
            if step.uses is not None:
                targets.append((join_pointer(step.path, "uses"), step.uses))

    for pointer, uses in targets:
        value = uses.value.strip()
        if value.startswith(("./", "docker://")) or is_wrapped_expression(value):
            continue
        if "@" not in value:
            title = f"`{value}` is not pinned to a version"
        elif value.rsplit("@", 1)[1].lower() in MOVING_REFS:
            title = f"`{value}` tracks a moving branch"
        else:
            continue
        yield new_finding(
            doc, "action-ref-pinning", FindingSeverity.must_fix,
            FindingCategory.pinning_timeouts, pointer,
            title=title,
            why="Unpinned actions pull whatever the upstream branch holds at run time.",
            change="Pin to a release tag or, preferably, a full commit SHA.",
            patch=f"uses: {value.split('@', 1)[0]}@<commit-sha>  # vX.Y.Z",
        )


def check_script_injection(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Untrusted event fields must not be interpolated into scripts."""
    for job, step in iter_steps(doc):
        if step.run is None:
            continue
        for match in EXPRESSION_RE.finditer(step.run.value):
            if UNTRUSTED_INPUT_RE.search(match.group(1)):
                expression = match.group(0)
                yield new_finding(
                    doc, "script-injection", FindingSeverity.must_fix,
                    FindingCategory.triggers_permissions, join_pointer(step.path, "run"),
                    title=f"Untrusted input `{expression}` interpolated into {step_label(job, step)}",
                    why="Attacker-controlled text is spliced into the shell script before it runs.",
                    change="Pass the value through an environment variable and quote it.",
                    patch=f"env:\n  UNTRUSTED_VALUE: {expression}\nrun: echo \"$UNTRUSTED_VALUE\"",
                )
                break


def check_untrusted_checkout(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """pull_request_target must not check out the PR head."""
    if "pull_request_target" not in doc.events:
        return
    for job, step in iter_steps(doc):
        if step.action != "actions/checkout":
            continue
        ref = scalar_text(step.with_value("ref")) or ""
        repository = scalar_text(step.with_value("repository")) or ""
        if PR_HEAD_RE.search(ref) or PR_HEAD_RE.search(repository):
            yield new_finding(
                doc, "untrusted-checkout", FindingSeverity.must_fix,
                FindingCategory.triggers_permissions, join_pointer(step.path, "with"),
                title=f"`pull_request_target` checks out the pull request head in {step_label(job, step)}",
                why="The job runs with repository secrets and write token while executing fork code.",
                change="Use `pull_request` for untrusted code, or check out the base ref only.",
            )


def check_no_jobs(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    if not doc.jobs:
        yield new_finding(
            doc, "no-jobs", FindingSeverity.must_fix,
            FindingCategory.triggers_permissions, "/jobs",
            title="No jobs found",
            why="A workflow without jobs does nothing, or the document is not a workflow.",
            change="Define at least one job under `jobs`.",
        )


SECURITY_RULES: tuple[Rule, ...] = (
    Rule("top-level-permissions", FindingCategory.triggers_permissions, FindingSeverity.must_fix,
         "Workflow declares top-level permissions", check_top_level_permissions),
    Rule("permissions-write-all", FindingCategory.triggers_permissions, FindingSeverity.must_fix,
         "No blanket write-all permissions", check_write_all_permissions),
    Rule("runner-pinning", FindingCategory.pinning_timeouts, FindingSeverity.must_fix,
         "Runner images are pinned, not -latest", check_runner_pinning),
    Rule("slim-runner-secrets", FindingCategory.triggers_permissions, FindingSeverity.must_fix,
         "Unpinned slim runners do not handle secrets unreviewed", check_slim_runner_secrets),
    Rule("secret-scope", FindingCategory.triggers_permissions, FindingSeverity.must_fix,
         "Secrets are scoped to the step that uses them", check_secret_scope),
    Rule("shell-strict-mode", FindingCategory.idempotent_operations, FindingSeverity.must_fix,
         "Multi-line scripts start with set -euo pipefail", check_shell_strict_mode),
    Rule("job-timeout", FindingCategory.pinning_timeouts, FindingSeverity.must_fix,
         "Jobs declare a bounded timeout-minutes", check_job_timeout),
    Rule("concurrency-required", FindingCategory.concurrency, FindingSeverity.must_fix,
         "push + pull_request workflows declare concurrency", check_concurrency_required),
    Rule("concurrency-group-fallback", FindingCategory.concurrency, FindingSeverity.improvement,
         "Concurrency groups fall back from the head ref", check_concurrency_group),
    Rule("destructive-command", FindingCategory.idempotent_operations, FindingSeverity.must_fix,
         "Recursive deletes are guarded", check_destructive_commands),
    Rule("action-ref-pinning", FindingCategory.pinning_timeouts, FindingSeverity.must_fix,
         "Actions are pinned to a version", check_action_ref_pinning),
    Rule("script-injection", FindingCategory.triggers_permissions, FindingSeverity.must_fix,
         "Untrusted event fields are not interpolated into scripts", check_script_injection),
    Rule("untrusted-checkout", FindingCategory.triggers_permissions, FindingSeverity.must_fix,
         "pull_request_target does not check out PR code", check_untrusted_checkout),
    Rule("no-jobs", FindingCategory.triggers_permissions, FindingSeverity.must_fix,
         "Workflow defines jobs", check_no_jobs),
)
