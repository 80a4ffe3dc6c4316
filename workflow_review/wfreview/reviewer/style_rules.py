"""Deterministic style and consistency rules."""

from __future__ import annotations

import re
from typing import Iterator

from wfreview.config import CasingPolicy, LintConfig
from wfreview.loader.models import (
    MappingNode,
    NodeStyle,
    ScalarNode,
    join_pointer,
    walk,
)
from wfreview.normalizer.engine import JOB_KEYS, ROOT_KEYS, STEP_KEYS
from wfreview.normalizer.expressions import EXPRESSION_RE, is_wrapped_expression
from wfreview.normalizer.models import NormalizedDocument
from wfreview.reviewer.base import Rule, iter_steps, job_label, new_finding
from wfreview.reviewer.models import Finding, FindingCategory, FindingSeverity

SNAKE_CASE_RE = re.compile(r"^[a-z][a-z0-9_]*$")

# Words standard title case leaves lowercase unless first or last
MINOR_WORDS = {
    "a", "an", "and", "as", "at", "but", "by", "for", "in", "nor",
    "of", "on", "or", "per", "the", "to", "via", "vs", "with",
}

# Tokens that look like identifiers, paths or files are not prose words
_IDENTIFIER_CHARS = set("/._@=:")
_LEADING_PUNCT = "([{'\"`<"


def _title_case_words(text: str) -> list[str]:
    return EXPRESSION_RE.sub(" ", text).split()


def title_case_violations(text: str, policy: CasingPolicy) -> list[str]:
    """Return the words of *text* that break the casing policy.

    Only the first letter of each word is checked, so hyphenated words
    are judged by their first part. Words starting with a digit or
    punctuation, and identifier-like tokens, are ignored.
    """
    words = _title_case_words(text)
    bad: list[str] = []
    for i, raw in enumerate(words):
        word = raw.lstrip(_LEADING_PUNCT)
        if not word or not word[0].isalpha() or _IDENTIFIER_CHARS & set(word):
            continue
        if word[0].isupper():
            continue
        inner = 0 < i < len(words) - 1
        if policy == "standard_title_case" and inner and word.lower() in MINOR_WORDS:
            continue
        bad.append(raw)
    return bad


def suggest_title(text: str, policy: CasingPolicy) -> str:
    bad = set(title_case_violations(text, policy))
    out = []
    for token in text.split(" "):
        if token in bad:
            stripped = token.lstrip(_LEADING_PUNCT)
            prefix = token[: len(token) - len(stripped)]
            token = prefix + stripped[:1].upper() + stripped[1:]
        out.append(token)
    return " ".join(out)


def check_name_casing(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Job and step names follow the configured title casing."""
    policy = config.casing_policy
    names: list[tuple[str, ScalarNode]] = []
    for job in doc.jobs:
        if job.name is not None:
            names.append((join_pointer(job.path, "name"), job.name))
        for step in job.steps:
            if step.name is not None:
                names.append((join_pointer(step.path, "name"), step.name))

    for pointer, name in names:
        bad = title_case_violations(name.value, policy)
        if not bad:
            continue
        yield new_finding(
            doc, "name-casing", FindingSeverity.improvement,
            FindingCategory.ordering_naming, pointer,
            title=f"Name '{name.value}' is not in Title Case",
            why="Consistent names make the run summary and required checks easy to scan.",
            change=f"Capitalize: {', '.join(bad)}.",
            patch=f"name: {suggest_title(name.value, policy)}",
        )


def _identifier_keys(doc: NormalizedDocument) -> Iterator[tuple[str, str]]:
    for job in doc.jobs:
        for step in job.steps:
            if step.id is not None and "${{" not in step.id.value:
                yield join_pointer(step.path, "id"), step.id.value
        if job.outputs is not None:
            for key in job.outputs.keys():
                yield join_pointer(job.path, "outputs", key), key

    for event in ("workflow_dispatch", "workflow_call"):
        trigger = doc.trigger(event)
        if trigger is None or trigger.filters is None:
            continue
        for section in ("inputs", "outputs", "secrets"):
            block = trigger.filters.get(section)
            if isinstance(block, MappingNode):
                for key in block.keys():
                    yield join_pointer(trigger.path, section, key), key


def check_identifier_case(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Step ids, outputs and inputs use snake_case."""
    for pointer, identifier in _identifier_keys(doc):
        if SNAKE_CASE_RE.match(identifier):
            continue
        suggestion = re.sub(r"[^a-z0-9]+", "_", identifier.lower()).strip("_") or "value"
        yield new_finding(
            doc, "identifier-case", FindingSeverity.improvement,
            FindingCategory.ordering_naming, pointer,
            title=f"Identifier `{identifier}` is not snake_case",
            why="Mixed identifier styles make expressions like `steps.<id>.outputs.<key>` error-prone.",
            change=f"Rename to `{suggestion}` and update its references.",
        )


def check_matrix_job_name(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Matrix jobs include a matrix value in their name."""
    for job in doc.jobs:
        if job.matrix is None or job.name is None:
            continue
        if any("matrix." in m.group(1) for m in EXPRESSION_RE.finditer(job.name.value)):
            continue
        yield new_finding(
            doc, "matrix-job-name", FindingSeverity.improvement,
            FindingCategory.ordering_naming, join_pointer(job.path, "name"),
            title=f"Matrix job '{job.name.value}' does not show its matrix values",
            why="Every matrix leg shows the same name, so failures cannot be told apart.",
            change="Interpolate the matrix variables into the job name.",
            patch=f"name: {job.name.value} (${{{{ matrix.<key> }}}})",
        )


def _source_line_count(doc: NormalizedDocument, node: ScalarNode) -> int:
    if node.end_line <= node.line:
        return len(node.value.strip("\n").splitlines())
    body = doc.source.lines[node.line:node.end_line]
    return sum(1 for line in body if line.strip())


def check_block_scalar_single_line(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Block scalars are reserved for multi-line values."""
    for pointer, node in walk(doc.source.root):
        if not isinstance(node, ScalarNode) or not node.is_block:
            continue
        if _source_line_count(doc, node) > 1:
            continue
        yield new_finding(
            doc, "block-scalar-single-line", FindingSeverity.improvement,
            FindingCategory.ordering_naming, pointer,
            title="Single-line value written as a block scalar",
            why="Block indicators on one-line values add noise and invite trailing-newline surprises.",
            change="Write the value as a plain scalar.",
            patch=f"{pointer.rsplit('/', 1)[-1]}: {node.value.strip()}",
        )


def check_anchor_usage(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """YAML anchors and aliases are avoided."""
    aliases: list[str] = []
    for pointer, node in walk(doc.source.root):
        # Nodes inside an alias are copies of the anchored subtree
        if any(pointer.startswith(alias + "/") for alias in aliases):
            continue
        if node.anchor is None:
            continue
        is_alias = node.style is NodeStyle.anchor_ref
        if is_alias:
            aliases.append(pointer)
        yield new_finding(
            doc, "anchor-usage", FindingSeverity.improvement,
            FindingCategory.ordering_naming, pointer,
            title=f"YAML {'alias' if is_alias else 'anchor'} `{'*' if is_alias else '&'}{node.anchor}`",
            why="Anchors hide configuration far from where it applies and are unsupported by some tooling.",
            change="Inline the value, or use a reusable workflow or composite action.",
        )


def check_if_expression_wrapper(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """`if` conditions are written as ${{ }} expressions."""
    conditions: list[tuple[str, ScalarNode]] = []
    for job in doc.jobs:
        if job.if_ is not None:
            conditions.append((join_pointer(job.path, "if"), job.if_))
        for step in job.steps:
            if step.if_ is not None:
                conditions.append((join_pointer(step.path, "if"), step.if_))

    for pointer, condition in conditions:
        if is_wrapped_expression(condition.value):
            continue
        yield new_finding(
            doc, "if-expression-wrapper", FindingSeverity.improvement,
            FindingCategory.ordering_naming, pointer,
            title=f"`if: {condition.value}` is not wrapped in `${{{{ }}}}`",
            why="Unwrapped conditions that start with `!` or contain `:` parse differently than intended.",
            change="Wrap the condition in an expression.",
            patch=f"if: ${{{{ {condition.value.strip()} }}}}",
        )


def _order_findings(
    doc: NormalizedDocument,
    node: MappingNode,
    canonical: tuple[str, ...],
    path: str,
    section: str,
) -> Iterator[Finding]:
    """One finding per key that appears after a key that should follow it."""
    rank = {key: i for i, key in enumerate(canonical)}
    present = [key for key in node.keys() if key in rank]
    expected = sorted(present, key=rank.__getitem__)
    highest: str | None = None
    for key in present:
        if highest is not None and rank[key] < rank[highest]:
            position = expected.index(key) + 1
            yield new_finding(
                doc, "key-order", FindingSeverity.improvement,
                FindingCategory.ordering_naming, join_pointer(path, key),
                title=f"`{key}` should come before `{highest}` in the {section}",
                why="A fixed key order makes workflows diff cleanly and read the same way.",
                change=(
                    f"Move `{key}` to position {position}: "
                    f"{', '.join(expected)}."
                ),
            )
        elif highest is None or rank[key] > rank[highest]:
            highest = key


def check_key_order(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Root, job and step keys follow the canonical order."""
    root = doc.source.root
    if isinstance(root, MappingNode):
        yield from _order_findings(doc, root, ROOT_KEYS, "", "workflow root")
    for job in doc.jobs:
        yield from _order_findings(doc, job.node, JOB_KEYS, job.path, f"job '{job.job_id}'")
        for step in job.steps:
            yield from _order_findings(
                doc, step.node, STEP_KEYS, step.path, f"step {step.index + 1} of '{job.job_id}'",
            )


def check_step_name_missing(doc: NormalizedDocument, config: LintConfig) -> Iterator[Finding]:
    """Steps carry a descriptive name."""
    for job, step in iter_steps(doc):
        if step.name is not None:
            continue
        what = step.uses.value if step.uses is not None else "run"
        yield new_finding(
            doc, "step-name-missing", FindingSeverity.improvement,
            FindingCategory.ordering_naming, step.path,
            title=f"Step {step.index + 1} of job '{job_label(job)}' ({what}) has no name",
            why="Unnamed steps show raw commands in the run log.",
            change="Add a short Title Case `name`.",
        )


STYLE_RULES: tuple[Rule, ...] = (
    Rule("name-casing", FindingCategory.ordering_naming, FindingSeverity.improvement,
         "Job and step names follow the casing policy", check_name_casing),
    Rule("identifier-case", FindingCategory.ordering_naming, FindingSeverity.improvement,
         "Identifiers use snake_case", check_identifier_case),
    Rule("matrix-job-name", FindingCategory.ordering_naming, FindingSeverity.improvement,
         "Matrix job names interpolate matrix values", check_matrix_job_name),
    Rule("block-scalar-single-line", FindingCategory.ordering_naming, FindingSeverity.improvement,
         "Block scalars hold multi-line values only", check_block_scalar_single_line),
    Rule("anchor-usage", FindingCategory.ordering_naming, FindingSeverity.improvement,
         "No YAML anchors or aliases", check_anchor_usage),
    Rule("if-expression-wrapper", FindingCategory.ordering_naming, FindingSeverity.improvement,
         "if conditions use ${{ }}", check_if_expression_wrapper),
    Rule("key-order", FindingCategory.ordering_naming, FindingSeverity.improvement,
         "Keys follow the canonical order", check_key_order),
    Rule("step-name-missing", FindingCategory.ordering_naming, FindingSeverity.improvement,
         "Steps are named", check_step_name_missing),
)
