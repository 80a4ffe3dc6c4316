"""Expression and script helpers shared by the normalizer and rules."""

from __future__ import annotations

import re
from typing import Iterator

from wfreview.loader.models import MappingNode, Node, ScalarNode, SequenceNode, join_pointer

# ${{ ... }} template expression
EXPRESSION_RE = re.compile(r"\$\{\{(.*?)\}\}", re.DOTALL)

# secrets.NAME or secrets['NAME'] inside an expression
SECRET_CONTEXT_RE = re.compile(r"\bsecrets\s*(?:\.|\[)")

MATRIX_REF_RE = re.compile(r"^\$\{\{\s*matrix\.([A-Za-z0-9_-]+)\s*\}\}$")


def secret_expressions(text: str) -> list[str]:
    """Return every ``${{ }}`` expression in *text* that reads the secrets context."""
    return [
        m.group(0)
        for m in EXPRESSION_RE.finditer(text)
        if SECRET_CONTEXT_RE.search(m.group(1))
    ]


def find_secret_refs(node: Node, pointer: str) -> Iterator[tuple[str, str, int]]:
    """Recursively walk a node, yielding (pointer, expression, line) per secret reference."""
    if isinstance(node, ScalarNode):
        for expr in secret_expressions(node.value):
            yield pointer, expr, node.line
    elif isinstance(node, MappingNode):
        for key, value in node.items():
            yield from find_secret_refs(value, join_pointer(pointer, key))
    elif isinstance(node, SequenceNode):
        for i, item in enumerate(node.items):
            yield from find_secret_refs(item, join_pointer(pointer, i))


def is_wrapped_expression(value: str) -> bool:
    stripped = value.strip()
    return stripped.startswith("${{") and stripped.endswith("}}")


def logical_lines(script: str) -> list[str]:
    """Split a shell script into logical lines.

    Backslash continuations are joined; blank and comment-only lines
    are dropped.
    """
    lines: list[str] = []
    pending = ""
    for raw in script.splitlines():
        line = raw.strip()
        if pending:
            line = f"{pending} {line}"
            pending = ""
        if line.endswith("\\"):
            pending = line[:-1].rstrip()
            continue
        if not line or line.startswith("#"):
            continue
        lines.append(line)
    if pending:
        lines.append(pending)
    return lines
