"""Document tree models produced by the workflow loader."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, Union

# Trailing or full-line YAML comment. Requires whitespace (or line start)
# before '#' so URLs and shell fragments like `a#b` are not matched.
_COMMENT_RE = re.compile(r"(?:^|\s)#(.*)$")

_NULL_VALUES = {"", "~", "null", "Null", "NULL"}
_TRUE_VALUES = {"true", "True", "TRUE", "yes", "Yes", "YES", "on", "On", "ON"}


class NodeStyle(str, Enum):
    """Source presentation of a node."""

    plain = "plain"
    quoted = "quoted"
    block_literal = "block-literal"
    block_folded = "block-folded"
    flow = "flow"
    anchor_ref = "anchor-ref"


class ParseError(ValueError):
    """Raised when a workflow document cannot be loaded."""

    def __init__(
        self, message: str, line: int | None = None, column: int | None = None,
    ) -> None:
        self.message = message
        self.line = line
        self.column = column
        where = f" (line {line}, column {column})" if line is not None else ""
        super().__init__(f"{message}{where}")


@dataclass(frozen=True)
class ScalarNode:
    value: str
    style: NodeStyle = NodeStyle.plain
    anchor: str | None = None
    line: int = 0
    column: int = 0
    end_line: int = 0

    @property
    def is_null(self) -> bool:
        return self.style is NodeStyle.plain and self.value in _NULL_VALUES

    @property
    def is_block(self) -> bool:
        return self.style in (NodeStyle.block_literal, NodeStyle.block_folded)

    def as_bool(self) -> bool:
        return self.value in _TRUE_VALUES

    def as_int(self) -> int | None:
        """Return the scalar as an integer, or None if it is not one."""
        try:
            return int(self.value.strip())
        except ValueError:
            return None


@dataclass(frozen=True)
class SequenceNode:
    items: tuple[Node, ...] = ()
    style: NodeStyle = NodeStyle.plain
    anchor: str | None = None
    line: int = 0
    column: int = 0

    def __iter__(self) -> Iterator[Node]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class MappingNode:
    entries: tuple[tuple[ScalarNode, Node], ...] = ()
    style: NodeStyle = NodeStyle.plain
    anchor: str | None = None
    line: int = 0
    column: int = 0

    def keys(self) -> list[str]:
        return [k.value for k, _ in self.entries]

    def items(self) -> Iterator[tuple[str, Node]]:
        for key, value in self.entries:
            yield key.value, value

    def get(self, key: str) -> Node | None:
        for k, value in self.entries:
            if k.value == key:
                return value
        return None

    def key_node(self, key: str) -> ScalarNode | None:
        for k, _ in self.entries:
            if k.value == key:
                return k
        return None

    def __contains__(self, key: object) -> bool:
        return any(k.value == key for k, _ in self.entries)

    def __len__(self) -> int:
        return len(self.entries)


Node = Union[ScalarNode, SequenceNode, MappingNode]


def escape_pointer(segment: str) -> str:
    """Escape a single JSON pointer segment."""
    return segment.replace("~", "~0").replace("/", "~1")


def join_pointer(base: str, *segments: str | int) -> str:
    parts = [base]
    for seg in segments:
        parts.append("/" + escape_pointer(str(seg)))
    return "".join(parts)


def walk(node: Node, pointer: str = "") -> Iterator[tuple[str, Node]]:
    """Yield (pointer, node) pairs in document (pre-)order."""
    yield pointer, node
    if isinstance(node, MappingNode):
        for key, value in node.items():
            yield from walk(value, join_pointer(pointer, key))
    elif isinstance(node, SequenceNode):
        for i, item in enumerate(node.items):
            yield from walk(item, join_pointer(pointer, i))


def scalar_text(node: Node | None) -> str | None:
    """Return the value of a non-null scalar node, else None."""
    if isinstance(node, ScalarNode) and not node.is_null:
        return node.value
    return None


@dataclass(frozen=True)
class WorkflowDocument:
    """A loaded workflow: root node, source text and document order table."""

    root: Node
    text: str = ""
    order: dict[str, int] = field(default_factory=dict, compare=False)

    @classmethod
    def build(cls, root: Node, text: str = "") -> WorkflowDocument:
        order = {pointer: i for i, (pointer, _) in enumerate(walk(root))}
        return cls(root=root, text=text, order=order)

    @property
    def lines(self) -> list[str]:
        return self.text.splitlines()

    def node_at(self, pointer: str) -> Node | None:
        node: Node | None = self.root
        if not pointer:
            return node
        for raw in pointer.split("/")[1:]:
            seg = raw.replace("~1", "/").replace("~0", "~")
            if isinstance(node, MappingNode):
                node = node.get(seg)
            elif isinstance(node, SequenceNode) and seg.isdigit():
                idx = int(seg)
                node = node.items[idx] if idx < len(node.items) else None
            else:
                return None
        return node

    def order_of(self, pointer: str) -> int:
        """Document-order index of *pointer*, or of its nearest existing ancestor."""
        current = pointer
        while current:
            if current in self.order:
                return self.order[current]
            current = current.rsplit("/", 1)[0]
        return 0

    def comment_at(self, line: int) -> str | None:
        """Return the comment text on a 1-based source line, if any."""
        lines = self.lines
        if line < 1 or line > len(lines):
            return None
        match = _COMMENT_RE.search(lines[line - 1])
        return match.group(1).strip() if match else None

    def has_marker(self, line: int, pattern: re.Pattern[str]) -> bool:
        """Check the comment on *line* or the comment-only line above it."""
        comment = self.comment_at(line)
        if comment is not None and pattern.search(comment):
            return True
        lines = self.lines
        if 2 <= line <= len(lines) and lines[line - 2].lstrip().startswith("#"):
            above = self.comment_at(line - 1)
            return above is not None and bool(pattern.search(above))
        return False
