"""Workflow document loading using ruamel.yaml parse events."""

from __future__ import annotations

import logging
from dataclasses import replace
from io import StringIO
from pathlib import Path
from typing import Any, Iterable

from ruamel.yaml import YAML, YAMLError
from ruamel.yaml.events import (
    AliasEvent,
    DocumentStartEvent,
    MappingEndEvent,
    MappingStartEvent,
    ScalarEvent,
    SequenceEndEvent,
    SequenceStartEvent,
)

from wfreview.loader.models import (
    MappingNode,
    Node,
    NodeStyle,
    ParseError,
    ScalarNode,
    SequenceNode,
    WorkflowDocument,
)

logger = logging.getLogger(__name__)

# Deeper collections are rejected before they exhaust the interpreter stack
MAX_NESTING = 100

_SCALAR_STYLES = {
    None: NodeStyle.plain,
    "'": NodeStyle.quoted,
    '"': NodeStyle.quoted,
    "|": NodeStyle.block_literal,
    ">": NodeStyle.block_folded,
}


def _mark(event: Any) -> tuple[int, int]:
    """Return the 1-indexed (line, column) of an event."""
    mark = getattr(event, "start_mark", None)
    if mark is None:
        return 0, 0
    return mark.line + 1, mark.column + 1


class _TreeBuilder:
    """Builds the node tree from a stream of parse events."""

    def __init__(self, events: Iterable[Any], lines: list[str]) -> None:
        self._events = iter(events)
        self._lines = lines
        self._anchors: dict[str, Node] = {}
        self._depth = 0

    def build(self) -> Node:
        root: Node | None = None
        for event in self._events:
            if isinstance(event, DocumentStartEvent):
                if root is not None:
                    raise ParseError(
                        "expected a single workflow document but found another",
                        *_mark(event),
                    )
                root = self._node(next(self._events))
        return root if root is not None else MappingNode()

    def _node(self, event: Any) -> Node:
        line, column = _mark(event)

        if isinstance(event, AliasEvent):
            target = self._anchors.get(event.anchor)
            if target is None:
                raise ParseError(
                    f"found undefined alias '*{event.anchor}'", line, column,
                )
            return replace(
                target,
                style=NodeStyle.anchor_ref,
                anchor=event.anchor,
                line=line,
                column=column,
            )

        is_collection = isinstance(event, (SequenceStartEvent, MappingStartEvent))
        if is_collection and self._depth >= MAX_NESTING:
            raise ParseError(
                f"document nests deeper than {MAX_NESTING} levels", line, column,
            )

        node: Node
        if isinstance(event, ScalarEvent):
            node = ScalarNode(
                value=event.value,
                style=_SCALAR_STYLES.get(event.style, NodeStyle.plain),
                anchor=event.anchor,
                line=line,
                column=column,
                end_line=self._end_line(event),
            )
        elif isinstance(event, SequenceStartEvent):
            node = SequenceNode(
                items=tuple(self._sequence_items()),
                style=NodeStyle.flow if event.flow_style else NodeStyle.plain,
                anchor=event.anchor,
                line=line,
                column=column,
            )
        elif isinstance(event, MappingStartEvent):
            node = MappingNode(
                entries=tuple(self._mapping_entries()),
                style=NodeStyle.flow if event.flow_style else NodeStyle.plain,
                anchor=event.anchor,
                line=line,
                column=column,
            )
        else:
            raise ParseError(f"unexpected {type(event).__name__}", line, column)

        if event.anchor:
            self._anchors[event.anchor] = node
        return node

    def _end_line(self, event: Any) -> int:
        """Return the 1-indexed last source line covered by an event."""
        mark = getattr(event, "end_mark", None)
        if mark is None:
            return 0
        # A mark inside the next line's indentation ends on the line before.
        if mark.line >= len(self._lines) or not self._lines[mark.line][: mark.column].strip():
            return mark.line
        return mark.line + 1

    def _sequence_items(self) -> list[Node]:
        items: list[Node] = []
        self._depth += 1
        for event in self._events:
            if isinstance(event, SequenceEndEvent):
                break
            items.append(self._node(event))
        self._depth -= 1
        return items

    def _mapping_entries(self) -> list[tuple[ScalarNode, Node]]:
        entries: list[tuple[ScalarNode, Node]] = []
        seen: dict[str, int] = {}
        self._depth += 1
        for event in self._events:
            if isinstance(event, MappingEndEvent):
                break
            key = self._node(event)
            if not isinstance(key, ScalarNode):
                raise ParseError("mapping keys must be scalars", key.line, key.column)
            if key.value in seen:
                raise ParseError(
                    f"duplicate key '{key.value}' "
                    f"(first defined on line {seen[key.value]})",
                    key.line,
                    key.column,
                )
            seen[key.value] = key.line
            entries.append((key, self._node(next(self._events))))
        self._depth -= 1
        return entries


def load(text: str) -> WorkflowDocument:
    """Parse workflow text into a WorkflowDocument.

    Key order and scalar styles are preserved. Raises ParseError on
    malformed YAML, duplicate keys or undefined aliases. Empty input
    loads as an empty mapping.
    """
    if not text or not text.strip():
        return WorkflowDocument.build(MappingNode(), text or "")

    # Pure-python safe parser: events carry source marks and scalar styles.
    yaml = YAML(typ="safe", pure=True)
    try:
        root = _TreeBuilder(yaml.parse(StringIO(text)), text.splitlines()).build()
    except YAMLError as e:
        line = column = None
        if hasattr(e, "problem_mark") and e.problem_mark is not None:
            line = e.problem_mark.line + 1  # 0-indexed to 1-indexed
            column = e.problem_mark.column + 1
        raise ParseError(str(e), line, column) from e
    except RecursionError as e:
        raise ParseError("document nests too deeply") from e

    document = WorkflowDocument.build(root, text)
    logger.debug("Loaded workflow document with %d nodes", len(document.order))
    return document


def load_file(path: str | Path) -> WorkflowDocument:
    """Read and parse a workflow file."""
    return load(Path(path).read_text(encoding="utf-8"))
