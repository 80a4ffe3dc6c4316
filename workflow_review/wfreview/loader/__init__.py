"""Workflow document loading."""

from wfreview.loader.models import (
    MappingNode,
    Node,
    NodeStyle,
    ParseError,
    ScalarNode,
    SequenceNode,
    WorkflowDocument,
)
from wfreview.loader.yaml_loader import load, load_file

__all__ = [
    "MappingNode",
    "Node",
    "NodeStyle",
    "ParseError",
    "ScalarNode",
    "SequenceNode",
    "WorkflowDocument",
    "load",
    "load_file",
]
