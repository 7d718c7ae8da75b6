"""
Node documents: the JSON form of a SourceUnit.

An external ABL parser can hand its output to abllint as a document of the
shape::

    {
      "path": "src/customer.p",
      "text": "...raw source...",
      "root": {
        "kind": "Program",
        "span": {"line": 1, "column": 1, "end_line": 40, "end_column": 4},
        "attrs": {},
        "children": [ ...nodes of the same shape... ]
      }
    }

Field shapes are validated with pydantic; tree structure (nested spans, no
shared nodes) is checked by the analyzer, not here.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import BaseModel, Field, ValidationError, model_validator

from abllint.errors import ParseInputError
from abllint.nodes import Node, NodeKind, SourceUnit, Span

logger = logging.getLogger(__name__)


class SpanModel(BaseModel):
    line: int = Field(..., ge=1)
    column: int = Field(..., ge=1)
    end_line: int = Field(..., ge=1)
    end_column: int = Field(..., ge=1)

    @model_validator(mode="after")
    def _end_after_start(self) -> "SpanModel":
        if (self.end_line, self.end_column) < (self.line, self.column):
            raise ValueError("span ends before it starts")
        return self


class NodeModel(BaseModel):
    kind: NodeKind
    span: SpanModel
    attrs: dict[str, Any] = Field(default_factory=dict)
    children: list["NodeModel"] = Field(default_factory=list)


class SourceDocument(BaseModel):
    path: Path
    text: str = ""
    root: NodeModel

    model_config = {"arbitrary_types_allowed": True}


def _build_node(model: NodeModel) -> Node:
    return Node(
        kind=model.kind,
        span=Span(model.span.line, model.span.column, model.span.end_line, model.span.end_column),
        attrs=model.attrs,
        children=tuple(_build_node(child) for child in model.children),
    )


def unit_from_document(document: SourceDocument) -> SourceUnit:
    return SourceUnit(path=document.path, root=_build_node(document.root), text=document.text)


def load_document(raw: Union[str, bytes], path: Optional[Path] = None) -> SourceUnit:
    """
    Validate a JSON node document and build a SourceUnit from it.

    Raises:
        ParseInputError: the JSON is malformed or does not match the schema,
            or the root is not a Program node.
    """
    try:
        document = SourceDocument.model_validate_json(raw)
    except ValidationError as e:
        where = f" {path}" if path is not None else ""
        raise ParseInputError(f"Invalid node document{where}: {e}") from e

    if document.root.kind is not NodeKind.PROGRAM:
        raise ParseInputError(f"Document root must be a Program node, got {document.root.kind.value}")

    logger.debug("Loaded node document for %s", document.path)
    return unit_from_document(document)


def _dump_node(node: Node) -> dict[str, Any]:
    span = node.span
    return {
        "kind": node.kind.value,
        "span": {
            "line": span.line,
            "column": span.column,
            "end_line": span.end_line,
            "end_column": span.end_column,
        },
        "attrs": dict(node.attrs),
        "children": [_dump_node(child) for child in node.children],
    }


def dump_document(unit: SourceUnit, include_text: bool = True) -> dict[str, Any]:
    """Return the document form of ``unit`` (inverse of load_document)."""
    return {
        "path": str(unit.path),
        "text": unit.text if include_text else "",
        "root": _dump_node(unit.root),
    }
