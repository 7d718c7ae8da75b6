# Per-node analysis context (ancestor chain, sibling position) plus helpers for
# building SourceUnits from files, with logging of node/block counts.

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional

from abllint.document import load_document
from abllint.nodes import SCOPE_KINDS, Node, NodeKind, SourceUnit
from abllint.parser import parse_source
from abllint.traversal import is_node_document

logger = logging.getLogger(__name__)


def count_tree_stats(root: Node) -> tuple[int, int]:
    """
    Return (total node count, block count) for the tree.

    Blocks are BlockStatement and CatchBlock nodes.
    """
    nodes = blocks = 0
    for node in root.walk():
        nodes += 1
        if node.kind in (NodeKind.BLOCK_STATEMENT, NodeKind.CATCH_BLOCK):
            blocks += 1
    return nodes, blocks


@dataclass(frozen=True)
class AncestorContext:
    """
    Read-only surroundings of the node a rule is looking at.

    ``ancestors`` runs from the root to the direct parent; ``index`` is the
    node's position among its parent's children.
    """

    unit: SourceUnit
    ancestors: tuple[Node, ...] = ()
    index: int = 0

    @property
    def parent(self) -> Optional[Node]:
        return self.ancestors[-1] if self.ancestors else None

    @property
    def siblings(self) -> tuple[Node, ...]:
        parent = self.parent
        return parent.children if parent is not None else ()

    def preceding_siblings(self) -> tuple[Node, ...]:
        return self.siblings[: self.index]

    def following_siblings(self) -> tuple[Node, ...]:
        return self.siblings[self.index + 1 :]

    def nearest_first(self) -> Iterator[Node]:
        """Yield ancestors from the direct parent up to the root."""
        return reversed(self.ancestors)

    def enclosing(self, *kinds: NodeKind) -> Optional[Node]:
        """Return the nearest ancestor whose kind is one of ``kinds``."""
        for node in self.nearest_first():
            if node.kind in kinds:
                return node
        return None

    def enclosing_scope(self) -> Node:
        """Nearest block, catch block or program around the node."""
        for node in self.nearest_first():
            if node.kind in SCOPE_KINDS:
                return node
        return self.unit.root

    def enclosing_blocks(self) -> Iterator[Node]:
        """Yield BlockStatement ancestors, nearest first."""
        for node in self.nearest_first():
            if node.kind is NodeKind.BLOCK_STATEMENT:
                yield node

    def child(self, node: Node, index: int) -> "AncestorContext":
        """Context for the ``index``-th child of ``node``."""
        return AncestorContext(unit=self.unit, ancestors=self.ancestors + (node,), index=index)


def same_name(a: Optional[str], b: Optional[str]) -> bool:
    """ABL identifiers are case-insensitive."""
    if a is None or b is None:
        return False
    return a.lower() == b.lower()


def conditions_in(
    scope: Node,
    function: Optional[str] = None,
    buffer: Optional[str] = None,
) -> list[Node]:
    """Condition nodes under ``scope``, filtered by test function and buffer."""
    found = []
    for node in scope.descendants(NodeKind.CONDITION):
        if function is not None and node.get("function") != function:
            continue
        if buffer is not None and not same_name(node.get("buffer"), buffer):
            continue
        found.append(node)
    return found


def get_source_span(unit: SourceUnit, node: Node) -> str:
    """Return the text of ``unit`` covered by the node's span."""
    span = node.span
    lines = unit.lines[span.line - 1 : span.end_line]
    if not lines:
        return ""
    if len(lines) == 1:
        return lines[0][span.column - 1 : span.end_column]
    lines[0] = lines[0][span.column - 1 :]
    lines[-1] = lines[-1][: span.end_column]
    return "\n".join(lines)


def get_line_col(node: Node) -> tuple[int, int]:
    """Return the 1-based (line, column) of the node's start."""
    return node.span.line, node.span.column


def get_snippet(unit: SourceUnit, node: Node) -> Optional[str]:
    """First source line of the node, stripped; None when the text is unavailable."""
    text = unit.line_text(node.span.line)
    if text is None:
        return None
    return text.strip() or None


def create_unit(path: Path) -> Optional[SourceUnit]:
    """
    Read an ABL source file or a node document into a SourceUnit.

    - Unreadable file (permission, missing): returns None and logs an error.
    - ``.json`` files are node documents from an external parser; an invalid
      document raises ParseInputError.
    - Anything else is ABL source run through the construct extractor, which
      never fails: unbalanced blocks are logged and closed at end of file.
    """
    try:
        raw = path.read_bytes()
    except OSError as e:
        logger.error("Failed to read file %s: %s", path, e)
        return None

    if is_node_document(path):
        unit = load_document(raw, path=path)
    else:
        unit = parse_source(raw.decode("utf-8", errors="replace"), path=path)

    node_count, block_count = count_tree_stats(unit.root)
    logger.info("Loaded %s: %d nodes, %d block(s)", path, node_count, block_count)
    return unit
