# Node model: the salient-construct tree the rules operate on.
# Produced by abllint.parser (from ABL source) or abllint.document (from JSON).

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from functools import cached_property
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterator, Mapping, Optional


class NodeKind(str, Enum):
    """Kind tag of a Node. Values are the names used in node documents."""

    PROGRAM = "Program"
    LOCK_CLAUSE = "LockClause"
    CATCH_BLOCK = "CatchBlock"
    THROW_STATEMENT = "ThrowStatement"
    VARIABLE_DECLARATION = "VariableDeclaration"
    TEMP_TABLE_DECLARATION = "TempTableDeclaration"
    BUFFER_DECLARATION = "BufferDeclaration"
    BLOCK_STATEMENT = "BlockStatement"
    FIND_STATEMENT = "FindStatement"
    COMMENT = "Comment"
    PARAMETER = "Parameter"
    CONDITION = "Condition"
    FLOW_STATEMENT = "FlowStatement"
    STATEMENT = "Statement"


# Kinds that open a scope other statements live in.
SCOPE_KINDS = frozenset({NodeKind.PROGRAM, NodeKind.BLOCK_STATEMENT, NodeKind.CATCH_BLOCK})


@dataclass(frozen=True)
class Span:
    """1-based line/column span; the end position is inclusive."""

    line: int
    column: int
    end_line: int
    end_column: int

    @property
    def start(self) -> tuple[int, int]:
        return self.line, self.column

    @property
    def end(self) -> tuple[int, int]:
        return self.end_line, self.end_column

    def contains(self, other: "Span") -> bool:
        return self.start <= other.start and other.end <= self.end

    def precedes(self, other: "Span") -> bool:
        """True if this span starts before other starts."""
        return self.start < other.start


@dataclass(frozen=True, eq=False)
class Node:
    """
    One syntactic construct.

    Nodes are frozen and compare by identity. ``attrs`` holds kind-specific
    values (keyword, name, label, ...) as a read-only mapping. ``parent`` is
    a non-owning back-reference assigned when the parent node is built.
    """

    kind: NodeKind
    span: Span
    attrs: Mapping[str, Any] = field(default_factory=dict)
    children: tuple["Node", ...] = ()
    parent: Optional["Node"] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "attrs", MappingProxyType(dict(self.attrs)))
        object.__setattr__(self, "children", tuple(self.children))
        for child in self.children:
            # First parent wins; a shared child is reported by the analyzer.
            if child.parent is None:
                object.__setattr__(child, "parent", self)

    def get(self, key: str, default: Any = None) -> Any:
        return self.attrs.get(key, default)

    def walk(self) -> Iterator["Node"]:
        """Yield this node and every descendant in document order (DFS)."""
        yield self
        for child in self.children:
            yield from child.walk()

    def descendants(self, kind: Optional[NodeKind] = None) -> Iterator["Node"]:
        """Yield descendants (not self), optionally only those of one kind."""
        for child in self.children:
            for node in child.walk():
                if kind is None or node.kind is kind:
                    yield node


@dataclass(frozen=True)
class SourceUnit:
    """One analyzed file: its path, the Program root, and the raw text."""

    path: Path
    root: Node
    text: str = ""

    @cached_property
    def lines(self) -> list[str]:
        return self.text.splitlines()

    def line_text(self, line: int) -> Optional[str]:
        """Return source line ``line`` (1-based) without its newline, or None."""
        if 1 <= line <= len(self.lines):
            return self.lines[line - 1]
        return None


def count_nodes(root: Node) -> int:
    return sum(1 for _ in root.walk())
