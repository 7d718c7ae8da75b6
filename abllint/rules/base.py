# Rule interface (abstract base class): defines the contract all rules must implement.
# Concrete rules (locking, naming, error_handling, ...) subclass Rule and implement check().

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Optional

from abllint.context import AncestorContext, get_snippet
from abllint.findings.models import Finding, Location, Severity
from abllint.nodes import Node, NodeKind


class Rule(ABC):
    """
    Abstract base class for all style rules.

    Subclasses must define:
    - id: str: stable rule identifier (e.g. "no-share-lock")
    - name: str: human-readable title (e.g. "Avoid SHARE-LOCK")
    - severity: Severity: default severity of the findings it produces
    - kinds: frozenset[NodeKind]: node kinds the rule inspects
    - message: str: str.format template for the finding message
    - check(node, context) -> list[Finding]

    The analyzer calls check() once for every node whose kind is in ``kinds``.
    check() must be pure: read the node and its context, never mutate them,
    and never block on I/O.
    """

    id: ClassVar[str]
    name: ClassVar[str]
    severity: ClassVar[Severity] = Severity.WARNING
    kinds: ClassVar[frozenset[NodeKind]] = frozenset()
    message: ClassVar[str] = ""
    remediation: ClassVar[Optional[str]] = None

    def applies_to(self, node: Node) -> bool:
        return node.kind in self.kinds

    @abstractmethod
    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        """
        Inspect one node and return any findings.

        Args:
            node: The node being visited; its kind is one of ``self.kinds``.
            context: Ancestor chain, sibling position and the SourceUnit
                     (for paths and snippets).

        Returns:
            List of Finding objects; empty if the node is fine.
        """
        ...

    def report(self, node: Node, context: AncestorContext, **values: Any) -> Finding:
        """Build a finding located at ``node`` with the rendered message template."""
        span = node.span
        return Finding(
            rule_id=self.id,
            message=self.message.format(**values),
            location=Location(
                path=context.unit.path,
                line=span.line,
                column=span.column,
                end_line=span.end_line,
                end_column=span.end_column,
                snippet=get_snippet(context.unit, node),
            ),
            severity=self.severity,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.id}>"
