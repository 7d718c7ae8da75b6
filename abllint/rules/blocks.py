# Block structure rules: labels for nested iterating blocks, qualified END statements.

from __future__ import annotations

from typing import Iterator

from abllint.context import AncestorContext
from abllint.findings.models import Finding, Severity
from abllint.nodes import Node, NodeKind
from abllint.rules.base import Rule

_LABELLED_ACTIONS = ("LEAVE", "NEXT", "RETRY")


def _owned_flow_statements(block: Node) -> Iterator[Node]:
    """
    Flow statements that bind to ``block``: those not inside a nested iterating
    block or routine, which own their own statements.
    """
    for child in block.children:
        if child.kind is NodeKind.FLOW_STATEMENT:
            yield child
        elif child.kind is NodeKind.BLOCK_STATEMENT and (child.get("iterating") or child.get("routine")):
            continue
        else:
            yield from _owned_flow_statements(child)


def _is_unlabelled(flow: Node) -> bool:
    keyword = flow.get("keyword")
    if keyword in _LABELLED_ACTIONS:
        return not flow.get("label")
    if keyword == "UNDO":
        if not flow.get("label"):
            return True
        return flow.get("action") in _LABELLED_ACTIONS and not flow.get("action_label")
    return False


def _describe(flow: Node) -> str:
    if flow.get("keyword") == "UNDO" and flow.get("action"):
        return f"UNDO, {flow.get('action')}"
    return str(flow.get("keyword"))


class RequireBlockLabelRule(Rule):
    """
    Inside nested iterating blocks an unlabelled UNDO/LEAVE/NEXT silently binds
    to the innermost block; label the blocks and name the target.
    """

    id = "require-block-label"
    name = "Label nested iterating blocks"
    severity = Severity.ERROR
    kinds = frozenset({NodeKind.BLOCK_STATEMENT})
    message = "{statement} without a block label inside a nested iterating block; label the block and name it in the statement"
    remediation = "blkCustomer: FOR EACH Customer NO-LOCK: ... LEAVE blkCustomer. END."

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        if not node.get("iterating") or not self._nested(context):
            return []
        return [
            self.report(flow, context, statement=_describe(flow))
            for flow in _owned_flow_statements(node)
            if _is_unlabelled(flow)
        ]

    @staticmethod
    def _nested(context: AncestorContext) -> bool:
        for block in context.enclosing_blocks():
            if block.get("iterating") or block.get("transaction"):
                return True
            if block.get("routine"):
                return False
        return False


class QualifiedEndRule(Rule):
    """Routine, class, CASE, CATCH and FINALLY blocks end with END <keyword>."""

    id = "qualified-end"
    name = "Qualified END statements"
    severity = Severity.INFO
    kinds = frozenset({NodeKind.BLOCK_STATEMENT, NodeKind.CATCH_BLOCK})
    message = "{block_type} block is closed with a bare END; write END {block_type}."

    QUALIFIED = frozenset(
        {
            "PROCEDURE",
            "FUNCTION",
            "METHOD",
            "CONSTRUCTOR",
            "DESTRUCTOR",
            "CLASS",
            "INTERFACE",
            "ENUM",
            "CASE",
            "CATCH",
            "FINALLY",
            "GET",
            "SET",
        }
    )

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        block_type = "CATCH" if node.kind is NodeKind.CATCH_BLOCK else node.get("block_type")
        if block_type not in self.QUALIFIED:
            return []
        if not node.get("closed", True) or node.get("end_qualifier"):
            return []
        return [self.report(node, context, block_type=block_type)]
