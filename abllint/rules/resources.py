# Dynamic object cleanup: handles from CREATE / RUN PERSISTENT SET need a FINALLY.

from __future__ import annotations

from abllint.context import AncestorContext, same_name
from abllint.findings.models import Finding, Severity
from abllint.nodes import SCOPE_KINDS, Node, NodeKind
from abllint.rules.base import Rule


def deletes_handle(block: Node, handle: str) -> bool:
    for node in block.descendants(NodeKind.STATEMENT):
        if node.get("keyword") == "DELETE OBJECT" and same_name(node.get("handle"), handle):
            return True
    return False


def finally_blocks(scope: Node) -> list[Node]:
    return [
        child
        for child in scope.children
        if child.kind is NodeKind.BLOCK_STATEMENT and child.get("block_type") == "FINALLY"
    ]


class RequireScopedCleanupRule(Rule):
    """
    A dynamic object (CREATE QUERY/BUFFER/..., RUN ... PERSISTENT SET h) must be
    deleted in a FINALLY block of a block enclosing the statement, so the object
    is released on every exit path. The search stops at the enclosing routine.
    """

    id = "require-scoped-cleanup"
    name = "Delete dynamic objects in FINALLY"
    severity = Severity.WARNING
    kinds = frozenset({NodeKind.STATEMENT})
    message = "Handle '{handle}' from {source} is not deleted in a FINALLY block"
    remediation = "Add FINALLY: DELETE OBJECT <handle> NO-ERROR. END FINALLY. to the enclosing block."

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        handle = node.get("handle")
        if not node.get("acquires") or not handle:
            return []
        for scope in context.nearest_first():
            if scope.kind not in SCOPE_KINDS:
                continue
            if any(deletes_handle(block, handle) for block in finally_blocks(scope)):
                return []
            if scope.get("routine"):
                break
        source = f"{node.get('keyword')} {node.get('object_type')}"
        return [self.report(node, context, handle=handle, source=source)]
