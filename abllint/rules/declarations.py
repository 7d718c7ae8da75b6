# Declaration rules: NO-UNDO on variables/temp-tables/parameters, no SHARED or GLOBAL state.

from __future__ import annotations

from abllint.context import AncestorContext
from abllint.findings.models import Finding, Severity
from abllint.nodes import Node, NodeKind
from abllint.rules.base import Rule

_WHAT = {
    NodeKind.VARIABLE_DECLARATION: "Variable",
    NodeKind.TEMP_TABLE_DECLARATION: "Temp-table",
    NodeKind.PARAMETER: "Parameter",
    NodeKind.BUFFER_DECLARATION: "Buffer",
}


class RequireNoUndoRule(Rule):
    """
    Variables, temp-tables and DEFINE PARAMETER statements need NO-UNDO.

    Without it every assignment is written to the local before-image file.
    Signature parameters and TABLE/DATASET parameters cannot take NO-UNDO
    and are skipped.
    """

    id = "require-no-undo"
    name = "Declare NO-UNDO"
    severity = Severity.WARNING
    kinds = frozenset({NodeKind.VARIABLE_DECLARATION, NodeKind.TEMP_TABLE_DECLARATION, NodeKind.PARAMETER})
    message = "{what} '{name}' is declared without NO-UNDO"
    remediation = "Append NO-UNDO to the DEFINE statement."

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        if node.kind is NodeKind.PARAMETER and (node.get("signature") or node.get("scalar") is False):
            return []
        if node.get("no_undo"):
            return []
        return [self.report(node, context, what=_WHAT[node.kind], name=node.get("name"))]


class NoSharedVariablesRule(Rule):
    id = "no-shared-variables"
    name = "No SHARED or GLOBAL declarations"
    severity = Severity.WARNING
    kinds = frozenset(
        {NodeKind.VARIABLE_DECLARATION, NodeKind.TEMP_TABLE_DECLARATION, NodeKind.BUFFER_DECLARATION}
    )
    message = "{what} '{name}' is declared {scope}; pass it as a parameter instead"

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        scope = node.get("scope")
        if not scope:
            return []
        upper = str(scope).upper()
        if "SHARED" not in upper and "GLOBAL" not in upper:
            return []
        return [self.report(node, context, what=_WHAT[node.kind], name=node.get("name"), scope=upper)]
