# Structured error handling rules: CATCH blocks, NO-ERROR checks, BLOCK-LEVEL THROW.

from __future__ import annotations

from abllint.context import AncestorContext, conditions_in, same_name
from abllint.findings.models import Finding, Severity
from abllint.nodes import Node, NodeKind
from abllint.rules.base import Rule


def _statements(block: Node) -> list[Node]:
    return [c for c in block.children if c.kind is not NodeKind.COMMENT]


class CatchRethrowBareRule(Rule):
    """A CATCH whose only statement re-throws the caught object adds nothing."""

    id = "catch-rethrow-bare"
    name = "CATCH only re-throws"
    severity = Severity.INFO
    kinds = frozenset({NodeKind.CATCH_BLOCK})
    message = "CATCH of '{variable}' only re-throws it unchanged; remove the CATCH or wrap/log the error"

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        variable = node.get("variable")
        body = _statements(node)
        if len(body) != 1 or body[0].kind is not NodeKind.THROW_STATEMENT:
            return []
        if not same_name(body[0].get("target"), variable):
            return []
        return [self.report(node, context, variable=variable)]


class NoEmptyCatchRule(Rule):
    # A CATCH holding only a comment is an intentional, documented swallow.

    id = "no-empty-catch"
    name = "Empty CATCH block"
    severity = Severity.WARNING
    kinds = frozenset({NodeKind.CATCH_BLOCK})
    message = "CATCH block for {error_class} is empty; handle, log or re-throw the error"

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        if node.children:
            return []
        return [self.report(node, context, error_class=node.get("error_class") or "the error")]


class NoErrorRequiresCheckRule(Rule):
    """FIND ... NO-ERROR suppresses the error, so the result must be tested."""

    id = "no-error-requires-check"
    name = "NO-ERROR requires a result check"
    severity = Severity.WARNING
    kinds = frozenset({NodeKind.FIND_STATEMENT})
    message = "FIND ... NO-ERROR on '{table}' is never followed by AVAILABLE({table}) or an ERROR-STATUS check"

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        if node.get("access") != "FIND" or not node.get("no_error"):
            return []
        table = node.get("table")
        for condition in conditions_in(context.enclosing_scope()):
            if not node.span.precedes(condition.span):
                continue
            function = condition.get("function")
            if function == "ERROR-STATUS":
                return []
            if function == "AVAILABLE" and same_name(condition.get("buffer"), table):
                return []
        return [self.report(node, context, table=table)]


class RequireBlockLevelThrowRule(Rule):
    """Every procedure and class file should start with BLOCK-LEVEL ON ERROR UNDO, THROW."""

    id = "require-block-level-throw"
    name = "BLOCK-LEVEL ON ERROR UNDO, THROW"
    severity = Severity.INFO
    kinds = frozenset({NodeKind.PROGRAM})
    message = "File does not declare BLOCK-LEVEL ON ERROR UNDO, THROW"

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        if context.unit.path.suffix.lower() == ".i":
            return []
        body = _statements(node)
        if not body:
            return []
        for child in body:
            if child.kind is NodeKind.STATEMENT and child.get("keyword") == "BLOCK-LEVEL" and child.get("throw"):
                return []
        return [self.report(node, context)]
