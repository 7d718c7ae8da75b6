# Record locking rules: SHARE-LOCK usage, NO-WAIT handling, FIND FIRST vs FOR FIRST.

from __future__ import annotations

from typing import Optional

from abllint.context import AncestorContext, conditions_in, same_name
from abllint.findings.models import Finding, Severity
from abllint.nodes import Node, NodeKind
from abllint.rules.base import Rule


def lock_clause(record_access: Node) -> Optional[Node]:
    """Return the LockClause child of a record-access node, if any."""
    for child in record_access.children:
        if child.kind is NodeKind.LOCK_CLAUSE:
            return child
    return None


def describe_access(node: Node) -> str:
    """e.g. 'FIND FIRST', 'FOR EACH', 'CAN-FIND'."""
    return " ".join(part for part in (node.get("access"), node.get("qualifier")) if part)


class NoShareLockRule(Rule):
    """
    Flags record access that ends up with a SHARE-LOCK.

    A FIND, FOR or CAN-FIND without a lock phrase defaults to SHARE-LOCK, which
    holds the record for the rest of the transaction and invites deadlocks.
    """

    id = "no-share-lock"
    name = "Avoid SHARE-LOCK"
    severity = Severity.ERROR
    kinds = frozenset({NodeKind.FIND_STATEMENT})
    message = "{access} on '{table}' {problem}; use NO-LOCK or EXCLUSIVE-LOCK"
    remediation = "Add NO-LOCK for reads, EXCLUSIVE-LOCK (with NO-WAIT and a LOCKED check) for updates."

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        clause = lock_clause(node)
        if clause is None:
            problem = "has no lock phrase and defaults to SHARE-LOCK"
        elif str(clause.get("keyword", "")).upper() == "SHARE-LOCK":
            problem = "uses SHARE-LOCK"
        else:
            return []
        return [self.report(node, context, access=describe_access(node), table=node.get("table"), problem=problem)]


class NoWaitRequiresLockedCheckRule(Rule):
    """NO-WAIT is only safe when the code asks LOCKED before it asks AVAILABLE."""

    id = "no-wait-requires-locked-check"
    name = "NO-WAIT requires a LOCKED check"
    severity = Severity.ERROR
    kinds = frozenset({NodeKind.LOCK_CLAUSE})
    message = "NO-WAIT on '{buffer}' {problem}"
    remediation = (
        "After FIND ... EXCLUSIVE-LOCK NO-WAIT NO-ERROR test IF LOCKED(buffer) first, "
        "then IF NOT AVAILABLE(buffer)."
    )

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        if not node.get("no_wait"):
            return []
        access = context.parent
        buffer = access.get("table") if access is not None else None
        if buffer is None:
            return []

        scope = context.enclosing_scope()
        later = [c for c in conditions_in(scope, buffer=buffer) if node.span.precedes(c.span)]
        locked = next((c for c in later if c.get("function") == "LOCKED"), None)
        available = next((c for c in later if c.get("function") == "AVAILABLE"), None)

        if locked is None:
            problem = f"is never followed by a LOCKED({buffer}) test"
        elif available is not None and available.span.precedes(locked.span):
            problem = f"tests AVAILABLE({buffer}) before LOCKED({buffer})"
        else:
            return []
        return [self.report(node, context, buffer=buffer, problem=problem)]


class PreferForFirstRule(Rule):
    """
    FIND FIRST/LAST uses a single index; FOR FIRST/LAST can combine an index per
    WHERE predicate and does not leave a record scoped to the whole procedure.

    Not reported when the enclosing block tests LOCKED on the buffer, or has a
    LOCKED test with no buffer: that is the update pattern, which needs FIND.
    """

    id = "prefer-for-first"
    name = "Prefer FOR FIRST over FIND FIRST"
    severity = Severity.WARNING
    kinds = frozenset({NodeKind.FIND_STATEMENT})
    message = "Use FOR {qualifier} instead of FIND {qualifier} on '{table}'{detail}"
    remediation = "Rewrite as FOR FIRST <table> NO-LOCK WHERE ...: ... END."

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        qualifier = node.get("qualifier")
        if node.get("access") != "FIND" or qualifier not in ("FIRST", "LAST"):
            return []
        table = node.get("table")
        for locked in conditions_in(context.enclosing_scope(), function="LOCKED"):
            # A LOCKED test without a buffer (possible in node documents) counts for any buffer.
            if locked.get("buffer") is None or same_name(locked.get("buffer"), table):
                return []
        count = len(node.get("predicates") or ())
        detail = f"; FOR can select an index for each of its {count} WHERE predicates" if count > 1 else ""
        return [self.report(node, context, qualifier=qualifier, table=table, detail=detail)]
