"""Unit tests for the locking rules: no-share-lock, no-wait-requires-locked-check, prefer-for-first."""

from pathlib import Path

from abllint.analyzer import analyze
from abllint.findings.models import Severity
from abllint.nodes import Node, NodeKind, SourceUnit, Span
from abllint.parser import parse_source
from abllint.rules.locking import NoShareLockRule, NoWaitRequiresLockedCheckRule, PreferForFirstRule


def _run_rule(rule, source: str, path: Path | None = None) -> list:
    """Extract the construct tree, run one rule over it, return findings."""
    unit = parse_source(source, path=path or Path("test.p"))
    return list(analyze(unit, [rule]).findings)


class TestNoShareLock:
    def test_no_lock_is_fine(self):
        assert _run_rule(NoShareLockRule(), "FIND FIRST Customer NO-LOCK NO-ERROR.\n") == []

    def test_exclusive_lock_is_fine(self):
        assert _run_rule(NoShareLockRule(), "FIND Customer WHERE Customer.CustNum = 1 EXCLUSIVE-LOCK.\n") == []

    def test_missing_lock_phrase(self):
        findings = _run_rule(NoShareLockRule(), "FIND FIRST Customer.\n")
        assert len(findings) == 1
        f = findings[0]
        assert f.rule_id == "no-share-lock"
        assert f.severity is Severity.ERROR
        assert "defaults to SHARE-LOCK" in f.message
        assert "FIND FIRST" in f.message
        assert (f.location.line, f.location.column) == (1, 1)

    def test_explicit_share_lock(self):
        findings = _run_rule(NoShareLockRule(), "FIND Customer WHERE Customer.CustNum = 1 SHARE-LOCK.\n")
        assert len(findings) == 1
        assert "uses SHARE-LOCK" in findings[0].message

    def test_for_each_phrases_checked_individually(self):
        source = "FOR EACH Order NO-LOCK, EACH OrderLine OF Order:\nEND.\n"
        findings = _run_rule(NoShareLockRule(), source)
        assert len(findings) == 1
        assert "FOR EACH on 'OrderLine'" in findings[0].message

    def test_can_find_without_lock(self):
        findings = _run_rule(NoShareLockRule(), "IF CAN-FIND(FIRST Order WHERE Order.CustNum = 1) THEN RETURN.\n")
        assert len(findings) == 1
        assert findings[0].message.startswith("CAN-FIND FIRST on 'Order'")

    def test_hand_built_record_access_without_lock_clause(self):
        find = Node(
            NodeKind.FIND_STATEMENT,
            Span(3, 5, 3, 30),
            {"access": "FIND", "qualifier": "FIRST", "table": "Member"},
        )
        root = Node(NodeKind.PROGRAM, Span(1, 1, 5, 1), {}, (find,))
        unit = SourceUnit(path=Path("member.p"), root=root)

        findings = analyze(unit, [NoShareLockRule()]).findings
        assert len(findings) == 1
        loc = findings[0].location
        assert findings[0].severity is Severity.ERROR
        assert (loc.line, loc.column, loc.end_line, loc.end_column) == (3, 5, 3, 30)
        assert loc.snippet is None


class TestNoWaitRequiresLockedCheck:
    def test_locked_checked_before_available(self):
        source = """FIND FIRST Customer WHERE Customer.CustNum = 1 EXCLUSIVE-LOCK NO-WAIT NO-ERROR.
IF LOCKED Customer THEN RETURN.
IF NOT AVAILABLE Customer THEN RETURN.
"""
        assert _run_rule(NoWaitRequiresLockedCheckRule(), source) == []

    def test_missing_locked_check(self):
        source = """FIND FIRST Customer WHERE Customer.CustNum = 1 EXCLUSIVE-LOCK NO-WAIT NO-ERROR.
IF NOT AVAILABLE Customer THEN RETURN.
"""
        findings = _run_rule(NoWaitRequiresLockedCheckRule(), source)
        assert len(findings) == 1
        f = findings[0]
        assert f.rule_id == "no-wait-requires-locked-check"
        assert f.severity is Severity.ERROR
        assert "never followed by a LOCKED(Customer)" in f.message
        assert f.location.column == source.index("EXCLUSIVE-LOCK") + 1

    def test_available_tested_before_locked(self):
        source = """FIND FIRST Customer WHERE Customer.CustNum = 1 EXCLUSIVE-LOCK NO-WAIT NO-ERROR.
IF AVAILABLE Customer THEN MESSAGE "found".
IF LOCKED Customer THEN RETURN.
"""
        findings = _run_rule(NoWaitRequiresLockedCheckRule(), source)
        assert len(findings) == 1
        assert "AVAILABLE(Customer) before LOCKED(Customer)" in findings[0].message

    def test_locked_check_on_other_buffer_does_not_count(self):
        source = """FIND FIRST Customer EXCLUSIVE-LOCK NO-WAIT NO-ERROR.
IF LOCKED Order THEN RETURN.
"""
        assert len(_run_rule(NoWaitRequiresLockedCheckRule(), source)) == 1

    def test_without_no_wait_nothing_to_check(self):
        source = "FIND FIRST Customer EXCLUSIVE-LOCK NO-ERROR.\n"
        assert _run_rule(NoWaitRequiresLockedCheckRule(), source) == []

    def test_check_inside_enclosing_block(self):
        source = """DO TRANSACTION:
    FIND FIRST Customer EXCLUSIVE-LOCK NO-WAIT NO-ERROR.
    IF LOCKED(Customer) THEN UNDO, LEAVE.
    IF NOT AVAILABLE(Customer) THEN UNDO, LEAVE.
END.
"""
        assert _run_rule(NoWaitRequiresLockedCheckRule(), source) == []


class TestPreferForFirst:
    def test_find_first_with_two_predicates(self):
        source = "FIND FIRST Customer WHERE Customer.Country = 'USA' AND Customer.State = 'MA' NO-LOCK NO-ERROR.\n"
        findings = _run_rule(PreferForFirstRule(), source)
        assert len(findings) == 1
        f = findings[0]
        assert f.rule_id == "prefer-for-first"
        assert f.severity is Severity.WARNING
        assert "FOR FIRST" in f.message
        assert "2 WHERE predicates" in f.message

    def test_find_last_reported(self):
        findings = _run_rule(PreferForFirstRule(), "FIND LAST Order NO-LOCK NO-ERROR.\n")
        assert len(findings) == 1
        assert "FOR LAST" in findings[0].message

    def test_suppressed_when_block_tests_locked(self):
        source = """DO TRANSACTION:
    FIND FIRST Customer EXCLUSIVE-LOCK NO-WAIT NO-ERROR.
    IF LOCKED Customer THEN UNDO, LEAVE.
END.
"""
        assert _run_rule(PreferForFirstRule(), source) == []

    def test_locked_on_other_buffer_does_not_suppress(self):
        source = """FIND FIRST Customer NO-LOCK NO-ERROR.
IF LOCKED Order THEN RETURN.
"""
        assert len(_run_rule(PreferForFirstRule(), source)) == 1

    def test_bufferless_locked_condition_suppresses(self):
        find = Node(
            NodeKind.FIND_STATEMENT,
            Span(2, 5, 2, 40),
            {"access": "FIND", "qualifier": "FIRST", "table": "Customer"},
        )
        locked = Node(NodeKind.CONDITION, Span(3, 5, 3, 20), {"function": "LOCKED"})
        block = Node(NodeKind.BLOCK_STATEMENT, Span(1, 1, 4, 4), {"block_type": "DO"}, (find, locked))
        root = Node(NodeKind.PROGRAM, Span(1, 1, 5, 1), {}, (block,))
        unit = SourceUnit(path=Path("member.p"), root=root)

        assert analyze(unit, [PreferForFirstRule()]).findings == ()

    def test_unqualified_find_and_for_first_ignored(self):
        source = """FIND Customer WHERE Customer.CustNum = 1 NO-LOCK NO-ERROR.
FOR FIRST Customer NO-LOCK:
END.
"""
        assert _run_rule(PreferForFirstRule(), source) == []
