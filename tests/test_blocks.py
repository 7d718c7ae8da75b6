"""Unit tests for the block structure rules: require-block-label and qualified-end."""

from pathlib import Path

from abllint.analyzer import analyze
from abllint.findings.models import Severity
from abllint.parser import parse_source
from abllint.rules.blocks import QualifiedEndRule, RequireBlockLabelRule


def _run_rule(rule, source: str, path: Path | None = None) -> list:
    """Extract the construct tree, run one rule over it, return findings."""
    unit = parse_source(source, path=path or Path("test.p"))
    return list(analyze(unit, [rule]).findings)


class TestRequireBlockLabel:
    def test_unlabelled_leave_in_nested_loop(self):
        source = """FOR EACH Customer NO-LOCK:
    FOR EACH Order OF Customer NO-LOCK:
        IF Order.Total > 100 THEN LEAVE.
    END.
END.
"""
        findings = _run_rule(RequireBlockLabelRule(), source)
        assert len(findings) == 1
        f = findings[0]
        assert f.rule_id == "require-block-label"
        assert f.severity is Severity.ERROR
        assert f.message.startswith("LEAVE without a block label")
        assert f.location.line == 3

    def test_labelled_statements_pass(self):
        source = """blkCustomer:
FOR EACH Customer NO-LOCK:
    blkOrder:
    FOR EACH Order OF Customer NO-LOCK:
        IF Order.Total > 100 THEN LEAVE blkCustomer.
        UNDO blkOrder, NEXT blkOrder.
    END.
END.
"""
        assert _run_rule(RequireBlockLabelRule(), source) == []

    def test_undo_action_without_target(self):
        source = """FOR EACH Customer NO-LOCK:
    blkOrder:
    FOR EACH Order OF Customer NO-LOCK:
        UNDO blkOrder, NEXT.
    END.
END.
"""
        findings = _run_rule(RequireBlockLabelRule(), source)
        assert len(findings) == 1
        assert findings[0].message.startswith("UNDO, NEXT without a block label")

    def test_loop_inside_transaction_block(self):
        source = """DO TRANSACTION:
    REPEAT:
        LEAVE.
    END.
END.
"""
        assert len(_run_rule(RequireBlockLabelRule(), source)) == 1

    def test_single_loop_not_checked(self):
        source = """FOR EACH Customer NO-LOCK:
    IF Customer.Balance > 0 THEN NEXT.
END.
"""
        assert _run_rule(RequireBlockLabelRule(), source) == []

    def test_statements_reported_once_by_their_own_loop(self):
        source = """FOR EACH Customer NO-LOCK:
    DO i = 1 TO 3:
        REPEAT:
            LEAVE.
        END.
    END.
END.
"""
        findings = _run_rule(RequireBlockLabelRule(), source)
        assert len(findings) == 1
        assert findings[0].location.line == 4

    def test_loop_in_procedure_is_not_nested(self):
        source = """PROCEDURE doWork:
    REPEAT:
        LEAVE.
    END.
END PROCEDURE.
"""
        assert _run_rule(RequireBlockLabelRule(), source) == []


class TestQualifiedEnd:
    def test_bare_end_on_procedure(self):
        source = "PROCEDURE doWork:\n    MESSAGE 1.\nEND.\n"
        findings = _run_rule(QualifiedEndRule(), source)
        assert len(findings) == 1
        f = findings[0]
        assert f.rule_id == "qualified-end"
        assert f.severity is Severity.INFO
        assert f.message == "PROCEDURE block is closed with a bare END; write END PROCEDURE."

    def test_qualified_end_passes(self):
        assert _run_rule(QualifiedEndRule(), "PROCEDURE doWork:\n    MESSAGE 1.\nEND PROCEDURE.\n") == []

    def test_do_block_needs_no_qualifier(self):
        assert _run_rule(QualifiedEndRule(), "DO:\n    MESSAGE 1.\nEND.\n") == []

    def test_catch_with_bare_end(self):
        source = """DO ON ERROR UNDO, THROW:
    CATCH e AS Progress.Lang.Error:
        MESSAGE "failed".
    END.
END.
"""
        findings = _run_rule(QualifiedEndRule(), source)
        assert len(findings) == 1
        assert findings[0].message.startswith("CATCH block")
        assert findings[0].location.line == 2

    def test_unclosed_block_not_reported(self):
        assert _run_rule(QualifiedEndRule(), "PROCEDURE doWork:\n    MESSAGE 1.\n") == []
