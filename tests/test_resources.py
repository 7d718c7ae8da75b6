"""Unit tests for require-scoped-cleanup."""

from pathlib import Path

from abllint.analyzer import analyze
from abllint.findings.models import Severity
from abllint.parser import parse_source
from abllint.rules.resources import RequireScopedCleanupRule


def _run_rule(source: str, path: Path | None = None) -> list:
    """Extract the construct tree, run RequireScopedCleanupRule, return findings."""
    unit = parse_source(source, path=path or Path("test.p"))
    return list(analyze(unit, [RequireScopedCleanupRule()]).findings)


def test_deleted_in_finally():
    source = """DO ON ERROR UNDO, THROW:
    CREATE QUERY hQuery.
    FINALLY:
        DELETE OBJECT hQuery NO-ERROR.
    END FINALLY.
END.
"""
    assert _run_rule(source) == []


def test_not_deleted():
    findings = _run_rule("CREATE QUERY hQuery.\n")
    assert len(findings) == 1
    f = findings[0]
    assert f.rule_id == "require-scoped-cleanup"
    assert f.severity is Severity.WARNING
    assert f.message == "Handle 'hQuery' from CREATE QUERY is not deleted in a FINALLY block"


def test_delete_outside_finally_does_not_count():
    source = """CREATE QUERY hQuery.
hQuery:QUERY-PREPARE("FOR EACH Customer NO-LOCK").
DELETE OBJECT hQuery.
"""
    assert len(_run_rule(source)) == 1


def test_finally_of_outer_block():
    source = """DO ON ERROR UNDO, THROW:
    DO:
        CREATE BUFFER hBuffer FOR TABLE "Customer".
    END.
    FINALLY:
        DELETE OBJECT hBuffer NO-ERROR.
    END FINALLY.
END.
"""
    assert _run_rule(source) == []


def test_finally_deleting_other_handle():
    source = """DO ON ERROR UNDO, THROW:
    CREATE QUERY hQuery.
    FINALLY:
        DELETE OBJECT hOther NO-ERROR.
    END FINALLY.
END.
"""
    assert len(_run_rule(source)) == 1


def test_persistent_procedure_in_routine():
    source = """PROCEDURE loadLib:
    RUN lib/util.p PERSISTENT SET hLib.
    FINALLY:
        DELETE PROCEDURE hLib.
    END FINALLY.
END PROCEDURE.
"""
    assert _run_rule(source) == []


def test_persistent_procedure_without_cleanup():
    findings = _run_rule("RUN lib/util.p PERSISTENT SET hLib.\n")
    assert len(findings) == 1
    assert "from RUN PROCEDURE" in findings[0].message


def test_record_create_ignored():
    assert _run_rule("CREATE Customer.\n") == []
