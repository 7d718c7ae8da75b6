"""Unit tests for the naming convention rules."""

from pathlib import Path

import pytest

from abllint.analyzer import analyze
from abllint.findings.models import Severity
from abllint.parser import parse_source
from abllint.rules.naming import (
    BufferNamingRule,
    ParameterNamingRule,
    VariableNamingRule,
    has_prefix,
    normalize_data_type,
)


def _run_rule(rule, source: str, path: Path | None = None) -> list:
    """Extract the construct tree, run one rule over it, return findings."""
    unit = parse_source(source, path=path or Path("test.p"))
    return list(analyze(unit, [rule]).findings)


class TestBufferNaming:
    def test_bad_buffer_name(self):
        findings = _run_rule(BufferNamingRule(), "DEFINE BUFFER memberInfoBuffer FOR Member.\n")
        assert len(findings) == 1
        f = findings[0]
        assert f.rule_id == "buffer-naming"
        assert f.severity is Severity.WARNING
        assert f.message == (
            "Buffer name 'memberInfoBuffer' does not match the required prefix pattern '^b[A-Z]'"
        )
        assert f.location.snippet == "DEFINE BUFFER memberInfoBuffer FOR Member."

    def test_good_buffer_name(self):
        assert _run_rule(BufferNamingRule(), "DEFINE BUFFER bMember FOR Member.\n") == []

    def test_lowercase_after_prefix_rejected(self):
        assert len(_run_rule(BufferNamingRule(), "DEFINE BUFFER buffer FOR Member.\n")) == 1

    def test_buffer_parameter_checked(self):
        source = "DEFINE PARAMETER BUFFER Customer FOR Customer.\n"
        assert len(_run_rule(BufferNamingRule(), source)) == 1


class TestVariableNaming:
    @pytest.mark.parametrize(
        "declaration",
        [
            "DEFINE VARIABLE cName AS CHARACTER NO-UNDO.",
            "DEFINE VARIABLE iCount AS INT NO-UNDO.",
            "DEFINE VARIABLE deTotal AS DECIMAL NO-UNDO.",
            "DEFINE VARIABLE lFound AS LOGICAL NO-UNDO.",
            "DEFINE VARIABLE hQuery AS HANDLE NO-UNDO.",
            "DEFINE VARIABLE oCustomer AS CLASS Sports.Customer NO-UNDO.",
            "VAR DATE daToday.",
        ],
    )
    def test_prefixed_names_pass(self, declaration):
        assert _run_rule(VariableNamingRule(), declaration + "\n") == []

    def test_missing_prefix(self):
        findings = _run_rule(VariableNamingRule(), "DEFINE VARIABLE customerName AS CHARACTER NO-UNDO.\n")
        assert len(findings) == 1
        assert findings[0].message == "Variable 'customerName' of type CHARACTER should be prefixed with 'c'"

    def test_wrong_type_prefix(self):
        findings = _run_rule(VariableNamingRule(), "DEFINE VARIABLE cCount AS INTEGER NO-UNDO.\n")
        assert len(findings) == 1
        assert "prefixed with 'i'" in findings[0].message

    def test_like_declaration_not_checked(self):
        assert _run_rule(VariableNamingRule(), "DEFINE VARIABLE x LIKE Customer.Name NO-UNDO.\n") == []


class TestParameterNaming:
    def test_define_parameters(self):
        source = """DEFINE INPUT PARAMETER ipcName AS CHARACTER NO-UNDO.
DEFINE OUTPUT PARAMETER result AS LOGICAL NO-UNDO.
DEFINE INPUT-OUTPUT PARAMETER iopiCount AS INTEGER NO-UNDO.
"""
        findings = _run_rule(ParameterNamingRule(), source)
        assert len(findings) == 1
        assert findings[0].message == "OUTPUT parameter 'result' should be prefixed with 'op'"
        assert findings[0].location.line == 2

    def test_signature_parameters(self):
        source = """METHOD PUBLIC LOGICAL Save (INPUT ipcName AS CHARACTER, OUTPUT cError AS CHARACTER):
    RETURN TRUE.
END METHOD.
"""
        findings = _run_rule(ParameterNamingRule(), source)
        assert len(findings) == 1
        assert "'cError'" in findings[0].message

    def test_default_mode_is_input(self):
        findings = _run_rule(ParameterNamingRule(), "DEFINE PARAMETER cName AS CHARACTER NO-UNDO.\n")
        assert len(findings) == 1
        assert findings[0].message.startswith("INPUT parameter")


def test_normalize_data_type():
    assert normalize_data_type("char") == "CHARACTER"
    assert normalize_data_type("INT") == "INTEGER"
    assert normalize_data_type("dec") == "DECIMAL"
    assert normalize_data_type("WIDGET-HANDLE") == "HANDLE"
    assert normalize_data_type("Sports.Customer") == "CLASS"
    assert normalize_data_type(None) is None


def test_has_prefix():
    assert has_prefix("cName", "c")
    assert has_prefix("i2", "i")
    assert not has_prefix("count", "c")
    assert not has_prefix("c", "c")
