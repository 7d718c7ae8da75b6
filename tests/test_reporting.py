"""Tests for console and JSON reporting."""

import json
from io import StringIO
from pathlib import Path

from rich.console import Console

from abllint.analyzer import UnitFailure
from abllint.errors import StructuralError
from abllint.findings.models import AnalysisResult, Finding, Location, Severity
from abllint.registry import default_registry
from abllint.reporting.console import print_results, print_rules, remediations_from
from abllint.reporting.json_report import build_report, render_json


def _console() -> tuple[Console, StringIO]:
    buffer = StringIO()
    return Console(file=buffer, width=160, color_system=None), buffer


def _finding(rule_id, severity, line=1, snippet=None):
    return Finding(
        rule_id=rule_id,
        message=f"{rule_id} message [not markup]",
        location=Location(path=Path("a.p"), line=line, column=1, snippet=snippet),
        severity=severity,
    )


RESULTS = [
    AnalysisResult(
        path=Path("a.p"),
        findings=(
            _finding("no-share-lock", Severity.ERROR, snippet="FIND FIRST Customer."),
            _finding("buffer-naming", Severity.WARNING, line=2),
        ),
    ),
    AnalysisResult(path=Path("b.p"), findings=()),
]


def test_print_results_shows_findings_and_summary():
    console, buffer = _console()
    print_results(RESULTS, console=console)
    out = buffer.getvalue()

    assert "[no-share-lock]" in out
    assert "no-share-lock message [not markup]" in out
    assert "FIND FIRST Customer." in out
    assert "ERRORS" in out
    assert "OK" in out
    assert "2 findings" in out
    assert "1 error" in out


def test_print_results_verbose_shows_remediation():
    console, buffer = _console()
    print_results(RESULTS, remediations=remediations_from(default_registry()), verbose=True, console=console)
    assert "[Fix]" in buffer.getvalue()


def test_print_results_lists_failures():
    console, buffer = _console()
    failure = UnitFailure(path=Path("broken.p"), error=StructuralError("node reached twice"))
    print_results([], [failure], console=console)
    out = buffer.getvalue()
    assert "Not analyzed: broken.p" in out
    assert "1 file(s) not analyzed" in out


def test_incomplete_result_is_marked():
    console, buffer = _console()
    partial = AnalysisResult(path=Path("c.p"), findings=(_finding("qualified-end", Severity.INFO),), complete=False)
    print_results([partial], console=console)
    assert "incomplete" in buffer.getvalue()


def test_print_rules():
    registry = default_registry()
    registry.disable("qualified-end")
    console, buffer = _console()
    print_rules(registry, console=console)
    out = buffer.getvalue()
    assert "no-wait-requires-locked-check" in out
    assert "qualified-end" in out
    assert "no" in out


def test_build_report_summary():
    failure = UnitFailure(path=Path("broken.p"), error=StructuralError("bad"))
    report = build_report(RESULTS, [failure])
    assert report.summary.files == 3
    assert report.summary.findings == 2
    assert report.summary.errors == 1
    assert report.summary.warnings == 1
    assert report.summary.failed_files == 1


def test_render_json():
    data = json.loads(render_json(RESULTS))
    first = data["results"][0]
    assert first["path"] == "a.p"
    assert first["complete"] is True
    assert first["findings"][0]["rule_id"] == "no-share-lock"
    assert "source_rule" not in first["findings"][0]
    assert data["failures"] == []
