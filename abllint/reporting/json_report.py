# JSON output: one document with every result, unit failure and a summary.

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from pydantic import BaseModel, Field

from abllint.analyzer import UnitFailure
from abllint.findings.models import AnalysisResult, Severity


class FailureEntry(BaseModel):
    path: Path
    error: str


class Summary(BaseModel):
    files: int = 0
    findings: int = 0
    errors: int = 0
    warnings: int = 0
    infos: int = 0
    failed_files: int = 0


class Report(BaseModel):
    """Top-level JSON document written by ``abllint analyze --format json``."""

    results: list[AnalysisResult] = Field(default_factory=list)
    failures: list[FailureEntry] = Field(default_factory=list)
    summary: Summary = Field(default_factory=Summary)


def build_report(results: Sequence[AnalysisResult], failures: Sequence[UnitFailure] = ()) -> Report:
    counts: dict[Severity, int] = {}
    for result in results:
        for severity, n in result.by_severity().items():
            counts[severity] = counts.get(severity, 0) + n
    return Report(
        results=list(results),
        failures=[FailureEntry(path=f.path, error=str(f.error)) for f in failures],
        summary=Summary(
            files=len(results) + len(failures),
            findings=sum(counts.values()),
            errors=counts.get(Severity.ERROR, 0),
            warnings=counts.get(Severity.WARNING, 0),
            infos=counts.get(Severity.INFO, 0),
            failed_files=len(failures),
        ),
    )


def render_json(results: Sequence[AnalysisResult], failures: Sequence[UnitFailure] = ()) -> str:
    return build_report(results, failures).model_dump_json(indent=2, exclude_none=True)
