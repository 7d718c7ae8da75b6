# Pydantic data models for rule findings: Severity, Location, Finding, AnalysisResult.

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field


class Severity(str, Enum):
    """How serious a finding is, independent of whether the check is structural or stylistic."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"

    @property
    def rank(self) -> int:
        return {"error": 0, "warning": 1, "info": 2}[self.value]


class Location(BaseModel):
    """Where in the source a finding was reported (file, line/column span)."""

    path: Path
    line: int = Field(..., ge=1, description="1-based line number")
    column: int = Field(..., ge=1, description="1-based column number")
    end_line: Optional[int] = Field(None, ge=1)
    end_column: Optional[int] = Field(None, ge=1)
    snippet: Optional[str] = None

    model_config = {"arbitrary_types_allowed": True, "frozen": True}


class Finding(BaseModel):
    """A single rule violation (e.g. SHARE-LOCK on a FIND at line 42)."""

    rule_id: str
    message: str
    location: Location
    severity: Severity = Field(default=Severity.WARNING)
    # Set only on internal/rule-failure findings: the rule that crashed.
    source_rule: Optional[str] = None

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    def sort_key(self) -> tuple[int, int, str]:
        return self.location.line, self.location.column, self.rule_id


class AnalysisResult(BaseModel):
    """
    Findings for one SourceUnit, sorted by (line, column, rule id).

    ``complete`` is False when the run was cancelled before every top-level
    statement was visited.
    """

    path: Path
    findings: tuple[Finding, ...] = ()
    complete: bool = True

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @property
    def has_errors(self) -> bool:
        return any(f.severity is Severity.ERROR for f in self.findings)

    def by_severity(self) -> dict[Severity, int]:
        counts: dict[Severity, int] = {}
        for f in self.findings:
            counts[f.severity] = counts.get(f.severity, 0) + 1
        return counts

    def rule_ids(self) -> set[str]:
        return {f.rule_id for f in self.findings}

    def for_rule(self, rule_id: str) -> list[Finding]:
        return [f for f in self.findings if f.rule_id == rule_id]
