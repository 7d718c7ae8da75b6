# Rich console output: findings grouped per file, coloured by severity.

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional, Sequence

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from abllint.analyzer import UnitFailure
from abllint.findings.models import AnalysisResult, Finding, Severity
from abllint.registry import RuleRegistry

# Severity → Rich style
SEVERITY_STYLE = {
    Severity.ERROR: "bold red",
    Severity.WARNING: "bold yellow",
    Severity.INFO: "bold blue",
}

DEFAULT_SEVERITY_STYLE = "bold white"


def _severity_style(severity: Severity) -> str:
    return SEVERITY_STYLE.get(severity, DEFAULT_SEVERITY_STYLE)


def remediations_from(registry: RuleRegistry) -> dict[str, str]:
    """Remediation hints per rule id, for rules that define one."""
    return {rule.id: rule.remediation for rule in registry if rule.remediation}


def print_results(
    results: Sequence[AnalysisResult],
    failures: Sequence[UnitFailure] = (),
    remediations: Optional[Mapping[str, str]] = None,
    verbose: bool = False,
    console: Optional[Console] = None,
) -> None:
    """
    Print analysis results using Rich.

    One table per file with findings, code snippets below it, remediation
    hints with ``verbose``, then a per-file summary and a totals panel.
    """
    console = console or Console()
    remediations = remediations or {}

    for result in sorted(results, key=lambda r: str(r.path)):
        if result.findings:
            _print_file_findings(result, remediations, verbose, console)

    for failure in failures:
        console.print(
            Panel(
                Text(str(failure.error), style="bold red"),
                title=f"[red]Not analyzed: {failure.path}[/red]",
                border_style="red",
                box=box.ROUNDED,
            )
        )

    findings = [f for r in results for f in r.findings]
    if results:
        _print_file_summary_table(results, console)
    _print_summary(findings, len(failures), console)


def _print_file_findings(
    result: AnalysisResult,
    remediations: Mapping[str, str],
    verbose: bool,
    console: Console,
) -> None:
    console.print()
    header = f"[bold cyan]{result.path}[/bold cyan]"
    if not result.complete:
        header += " [yellow](incomplete: cancelled)[/yellow]"
    console.print(Panel(header, box=box.SIMPLE_HEAD, border_style="blue", padding=(0, 1)))

    table = Table(show_header=True, header_style="bold magenta", box=box.SIMPLE, padding=(0, 1), expand=False)
    table.add_column("Line", justify="right", style="dim", width=5)
    table.add_column("Col", justify="right", style="dim", width=4)
    table.add_column("Severity", width=8)
    table.add_column("Rule", width=30)
    table.add_column("Message", style="white")

    for f in result.findings:
        loc = f.location
        table.add_row(
            str(loc.line),
            str(loc.column),
            Text(f.severity.value.upper(), style=_severity_style(f.severity)),
            Text(f"[{f.rule_id}]", style="dim"),
            Text(f.message),
        )
    console.print(table)

    snippets = [f for f in result.findings if f.location.snippet]
    for f in snippets:
        console.print(Text.assemble((f"  {f.location.line:>5} | ", "dim"), f.location.snippet))
    if snippets:
        console.print()

    if verbose:
        seen_rules: set[str] = set()
        for f in result.findings:
            rule_id = f.source_rule or f.rule_id
            if rule_id in seen_rules:
                continue
            seen_rules.add(rule_id)
            hint = remediations.get(rule_id)
            if hint:
                console.print(Text.assemble(("  [Fix] ", "dim"), (f"[{rule_id}] ", "cyan"), hint))
        if seen_rules:
            console.print()


def _print_file_summary_table(results: Sequence[AnalysisResult], console: Console) -> None:
    table = Table(title="Files Summary", show_header=True, header_style="bold cyan", box=box.ROUNDED, padding=(0, 1))
    table.add_column("File", style="white")
    table.add_column("Status", width=10)
    table.add_column("Findings", justify="right", width=8)

    for result in sorted(results, key=lambda r: (not r.has_errors, not r.findings, str(r.path))):
        if result.has_errors:
            status = Text("ERRORS", style="bold red")
        elif result.findings:
            status = Text("ISSUES", style="bold yellow")
        else:
            status = Text("OK", style="bold green")
        table.add_row(_display_path(result.path), status, str(len(result.findings)))

    console.print()
    console.print(Panel(table, border_style="cyan", box=box.ROUNDED))


def _display_path(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


def _print_summary(findings: Sequence[Finding], failed_units: int, console: Console) -> None:
    by_severity: dict[Severity, int] = {}
    for f in findings:
        by_severity[f.severity] = by_severity.get(f.severity, 0) + 1

    total = len(findings)
    summary_parts = [f"[bold]{total} finding{'s' if total != 1 else ''}[/bold]"]
    for sev in (Severity.ERROR, Severity.WARNING, Severity.INFO):
        if sev in by_severity:
            summary_parts.append(f"[{_severity_style(sev)}]{by_severity[sev]} {sev.value}[/]")
    if failed_units:
        summary_parts.append(f"[bold red]{failed_units} file(s) not analyzed[/]")

    console.print()
    console.print(
        Panel(
            " | ".join(summary_parts),
            title="Summary",
            border_style="yellow" if total or failed_units else "green",
            box=box.ROUNDED,
        )
    )


def print_rules(registry: RuleRegistry, console: Optional[Console] = None) -> None:
    """Table of every registered rule with its effective severity and state."""
    console = console or Console()
    table = Table(title="Rules", show_header=True, header_style="bold magenta", box=box.ROUNDED)
    table.add_column("Rule", style="cyan", no_wrap=True)
    table.add_column("Severity", width=8)
    table.add_column("Enabled", width=7)
    table.add_column("Title", style="white")

    for rule in registry:
        severity = registry.severity_of(rule.id)
        enabled = registry.is_enabled(rule.id)
        table.add_row(
            rule.id,
            Text(severity.value.upper(), style=_severity_style(severity)),
            Text("yes" if enabled else "no", style="green" if enabled else "dim"),
            rule.name,
        )
    console.print(table)
