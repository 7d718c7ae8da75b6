from __future__ import annotations

"""
Typer CLI entry point and orchestration of the analysis pipeline.

- ``abllint analyze TARGET``: find ABL sources (and node documents) under
  TARGET, build a SourceUnit for each, run the enabled rules and report.
  Exit code 1 when any error-severity finding is reported or a file could
  not be analyzed, 2 for configuration errors.
- ``abllint rules``: list the registered rules and their effective state.
- ``abllint extract FILE``: print the node document extracted from FILE.
"""

import json
import logging
from enum import Enum
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from abllint.analyzer import Analyzer, UnitFailure
from abllint.config import LintConfig, load_config
from abllint.context import create_unit
from abllint.document import dump_document
from abllint.errors import ConfigError, ParseInputError
from abllint.findings.models import AnalysisResult
from abllint.nodes import SourceUnit
from abllint.registry import RuleRegistry, default_registry
from abllint.reporting.console import print_results, print_rules, remediations_from
from abllint.reporting.json_report import render_json
from abllint.traversal import ABL_SUFFIXES, DEFAULT_IGNORE_DIRS, find_source_files, is_abl_file, is_node_document

logger = logging.getLogger(__name__)

app = typer.Typer(help="abllint - style and correctness checks for ABL (OpenEdge) source code.")

EXIT_FINDINGS = 1
EXIT_CONFIG = 2


class OutputFormat(str, Enum):
    console = "console"
    json = "json"


def setup_logging(verbose: bool = False) -> None:
    """Send log records to stderr through Rich; DEBUG with --verbose, else WARNING."""
    level = logging.DEBUG if verbose else logging.WARNING
    handler = RichHandler(
        console=Console(stderr=True),
        rich_tracebacks=True,
        show_time=False,
        show_path=verbose,
    )
    logging.basicConfig(level=level, format="%(message)s", handlers=[handler], force=True)


def _build_registry(
    config_file: Optional[Path],
    enable: List[str],
    disable: List[str],
) -> tuple[LintConfig, RuleRegistry]:
    try:
        config = load_config(config_file).with_overrides(enable=enable, disable=disable)
        return config, default_registry(config)
    except ConfigError as e:
        Console(stderr=True).print(f"[bold red]Configuration error:[/bold red] {e}", markup=True, highlight=False)
        raise typer.Exit(code=EXIT_CONFIG) from e


def _collect_files(target: Path, config: LintConfig) -> List[Path]:
    """
    Resolve a target path into the files to analyze.

    - A file must be ABL source or a .json node document.
    - A directory is searched recursively (see abllint.traversal).
    """
    suffixes = config.extensions or ABL_SUFFIXES
    if target.is_file():
        if not (is_abl_file(target, suffixes) or is_node_document(target)):
            raise typer.BadParameter(f"Not an ABL source file or node document: {target}")
        return [target]

    if target.is_dir():
        files = find_source_files(
            target,
            include_documents=config.include_documents,
            ignore_dirs=DEFAULT_IGNORE_DIRS | set(config.exclude_dirs),
            suffixes=suffixes,
        )
        if not files:
            logger.warning("No ABL files found under %s", target)
        return files

    raise typer.BadParameter(f"Target path is neither a file nor a directory: {target}")


def _load(files: List[Path]) -> tuple[List[SourceUnit], List[UnitFailure]]:
    units: List[SourceUnit] = []
    failures: List[UnitFailure] = []
    for path in files:
        try:
            unit = create_unit(path)
        except ParseInputError as e:
            logger.error("Skipping %s: %s", path, e)
            failures.append(UnitFailure(path=path, error=e))
            continue
        if unit is not None:
            units.append(unit)
    return units, failures


@app.command()
def analyze(
    target: Path = typer.Argument(
        ...,
        exists=True,
        readable=True,
        resolve_path=True,
        help="ABL file, node document, or directory to analyze.",
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", exists=True, dir_okay=False, help="TOML configuration file."
    ),
    output_format: OutputFormat = typer.Option(OutputFormat.console, "--format", "-f", help="Output format."),
    disable: List[str] = typer.Option([], "--disable", help="Disable a rule by id (repeatable)."),
    enable: List[str] = typer.Option([], "--enable", help="Enable a rule by id (repeatable)."),
    workers: Optional[int] = typer.Option(None, "--workers", "-j", min=1, help="Files analyzed in parallel."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging and remediation hints."),
) -> None:
    """Analyze a single ABL file or every ABL file under a directory."""
    setup_logging(verbose)
    config, registry = _build_registry(config_file, enable, disable)

    if not registry.active_rules():
        typer.echo("No rules are enabled in the current configuration.")
        raise typer.Exit(code=EXIT_FINDINGS)

    units, failures = _load(_collect_files(target, config))
    analyzer = Analyzer(registry, workers=workers or config.workers)

    results: List[AnalysisResult] = []
    for outcome in analyzer.run_many(units):
        if isinstance(outcome, UnitFailure):
            failures.append(outcome)
        else:
            results.append(outcome)

    if output_format is OutputFormat.json:
        typer.echo(render_json(results, failures))
    else:
        print_results(results, failures, remediations=remediations_from(registry), verbose=verbose)

    if failures or any(r.has_errors for r in results):
        raise typer.Exit(code=EXIT_FINDINGS)


@app.command("rules")
def list_rules(
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", exists=True, dir_okay=False, help="TOML configuration file."
    ),
) -> None:
    """List every rule with its severity and whether it is enabled."""
    setup_logging()
    _, registry = _build_registry(config_file, [], [])
    print_rules(registry)


@app.command()
def extract(
    source: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="ABL source file."),
    include_text: bool = typer.Option(True, "--text/--no-text", help="Embed the source text in the document."),
) -> None:
    """Print the node document extracted from an ABL source file as JSON."""
    setup_logging()
    try:
        unit = create_unit(source)
    except ParseInputError as e:
        raise typer.BadParameter(str(e)) from e
    if unit is None:
        raise typer.Exit(code=EXIT_FINDINGS)
    typer.echo(json.dumps(dump_document(unit, include_text=include_text), indent=2))


def main() -> None:
    """Entry point for the ``abllint`` console script and `python -m abllint.main`."""
    app()


if __name__ == "__main__":
    main()
