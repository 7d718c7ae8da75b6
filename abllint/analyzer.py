# Analyzer: one depth-first pass over a SourceUnit, dispatching nodes to the
# active rules by kind. Also runs many units in parallel and supports
# cooperative cancellation between top-level statements.

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional, Sequence, Union

from abllint.context import AncestorContext, get_snippet
from abllint.errors import ParseInputError, RuleEvaluationError, StructuralError
from abllint.findings.models import AnalysisResult, Finding, Location, Severity
from abllint.nodes import Node, NodeKind, SourceUnit
from abllint.registry import ActiveRule, RuleRegistry, default_registry
from abllint.rules.base import Rule

logger = logging.getLogger(__name__)

INTERNAL_RULE_ID = "internal/rule-failure"


class CancellationToken:
    """Thread-safe cancel flag, checked between top-level statements."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True)
class UnitFailure:
    """A unit that could not be analyzed (structural error in its tree)."""

    path: Path
    error: ParseInputError


UnitOutcome = Union[AnalysisResult, UnitFailure]


def _as_active(rule: Union[ActiveRule, Rule]) -> ActiveRule:
    if isinstance(rule, ActiveRule):
        return rule
    return ActiveRule(rule=rule, severity=rule.severity)


def _dispatch_table(rules: Iterable[ActiveRule]) -> dict[NodeKind, list[ActiveRule]]:
    table: dict[NodeKind, list[ActiveRule]] = {}
    for rule in rules:
        for kind in rule.kinds:
            table.setdefault(kind, []).append(rule)
    return table


def _check_structure(node: Node, parent: Optional[Node], seen: set[int]) -> None:
    if id(node) in seen:
        raise StructuralError(
            f"{node.kind.value} node at {node.span.line}:{node.span.column} is reached twice "
            "(cycle or shared child)",
            node,
        )
    seen.add(id(node))
    span = node.span
    if min(span.line, span.column, span.end_line, span.end_column) < 1:
        raise StructuralError(
            f"{node.kind.value} node has an out-of-bounds span "
            f"{span.line}:{span.column}-{span.end_line}:{span.end_column} (positions are 1-based)",
            node,
        )
    if node.span.end < node.span.start:
        raise StructuralError(
            f"{node.kind.value} node at {node.span.line}:{node.span.column} ends before it starts", node
        )
    if parent is not None and not parent.span.contains(node.span):
        raise StructuralError(
            f"{node.kind.value} node at {node.span.line}:{node.span.column} escapes the span of its "
            f"{parent.kind.value} parent at {parent.span.line}:{parent.span.column}",
            node,
        )


def _failure_finding(unit: SourceUnit, node: Node, error: RuleEvaluationError) -> Finding:
    span = node.span
    return Finding(
        rule_id=INTERNAL_RULE_ID,
        message=str(error),
        location=Location(
            path=unit.path,
            line=span.line,
            column=span.column,
            end_line=span.end_line,
            end_column=span.end_column,
            snippet=get_snippet(unit, node),
        ),
        severity=Severity.ERROR,
        source_rule=error.rule_id,
    )


def _evaluate(
    unit: SourceUnit,
    node: Node,
    context: AncestorContext,
    rules: Sequence[ActiveRule],
    findings: list[Finding],
) -> None:
    for rule in rules:
        try:
            findings.extend(rule.evaluate(node, context))
        except Exception as exc:
            error = RuleEvaluationError(rule.id, node, exc)
            logger.exception("Rule %s failed on %s line %d: %s", rule.id, unit.path, node.span.line, exc)
            findings.append(_failure_finding(unit, node, error))


def analyze(
    unit: SourceUnit,
    active_rules: Iterable[Union[ActiveRule, Rule]],
    cancel: Optional[CancellationToken] = None,
) -> AnalysisResult:
    """
    Run the active rules over one unit and return its sorted findings.

    Every node is visited once, depth first. Each rule whose kinds include
    the node's kind is called with the node and its AncestorContext; rules
    never see each other's findings. A rule that raises yields an
    ``internal/rule-failure`` finding instead of aborting the run.

    Raises:
        StructuralError: a node is reached twice, a span has a position
            below 1, or a child's span is not inside its parent's span.
    """
    dispatch = _dispatch_table(_as_active(r) for r in active_rules)
    root = unit.root
    findings: list[Finding] = []
    seen: set[int] = set()
    complete = True

    root_context = AncestorContext(unit=unit)
    _check_structure(root, None, seen)
    _evaluate(unit, root, root_context, dispatch.get(root.kind, ()), findings)

    for index, top in enumerate(root.children):
        if cancel is not None and cancel.cancelled:
            complete = False
            logger.info(
                "Analysis of %s cancelled after %d of %d top-level statements",
                unit.path,
                index,
                len(root.children),
            )
            break
        stack: list[tuple[Node, Node, AncestorContext]] = [(top, root, root_context.child(root, index))]
        while stack:
            node, parent, context = stack.pop()
            _check_structure(node, parent, seen)
            _evaluate(unit, node, context, dispatch.get(node.kind, ()), findings)
            for child_index in range(len(node.children) - 1, -1, -1):
                stack.append((node.children[child_index], node, context.child(node, child_index)))

    findings.sort(key=Finding.sort_key)
    logger.debug("Analyzed %s: %d finding(s)", unit.path, len(findings))
    return AnalysisResult(path=unit.path, findings=tuple(findings), complete=complete)


def _analyze_unit(
    unit: SourceUnit,
    rules: Sequence[ActiveRule],
    cancel: Optional[CancellationToken],
) -> UnitOutcome:
    try:
        return analyze(unit, rules, cancel)
    except ParseInputError as e:
        logger.error("Skipping %s: %s", unit.path, e)
        return UnitFailure(path=unit.path, error=e)


def analyze_many(
    units: Sequence[SourceUnit],
    active_rules: Iterable[Union[ActiveRule, Rule]],
    workers: int = 1,
    cancel: Optional[CancellationToken] = None,
) -> list[UnitOutcome]:
    """
    Analyze several units, in parallel when ``workers`` > 1.

    Units are independent: a structural error in one becomes a UnitFailure
    for that unit only. Outcomes are returned in input order.
    """
    rules = [_as_active(r) for r in active_rules]
    if workers <= 1 or len(units) <= 1:
        return [_analyze_unit(unit, rules, cancel) for unit in units]

    outcomes: list[Optional[UnitOutcome]] = [None] * len(units)
    with ThreadPoolExecutor(max_workers=workers) as executor:
        futures = {executor.submit(_analyze_unit, unit, rules, cancel): i for i, unit in enumerate(units)}
        for future in as_completed(futures):
            outcomes[futures[future]] = future.result()
    return [outcome for outcome in outcomes if outcome is not None]


class Analyzer:
    """Holds a registry and runs its active rules over units."""

    def __init__(self, registry: Optional[RuleRegistry] = None, workers: int = 1) -> None:
        self.registry = registry if registry is not None else default_registry()
        self.workers = workers

    def run(self, unit: SourceUnit, cancel: Optional[CancellationToken] = None) -> AnalysisResult:
        return analyze(unit, self.registry.active_rules(), cancel)

    def run_many(
        self,
        units: Sequence[SourceUnit],
        cancel: Optional[CancellationToken] = None,
    ) -> list[UnitOutcome]:
        return analyze_many(units, self.registry.active_rules(), workers=self.workers, cancel=cancel)
