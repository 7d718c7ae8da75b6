# Rule registry: registration order, enable/disable state, severity overrides.

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Iterator, Mapping, Optional, Union

from pydantic import ValidationError

from abllint.config import LintConfig, RuleSettings, get_default_rules
from abllint.context import AncestorContext
from abllint.errors import ConfigError, DuplicateRuleError, UnknownRuleError
from abllint.findings.models import Finding, Severity
from abllint.nodes import Node, NodeKind
from abllint.rules.base import Rule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ActiveRule:
    """An enabled rule together with its effective severity."""

    rule: Rule
    severity: Severity

    @property
    def id(self) -> str:
        return self.rule.id

    @property
    def kinds(self) -> frozenset[NodeKind]:
        return self.rule.kinds

    def evaluate(self, node: Node, context: AncestorContext) -> list[Finding]:
        """Run the rule and stamp the effective severity onto its findings."""
        return [
            f if f.severity is self.severity else f.model_copy(update={"severity": self.severity})
            for f in self.rule.check(node, context)
        ]


class RuleRegistry:
    """
    Ordered set of rules keyed by id.

    Mutated only during setup; active_rules() hands the analyzer a snapshot
    so concurrent runs never see a registry being changed.
    """

    def __init__(self, rules: Iterable[Rule] = ()) -> None:
        self._rules: dict[str, Rule] = {}
        self._enabled: dict[str, bool] = {}
        self._severity: dict[str, Severity] = {}
        for rule in rules:
            self.register(rule)

    def register(self, rule: Rule, enabled: bool = True) -> None:
        if rule.id in self._rules:
            raise DuplicateRuleError(rule.id)
        self._rules[rule.id] = rule
        self._enabled[rule.id] = enabled
        logger.debug("Registered rule %s", rule.id)

    def _require(self, rule_id: str) -> Rule:
        try:
            return self._rules[rule_id]
        except KeyError:
            raise UnknownRuleError(rule_id) from None

    def get(self, rule_id: str) -> Rule:
        return self._require(rule_id)

    def enable(self, rule_id: str) -> None:
        self._require(rule_id)
        self._enabled[rule_id] = True

    def disable(self, rule_id: str) -> None:
        self._require(rule_id)
        self._enabled[rule_id] = False

    def is_enabled(self, rule_id: str) -> bool:
        self._require(rule_id)
        return self._enabled[rule_id]

    def set_severity(self, rule_id: str, severity: Union[Severity, str, None]) -> None:
        """Override the rule's severity; None restores its default."""
        self._require(rule_id)
        if severity is None:
            self._severity.pop(rule_id, None)
            return
        value = severity.lower() if isinstance(severity, str) else severity
        try:
            self._severity[rule_id] = Severity(value)
        except ValueError as e:
            allowed = ", ".join(s.value for s in Severity)
            raise ConfigError(f"Invalid severity {severity!r} for rule {rule_id!r} (expected one of: {allowed})") from e

    def severity_of(self, rule_id: str) -> Severity:
        rule = self._require(rule_id)
        return self._severity.get(rule_id, rule.severity)

    def ids(self) -> list[str]:
        return list(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules

    def __iter__(self) -> Iterator[Rule]:
        return iter(list(self._rules.values()))

    def active_rules(self) -> list[ActiveRule]:
        """Enabled rules in registration order, with effective severities."""
        return [
            ActiveRule(rule=rule, severity=self._severity.get(rule_id, rule.severity))
            for rule_id, rule in self._rules.items()
            if self._enabled[rule_id]
        ]

    def configure(self, config: Union[LintConfig, Mapping[str, Union[RuleSettings, Mapping, bool, str]]]) -> None:
        """
        Apply per-rule settings.

        Every id is checked before anything changes, so an UnknownRuleError
        leaves the registry untouched.
        """
        raw = config.rules if isinstance(config, LintConfig) else config
        try:
            settings = {
                rule_id: value if isinstance(value, RuleSettings) else RuleSettings.model_validate(value)
                for rule_id, value in raw.items()
            }
        except ValidationError as e:
            raise ConfigError(f"Invalid rule settings: {e}") from e
        for rule_id in settings:
            self._require(rule_id)
        for rule_id, rule_settings in settings.items():
            self._enabled[rule_id] = rule_settings.enabled
            self.set_severity(rule_id, rule_settings.severity)


def default_registry(config: Optional[LintConfig] = None) -> RuleRegistry:
    """Registry holding every built-in rule, optionally configured."""
    registry = RuleRegistry(get_default_rules())
    if config is not None:
        registry.configure(config)
    return registry
