# Exception hierarchy: input errors, configuration errors, and rule failures.

from __future__ import annotations

from typing import Any, Optional


class AblLintError(Exception):
    """Base class for every error raised by abllint."""


class ParseInputError(AblLintError):
    """A SourceUnit (or the document it was loaded from) cannot be analyzed."""


class StructuralError(ParseInputError):
    """
    The node tree violates a structural precondition: a node reached twice
    (cycle or shared child) or a child span escaping its parent's span.

    Fatal for the affected SourceUnit only.
    """

    def __init__(self, message: str, node: Any = None) -> None:
        super().__init__(message)
        self.node = node


class ConfigError(AblLintError):
    """Invalid rule configuration; raised before any analysis begins."""


class DuplicateRuleError(ConfigError):
    def __init__(self, rule_id: str) -> None:
        super().__init__(f"Rule '{rule_id}' is already registered")
        self.rule_id = rule_id


class UnknownRuleError(ConfigError):
    def __init__(self, rule_id: str) -> None:
        super().__init__(f"Unknown rule '{rule_id}'")
        self.rule_id = rule_id


class RuleEvaluationError(AblLintError):
    """
    A rule's check() raised unexpectedly.

    The analyzer never lets this escape a run: it is logged and converted
    into an ``internal/rule-failure`` finding.
    """

    def __init__(self, rule_id: str, node: Any, cause: BaseException) -> None:
        super().__init__(f"Rule '{rule_id}' failed: {type(cause).__name__}: {cause}")
        self.rule_id = rule_id
        self.node = node
        self.cause: Optional[BaseException] = cause
