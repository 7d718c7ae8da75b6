from __future__ import annotations

"""
Linter configuration: which rules exist, which are enabled, and at what severity.

Configuration comes from TOML, looked up in this order:

1. An explicit file passed to load_config() (``--config`` on the CLI)
2. ``abllint.toml`` in the working directory
3. The ``[tool.abllint]`` table of ``pyproject.toml`` in the working directory

Example::

    workers = 4
    exclude_dirs = ["legacy"]

    [rules]
    prefer-for-first = false          # shorthand for enabled = false
    buffer-naming = "info"            # shorthand for a severity override

    [rules.no-share-lock]
    enabled = true
    severity = "warning"
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from abllint.errors import ConfigError
from abllint.findings.models import Severity
from abllint.rules.base import Rule
from abllint.rules.blocks import QualifiedEndRule, RequireBlockLabelRule
from abllint.rules.comments import NoCommentedCodeRule, RequireFileHeaderRule
from abllint.rules.declarations import NoSharedVariablesRule, RequireNoUndoRule
from abllint.rules.error_handling import (
    CatchRethrowBareRule,
    NoEmptyCatchRule,
    NoErrorRequiresCheckRule,
    RequireBlockLevelThrowRule,
)
from abllint.rules.locking import NoShareLockRule, NoWaitRequiresLockedCheckRule, PreferForFirstRule
from abllint.rules.naming import BufferNamingRule, ParameterNamingRule, VariableNamingRule
from abllint.rules.resources import RequireScopedCleanupRule

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "abllint.toml"
PYPROJECT_FILE_NAME = "pyproject.toml"


class RuleSettings(BaseModel):
    """
    Per-rule settings; ``severity=None`` keeps the rule's default.

    The severity key may be spelled ``severity`` or ``severity-override``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    enabled: bool = True
    severity: Optional[Severity] = Field(default=None, alias="severity-override")

    @model_validator(mode="before")
    @classmethod
    def _expand_shorthand(cls, value: Any) -> Any:
        # `rule = false` and `rule = "error"`
        if isinstance(value, bool):
            return {"enabled": value}
        if isinstance(value, str):
            return {"severity": value}
        return value

    @field_validator("severity", mode="before")
    @classmethod
    def _lower_severity(cls, value: Any) -> Any:
        return value.lower() if isinstance(value, str) else value


class LintConfig(BaseModel):
    """
    Whole-run configuration.

    ``rules`` maps rule id to RuleSettings; ids are checked against the
    registry when the config is applied, not here.
    """

    model_config = ConfigDict(extra="forbid")

    rules: dict[str, RuleSettings] = Field(default_factory=dict)
    exclude_dirs: List[str] = Field(default_factory=list)
    # None means the default ABL suffixes (see abllint.traversal).
    extensions: Optional[List[str]] = None
    include_documents: bool = True
    workers: int = Field(default=1, ge=1)

    def with_overrides(self, enable: Iterable[str] = (), disable: Iterable[str] = ()) -> "LintConfig":
        """Return a copy with rules switched on/off (CLI --enable/--disable)."""
        rules = dict(self.rules)
        for rule_id in enable:
            rules[rule_id] = rules.get(rule_id, RuleSettings()).model_copy(update={"enabled": True})
        for rule_id in disable:
            rules[rule_id] = rules.get(rule_id, RuleSettings()).model_copy(update={"enabled": False})
        return self.model_copy(update={"rules": rules})


def get_default_rules() -> List[Rule]:
    """
    Return one instance of every built-in rule, in registration order.

    This is the single place to update when a rule is added.
    """
    return [
        NoShareLockRule(),
        NoWaitRequiresLockedCheckRule(),
        PreferForFirstRule(),
        BufferNamingRule(),
        NoCommentedCodeRule(),
        RequireBlockLabelRule(),
        RequireNoUndoRule(),
        CatchRethrowBareRule(),
        RequireFileHeaderRule(),
        RequireScopedCleanupRule(),
        NoErrorRequiresCheckRule(),
        VariableNamingRule(),
        ParameterNamingRule(),
        NoSharedVariablesRule(),
        NoEmptyCatchRule(),
        RequireBlockLevelThrowRule(),
        QualifiedEndRule(),
    ]


def parse_config(data: Mapping[str, Any], source: Optional[Path] = None) -> LintConfig:
    """Validate a raw mapping (already-parsed TOML) into a LintConfig."""
    try:
        return LintConfig.model_validate(dict(data))
    except ValidationError as e:
        where = f" in {source}" if source is not None else ""
        raise ConfigError(f"Invalid configuration{where}: {e}") from e


def _load_toml_file(path: Path) -> dict:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e


def _tool_table(pyproject: dict) -> Optional[dict]:
    return pyproject.get("tool", {}).get("abllint")


def find_config_file(directory: Optional[Path] = None) -> Optional[Path]:
    """Locate abllint.toml, or a pyproject.toml with a [tool.abllint] table."""
    directory = directory or Path.cwd()
    candidate = directory / CONFIG_FILE_NAME
    if candidate.is_file():
        return candidate
    pyproject = directory / PYPROJECT_FILE_NAME
    if pyproject.is_file() and _tool_table(_load_toml_file(pyproject)) is not None:
        return pyproject
    return None


def load_config(path: Optional[Path] = None, directory: Optional[Path] = None) -> LintConfig:
    """
    Load configuration from ``path``, or discover it in ``directory``.

    Returns the default LintConfig when nothing is found. Raises ConfigError
    for unreadable files, invalid TOML, or invalid values.
    """
    if path is None:
        path = find_config_file(directory)
        if path is None:
            logger.debug("No configuration file found; using defaults")
            return LintConfig()

    data = _load_toml_file(path)
    if path.name == PYPROJECT_FILE_NAME:
        data = _tool_table(data) or {}
    logger.info("Loaded configuration from %s", path)
    return parse_config(data, source=path)
