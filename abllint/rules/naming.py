# Naming convention rules: buffer, variable and parameter prefixes.

from __future__ import annotations

import re
from typing import Optional

from abllint.context import AncestorContext
from abllint.findings.models import Finding, Severity
from abllint.nodes import Node, NodeKind
from abllint.rules.base import Rule

BUFFER_NAME_PATTERN = re.compile(r"^b[A-Z]")

# Accepted prefixes per data type; the first one is suggested in messages.
TYPE_PREFIXES: dict[str, tuple[str, ...]] = {
    "CHARACTER": ("c",),
    "LONGCHAR": ("lc",),
    "INTEGER": ("i",),
    "INT64": ("i", "i64"),
    "DECIMAL": ("de", "d"),
    "LOGICAL": ("l",),
    "DATE": ("da", "dt", "d"),
    "DATETIME": ("dtm", "dt"),
    "DATETIME-TZ": ("dtz", "dt"),
    "HANDLE": ("h",),
    "COM-HANDLE": ("ch", "h"),
    "ROWID": ("r", "rw"),
    "RECID": ("rec", "r"),
    "MEMPTR": ("m", "mp"),
    "RAW": ("raw", "rw"),
    "CLASS": ("o",),
}

# (full keyword, shortest accepted abbreviation)
_ABBREVIATIONS = (
    ("CHARACTER", 4),
    ("INTEGER", 3),
    ("DECIMAL", 3),
    ("LOGICAL", 3),
)

PARAMETER_PREFIXES = {"INPUT": "ip", "OUTPUT": "op", "INPUT-OUTPUT": "iop"}


def normalize_data_type(raw: Optional[str]) -> Optional[str]:
    """
    Map a declared type to a TYPE_PREFIXES key.

    Keyword abbreviations (CHAR, INT, DEC, LOG) are expanded; anything that
    is not a built-in type is a class type.
    """
    if not raw:
        return None
    upper = raw.upper()
    if upper in TYPE_PREFIXES:
        return upper
    if upper == "WIDGET-HANDLE":
        return "HANDLE"
    for full, shortest in _ABBREVIATIONS:
        if len(upper) >= shortest and full.startswith(upper):
            return full
    return "CLASS"


def has_prefix(name: str, prefix: str) -> bool:
    """True if name is prefix + an upper-case letter or digit (e.g. cName, i2)."""
    if not name.startswith(prefix) or len(name) <= len(prefix):
        return False
    following = name[len(prefix)]
    return following.isupper() or following.isdigit()


class BufferNamingRule(Rule):
    id = "buffer-naming"
    name = "Buffer naming"
    severity = Severity.WARNING
    kinds = frozenset({NodeKind.BUFFER_DECLARATION})
    message = "Buffer name '{name}' does not match the required prefix pattern '{pattern}'"
    remediation = "Name buffers b<Table>, e.g. DEFINE BUFFER bCustomer FOR Customer."

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        name = node.get("name")
        if not name or BUFFER_NAME_PATTERN.match(name):
            return []
        return [self.report(node, context, name=name, pattern=BUFFER_NAME_PATTERN.pattern)]


class VariableNamingRule(Rule):
    """Variables carry a data-type prefix: cName, iCount, lFound, hQuery, oCustomer."""

    id = "variable-naming"
    name = "Variable naming"
    severity = Severity.WARNING
    kinds = frozenset({NodeKind.VARIABLE_DECLARATION})
    message = "Variable '{name}' of type {data_type} should be prefixed with '{prefix}'"

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        name = node.get("name")
        data_type = normalize_data_type(node.get("data_type"))
        if not name or data_type is None:
            return []
        prefixes = TYPE_PREFIXES[data_type]
        if any(has_prefix(name, p) for p in prefixes):
            return []
        return [self.report(node, context, name=name, data_type=data_type, prefix=prefixes[0])]


class ParameterNamingRule(Rule):
    """Parameter names start with their mode: ip (INPUT), op (OUTPUT), iop (INPUT-OUTPUT)."""

    id = "parameter-naming"
    name = "Parameter naming"
    severity = Severity.WARNING
    kinds = frozenset({NodeKind.PARAMETER})
    message = "{mode} parameter '{name}' should be prefixed with '{prefix}'"

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        name = node.get("name")
        mode = str(node.get("mode") or "INPUT").upper()
        prefix = PARAMETER_PREFIXES.get(mode)
        if not name or prefix is None:
            return []
        if name.startswith(prefix) and len(name) > len(prefix) and name[len(prefix)].isalnum():
            return []
        return [self.report(node, context, mode=mode, name=name, prefix=prefix)]
