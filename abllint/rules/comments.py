# Comment rules: commented-out code and the file header block.

from __future__ import annotations

import re

from abllint.context import AncestorContext
from abllint.findings.models import Finding, Severity
from abllint.nodes import Node, NodeKind
from abllint.rules.base import Rule

STATEMENT_KEYWORDS = (
    "ASSIGN",
    "BUFFER-COPY",
    "CASE",
    "CREATE",
    "DEF",
    "DEFINE",
    "DELETE",
    "DISPLAY",
    "DO",
    "EMPTY",
    "END",
    "FIND",
    "FOR",
    "IF",
    "LEAVE",
    "MESSAGE",
    "NEXT",
    "OUTPUT",
    "PUT",
    "RELEASE",
    "REPEAT",
    "RETURN",
    "RUN",
    "THROW",
    "UNDO",
    "VAR",
)

_KEYWORD_GROUP = "|".join(re.escape(k) for k in STATEMENT_KEYWORDS)

# Upper-case keyword at line start, terminated by a period: "FIND FIRST Customer."
_UPPER_STATEMENT_RE = re.compile(r"^(?:%s)(?:\s+\S.*)?\.$" % _KEYWORD_GROUP)
_ANY_CASE_STATEMENT_RE = re.compile(r"^(?:%s)\s+\S.*\.$" % _KEYWORD_GROUP, re.IGNORECASE)
_ABL_TOKEN_RE = re.compile(
    r"(?<![\w-])(?:NO-LOCK|NO-UNDO|NO-ERROR|NO-WAIT|EXCLUSIVE-LOCK|SHARE-LOCK|WHERE)(?![\w-])|\s=\s",
    re.IGNORECASE,
)

HEADER_SECTIONS = ("File", "Purpose", "Author")


def comment_body(node: Node) -> str:
    body = node.get("body")
    if body is not None:
        return body
    text = str(node.get("text") or "")
    if text.startswith("//"):
        return text[2:]
    if text.startswith("/*") and text.endswith("*/"):
        return text[2:-2]
    return text


def looks_like_code(line: str) -> bool:
    """
    Heuristic for one comment line: an upper-case statement keyword ending in a
    period, or any-case keyword plus an ABL-only token (NO-LOCK, WHERE, =, ...).
    """
    line = line.strip().lstrip("*").strip()
    if not line:
        return False
    if _UPPER_STATEMENT_RE.match(line):
        return True
    return bool(_ANY_CASE_STATEMENT_RE.match(line) and _ABL_TOKEN_RE.search(line))


class NoCommentedCodeRule(Rule):
    id = "no-commented-code"
    name = "No commented-out code"
    severity = Severity.INFO
    kinds = frozenset({NodeKind.COMMENT})
    message = "Comment contains commented-out code ('{sample}'); delete it instead"
    remediation = "Version control keeps old code; remove it from the source."

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        for line in comment_body(node).splitlines():
            if looks_like_code(line):
                sample = line.strip().lstrip("*").strip()
                if len(sample) > 40:
                    sample = sample[:37] + "..."
                return [self.report(node, context, sample=sample)]
        return []


class RequireFileHeaderRule(Rule):
    """
    Files open with a header comment naming the file, its purpose and author:

        /*  File:    customer.p
            Purpose: Customer maintenance
            Author:  jdoe                  */
    """

    id = "require-file-header"
    name = "File header comment"
    severity = Severity.INFO
    kinds = frozenset({NodeKind.PROGRAM})
    message = "{detail}"

    def check(self, node: Node, context: AncestorContext) -> list[Finding]:
        if not node.children:
            return []
        first = node.children[0]
        if first.kind is not NodeKind.COMMENT:
            return [
                self.report(
                    node,
                    context,
                    detail="File does not start with a header comment ({})".format(", ".join(HEADER_SECTIONS)),
                )
            ]
        missing = missing_sections(comment_body(first))
        if not missing:
            return []
        return [self.report(first, context, detail="File header is missing: {}".format(", ".join(missing)))]


def missing_sections(header: str, sections: tuple[str, ...] = HEADER_SECTIONS) -> list[str]:
    missing = []
    for section in sections:
        if not re.search(r"(?im)^[\s*]*%s\s*:" % re.escape(section), header):
            missing.append(section)
    return missing
