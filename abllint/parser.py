"""
Construct extractor: ABL source text -> SourceUnit.

This is a statement-level scanner, not a grammar. It finds the constructs the
rules care about and leaves everything else as generic Statement nodes:

- comments (nested ``/* */`` and ``//``) -> Comment
- ``DEFINE VARIABLE/BUFFER/TEMP-TABLE/PARAMETER`` and ``VAR`` -> declarations
- ``DO/FOR/REPEAT/PROCEDURE/FUNCTION/METHOD/CASE/FINALLY ... END`` -> BlockStatement
- ``CATCH ... END`` -> CatchBlock
- ``FIND``, ``FOR EACH/FIRST/LAST`` record phrases and ``CAN-FIND(...)`` -> FindStatement
  with an optional LockClause child
- ``LOCKED``/``AVAILABLE``/``ERROR-STATUS:ERROR`` tests -> Condition
- ``UNDO/LEAVE/NEXT/RETRY`` -> FlowStatement; ``UNDO, THROW`` and ``RETURN ERROR`` -> ThrowStatement

Statements end at a period followed by whitespace; block headers end at a
colon followed by whitespace. Comments and string contents are masked out
before either is looked for.
"""

from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from abllint.nodes import Node, NodeKind, SourceUnit, Span

logger = logging.getLogger(__name__)

_NAME = r"[A-Za-z_][\w\-#$%&]*"
_WORD_RE = re.compile(rf"{_NAME}(?:\.{_NAME})*")
_LOCKED_RE = re.compile(rf"(?<![\w-])LOCKED(?![\w-])\s*\(?\s*({_NAME})", re.IGNORECASE)
_AVAILABLE_RE = re.compile(rf"(?<![\w-])AVAIL(?:ABLE)?(?![\w-])\s*\(?\s*({_NAME})", re.IGNORECASE)
_ERROR_STATUS_RE = re.compile(r"(?<![\w-])ERROR-STATUS\s*:\s*(ERROR|NUM-MESSAGES)(?![\w-])", re.IGNORECASE)
_CAN_FIND_RE = re.compile(r"(?<![\w-])CAN-FIND\s*\(", re.IGNORECASE)
_CALL_NAME_RE = re.compile(rf"({_NAME})\s*\(")
_BOOL_SPLIT_RE = re.compile(r"(?<![\w-])(?:AND|OR)(?![\w-])", re.IGNORECASE)

BLOCK_OPENERS = frozenset(
    {
        "DO",
        "FOR",
        "REPEAT",
        "PROCEDURE",
        "FUNCTION",
        "METHOD",
        "CONSTRUCTOR",
        "DESTRUCTOR",
        "CLASS",
        "INTERFACE",
        "ENUM",
        "CATCH",
        "FINALLY",
        "CASE",
        "GET",
        "SET",
    }
)
ROUTINE_BLOCKS = frozenset({"PROCEDURE", "FUNCTION", "METHOD", "CONSTRUCTOR", "DESTRUCTOR"})
RECORD_QUALIFIERS = frozenset({"EACH", "FIRST", "LAST", "NEXT", "PREV", "CURRENT", "UNIQUE"})
LOCK_KEYWORDS = frozenset({"NO-LOCK", "SHARE-LOCK", "EXCLUSIVE-LOCK"})
# Words that end a WHERE expression inside a record phrase.
WHERE_TERMINATORS = LOCK_KEYWORDS | frozenset(
    {"NO-WAIT", "NO-ERROR", "USE-INDEX", "NO-PREFETCH", "BY", "BREAK", "ON", "TRANSACTION", "WHILE", "QUERY-TUNING"}
)
DEFINE_MODIFIERS = frozenset(
    {
        "NEW",
        "GLOBAL",
        "SHARED",
        "PRIVATE",
        "PROTECTED",
        "PUBLIC",
        "PACKAGE-PRIVATE",
        "PACKAGE-PROTECTED",
        "STATIC",
        "ABSTRACT",
        "OVERRIDE",
        "SERIALIZABLE",
        "NON-SERIALIZABLE",
        "INPUT",
        "OUTPUT",
        "INPUT-OUTPUT",
        "RETURN",
    }
)
PARAMETER_MODES = frozenset({"INPUT", "OUTPUT", "INPUT-OUTPUT", "RETURN"})
SCOPE_MODIFIERS = ("NEW", "GLOBAL", "SHARED")
# CREATE <type> <handle> allocates a dynamic object that must be deleted.
HANDLE_OBJECT_TYPES = frozenset(
    {
        "BUFFER",
        "QUERY",
        "TEMP-TABLE",
        "DATASET",
        "DATA-SOURCE",
        "X-DOCUMENT",
        "X-NODEREF",
        "SAX-READER",
        "SAX-WRITER",
        "SAX-ATTRIBUTES",
        "SOAP-HEADER",
        "SOAP-HEADER-ENTRYREF",
        "SOCKET",
        "SERVER-SOCKET",
        "SERVER",
        "CALL",
        "CLIENT-PRINCIPAL",
    }
)


def _is_define(word: str) -> bool:
    return len(word) >= 3 and "DEFINE".startswith(word)


def _is_variable(word: str) -> bool:
    return word == "VAR" or (len(word) >= 3 and "VARIABLE".startswith(word))


@dataclass
class _Word:
    upper: str
    text: str
    start: int
    end: int


@dataclass
class _Chunk:
    start: int
    end: int
    terminator: str

    @property
    def body_end(self) -> int:
        return self.end - 1 if self.terminator in ".:" else self.end


@dataclass
class _Frame:
    kind: NodeKind
    start: int
    attrs: dict[str, Any]
    children: list[Node] = field(default_factory=list)


class _Positions:
    """Offset -> 1-based (line, column) lookup."""

    def __init__(self, text: str) -> None:
        self._starts = [0] + [m.end() for m in re.finditer(r"\n", text)]

    def at(self, offset: int) -> tuple[int, int]:
        idx = bisect.bisect_right(self._starts, offset) - 1
        return idx + 1, offset - self._starts[idx] + 1

    def span(self, start: int, end: int) -> Span:
        """Span for the half-open offset range [start, end)."""
        line, col = self.at(start)
        end_line, end_col = self.at(max(end - 1, start))
        return Span(line, col, end_line, end_col)


def _blank(chars: list[str], start: int, end: int) -> None:
    for k in range(start, end):
        if chars[k] not in "\r\n":
            chars[k] = " "


def mask_source(text: str) -> tuple[str, list[tuple[int, int]]]:
    """
    Blank out comments and string contents, keeping offsets and newlines.

    Returns the masked text and the [start, end) offsets of every comment.
    String quotes are kept so expressions still read as expressions.
    """
    chars = list(text)
    comments: list[tuple[int, int]] = []
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if text.startswith("/*", i):
            depth, j = 0, i
            while j < n:
                if text.startswith("/*", j):
                    depth += 1
                    j += 2
                elif text.startswith("*/", j):
                    depth -= 1
                    j += 2
                    if depth == 0:
                        break
                else:
                    j += 1
            comments.append((i, j))
            _blank(chars, i, j)
            i = j
        elif text.startswith("//", i) and (i == 0 or text[i - 1].isspace()):
            j = text.find("\n", i)
            j = n if j < 0 else j
            comments.append((i, j))
            _blank(chars, i, j)
            i = j
        elif ch in "\"'":
            j = i + 1
            while j < n:
                c = text[j]
                if c == "~":
                    j += 2
                    continue
                if c == ch:
                    if j + 1 < n and text[j + 1] == ch:
                        j += 2
                        continue
                    break
                j += 1
            end = min(j + 1, n)
            _blank(chars, i + 1, max(end - 1, i + 1))
            i = end
        else:
            i += 1
    return "".join(chars), comments


def _matching(text: str, open_idx: int, open_ch: str = "(", close_ch: str = ")") -> int:
    """Index of the bracket closing the one at ``open_idx``, or len(text)."""
    depth = 0
    for k in range(open_idx, len(text)):
        if text[k] == open_ch:
            depth += 1
        elif text[k] == close_ch:
            depth -= 1
            if depth == 0:
                return k
    return len(text)


def split_chunks(masked: str) -> list[_Chunk]:
    """Split masked text into statements (``.``), block headers (``:``) and preprocessor lines."""
    chunks: list[_Chunk] = []
    n = len(masked)
    i = 0
    start: Optional[int] = None
    while i < n:
        ch = masked[i]
        if start is None:
            if ch.isspace():
                i += 1
                continue
            start = i
            if ch == "&":
                end = masked.find("\n", i)
                end = n if end < 0 else end
                chunks.append(_Chunk(start, len(masked[:end].rstrip()), "&"))
                start, i = None, end
                continue
            if ch == "{":
                end = min(_matching(masked, i, "{", "}") + 1, n)
                chunks.append(_Chunk(start, end, "}"))
                start, i = None, end
                continue
        if ch in ".:" and (i + 1 == n or masked[i + 1].isspace()):
            chunks.append(_Chunk(start, i + 1, ch))
            start = None
        i += 1
    if start is not None:
        end = len(masked.rstrip())
        if end > start:
            chunks.append(_Chunk(start, end, ""))
    return chunks


def _split_top_level(text: str, sep: str = ",") -> list[tuple[int, str]]:
    """Split on ``sep`` outside parentheses; returns (offset, segment) pairs."""
    parts: list[tuple[int, str]] = []
    depth, last = 0, 0
    for k, ch in enumerate(text):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth = max(depth - 1, 0)
        elif ch == sep and depth == 0:
            parts.append((last, text[last:k]))
            last = k + 1
    parts.append((last, text[last:]))
    return parts


class _Extractor:
    def __init__(self, text: str, path: Path) -> None:
        self.text = text
        self.path = path
        self.masked, self.comments = mask_source(text)
        self.pos = _Positions(text)
        self.stack: list[_Frame] = [_Frame(NodeKind.PROGRAM, 0, {})]
        self.pending_label: Optional[_Word] = None

    # --- helpers ---------------------------------------------------------

    def words(self, start: int, end: int) -> list[_Word]:
        return [
            _Word(m.group(0).upper(), self.text[m.start() : m.end()], m.start(), m.end())
            for m in _WORD_RE.finditer(self.masked, start, end)
        ]

    def original(self, start: int, end: int) -> str:
        return self.text[start:end].strip()

    def node(
        self,
        kind: NodeKind,
        start: int,
        end: int,
        attrs: Optional[dict[str, Any]] = None,
        children: Optional[list[Node]] = None,
    ) -> Node:
        kids = sorted(children or [], key=lambda c: c.span.start)
        return Node(kind=kind, span=self.pos.span(start, end), attrs=attrs or {}, children=tuple(kids))

    def append(self, node: Node) -> None:
        self.stack[-1].children.append(node)

    # --- scanning of expressions ----------------------------------------

    def conditions(self, start: int, end: int) -> list[Node]:
        """LOCKED / AVAILABLE / ERROR-STATUS tests within [start, end)."""
        found: list[Node] = []
        for function, regex in (("LOCKED", _LOCKED_RE), ("AVAILABLE", _AVAILABLE_RE)):
            for m in regex.finditer(self.masked, start, end):
                found.append(
                    self.node(
                        NodeKind.CONDITION,
                        m.start(),
                        m.end(),
                        {"function": function, "buffer": self.text[m.start(1) : m.end(1)], "negated": self._negated(m.start())},
                    )
                )
        for m in _ERROR_STATUS_RE.finditer(self.masked, start, end):
            found.append(
                self.node(
                    NodeKind.CONDITION,
                    m.start(),
                    m.end(),
                    {"function": "ERROR-STATUS", "buffer": None, "attribute": m.group(1).upper(), "negated": self._negated(m.start())},
                )
            )
        return found

    def _negated(self, offset: int) -> bool:
        before = self.masked[max(0, offset - 12) : offset].rstrip().rstrip("(").rstrip()
        return before.upper().endswith("NOT")

    def can_finds(self, start: int, end: int) -> list[Node]:
        found: list[Node] = []
        skip_until = start
        for m in _CAN_FIND_RE.finditer(self.masked, start, end):
            if m.start() < skip_until:
                continue
            close = min(_matching(self.masked, m.end() - 1), end - 1)
            skip_until = close + 1
            found.append(self.record_phrase(m.start(), close + 1, m.end(), close, "CAN-FIND"))
        return found

    def expression_nodes(self, start: int, end: int) -> list[Node]:
        return self.conditions(start, end) + self.can_finds(start, end)

    def record_phrase(self, node_start: int, node_end: int, phrase_start: int, phrase_end: int, access: str) -> Node:
        """FindStatement for a FIND, FOR or CAN-FIND record phrase in [phrase_start, phrase_end)."""
        words = self.words(phrase_start, phrase_end)
        upper = [w.upper for w in words]
        idx = 0
        qualifier = None
        if words and upper[0] in RECORD_QUALIFIERS:
            qualifier = upper[0]
            idx = 1
        table = words[idx].text if idx < len(words) else None

        children: list[Node] = []
        lock = None
        no_wait = "NO-WAIT" in upper
        for w in words:
            if w.upper in LOCK_KEYWORDS:
                lock = w.upper
                lock_end = w.end
                if no_wait:
                    lock_end = max(lock_end, next(x.end for x in words if x.upper == "NO-WAIT"))
                children.append(self.node(NodeKind.LOCK_CLAUSE, w.start, lock_end, {"keyword": lock, "no_wait": no_wait}))
                break

        predicates: tuple[str, ...] = ()
        if "WHERE" in upper:
            w_idx = upper.index("WHERE")
            where_start = words[w_idx].end
            where_end = phrase_end
            for w in words[w_idx + 1 :]:
                if w.upper in WHERE_TERMINATORS:
                    where_end = w.start
                    break
            clause = self.masked[where_start:where_end]
            pieces = []
            last = 0
            for m in _BOOL_SPLIT_RE.finditer(clause):
                pieces.append((last, m.start()))
                last = m.end()
            pieces.append((last, len(clause)))
            predicates = tuple(
                self.original(where_start + a, where_start + b) for a, b in pieces if clause[a:b].strip()
            )
            children.extend(self.can_finds(where_start, where_end))

        attrs = {
            "access": access,
            "qualifier": qualifier,
            "table": table,
            "lock": lock,
            "no_wait": no_wait,
            "no_error": "NO-ERROR" in upper,
            "predicates": predicates,
            "use_index": "USE-INDEX" in upper,
        }
        return self.node(NodeKind.FIND_STATEMENT, node_start, node_end, attrs, children)

    # --- statements ------------------------------------------------------

    def statement(self, start: int, end: int) -> Optional[Node]:
        """Classify the period-terminated statement whose body is [start, end)."""
        words = self.words(start, end)
        if not words:
            return None
        upper = [w.upper for w in words]
        first = upper[0]

        if first in ("ELSE", "OTHERWISE") and len(words) > 1:
            return self.statement(words[1].start, end)
        if first in ("IF", "WHEN"):
            return self.conditional(start, end, words)
        if _is_define(first):
            return self.define(start, end, words)
        if first == "VAR":
            return self.var_statement(start, end, words)
        if first == "FIND":
            phrase_start = words[1].start if len(words) > 1 else end
            return self.record_phrase(start, end, phrase_start, end, "FIND")
        if first == "UNDO":
            return self.undo(start, end, words)
        if first in ("LEAVE", "NEXT", "RETRY"):
            label = words[1].text if len(words) > 1 else None
            return self.node(NodeKind.FLOW_STATEMENT, start, end, {"keyword": first, "label": label})
        if first == "RETURN" and len(upper) > 1 and upper[1] == "ERROR":
            target = self.original(words[1].end, end) or None
            return self.node(NodeKind.THROW_STATEMENT, start, end, {"via": "RETURN ERROR", "target": target})
        if first == "CREATE" and len(words) > 1:
            return self.create(start, end, words)
        if first == "DELETE" and len(upper) > 2 and upper[1] in ("OBJECT", "PROCEDURE", "WIDGET"):
            return self.node(NodeKind.STATEMENT, start, end, {"keyword": "DELETE OBJECT", "handle": words[2].text})
        if first == "RUN" and "PERSISTENT" in upper and "SET" in upper:
            set_idx = upper.index("SET")
            handle = words[set_idx + 1].text if set_idx + 1 < len(words) else None
            attrs = {"keyword": "RUN", "object_type": "PROCEDURE", "handle": handle, "acquires": handle is not None}
            return self.node(NodeKind.STATEMENT, start, end, attrs, self.expression_nodes(start, end))
        if first in ("BLOCK-LEVEL", "ROUTINE-LEVEL"):
            return self.node(NodeKind.STATEMENT, start, end, {"keyword": first, "throw": "THROW" in upper})
        return self.node(NodeKind.STATEMENT, start, end, {"keyword": first}, self.expression_nodes(start, end))

    def conditional(self, start: int, end: int, words: list[_Word]) -> Node:
        upper = [w.upper for w in words]
        children: list[Node] = []
        if "THEN" in upper:
            then_idx = upper.index("THEN")
            children.extend(self.expression_nodes(start, words[then_idx].start))
            tail_start = words[then_idx].end
            else_idx = next((k for k in range(then_idx + 1, len(upper)) if upper[k] == "ELSE"), None)
            tails = [(tail_start, words[else_idx].start if else_idx is not None else end)]
            if else_idx is not None:
                tails.append((words[else_idx].end, end))
            for a, b in tails:
                tail = self.statement(a, b)
                if tail is not None:
                    children.append(tail)
        else:
            children.extend(self.expression_nodes(start, end))
        return self.node(NodeKind.STATEMENT, start, end, {"keyword": upper[0]}, children)

    def define(self, start: int, end: int, words: list[_Word]) -> Node:
        upper = [w.upper for w in words]
        i = 1
        modifiers: list[str] = []
        while i < len(upper) and upper[i] in DEFINE_MODIFIERS:
            modifiers.append(upper[i])
            i += 1
        obj = upper[i] if i < len(upper) else ""
        rest = words[i + 1 :]
        rest_upper = upper[i + 1 :]
        name = rest[0].text if rest else None
        scope = " ".join(m for m in modifiers if m in SCOPE_MODIFIERS) or None
        no_undo = "NO-UNDO" in upper

        if _is_variable(obj):
            attrs = {
                "name": name,
                "data_type": self._data_type(rest, rest_upper),
                "like": self._after(rest, rest_upper, "LIKE"),
                "no_undo": no_undo,
                "scope": scope,
                "extent": "EXTENT" in rest_upper,
                "modifiers": tuple(modifiers),
            }
            return self.node(NodeKind.VARIABLE_DECLARATION, start, end, attrs)
        if obj == "BUFFER":
            attrs = {"name": name, "table": self._after(rest, rest_upper, "FOR"), "scope": scope, "parameter": False}
            return self.node(NodeKind.BUFFER_DECLARATION, start, end, attrs)
        if obj == "TEMP-TABLE":
            attrs = {"name": name, "no_undo": no_undo, "like": self._after(rest, rest_upper, "LIKE"), "scope": scope}
            return self.node(NodeKind.TEMP_TABLE_DECLARATION, start, end, attrs)
        if obj in ("PARAMETER", "PARAM"):
            mode = next((m for m in modifiers if m in PARAMETER_MODES), "INPUT")
            if rest_upper and rest_upper[0] == "BUFFER":
                buffer_name = rest[1].text if len(rest) > 1 else None
                attrs = {"name": buffer_name, "table": self._after(rest, rest_upper, "FOR"), "scope": None, "parameter": True}
                return self.node(NodeKind.BUFFER_DECLARATION, start, end, attrs)
            if rest_upper and rest_upper[0] in ("TABLE", "TABLE-HANDLE", "DATASET", "DATASET-HANDLE"):
                table_name = self._after(rest, rest_upper, "FOR") or (rest[1].text if len(rest) > 1 else None)
                attrs = {
                    "name": table_name,
                    "mode": mode,
                    "data_type": rest_upper[0],
                    "no_undo": no_undo,
                    "signature": False,
                    "scalar": False,
                }
                return self.node(NodeKind.PARAMETER, start, end, attrs)
            attrs = {
                "name": name,
                "mode": mode,
                "data_type": self._data_type(rest, rest_upper),
                "no_undo": no_undo,
                "signature": False,
                "scalar": True,
            }
            return self.node(NodeKind.PARAMETER, start, end, attrs)
        return self.node(NodeKind.STATEMENT, start, end, {"keyword": "DEFINE", "object": obj or None})

    def var_statement(self, start: int, end: int, words: list[_Word]) -> Node:
        # VAR [access] type name[, name...]: variables declared this way are always NO-UNDO.
        rest = [w for w in words[1:] if w.upper not in DEFINE_MODIFIERS]
        data_type = rest[0].text.upper() if rest else None
        name = rest[1].text if len(rest) > 1 else None
        attrs = {
            "name": name,
            "data_type": data_type,
            "like": None,
            "no_undo": True,
            "scope": None,
            "extent": "EXTENT" in [w.upper for w in words],
            "modifiers": (),
        }
        return self.node(NodeKind.VARIABLE_DECLARATION, start, end, attrs)

    @staticmethod
    def _after(words: list[_Word], upper: list[str], keyword: str) -> Optional[str]:
        if keyword in upper:
            k = upper.index(keyword)
            if k + 1 < len(words):
                return words[k + 1].text
        return None

    @staticmethod
    def _data_type(words: list[_Word], upper: list[str]) -> Optional[str]:
        if "AS" not in upper:
            return None
        k = upper.index("AS") + 1
        if k < len(upper) and upper[k] == "CLASS":
            k += 1
        if k >= len(words):
            return None
        # Built-in types are keywords (upper-cased); class names keep their case.
        return words[k].text if "." in words[k].text else words[k].upper

    def undo(self, start: int, end: int, words: list[_Word]) -> Node:
        body = self.masked[words[0].end : end]
        parts = _split_top_level(body)
        base = words[0].end
        label_words = self.words(base + parts[0][0], base + parts[0][0] + len(parts[0][1]))
        label = label_words[0].text if label_words else None
        if len(parts) == 1:
            return self.node(NodeKind.FLOW_STATEMENT, start, end, {"keyword": "UNDO", "label": label, "action": None, "action_label": None})

        action_start = base + parts[1][0]
        action_words = self.words(action_start, end)
        action = action_words[0].upper if action_words else None
        if action == "THROW":
            target = self.original(action_words[0].end, end) or None
            return self.node(NodeKind.THROW_STATEMENT, start, end, {"via": "UNDO, THROW", "target": target, "label": label})
        action_label = None
        if action in ("LEAVE", "NEXT", "RETRY") and len(action_words) > 1:
            action_label = action_words[1].text
        attrs = {"keyword": "UNDO", "label": label, "action": action, "action_label": action_label}
        return self.node(NodeKind.FLOW_STATEMENT, start, end, attrs)

    def create(self, start: int, end: int, words: list[_Word]) -> Node:
        object_type = words[1].upper
        if object_type in HANDLE_OBJECT_TYPES and len(words) > 2:
            attrs = {"keyword": "CREATE", "object_type": object_type, "handle": words[2].text, "acquires": True}
        else:
            attrs = {"keyword": "CREATE", "table": words[1].text, "acquires": False}
        return self.node(NodeKind.STATEMENT, start, end, attrs)

    # --- blocks ----------------------------------------------------------

    def open_block(self, chunk: _Chunk, words: list[_Word]) -> bool:
        """Push a frame for a block header; False if the header is not understood."""
        # `blk:DO WHILE TRUE:` carries its label in the same chunk
        if (
            len(words) > 1
            and words[1].upper in BLOCK_OPENERS
            and words[1].start == words[0].end + 1
            and self.masked[words[0].end] == ":"
        ):
            self.pending_label = words[0]
            words = words[1:]
        upper = [w.upper for w in words]
        opener_idx: Optional[int] = None
        if upper[0] in BLOCK_OPENERS:
            opener_idx = 0
        else:
            for k, w in enumerate(upper[:-1]):
                if w in ("THEN", "ELSE", "OTHERWISE") and upper[k + 1] in ("DO", "REPEAT", "FOR"):
                    opener_idx = k + 1
                    break
            else:
                if upper[-1] == "DO":
                    opener_idx = len(upper) - 1
        if opener_idx is None:
            return False

        label = self.pending_label
        self.pending_label = None
        start = label.start if label is not None else chunk.start
        opener = upper[opener_idx]
        header_start = words[opener_idx].start
        header_end = chunk.body_end
        header = upper[opener_idx:]

        children = self.expression_nodes(chunk.start, header_start)
        attrs: dict[str, Any] = {"label": label.text if label is not None else None}

        if opener == "CATCH":
            rest = words[opener_idx + 1 :]
            rest_upper = header[1:]
            attrs.update({"variable": rest[0].text if rest else None, "error_class": self._after(rest, rest_upper, "AS")})
            self.stack.append(_Frame(NodeKind.CATCH_BLOCK, start, attrs, children))
            return True

        attrs.update(
            {
                "block_type": opener,
                "iterating": self._iterating(opener, header, header_start, header_end),
                "transaction": "TRANSACTION" in header,
                "routine": opener in ROUTINE_BLOCKS,
                "trigger": upper[0] == "ON" and opener == "DO",
                "name": self._block_name(opener, words[opener_idx:], header_start, header_end),
            }
        )
        if opener == "FOR":
            children.extend(self.for_phrases(words[opener_idx].end, header_end))
        else:
            children.extend(self.expression_nodes(header_start, header_end))
        if opener in ("FUNCTION", "METHOD", "CONSTRUCTOR"):
            children.extend(self.signature(header_start, header_end))
        self.stack.append(_Frame(NodeKind.BLOCK_STATEMENT, start, attrs, children))
        return True

    def _iterating(self, opener: str, header: list[str], start: int, end: int) -> bool:
        if opener == "REPEAT":
            return True
        if opener == "FOR":
            return "EACH" in header
        if opener == "DO":
            return "WHILE" in header or ("TO" in header and "=" in self.masked[start:end])
        return False

    def _block_name(self, opener: str, words: list[_Word], start: int, end: int) -> Optional[str]:
        if opener in ("METHOD", "CONSTRUCTOR", "DESTRUCTOR"):
            m = _CALL_NAME_RE.search(self.masked, start, end)
            return m.group(1) if m else None
        if opener in ("PROCEDURE", "FUNCTION", "CLASS", "INTERFACE", "ENUM") and len(words) > 1:
            return words[1].text
        return None

    def for_phrases(self, start: int, end: int) -> list[Node]:
        nodes: list[Node] = []
        for offset, segment in _split_top_level(self.masked[start:end]):
            seg_start = start + offset + (len(segment) - len(segment.lstrip()))
            seg_end = start + offset + len(segment.rstrip())
            seg_words = self.words(seg_start, seg_end)
            if seg_words and seg_words[0].upper in ("EACH", "FIRST", "LAST"):
                nodes.append(self.record_phrase(seg_start, seg_end, seg_start, seg_end, "FOR"))
            else:
                nodes.extend(self.expression_nodes(seg_start, seg_end))
        return nodes

    def signature(self, start: int, end: int) -> list[Node]:
        """Parameters declared in a FUNCTION/METHOD/CONSTRUCTOR signature."""
        open_idx = self.masked.find("(", start, end)
        if open_idx < 0:
            return []
        close_idx = min(_matching(self.masked, open_idx), end)
        params: list[Node] = []
        for offset, segment in _split_top_level(self.masked[open_idx + 1 : close_idx]):
            if not segment.strip():
                continue
            seg_start = open_idx + 1 + offset + (len(segment) - len(segment.lstrip()))
            seg_end = open_idx + 1 + offset + len(segment.rstrip())
            words = self.words(seg_start, seg_end)
            upper = [w.upper for w in words]
            mode = "INPUT"
            if upper and upper[0] in PARAMETER_MODES:
                mode = upper[0]
                words, upper = words[1:], upper[1:]
            if upper and upper[0] == "BUFFER":
                attrs = {
                    "name": words[1].text if len(words) > 1 else None,
                    "table": self._after(words, upper, "FOR"),
                    "scope": None,
                    "parameter": True,
                }
                params.append(self.node(NodeKind.BUFFER_DECLARATION, seg_start, seg_end, attrs))
                continue
            scalar = not (upper and upper[0] in ("TABLE", "TABLE-HANDLE", "DATASET", "DATASET-HANDLE"))
            if not scalar:
                words, upper = words[1:], upper[1:]
                if upper and upper[0] == "FOR":
                    words, upper = words[1:], upper[1:]
            attrs = {
                "name": words[0].text if words else None,
                "mode": mode,
                "data_type": self._data_type(words, upper),
                "no_undo": True,
                "signature": True,
                "scalar": scalar,
            }
            params.append(self.node(NodeKind.PARAMETER, seg_start, seg_end, attrs))
        return params

    def close_block(self, chunk: _Chunk, words: list[_Word]) -> None:
        if len(self.stack) == 1:
            line, _ = self.pos.at(chunk.start)
            logger.warning("%s:%d: END without an open block", self.path, line)
            self.append(self.node(NodeKind.STATEMENT, chunk.start, chunk.end, {"keyword": "END"}))
            return
        frame = self.stack.pop()
        qualifier = words[1].upper if len(words) > 1 else None
        self.append(self._finish(frame, chunk.end, qualifier, closed=True))

    def _finish(self, frame: _Frame, end: int, qualifier: Optional[str], closed: bool) -> Node:
        attrs = dict(frame.attrs, end_qualifier=qualifier, closed=closed)
        return self.node(frame.kind, frame.start, end, attrs, frame.children)

    # --- driver ----------------------------------------------------------

    def on_comment(self, start: int, end: int) -> None:
        raw = self.text[start:end]
        if raw.startswith("//"):
            body = raw[2:]
        else:
            body = raw[2:-2] if raw.endswith("*/") else raw[2:]
        self.append(self.node(NodeKind.COMMENT, start, end, {"text": raw, "body": body.strip()}))

    def on_chunk(self, chunk: _Chunk) -> None:
        if chunk.terminator in ("&", "}"):
            first = self.text[chunk.start : chunk.end].split(None, 1)[0].upper()
            self.append(self.node(NodeKind.STATEMENT, chunk.start, chunk.end, {"keyword": first, "preprocessor": True}))
            return

        words = self.words(chunk.start, chunk.body_end)
        if not words:
            return

        if chunk.terminator == ":":
            body = self.masked[chunk.start : chunk.body_end].strip()
            if len(words) == 1 and body == words[0].text and words[0].upper not in BLOCK_OPENERS:
                self.pending_label = words[0]
                return
            if self.open_block(chunk, words):
                return
            logger.debug("%s: unrecognised block header at offset %d", self.path, chunk.start)

        self.pending_label = None
        if words[0].upper == "END" and chunk.terminator == ".":
            self.close_block(chunk, words)
            return
        node = self.statement(chunk.start, chunk.body_end)
        if node is not None:
            self.append(node)

    def run(self) -> SourceUnit:
        events: list[tuple[int, int, Any]] = [(s, 0, (s, e)) for s, e in self.comments]
        events.extend((c.start, 1, c) for c in split_chunks(self.masked))
        events.sort(key=lambda ev: (ev[0], ev[1]))
        for _, tag, payload in events:
            if tag == 0:
                self.on_comment(*payload)
            else:
                self.on_chunk(payload)

        eof = len(self.text.rstrip()) or len(self.text)
        while len(self.stack) > 1:
            frame = self.stack.pop()
            line, _ = self.pos.at(frame.start)
            logger.warning("%s:%d: block not closed before end of file", self.path, line)
            self.append(self._finish(frame, max(eof, frame.start + 1), None, closed=False))

        root_frame = self.stack[0]
        if self.text:
            root_span = self.pos.span(0, len(self.text))
        else:
            root_span = Span(1, 1, 1, 1)
        root = Node(
            kind=NodeKind.PROGRAM,
            span=root_span,
            attrs={"path": str(self.path)},
            children=tuple(root_frame.children),
        )
        return SourceUnit(path=self.path, root=root, text=self.text)


def parse_source(text: str, path: Optional[Path] = None) -> SourceUnit:
    """Extract the construct tree from ABL source text."""
    if path is None:
        path = Path("<source>")
    unit = _Extractor(text, path).run()
    logger.debug("Extracted %d top-level node(s) from %s", len(unit.root.children), path)
    return unit


def parse_file(path: Path) -> Optional[SourceUnit]:
    """
    Read an ABL source file and extract its construct tree.

    Returns None if the file could not be read.
    """
    try:
        raw = path.read_bytes()
    except OSError as e:
        logger.error("Failed to read file %s: %s", path, e)
        return None
    unit = parse_source(raw.decode("utf-8", errors="replace"), path=path)
    logger.info("Parsed file %s: %d top-level node(s)", path, len(unit.root.children))
    return unit
