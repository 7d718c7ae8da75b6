"""Tests for abllint.document: loading and dumping node documents."""

import json
from pathlib import Path

import pytest

from abllint.document import dump_document, load_document
from abllint.errors import ParseInputError
from abllint.nodes import NodeKind
from abllint.parser import parse_source


def _span(line, column, end_line, end_column):
    return {"line": line, "column": column, "end_line": end_line, "end_column": end_column}


DOCUMENT = {
    "path": "src/member.p",
    "text": "DEFINE BUFFER memberInfoBuffer FOR Member.\n",
    "root": {
        "kind": "Program",
        "span": _span(1, 1, 1, 42),
        "children": [
            {
                "kind": "BufferDeclaration",
                "span": _span(1, 1, 1, 42),
                "attrs": {"name": "memberInfoBuffer", "table": "Member"},
            }
        ],
    },
}


def test_load_document_builds_unit():
    unit = load_document(json.dumps(DOCUMENT))
    assert unit.path == Path("src/member.p")
    assert unit.root.kind is NodeKind.PROGRAM
    buffer = unit.root.children[0]
    assert buffer.kind is NodeKind.BUFFER_DECLARATION
    assert buffer.get("name") == "memberInfoBuffer"
    assert buffer.parent is unit.root
    assert unit.line_text(1) == "DEFINE BUFFER memberInfoBuffer FOR Member."


def test_load_document_accepts_bytes():
    unit = load_document(json.dumps(DOCUMENT).encode("utf-8"))
    assert len(unit.root.children) == 1


def test_unknown_kind_rejected():
    bad = json.loads(json.dumps(DOCUMENT))
    bad["root"]["children"][0]["kind"] = "GotoStatement"
    with pytest.raises(ParseInputError, match="Invalid node document"):
        load_document(json.dumps(bad), path=Path("bad.json"))


def test_span_ending_before_start_rejected():
    bad = json.loads(json.dumps(DOCUMENT))
    bad["root"]["children"][0]["span"] = _span(3, 1, 2, 1)
    with pytest.raises(ParseInputError):
        load_document(json.dumps(bad))


def test_zero_line_rejected():
    bad = json.loads(json.dumps(DOCUMENT))
    bad["root"]["span"]["line"] = 0
    with pytest.raises(ParseInputError):
        load_document(json.dumps(bad))


def test_root_must_be_program():
    bad = json.loads(json.dumps(DOCUMENT))
    bad["root"]["kind"] = "BlockStatement"
    with pytest.raises(ParseInputError, match="Program"):
        load_document(json.dumps(bad))


def test_malformed_json_rejected():
    with pytest.raises(ParseInputError):
        load_document("{not json")


def test_dump_then_load_keeps_structure():
    unit = parse_source("DO:\n  FIND FIRST Customer NO-LOCK.\nEND.\n", path=Path("a.p"))
    document = dump_document(unit)
    assert document["path"] == "a.p"
    assert document["root"]["children"][0]["kind"] == "BlockStatement"

    loaded = load_document(json.dumps(document))
    block = loaded.root.children[0]
    find = block.children[0]
    assert find.get("qualifier") == "FIRST"
    assert find.children[0].kind is NodeKind.LOCK_CLAUSE
    assert loaded.text == unit.text


def test_dump_without_text():
    unit = parse_source("MESSAGE 1.\n")
    assert dump_document(unit, include_text=False)["text"] == ""
