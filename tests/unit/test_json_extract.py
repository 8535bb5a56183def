"""
Unit tests for recovering JSON values from model output.
"""

import pytest

from dialogue_memory.errors import ParseError
from dialogue_memory.generation.json_extract import (
    extract_json_span,
    find_json_object,
    find_json_value,
    iter_json_spans,
)


def test_extract_json_span_with_surrounding_prose():
    text = '好的，结果如下：\n```json\n{"summary": "ok", "core_facts": []}\n```\n希望有帮助'
    assert extract_json_span(text) == {"summary": "ok", "core_facts": []}


def test_extract_json_span_respects_strings_and_escapes():
    text = 'x {"a": "brace } and \\" quote ]"} y'
    assert extract_json_span(text) == {"a": 'brace } and " quote ]'}


def test_extract_json_span_skips_undecodable_brackets():
    text = 'Note [see below]: [{"content": "A→爱→B"}]'
    assert extract_json_span(text) == [{"content": "A→爱→B"}]


def test_extract_json_span_nested():
    assert extract_json_span("[1, [2, {\"k\": [3]}]]") == [1, [2, {"k": [3]}]]


@pytest.mark.parametrize("text", ["", "no json here", "{unclosed", "[1, 2}"])
def test_extract_json_span_raises_parse_error(text):
    with pytest.raises(ParseError):
        extract_json_span(text)


def test_find_json_value_returns_none_on_failure():
    assert find_json_value("nothing") is None
    assert find_json_value(None) is None


def test_find_json_value_with_predicate():
    text = '[1, 2] then {"summary": "s"}'
    assert find_json_value(text) == [1, 2]
    assert find_json_value(text, accept=lambda v: isinstance(v, dict)) == {"summary": "s"}


def test_find_json_object():
    assert find_json_object('["a"] {"is_valid": false}') == {"is_valid": False}
    assert find_json_object('["a"]') is None


def test_iter_json_spans_positions():
    text = "a{}b[]"
    assert list(iter_json_spans(text))[:2] == [(1, 3), (4, 6)]
