import pytest

from closet.core.errors import AIResponseParseError
from closet.services.llm.parsing import extract_json_object


def test_plain_object():
    assert extract_json_object('{"ready": true, "confidence": 90}') == {"ready": True, "confidence": 90}


def test_markdown_fence_and_prose():
    text = 'Sure! Here you go:\n```json\n{"category": "tops", "subtype": "polo"}\n```\nHope that helps.'
    assert extract_json_object(text) == {"category": "tops", "subtype": "polo"}


def test_first_object_wins():
    assert extract_json_object('{"a": 1} and later {"b": 2}') == {"a": 1}


def test_nested_and_braces_in_strings():
    text = 'x {"closet_picks": {"top": "a"}, "style_notes": "wear it {loosely}"} y'
    data = extract_json_object(text)
    assert data["closet_picks"] == {"top": "a"}
    assert data["style_notes"] == "wear it {loosely}"


def test_skips_unparseable_span_before_valid_object():
    assert extract_json_object('{not json} {"ok": true}') == {"ok": True}


@pytest.mark.parametrize("text", ["", None, "no json here", '{"unterminated": 1', "[1, 2, 3]"])
def test_missing_or_malformed_is_named_error(text):
    with pytest.raises(AIResponseParseError):
        extract_json_object(text)
