"""Unit tests for alloqly.utils.helpers."""
from alloqly.utils.helpers import (
    clamp,
    clean_optional,
    is_valid_email,
    normalize_whitespace,
    parse_json_object,
    string_list,
)


def test_normalize_whitespace():
    assert normalize_whitespace("  a \n\n b\t c  ") == "a b c"


def test_clean_optional():
    assert clean_optional(None) is None
    assert clean_optional("   ") is None
    assert clean_optional(" Room 12 ") == "Room 12"


def test_is_valid_email():
    assert is_valid_email("student@school.org")
    assert not is_valid_email("student@school")
    assert not is_valid_email("two words@school.org")
    assert not is_valid_email("")
    assert not is_valid_email(None)


def test_parse_json_object_plain_and_fenced():
    assert parse_json_object('{"score": 80}') == {"score": 80}
    assert parse_json_object('```json\n{"score": 81}\n```') == {"score": 81}


def test_parse_json_object_embedded_in_prose():
    text = 'Here is the result: {"summary": "ok", "missions": []} Hope it helps!'
    assert parse_json_object(text) == {"summary": "ok", "missions": []}


def test_parse_json_object_rejects_non_objects():
    assert parse_json_object("") is None
    assert parse_json_object("[1, 2, 3]") is None
    assert parse_json_object("not json at all") is None


def test_string_list():
    assert string_list("nope") is None
    assert string_list(["a", " ", None, 3]) == ["a", "3"]
    assert string_list(["a", "b", "c"], limit=2) == ["a", "b"]


def test_clamp():
    assert clamp(150, 0, 100, 0) == 100
    assert clamp(-3, 0, 100, 0) == 0
    assert clamp("72.5", 0, 100, 0) == 72.5
    assert clamp("n/a", 0, 100, 0) == 0
    assert clamp(float("nan"), 0, 100, 5) == 5
