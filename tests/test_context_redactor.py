from __future__ import annotations

import json

import pytest

from kimten.domain.context.context_redactor import (
    CIRCULAR_MARKER,
    REDACTION_MARKER,
    TRUNCATION_MARKER,
    is_sensitive_key,
    serialize_context,
)
from kimten.domain.models import InputValidationError


def test_none_context_is_empty():
    assert serialize_context(None) == ""


def test_plain_context_is_indented_json():
    text = serialize_context({"city": "Zürich", "n": 2})
    assert text == json.dumps({"city": "Zürich", "n": 2}, indent=2, ensure_ascii=False)


def test_sensitive_keys_are_redacted_at_any_depth():
    context = {
        "user": {"name": "ana", "Password": "hunter2"},
        "items": [{"api_key": "k1"}, {"refreshToken": "t"}],
        "clientSecret": "s",
        "ApiKey": "x",
    }
    data = json.loads(serialize_context(context))
    assert data["user"] == {"name": "ana", "Password": REDACTION_MARKER}
    assert data["items"] == [{"api_key": REDACTION_MARKER}, {"refreshToken": REDACTION_MARKER}]
    assert data["clientSecret"] == REDACTION_MARKER
    assert data["ApiKey"] == REDACTION_MARKER


def test_sensitive_values_never_leak():
    text = serialize_context({"nested": {"deeper": {"token": "do-not-show"}}})
    assert "do-not-show" not in text


def test_circular_references_are_marked():
    context = {"a": 1}
    context["self"] = context
    items = [1]
    items.append(items)
    context["items"] = items
    data = json.loads(serialize_context(context))
    assert data["self"] == CIRCULAR_MARKER
    assert data["items"] == [1, CIRCULAR_MARKER]


def test_shared_non_circular_values_are_kept():
    shared = {"x": 1}
    data = json.loads(serialize_context({"a": shared, "b": shared}))
    assert data == {"a": {"x": 1}, "b": {"x": 1}}


def test_unserializable_values_are_described():
    data = json.loads(serialize_context({"obj": object(), "pair": (1, 2)}))
    assert data["obj"] == "[Unserializable: object]"
    assert data["pair"] == [1, 2]


def test_non_string_keys_are_stringified():
    data = json.loads(serialize_context({1: "one"}))
    assert data == {"1": "one"}


def test_long_context_is_truncated():
    text = serialize_context({"blob": "x" * 500}, limit=100)
    assert text.endswith(TRUNCATION_MARKER)
    assert len(text) == 100 + len(TRUNCATION_MARKER)


def test_context_at_limit_is_not_truncated():
    full = serialize_context({"k": "v"})
    assert serialize_context({"k": "v"}, limit=len(full)) == full


class _ExplodingDict(dict):
    def items(self):
        raise RuntimeError("no iteration for you")


def test_render_failure_returns_empty_string():
    assert serialize_context({"inner": _ExplodingDict(a=1)}) == ""


@pytest.mark.parametrize("context", [[1, 2], ("a",), "text", 3])
def test_non_dict_context_is_rejected(context):
    with pytest.raises(InputValidationError):
        serialize_context(context)


def test_is_sensitive_key():
    assert is_sensitive_key("DB_PASSWORD")
    assert is_sensitive_key("accessToken")
    assert not is_sensitive_key("username")


def test_reserializing_output_is_stable():
    context = {"user": {"name": "ana", "apiKey": "k"}, "items": [1, {"secret": "s"}]}
    context["loop"] = context
    first = serialize_context(context)
    second = serialize_context(json.loads(first))
    assert second == first
    assert second.count(REDACTION_MARKER) == 2
    assert second.count(CIRCULAR_MARKER) == 1


def test_colliding_keys_keep_the_first_value():
    data = json.loads(serialize_context({1: "int key", "1": "str key"}))
    assert data == {"1": "int key"}
