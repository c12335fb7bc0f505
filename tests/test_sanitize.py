"""Tests for the input sanitizer."""

import re

from whatsgate.domain.sanitize import MAX_STRING_LENGTH, sanitize

_FORBIDDEN = re.compile(r"[\x00-\x09\x0B\x0C\x0E-\x1F\x7F]")


def _string_leaves(value):
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from _string_leaves(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            yield from _string_leaves(item)


class TestSanitize:
    def test_strips_control_characters_keeps_newlines(self):
        assert sanitize("a\x00b\tc\nd\re\x7f\x1bf") == "abc\nd\ref"

    def test_truncates_long_strings(self):
        assert len(sanitize("x" * (MAX_STRING_LENGTH + 50))) == MAX_STRING_LENGTH

    def test_truncates_after_stripping(self):
        value = "\x00" * 10 + "y" * MAX_STRING_LENGTH
        assert sanitize(value) == "y" * MAX_STRING_LENGTH

    def test_nested_payload_has_no_forbidden_leaves(self):
        payload = {
            "destino": "155\x0055\x0b",
            "items": ["ok", {"deep": "z" * 20_000 + "\x01"}, ("t\x0c",)],
            "count": 3,
            "flag": True,
            "nothing": None,
        }

        result = sanitize(payload)

        for leaf in _string_leaves(result):
            assert not _FORBIDDEN.search(leaf)
            assert len(leaf) <= MAX_STRING_LENGTH
        assert result["count"] == 3
        assert result["flag"] is True
        assert result["nothing"] is None
        assert isinstance(result["items"][2], tuple)

    def test_does_not_mutate_input(self):
        payload = {"a": ["b\x00"], "c": {"d": "e\x01"}}

        result = sanitize(payload)

        assert payload == {"a": ["b\x00"], "c": {"d": "e\x01"}}
        assert result == {"a": ["b"], "c": {"d": "e"}}
        assert result is not payload
        assert result["a"] is not payload["a"]

    def test_non_container_leaves_pass_through(self):
        marker = object()
        assert sanitize(marker) is marker
        assert sanitize(4.5) == 4.5
