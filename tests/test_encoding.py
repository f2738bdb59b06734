"""Tests for satchel.encoding — cookie value encodings."""

import base64

import pytest

from satchel._internal.safe_json import parse_json

from satchel.encoding import decode, encode, format_form, parse_form
from satchel.errors import ConfigurationError, DecodeError
from satchel.security.iron import IronError

PASSWORD = "a_password_that_is_not_too_short_and_also_not_very_random_but_is_good_enough"


class TestForm:
    def test_format(self) -> None:
        assert format_form({"a": 1, "b": 2, "c": "3 x"}) == "a=1&b=2&c=3%20x"

    def test_format_lists_repeat_key(self) -> None:
        assert format_form({"a": [1, 2], "b": "x"}) == "a=1&a=2&b=x"

    def test_format_scalars(self) -> None:
        assert format_form({"a": None, "b": True, "c": False}) == "a=&b=true&c=false"

    def test_format_escapes(self) -> None:
        assert format_form({"a b": "x&y=z/", "c": "(ok)!*'"}) == "a%20b=x%26y%3Dz%2F&c=(ok)!*'"

    def test_parse(self) -> None:
        assert parse_form("a=1&b=2&c=3%20x") == {"a": "1", "b": "2", "c": "3 x"}

    def test_parse_repeated_keys(self) -> None:
        assert parse_form("a=1&a=2&b=3") == {"a": ["1", "2"], "b": "3"}

    def test_parse_percent_literal(self) -> None:
        assert parse_form("b=%p123456789") == {"b": "%p123456789"}

    def test_parse_empty(self) -> None:
        assert parse_form("") == {}

    def test_parse_blank_value(self) -> None:
        assert parse_form("a=") == {"a": ""}


class TestEncode:
    async def test_none_passes_through(self) -> None:
        assert await encode(None, "base64json") is None

    async def test_none_encoding(self) -> None:
        assert await encode("abc", "none") == "abc"

    async def test_base64(self) -> None:
        assert await encode("fihfieuhr9384hf", "base64") == "ZmloZmlldWhyOTM4NGhm"

    async def test_base64json(self) -> None:
        encoded = await encode({"a": 1, "b": 2, "c": 3}, "base64json")
        assert encoded == "eyJhIjoxLCJiIjoyLCJjIjozfQ=="

    async def test_form(self) -> None:
        assert await encode({"a": 1, "b": 2, "c": "3 x"}, "form") == "a=1&b=2&c=3%20x"

    async def test_iron(self) -> None:
        sealed = await encode({"a": 1}, "iron", password=PASSWORD)
        assert sealed.startswith("Fe26.2**")
        assert await decode(sealed, "iron", password=PASSWORD) == {"a": 1}

    async def test_iron_without_password(self) -> None:
        with pytest.raises(IronError, match="Empty password"):
            await encode({"a": 1}, "iron")

    async def test_unknown_encoding(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown encoding: rot13"):
            await encode("x", "rot13")


class TestDecode:
    async def test_none_encoding(self) -> None:
        assert await decode("abc", "none") == "abc"

    async def test_base64(self) -> None:
        assert await decode("ZmloZmlldWhyOTM4NGhm", "base64") == "fihfieuhr9384hf"

    async def test_base64_unpadded(self) -> None:
        assert await decode("dGVzdA", "base64") == "test"

    async def test_base64_urlsafe_alphabet(self) -> None:
        assert await decode("-_8", "base64") == "\xfb\xff"

    @pytest.mark.parametrize("value", ["a", "a!b", "dGVz dA", "dG=VzdA"])
    async def test_base64_malformed(self, value: str) -> None:
        with pytest.raises(DecodeError, match="Invalid base64 payload"):
            await decode(value, "base64")

    async def test_base64json(self) -> None:
        assert await decode("eyJ0ZXN0aW5nIjoianNvbiJ9", "base64json") == {"testing": "json"}

    async def test_base64json_invalid(self) -> None:
        with pytest.raises(DecodeError):
            await decode("XeyJ0ZXN0aW5nIjoianNvbiJ9", "base64json")

    async def test_base64json_forbidden_key(self) -> None:
        # {"__proto__": {"a": 1}}
        with pytest.raises(DecodeError, match="Invalid JSON payload"):
            await decode("eyJfX3Byb3RvX18iOnsiYSI6MX19", "base64json")

    async def test_form(self) -> None:
        assert await decode("a=1&b=2&c=3%20x", "form") == {"a": "1", "b": "2", "c": "3 x"}

    async def test_form_empty(self) -> None:
        assert await decode("", "form") == {}

    async def test_iron_wrong_password(self) -> None:
        sealed = await encode("x", "iron", password=PASSWORD)
        with pytest.raises(IronError, match="Bad hmac value"):
            await decode(sealed, "iron", password="y" * 32)

    async def test_unknown_encoding(self) -> None:
        with pytest.raises(ConfigurationError):
            await decode("x", "rot13")


class TestParseJson:
    def test_plain(self) -> None:
        assert parse_json('{"a": [1, {"b": null}]}') == {"a": [1, {"b": None}]}

    def test_nested_forbidden_key(self) -> None:
        with pytest.raises(ValueError, match="forbidden prototype property"):
            parse_json('{"a": {"__proto__": 1}}')

    def test_deep_nesting(self) -> None:
        with pytest.raises(ValueError, match="JSON nesting too deep"):
            parse_json("[" * 100_000)

    async def test_deep_nesting_base64json(self) -> None:
        payload = base64.b64encode(b"[" * 100_000).decode("ascii")
        with pytest.raises(DecodeError, match="Invalid JSON payload"):
            await decode(payload, "base64json")
