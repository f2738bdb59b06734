"""Tests for satchel.errors — exception hierarchy and error messages."""

import pytest

from satchel.errors import (
    BadRequest,
    ConfigurationError,
    CookieParseError,
    DecodeError,
    HeaderSyntaxError,
    HTTPError,
    ImplementationError,
    NameGrammarError,
    SatchelError,
    SignatureError,
    ValueGrammarError,
)
from satchel.security.iron import IronError


class TestHierarchy:
    def test_http_error_is_satchel_error(self) -> None:
        assert issubclass(HTTPError, SatchelError)

    def test_configuration_error_is_satchel_error(self) -> None:
        assert issubclass(ConfigurationError, SatchelError)

    def test_iron_error_is_satchel_error(self) -> None:
        assert issubclass(IronError, SatchelError)

    @pytest.mark.parametrize(
        "cls",
        [
            HeaderSyntaxError,
            NameGrammarError,
            ValueGrammarError,
            SignatureError,
            DecodeError,
            CookieParseError,
        ],
    )
    def test_parse_errors_are_bad_request(self, cls: type) -> None:
        assert issubclass(cls, BadRequest)

    def test_implementation_error_is_not_bad_request(self) -> None:
        assert issubclass(ImplementationError, HTTPError)
        assert not issubclass(ImplementationError, BadRequest)


class TestHTTPError:
    def test_status_and_detail(self) -> None:
        err = HTTPError(status=400, detail="Bad cookie")
        assert err.status == 400
        assert err.detail == "Bad cookie"
        assert err.data is None

    def test_str_with_detail(self) -> None:
        assert str(HTTPError(status=400, detail="Bad cookie")) == "400: Bad cookie"

    def test_str_without_detail(self) -> None:
        assert str(HTTPError(status=500)) == "500"

    def test_frozen(self) -> None:
        err = HTTPError(status=400)
        with pytest.raises(AttributeError):
            err.status = 500  # type: ignore[misc]


class TestDefaults:
    def test_bad_request(self) -> None:
        err = BadRequest()
        assert err.status == 400
        assert err.detail == "Bad Request"

    def test_header_syntax(self) -> None:
        err = HeaderSyntaxError()
        assert err.status == 400
        assert err.detail == "Invalid cookie header"

    def test_grammar(self) -> None:
        assert NameGrammarError().detail == "Invalid cookie name"
        assert ValueGrammarError().detail == "Invalid cookie value"

    def test_implementation(self) -> None:
        err = ImplementationError("Invalid cookie path: d")
        assert err.status == 500
        assert str(err) == "500: Invalid cookie path: d"

    def test_custom_detail_and_data(self) -> None:
        err = SignatureError("Invalid hmac value", data={"name": "sid"})
        assert err.detail == "Invalid hmac value"
        assert err.data == {"name": "sid"}


class TestCookieParseError:
    def test_defaults(self) -> None:
        err = CookieParseError()
        assert err.status == 400
        assert err.detail == "Invalid cookie value"
        assert err.states == {}
        assert err.failed == []

    def test_carries_partial_result(self) -> None:
        err = CookieParseError(data=["x"], states={"a": "1"}, failed=["x", "y"])
        assert err.data == ["x"]
        assert err.states == {"a": "1"}
        assert err.failed == ["x", "y"]

    def test_raisable(self) -> None:
        with pytest.raises(BadRequest, match="400: Invalid cookie value"):
            raise CookieParseError(states={"a": "1"})

    def test_default_containers_not_shared(self) -> None:
        first = CookieParseError()
        second = CookieParseError()
        first.states["a"] = "1"
        first.failed.append("x")
        assert second.states == {}
        assert second.failed == []
