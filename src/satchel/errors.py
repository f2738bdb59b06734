"""Satchel exception hierarchy.

Shared across the tokenizer, codec, signer, and definition registry so
every module raises and catches the same types.

Parse-path errors (``BadRequest`` subclasses) are collected per cookie
and only escalate through ``CookieParseError``. Format-path errors
(``ImplementationError``) always abort the call.
"""

from dataclasses import dataclass
from typing import Any


class SatchelError(Exception):
    """Base for all satchel-specific errors."""


class ConfigurationError(SatchelError):
    """Raised when a cookie definition is invalid.

    Typically raised by ``Definitions()`` or ``Definitions.add()`` at
    startup, before any header is parsed.
    """


@dataclass(frozen=True, slots=True)
class HTTPError(SatchelError):
    """An error that maps directly to an HTTP status code.

    A framework catching these can answer the request with ``status``
    without inspecting the message.
    """

    status: int
    detail: str = ""
    data: Any = None

    def __str__(self) -> str:
        if self.detail:
            return f"{self.status}: {self.detail}"
        return str(self.status)


class BadRequest(HTTPError):  # noqa: N818 — conventional name in web frameworks
    """400 — the client sent cookie content we refuse to accept."""

    def __init__(self, detail: str = "Bad Request", data: Any = None) -> None:
        super().__init__(status=400, detail=detail, data=data)


class HeaderSyntaxError(BadRequest):
    """The raw ``Cookie`` header has text that no pair accounts for."""

    def __init__(self, detail: str = "Invalid cookie header", data: Any = None) -> None:
        super().__init__(detail=detail, data=data)


class NameGrammarError(BadRequest):
    """A cookie name violates the RFC 6265 token grammar."""

    def __init__(self, detail: str = "Invalid cookie name", data: Any = None) -> None:
        super().__init__(detail=detail, data=data)


class ValueGrammarError(BadRequest):
    """A cookie value violates the RFC 6265 cookie-octet grammar."""

    def __init__(self, detail: str = "Invalid cookie value", data: Any = None) -> None:
        super().__init__(detail=detail, data=data)


class SignatureError(BadRequest):
    """A signed cookie value is missing its signature or fails verification."""


class DecodeError(BadRequest):
    """A cookie value cannot be decoded with its configured encoding."""


class CookieParseError(BadRequest):
    """One or more cookies failed to parse under a non-ignoring definition.

    ``data`` holds the failures that caused the error. ``failed`` holds
    every failure recorded during the call, ignored ones included, and
    ``states`` the values that did parse, so a caller can carry on in a
    degraded mode.
    """

    def __init__(
        self,
        detail: str = "Invalid cookie value",
        *,
        data: Any = None,
        states: dict[str, Any] | None = None,
        failed: list[Any] | None = None,
    ) -> None:
        super().__init__(detail=detail, data=data)
        # HTTPError is frozen; its __setattr__ refuses plain assignment.
        object.__setattr__(self, "states", states if states is not None else {})
        object.__setattr__(self, "failed", failed if failed is not None else [])


class ImplementationError(HTTPError):
    """500 — the server asked to emit a cookie it cannot legally format."""

    def __init__(self, detail: str = "Internal Server Error", data: Any = None) -> None:
        super().__init__(status=500, detail=detail, data=data)
