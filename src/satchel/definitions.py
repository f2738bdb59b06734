"""Cookie definitions registry — the parse/format pipeline.

``Definitions`` holds one ``CookieDefinition`` per declared cookie name
plus a fallback definition for every other name. It turns a raw
``Cookie`` header into application values, and application values into
``Set-Cookie`` header values, applying each cookie's grammar, signing
and encoding policy.

Parsing collects failures per cookie instead of stopping at the first
one. Only failures of cookies whose definition does not ignore errors
make the call raise, and the raised ``CookieParseError`` still carries
whatever did parse. Formatting has no such leniency: any problem aborts
the call, since it is a bug on the server side.

Usage::

    from satchel import Definitions

    definitions = Definitions({"is_secure": False, "path": "/"})
    definitions.add("session", {"encoding": "iron", "password": SECRET})
    definitions.add("prefs", {"encoding": "base64json", "ignore_errors": True})

    result = await definitions.parse(request.headers.get("cookie", ""))
    result.states["session"]

    headers = await definitions.format(
        [
            {"name": "session", "value": {"user": 1}},
            {"name": "prefs", "value": {"theme": "dark"}, "options": {"ttl": 86_400_000}},
        ]
    )

A definition is registered once, before the registry is used, and never
changes after that; the registry can be shared by concurrent requests.
"""

import copy
import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from satchel._internal.invoke import invoke
from satchel.config import DEFAULTS, CookieDefinition, merge, normalize
from satchel.encoding import decode, encode
from satchel.errors import (
    ConfigurationError,
    CookieParseError,
    HeaderSyntaxError,
    HTTPError,
    ImplementationError,
    SatchelError,
)
from satchel.http.cookies import SetCookie, exclude, parse_pairs, valid_name, valid_value, validate
from satchel.security.signing import sign, unsign

logger = logging.getLogger("satchel.definitions")

# Rejected as a cookie name: JavaScript consumers of the parsed state
# would treat it as the object prototype.
_FORBIDDEN_NAME = "__proto__"


@dataclass(frozen=True, slots=True)
class FailureRecord:
    """One cookie (or header syntax) problem found while parsing.

    ``name`` and ``value`` are ``None`` for header syntax failures.
    ``value`` is the raw value, a list when the name repeated.
    """

    settings: CookieDefinition
    reason: str
    name: str | None = None
    value: Any = None


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Parsed cookie values and every failure recorded along the way."""

    states: dict[str, Any]
    failed: list[FailureRecord]


@dataclass(frozen=True, slots=True)
class Cookie:
    """A cookie to format. ``options`` override its definition for this call."""

    name: str
    value: Any = None
    options: Mapping[str, Any] | None = None


def _reason(exc: BaseException) -> str:
    if isinstance(exc, HTTPError):
        return exc.detail
    return str(exc)


def _as_cookie(item: Cookie | Mapping[str, Any]) -> Cookie:
    if isinstance(item, Cookie):
        return item
    return Cookie(name=item["name"], value=item.get("value"), options=item.get("options"))


async def prepare_value(name: str, value: Any, definition: CookieDefinition) -> Any:
    """Encode and sign *value* for the cookie *name*.

    Raises ``ImplementationError`` wrapping whatever the encoding or
    signing step raised, naming the step that failed.
    """
    if not isinstance(definition, CookieDefinition):
        msg = "Missing or invalid options"
        raise ConfigurationError(msg)

    try:
        encoded = await encode(
            value,
            definition.encoding,
            password=definition.password,
            options=definition.iron,
        )
    except Exception as exc:
        msg = f"Failed to encode cookie ({name}) value: {_reason(exc)}"
        raise ImplementationError(msg) from exc

    try:
        return sign(name, encoded, definition.sign)
    except Exception as exc:
        msg = f"Failed to sign cookie ({name}) value: {_reason(exc)}"
        raise ImplementationError(msg) from exc


class Definitions:
    """Registry of cookie definitions.

    Attributes:
        settings: Fallback definition for undeclared names, and the base
            every declared definition is merged over.
        cookies: Declared definitions by cookie name.
        names: Declared names in registration order.
    """

    __slots__ = ("cookies", "names", "settings")

    def __init__(self, options: Mapping[str, Any] | None = None) -> None:
        self.settings = merge(
            DEFAULTS,
            options,
            null_override=False,
            label="Invalid state definition defaults",
        )
        self.cookies: dict[str, CookieDefinition] = {}
        self.names: list[str] = []

    def add(self, name: str, options: Mapping[str, Any] | None = None) -> None:
        """Declare the cookie *name* with *options* over the registry settings.

        Raises ``ConfigurationError`` for an empty name, a name declared
        twice, or invalid options.
        """
        if not name or not isinstance(name, str):
            msg = "Invalid name"
            raise ConfigurationError(msg)

        if name in self.cookies:
            msg = f"State already defined: {name}"
            raise ConfigurationError(msg)

        label = f"Invalid state definition: {name}"
        self.cookies[name] = merge(self.settings, options, label=label)
        self.names.append(name)

    def definition(self, name: str) -> CookieDefinition:
        """Return the definition governing *name* (declared or fallback)."""
        return self.cookies.get(name, self.settings)

    # -- Parse --

    async def parse(self, header: str) -> ParseResult:
        """Parse a ``Cookie`` header into cookie values.

        Raises ``HeaderSyntaxError`` when the header has unparseable text
        and the registry does not ignore errors, and ``CookieParseError``
        when any cookie whose definition does not ignore errors failed.
        """
        state: dict[str, Any] = {}
        pairs, residue = parse_pairs(header)
        for name, value in pairs:
            if name == _FORBIDDEN_NAME:
                raise HeaderSyntaxError()

            if name not in state:
                state[name] = value
            elif isinstance(state[name], list):
                state[name].append(value)
            else:
                state[name] = [state[name], value]

        failed: list[FailureRecord] = []
        if residue is not None:
            if not self.settings.ignore_errors:
                raise HeaderSyntaxError()

            reason = f"Header contains unexpected syntax: {residue}"
            logger.debug("Cookie header ignored: %s", reason)
            failed.append(FailureRecord(settings=self.settings, reason=reason))

        errored: list[FailureRecord] = []

        def record(reason: str, name: str, value: Any, definition: CookieDefinition) -> None:
            details = FailureRecord(settings=definition, reason=reason, name=name, value=value)
            logger.debug("Cookie %r failed to parse: %s", name, reason)
            failed.append(details)
            if not definition.ignore_errors:
                errored.append(details)

        parsed: dict[str, Any] = {}
        for name, value in state.items():
            definition = self.definition(name)

            if definition.strict_header:
                error = validate(name, value)
                if error is not None:
                    record(error.detail, name, value, definition)
                    continue

            if definition.encoding == "none":
                parsed[name] = value
                continue

            if not isinstance(value, list):
                try:
                    parsed[name] = await self._decode(name, value, definition)
                except SatchelError as exc:
                    record(_reason(exc), name, value, definition)
                continue

            results: list[Any] = []
            for item in value:
                try:
                    results.append(await self._decode(name, item, definition))
                except SatchelError as exc:
                    record(_reason(exc), name, value, definition)
            parsed[name] = results

        if errored:
            raise CookieParseError(data=errored, states=parsed, failed=failed)

        return ParseResult(states=parsed, failed=failed)

    async def _decode(self, name: str, value: str, definition: CookieDefinition) -> Any:
        unsigned = unsign(name, value, definition.sign)
        return await decode(
            unsigned,
            definition.encoding,
            password=definition.password,
            options=definition.iron,
        )

    # -- Format --

    async def format(
        self,
        cookies: Cookie | Mapping[str, Any] | Sequence[Cookie | Mapping[str, Any]] | None,
        context: Any = None,
    ) -> list[str]:
        """Format cookies into ``Set-Cookie`` header values, in input order.

        *cookies* is one cookie or a list of them, each a ``Cookie`` or a
        mapping with ``name``, ``value`` and optional ``options`` keys.
        *context* is passed to ``contextualize`` hooks.

        Raises ``ImplementationError`` for the first cookie that cannot
        be formatted; no header values are returned in that case.
        """
        if not cookies:
            return []

        if isinstance(cookies, Cookie | Mapping):
            cookies = [cookies]

        header: list[str] = []
        for item in cookies:
            header.append(await self._format_cookie(_as_cookie(item), context))
        return header

    async def _format_cookie(self, cookie: Cookie, context: Any) -> str:
        base = self.definition(cookie.name)
        definition = base
        if cookie.options:
            definition = merge(base, cookie.options, label=f"Invalid cookie options: {cookie.name}")

        if definition.contextualize is not None:
            definition = copy.deepcopy(definition)
            await invoke(definition.contextualize, definition, context)
            label = f"Invalid contextualized cookie: {cookie.name}"
            definition = normalize(definition, label=label)

        if not valid_name(cookie.name, definition.strict_header):
            msg = f"Invalid cookie name: {cookie.name}"
            raise ImplementationError(msg)

        value = await prepare_value(cookie.name, cookie.value, definition)

        strict = definition.strict_header
        if value is not None and value != "" and (
            not isinstance(value, str) or not valid_value(value, strict)
        ):
            msg = f"Invalid cookie value: {cookie.value}"
            raise ImplementationError(msg)

        return SetCookie(
            name=cookie.name,
            value=value or "",
            ttl=definition.ttl,
            secure=definition.is_secure,
            httponly=definition.is_http_only,
            samesite=definition.is_same_site,
            partitioned=definition.is_partitioned,
            domain=definition.domain,
            path=definition.path,
        ).to_header_value()

    # -- Pass-through --

    def pass_through(self, header: str, fallback: bool = False) -> str | HeaderSyntaxError:
        """Strip this registry's own cookies from *header* before forwarding it.

        A declared cookie is kept when its ``pass_through`` option is true,
        or when it is unset and *fallback* is true. Returns the header
        unchanged when nothing is declared, and the ``HeaderSyntaxError``
        (not raised) for a malformed header.
        """
        if not self.names:
            return header

        excluded = []
        for name in self.names:
            option = self.cookies[name].pass_through
            keep = option if option is not None else fallback
            if not keep:
                excluded.append(name)

        return exclude(header, excluded)
