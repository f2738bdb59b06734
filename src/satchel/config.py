"""Cookie definitions — per-cookie configuration and merging.

A ``CookieDefinition`` enumerates every option that governs how one
cookie is parsed and formatted. Definitions are layered: built-in
``DEFAULTS``, then registry-wide options, then per-cookie options, then
per-call options. ``merge()`` builds each layer from the one below it
without touching the base.

Options for a layer are given as a mapping of field names::

    definition = merge(DEFAULTS, {"encoding": "base64json", "path": "/"})

Nested options (``sign``, ``sign.integrity``, ``iron``) merge the same
way when given as mappings, and replace the base value when given as
option objects.
"""

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, fields, replace
from typing import Any, Literal, TypeAlias

from satchel.errors import ConfigurationError
from satchel.http.cookies import SameSite
from satchel.security.iron import KeyOptions, Password, SealOptions
from satchel.security.signing import SignOptions

Encoding: TypeAlias = Literal["none", "base64", "base64json", "form", "iron"]
Contextualize: TypeAlias = Callable[["CookieDefinition", Any], Awaitable[None] | None]

ENCODINGS: frozenset[str] = frozenset({"none", "base64", "base64json", "form", "iron"})
SAME_SITE_VALUES: tuple[SameSite, ...] = ("Strict", "Lax", "None", False)


@dataclass(slots=True)
class CookieDefinition:
    """The fully merged configuration for one cookie name.

    Attributes:
        strict_header: Enforce RFC 6265 grammar on the name and value.
        ignore_errors: Record parse failures for this cookie without
            failing the whole parse call.
        is_secure: Emit ``Secure``.
        is_http_only: Emit ``HttpOnly``.
        is_partitioned: Emit ``Partitioned`` (requires ``is_secure`` and
            ``is_same_site="None"``).
        is_same_site: ``SameSite`` value, or ``False`` to omit it.
        path: ``Path`` attribute.
        domain: ``Domain`` attribute.
        ttl: Lifetime in milliseconds. ``0`` expires the cookie now,
            ``None`` makes it a session cookie.
        encoding: One of ``none``, ``base64``, ``base64json``, ``form``,
            ``iron``.
        sign: Signing options; signing is enabled when set.
        password: Sealing password, required for ``iron``.
        iron: Sealing options, iron defaults when ``None``.
        contextualize: Hook called with a private copy of the definition
            and the format context, before each format. Nested options
            are frozen: a hook replaces them with ``dataclasses.replace``
            or by assigning a mapping, which is merged over the option
            defaults once the hook returns.
        pass_through: Whether ``Definitions.pass_through`` keeps this
            cookie; ``None`` defers to the caller's fallback.
        clear_invalid: Ask the hosting framework to expire this cookie
            when it fails to parse. Stored only; satchel never acts on it.
        auto_value: Value the hosting framework sets when the request
            carries none (a value or a callable). Stored only.
    """

    strict_header: bool = True
    ignore_errors: bool = False
    is_secure: bool = True
    is_http_only: bool = True
    is_partitioned: bool = False
    is_same_site: SameSite = "Strict"
    path: str | None = None
    domain: str | None = None
    ttl: float | None = None
    encoding: Encoding = "none"
    sign: SignOptions | None = None
    password: Password | None = None
    iron: SealOptions | None = None
    contextualize: Contextualize | None = None
    pass_through: bool | None = None
    clear_invalid: bool = False
    auto_value: Any = None


DEFAULTS = CookieDefinition()

# (owner type, field) -> option type that mapping overrides merge into
_NESTED: dict[tuple[type, str], type] = {
    (CookieDefinition, "sign"): SignOptions,
    (CookieDefinition, "iron"): SealOptions,
    (SignOptions, "integrity"): KeyOptions,
    (SealOptions, "encryption"): KeyOptions,
    (SealOptions, "integrity"): KeyOptions,
}

_BOOL_FIELDS = (
    "strict_header",
    "ignore_errors",
    "is_secure",
    "is_http_only",
    "is_partitioned",
    "clear_invalid",
)


def _apply(base: Any, overrides: Mapping[str, Any], null_override: bool, label: str) -> Any:
    known = {f.name for f in fields(base)}
    changes: dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in known:
            msg = f"{label}: unknown option {key!r}"
            raise ConfigurationError(msg)

        if value is None and not null_override:
            continue

        nested = _NESTED.get((type(base), key))
        if nested is not None and isinstance(value, Mapping):
            current = getattr(base, key)
            if current is None:
                current = nested()
            value = _apply(current, value, null_override, label)

        changes[key] = value
    return replace(base, **changes)


def merge(
    base: CookieDefinition,
    overrides: Mapping[str, Any] | None,
    *,
    null_override: bool = True,
    label: str = "Invalid cookie definition",
) -> CookieDefinition:
    """Return a new definition with *overrides* applied over *base*.

    With ``null_override`` an explicit ``None`` replaces the base value;
    without it ``None`` means "keep the base value". *base* is never
    modified. The result is validated; *label* prefixes error messages.
    """
    merged = _apply(base, overrides or {}, null_override, label)
    validate_definition(merged, label)
    return merged


def _coerce_nested(owner: Any, label: str) -> Any:
    changes: dict[str, Any] = {}
    for f in fields(owner):
        nested = _NESTED.get((type(owner), f.name))
        if nested is None:
            continue
        value = getattr(owner, f.name)
        if isinstance(value, Mapping):
            changes[f.name] = _apply(nested(), value, True, label)
        elif isinstance(value, nested):
            changes[f.name] = _coerce_nested(value, label)
    return replace(owner, **changes) if changes else owner


def normalize(
    definition: CookieDefinition, label: str = "Invalid cookie definition"
) -> CookieDefinition:
    """Turn nested option mappings set directly on *definition* into option objects.

    Used on the copy a ``contextualize`` hook has edited in place, where
    ``definition.sign = {"password": ...}`` bypasses ``merge()``. Each
    mapping is applied over the defaults of its option type. The result
    is validated.
    """
    normalized = _coerce_nested(definition, label)
    validate_definition(normalized, label)
    return normalized


def validate_definition(
    definition: CookieDefinition, label: str = "Invalid cookie definition"
) -> None:
    """Raise ``ConfigurationError`` if any option has an unusable value."""

    def _fail(option: str, expected: str) -> None:
        msg = f"{label}: {option} must be {expected}"
        raise ConfigurationError(msg)

    for name in _BOOL_FIELDS:
        if not isinstance(getattr(definition, name), bool):
            _fail(name, "a bool")

    same_site = definition.is_same_site
    if same_site is not False and (
        not isinstance(same_site, str) or same_site not in SAME_SITE_VALUES
    ):
        _fail("is_same_site", "'Strict', 'Lax', 'None' or False")

    for name in ("path", "domain"):
        if getattr(definition, name) is not None and not isinstance(getattr(definition, name), str):
            _fail(name, "a str or None")

    ttl = definition.ttl
    if ttl is not None and (isinstance(ttl, bool) or not isinstance(ttl, int | float)):
        _fail("ttl", "a number or None")

    if definition.encoding not in ENCODINGS:
        _fail("encoding", "one of " + ", ".join(sorted(ENCODINGS)))

    if definition.sign is not None and not isinstance(definition.sign, SignOptions):
        _fail("sign", "SignOptions or None")

    if definition.iron is not None and not isinstance(definition.iron, SealOptions):
        _fail("iron", "SealOptions or None")

    password = definition.password
    if password is not None and not isinstance(password, str | bytes | Mapping):
        _fail("password", "a str, bytes, or mapping")

    if definition.contextualize is not None and not callable(definition.contextualize):
        _fail("contextualize", "callable or None")

    if definition.pass_through is not None and not isinstance(definition.pass_through, bool):
        _fail("pass_through", "a bool or None")
