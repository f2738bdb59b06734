"""Cookie value encodings.

Turns application values into cookie-safe strings and back:

- ``none`` — the value is used as is.
- ``base64`` — a latin-1 string as standard base64.
- ``base64json`` — any JSON value, as compact JSON in base64.
- ``form`` — a mapping as an ``application/x-www-form-urlencoded``
  string; repeated keys decode to lists.
- ``iron`` — any JSON value, sealed with a password (see
  ``satchel.security.iron``).

Decoding failures raise ``DecodeError`` (or ``IronError`` for sealed
values) so the parse pipeline can record them per cookie.
"""

import base64
import binascii
import json
import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import parse_qs, quote, urlencode

from satchel._internal.safe_json import parse_json
from satchel.errors import ConfigurationError, DecodeError
from satchel.security import iron

# Left unescaped by form encoding, matching JavaScript's encodeURIComponent
_FORM_SAFE = "!'()*"

# Standard and URL-safe alphabets, optionally padded
_BASE64_RE = re.compile(r"[A-Za-z0-9+/_-]*={0,2}", re.ASCII)


def _b64decode(value: str) -> str:
    """Decode standard or URL-safe base64, padded or not.

    Anything outside the two alphabets, or a length no base64 text can
    have, is refused rather than skipped.
    """
    if not _BASE64_RE.fullmatch(value):
        msg = "Invalid base64 payload"
        raise DecodeError(msg)
    try:
        raw = base64.b64decode(value + "=" * (-len(value) % 4), altchars=b"-_")
    except (binascii.Error, ValueError) as exc:
        msg = "Invalid base64 payload"
        raise DecodeError(msg) from exc
    return raw.decode("latin-1")


def _b64encode(value: str) -> str:
    return base64.b64encode(value.encode("latin-1")).decode("ascii")


def _form_scalar(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def parse_form(value: str) -> dict[str, str | list[str]]:
    """Decode a form string; keys that repeat map to lists."""
    if not value:
        return {}
    parsed = parse_qs(value, keep_blank_values=True)
    return {key: items[0] if len(items) == 1 else items for key, items in parsed.items()}


def format_form(value: Mapping[str, Any]) -> str:
    """Encode a mapping as a form string; list values repeat their key."""
    items: list[tuple[str, Any]] = []
    for key, item in value.items():
        if isinstance(item, list | tuple):
            items.extend((key, _form_scalar(element)) for element in item)
        else:
            items.append((key, _form_scalar(item)))
    return urlencode(items, safe=_FORM_SAFE, quote_via=quote)


async def decode(
    value: str,
    encoding: str,
    *,
    password: iron.Password | None = None,
    options: iron.SealOptions | None = None,
) -> Any:
    """Decode a raw (unquoted, unsigned) cookie value.

    *password* and *options* are only used by the ``iron`` encoding.
    """
    if encoding == "none":
        return value

    if encoding == "form" and not value:
        return {}

    if encoding == "iron":
        return await iron.unseal(value, password, options or iron.DEFAULTS)

    if encoding == "base64json":
        decoded = _b64decode(value)
        try:
            return parse_json(decoded)
        except ValueError as exc:
            msg = "Invalid JSON payload"
            raise DecodeError(msg) from exc

    if encoding == "base64":
        return _b64decode(value)

    if encoding == "form":
        return parse_form(value)

    msg = f"Unknown encoding: {encoding}"
    raise ConfigurationError(msg)


async def encode(
    value: Any,
    encoding: str,
    *,
    password: iron.Password | None = None,
    options: iron.SealOptions | None = None,
) -> Any:
    """Encode an application value for a cookie. ``None`` passes through."""
    if value is None or encoding == "none":
        return value

    if encoding == "iron":
        return await iron.seal(value, password, options or iron.DEFAULTS)

    if encoding == "base64":
        return _b64encode(value)

    if encoding == "base64json":
        return _b64encode(json.dumps(value, separators=(",", ":")))

    if encoding == "form":
        return format_form(value)

    msg = f"Unknown encoding: {encoding}"
    raise ConfigurationError(msg)
