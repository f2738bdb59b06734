"""Cookie header grammar, tokenization, and SetCookie serialization.

Consolidates the read side (``parse_pairs``, ``validate``, ``exclude``,
used by ``Definitions.parse`` and ``Definitions.pass_through``) and the
write side (``SetCookie``, used by ``Definitions.format``) in one module.

Strict grammar is RFC 6265 section 4.1.1. Loose grammar accepts what
older browsers and hand-written clients actually send.
"""

import math
import re
from collections.abc import Collection
from dataclasses import dataclass
from email.utils import formatdate
from time import time
from typing import Literal, TypeAlias

from satchel.errors import (
    HeaderSyntaxError,
    ImplementationError,
    NameGrammarError,
    ValueGrammarError,
)

_NAME_STRICT_RE = re.compile(r'[^\x00-\x20()<>@,;:\\"/\[\]?={}\x7f]+')
_NAME_LOOSE_RE = re.compile(r"[^=\s]*")
_VALUE_STRICT_RE = re.compile(r'[^\x00-\x20",;\\\x7f]*')

_DOMAIN_RE = re.compile(
    r"\.?[a-z\d]+(?:[a-z\d]*|[a-z\d\-]*[a-z\d])(?:\.[a-z\d]+(?:[a-z\d]*|[a-z\d\-]*[a-z\d]))*",
    re.ASCII,
)
_DOMAIN_LABEL_LENGTH_RE = re.compile(r"\.?[a-z\d\-]{1,63}(?:\.[a-z\d\-]{1,63})*", re.ASCII)
_PATH_RE = re.compile(r"/[^\x00-\x1f;]*")

#                       1: name      2: value
_PAIR_RE = re.compile(r"\s*([^=\s]*)\s*=\s*([^;]*)(?:;\s*|\Z)")

SameSite: TypeAlias = Literal["Strict", "Lax", "None", False]


# -- Read side --


def parse_pairs(header: str) -> tuple[list[tuple[str, str]], str | None]:
    """Split a ``Cookie`` header into ``(name, value)`` pairs.

    Returns the pairs in header order and the unparsed residue, or
    ``None`` when the whole header was consumed. Scanning stops at the
    first segment with no ``=`` (``'a=1;xyz'`` leaves ``'xyz'``).

    Values wrapped in double quotes are unquoted; interior characters
    are kept as they are.
    """
    pairs: list[tuple[str, str]] = []
    index = 0
    while index < len(header):
        eq_index = header.find("=", index)
        if eq_index == -1:
            return pairs, header[index:]

        semi_index = header.find(";", eq_index)
        end_index = semi_index if semi_index != -1 else len(header)

        name = header[index:eq_index].strip()
        value = header[eq_index + 1 : end_index].strip()
        if len(value) > 1 and value.startswith('"') and value.endswith('"'):
            value = value[1:-1]

        pairs.append((name, value))
        index = end_index + 1

    return pairs, None


def valid_name(name: str, strict: bool = True) -> bool:
    """Check a cookie name against the strict or loose grammar.

    Loose names may be empty.
    """
    pattern = _NAME_STRICT_RE if strict else _NAME_LOOSE_RE
    return pattern.fullmatch(name) is not None


def valid_value(value: str, strict: bool = True) -> bool:
    """Check an unquoted cookie value. Loose values are unrestricted."""
    if not strict:
        return True
    return _VALUE_STRICT_RE.fullmatch(value) is not None


def validate(name: str, value: str | list[str]) -> NameGrammarError | ValueGrammarError | None:
    """Check a parsed cookie against the strict grammar.

    *value* is a list when the name appeared more than once; every
    occurrence must be valid. Returns the error, or ``None`` if valid.
    """
    if not valid_name(name):
        return NameGrammarError()

    values = value if isinstance(value, list) else [value]
    for item in values:
        if not valid_value(item):
            return ValueGrammarError()

    return None


def exclude(header: str, names: Collection[str]) -> str | HeaderSyntaxError:
    """Drop every pair named in *names* from a raw ``Cookie`` header.

    The remaining pairs are re-joined with ``;`` in their original
    order. A header with text no pair accounts for is not raised:
    the ``HeaderSyntaxError`` is returned for the caller to check.
    """
    kept: list[str] = []

    def _collect(match: re.Match[str]) -> str:
        name, value = match.groups()
        if name not in names:
            kept.append(f"{name}={value}")
        return ""

    residue = _PAIR_RE.sub(_collect, header)
    if residue:
        return HeaderSyntaxError()
    return ";".join(kept)


# -- Write side --


def http_date(msec: float) -> str:
    """Format epoch milliseconds as an IMF-fixdate (``Thu, 01 Jan 1970 00:00:00 GMT``)."""
    return formatdate(msec / 1000, usegmt=True)


@dataclass(frozen=True, slots=True)
class SetCookie:
    """A ``Set-Cookie`` directive, with attributes in emission order.

    ``ttl`` is in milliseconds: ``None`` makes a session cookie and ``0``
    expires the cookie immediately.
    """

    name: str
    value: str = ""
    ttl: float | None = None
    secure: bool = True
    httponly: bool = True
    samesite: SameSite = "Strict"
    partitioned: bool = False
    domain: str | None = None
    path: str | None = None

    def to_header_value(self, now: float | None = None) -> str:
        """Serialize to a ``Set-Cookie`` header value string.

        *now* is the current time in epoch milliseconds, taken from the
        clock when omitted.

        Raises ``ImplementationError`` for attribute combinations or
        values a browser would reject.
        """
        parts = [f"{self.name}={self.value}"]

        if self.ttl is not None:
            if self.ttl:
                expires = (time() * 1000 if now is None else now) + self.ttl
            else:
                expires = 0
            parts.append(f"Max-Age={math.floor(self.ttl / 1000)}")
            parts.append(f"Expires={http_date(expires)}")

        if self.secure:
            parts.append("Secure")

        if self.httponly:
            parts.append("HttpOnly")

        if self.samesite:
            parts.append(f"SameSite={self.samesite}")

        if self.partitioned:
            if not self.secure:
                msg = "Partitioned cookies must be secure"
                raise ImplementationError(msg)
            if self.samesite != "None":
                msg = "Partitioned cookies must have SameSite=None"
                raise ImplementationError(msg)
            parts.append("Partitioned")

        if self.domain:
            domain = self.domain.lower()
            if not _DOMAIN_LABEL_LENGTH_RE.fullmatch(domain):
                msg = f"Cookie domain too long: {self.domain}"
                raise ImplementationError(msg)
            if not _DOMAIN_RE.fullmatch(domain):
                msg = f"Invalid cookie domain: {self.domain}"
                raise ImplementationError(msg)
            parts.append(f"Domain={domain}")

        if self.path:
            if not _PATH_RE.fullmatch(self.path):
                msg = f"Invalid cookie path: {self.path}"
                raise ImplementationError(msg)
            parts.append(f"Path={self.path}")

        return "; ".join(parts)
