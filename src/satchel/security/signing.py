"""Cookie value signing — ``<value>.<salt>*<digest>``.

Signing appends a salted HMAC of the encoded value to the value itself.
The value stays readable; only tampering is detected. The MAC covers
the cookie name too, so a signed value cannot be replayed under another
cookie name.

Usage::

    from satchel.security.signing import SignOptions, sign, unsign

    options = SignOptions(password="a-password-of-at-least-32-characters")
    signed = sign("sid", "abc", options)      # 'abc.<salt>*<digest>'
    unsign("sid", signed, options)            # 'abc'
"""

from dataclasses import dataclass, replace

from satchel.errors import SignatureError
from satchel.security import iron

# Namespaces the MAC input so digests from this scheme never collide
# with other uses of the same password.
MAC_PREFIX = "hapi.signed.cookie.1"


@dataclass(frozen=True, slots=True)
class SignOptions:
    """Signing configuration.

    ``integrity`` falls back to the iron integrity defaults when unset.
    """

    password: iron.Password | None = None
    integrity: iron.KeyOptions | None = None


def _mac_input(name: str, value: str) -> str:
    return "\n".join((MAC_PREFIX, name, value))


def sign(name: str, value: str | None, options: SignOptions | None) -> str | None:
    """Append a signature to *value*. No-op without *options* or a value."""
    if value is None or options is None:
        return value

    integrity = options.integrity or iron.DEFAULTS.integrity
    mac = iron.hmac_with_password(options.password, integrity, _mac_input(name, value))
    return f"{value}.{mac.salt}*{mac.digest}"


def unsign(name: str, value: str, options: SignOptions | None) -> str:
    """Verify and strip the signature from *value*.

    The signature starts after the last ``.``, since encoded values
    (base64, sealed strings) may contain dots themselves.

    Raises ``SignatureError`` when the signature is missing, malformed,
    or does not match.
    """
    if options is None:
        return value

    unsigned, separator, signature = value.rpartition(".")
    if not separator:
        msg = "Missing signature separator"
        raise SignatureError(msg)

    if not signature:
        msg = "Missing signature"
        raise SignatureError(msg)

    parts = signature.split("*")
    if len(parts) != 2:
        msg = "Invalid signature format"
        raise SignatureError(msg)

    salt, digest = parts
    integrity = replace(options.integrity or iron.DEFAULTS.integrity, salt=salt)
    mac = iron.hmac_with_password(options.password, integrity, _mac_input(name, unsigned))
    if not iron.fixed_time_equal(mac.digest, digest):
        msg = "Invalid hmac value"
        raise SignatureError(msg)

    return unsigned
