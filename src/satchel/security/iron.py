"""Sealing and keyed-MAC primitives — iron ``Fe26.2`` wire format.

Seals a JSON-serializable value into an encrypted, integrity-protected
string, and computes salted HMAC digests from a password. The format
is compatible with the ``@hapi/iron`` seal format, so cookies sealed by
either side can be read by the other::

    Fe26.2*<passwordId>*<encSalt>*<iv>*<ciphertext>*<expiration>*<macSalt>*<mac>

Keys are derived with PBKDF2-SHA1 from string passwords (salts are hex
strings), or used directly when the password is ``bytes``. Binary parts
are base64url without padding.

Usage::

    from satchel.security.iron import DEFAULTS, seal, unseal

    sealed = await seal({"user": 1}, password, DEFAULTS)
    value = await unseal(sealed, password, DEFAULTS)

``seal`` and ``unseal`` run the key derivation and cipher work in a
worker thread so they never block the event loop.
"""

import base64
import binascii
import hashlib
import hmac
import json
import math
import os
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, TypeAlias

import anyio
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from satchel._internal.safe_json import parse_json
from satchel.errors import SatchelError

MAC_PREFIX = "Fe26.2"

Password: TypeAlias = str | bytes | Mapping[str, Any]

# algorithm -> (key bits, iv bits)
_ALGORITHMS: dict[str, tuple[int, int]] = {
    "aes-128-ctr": (128, 128),
    "aes-256-cbc": (256, 128),
    "sha256": (256, 0),
}

_PASSWORD_ID_RE = re.compile(r"\w+", re.ASCII)
_BASE64URL_RE = re.compile(r"[\w\-]*", re.ASCII)


class IronError(SatchelError):
    """Raised when sealing, unsealing, or key derivation fails."""


# -- Options --


@dataclass(frozen=True, slots=True)
class KeyOptions:
    """Key derivation options for one half (encryption or integrity) of a seal.

    ``salt`` and ``iv`` are normally generated per call; set them only
    to reproduce a known value.
    """

    salt_bits: int = 256
    algorithm: str = "sha256"
    iterations: int = 1
    min_password_length: int = 32
    salt: str | None = None
    iv: bytes | None = None


@dataclass(frozen=True, slots=True)
class SealOptions:
    """Seal options. ``ttl`` is in milliseconds, 0 means no expiration."""

    encryption: KeyOptions = field(default_factory=lambda: KeyOptions(algorithm="aes-256-cbc"))
    integrity: KeyOptions = field(default_factory=KeyOptions)
    ttl: int = 0
    timestamp_skew_sec: int = 60
    localtime_offset_msec: int = 0


DEFAULTS = SealOptions()


@dataclass(frozen=True, slots=True)
class Key:
    """A derived key with the salt and IV that produced it."""

    key: bytes
    salt: str
    iv: bytes | None = None


@dataclass(frozen=True, slots=True)
class MacResult:
    """A base64url HMAC digest and the salt its key was derived with."""

    digest: str
    salt: str


# -- Helpers --


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(text: str) -> bytes:
    if not _BASE64URL_RE.fullmatch(text):
        msg = "Invalid character"
        raise IronError(msg)
    try:
        return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
    except (binascii.Error, ValueError) as exc:
        raise IronError(str(exc)) from exc


def _now_msec(options: SealOptions) -> int:
    return int(time.time() * 1000) + options.localtime_offset_msec


def _normalize_password(password: Any) -> tuple[str, Any, Any]:
    """Split a password into ``(id, encryption secret, integrity secret)``."""
    if isinstance(password, Mapping):
        secret = password.get("secret")
        encryption = secret if secret is not None else password.get("encryption")
        integrity = secret if secret is not None else password.get("integrity")
        return password.get("id") or "", encryption, integrity
    return "", password, password


def _is_password_table(password: Any) -> bool:
    return isinstance(password, Mapping) and not (
        {"secret", "encryption", "integrity"} & set(password)
    )


# -- Keys and MACs --


def generate_key(password: Any, options: KeyOptions) -> Key:
    """Derive a key from *password* using *options*.

    ``bytes`` passwords are used as the key itself and produce an empty
    salt. String passwords go through PBKDF2-SHA1 with the configured
    salt, or a fresh random hex salt of ``salt_bits``.
    """
    if not password:
        msg = "Empty password"
        raise IronError(msg)

    if options is None:
        msg = "Bad options"
        raise IronError(msg)

    try:
        key_bits, iv_bits = _ALGORITHMS[options.algorithm]
    except KeyError:
        msg = f"Unknown algorithm: {options.algorithm}"
        raise IronError(msg) from None

    if isinstance(password, bytes | bytearray):
        if len(password) < key_bits // 8:
            msg = "Key buffer (password) too small"
            raise IronError(msg)
        key = bytes(password)
        salt = ""
    elif isinstance(password, str):
        if len(password) < options.min_password_length:
            msg = (
                "Password string too short "
                f"(min {options.min_password_length} characters required)"
            )
            raise IronError(msg)

        salt = options.salt
        if not salt:
            if not options.salt_bits:
                msg = "Missing salt and salt_bits options"
                raise IronError(msg)
            salt = os.urandom(math.ceil(options.salt_bits / 8)).hex()

        key = hashlib.pbkdf2_hmac(
            "sha1",
            password.encode("utf-8"),
            salt.encode("utf-8"),
            options.iterations,
            dklen=key_bits // 8,
        )
    else:
        msg = f"Invalid password type: {type(password).__name__}"
        raise IronError(msg)

    iv = None
    if iv_bits:
        iv = options.iv or os.urandom(iv_bits // 8)
    return Key(key=key, salt=salt, iv=iv)


def hmac_with_password(password: Any, options: KeyOptions, data: str) -> MacResult:
    """Compute a salted HMAC digest of *data* keyed from *password*."""
    key = generate_key(password, options)
    mac = hmac.new(key.key, data.encode("utf-8"), options.algorithm)
    return MacResult(digest=_b64url_encode(mac.digest()), salt=key.salt)


def fixed_time_equal(a: str, b: str) -> bool:
    """Compare two strings without leaking where they differ."""
    return hmac.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


# -- Ciphers --


def _cipher(key: Key, algorithm: str) -> Cipher:
    mode = modes.CBC(key.iv) if algorithm == "aes-256-cbc" else modes.CTR(key.iv)
    try:
        return Cipher(algorithms.AES(key.key), mode)
    except ValueError as exc:
        msg = f"Invalid key for {algorithm}: {exc}"
        raise IronError(msg) from exc


def _encrypt(key: Key, algorithm: str, data: bytes) -> bytes:
    if algorithm == "aes-256-cbc":
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        data = padder.update(data) + padder.finalize()
    encryptor = _cipher(key, algorithm).encryptor()
    return encryptor.update(data) + encryptor.finalize()


def _decrypt(key: Key, algorithm: str, data: bytes) -> bytes:
    decryptor = _cipher(key, algorithm).decryptor()
    try:
        plain = decryptor.update(data) + decryptor.finalize()
        if algorithm == "aes-256-cbc":
            unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
            plain = unpadder.update(plain) + unpadder.finalize()
    except ValueError as exc:
        msg = "Failed to decrypt sealed object"
        raise IronError(msg) from exc
    return plain


# -- Seal / unseal --


def _seal(value: Any, password: Password, options: SealOptions) -> str:
    now = _now_msec(options)
    password_id, encryption_secret, integrity_secret = _normalize_password(password)
    if password_id and not _PASSWORD_ID_RE.fullmatch(password_id):
        msg = "Invalid password id"
        raise IronError(msg)

    payload = json.dumps(value, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
    key = generate_key(encryption_secret, options.encryption)
    encrypted = _encrypt(key, options.encryption.algorithm, payload)

    expiration = str(now + options.ttl) if options.ttl else ""
    mac_base = "*".join(
        (
            MAC_PREFIX,
            password_id,
            key.salt,
            _b64url_encode(key.iv or b""),
            _b64url_encode(encrypted),
            expiration,
        )
    )
    mac = hmac_with_password(integrity_secret, options.integrity, mac_base)
    return f"{mac_base}*{mac.salt}*{mac.digest}"


def _unseal(sealed: str, password: Password, options: SealOptions) -> Any:
    now = _now_msec(options)
    parts = sealed.split("*")
    if len(parts) != 8:
        msg = "Incorrect number of sealed components"
        raise IronError(msg)

    prefix, password_id, encryption_salt, iv_b64, encrypted_b64, expiration = parts[:6]
    mac_salt, digest = parts[6:]
    mac_base = "*".join(parts[:6])

    if prefix != MAC_PREFIX:
        msg = "Wrong mac prefix"
        raise IronError(msg)

    if expiration:
        if not expiration.isascii() or not expiration.isdigit():
            msg = "Invalid expiration"
            raise IronError(msg)
        if int(expiration) <= now - options.timestamp_skew_sec * 1000:
            msg = "Expired seal"
            raise IronError(msg)

    if _is_password_table(password):
        looked_up = password.get(password_id or "default")
        if not looked_up:
            msg = f"Cannot find password: {password_id}"
            raise IronError(msg)
        password = looked_up

    _, encryption_secret, integrity_secret = _normalize_password(password)

    mac = hmac_with_password(integrity_secret, replace(options.integrity, salt=mac_salt), mac_base)
    if not fixed_time_equal(mac.digest, digest):
        msg = "Bad hmac value"
        raise IronError(msg)

    encrypted = _b64url_decode(encrypted_b64)
    iv = _b64url_decode(iv_b64)
    key = generate_key(encryption_secret, replace(options.encryption, salt=encryption_salt, iv=iv))
    plain = _decrypt(key, options.encryption.algorithm, encrypted)

    try:
        return parse_json(plain.decode("utf-8"))
    except ValueError as exc:
        msg = f"Failed parsing sealed object JSON: {exc}"
        raise IronError(msg) from exc


async def seal(value: Any, password: Password, options: SealOptions = DEFAULTS) -> str:
    """Serialize *value* to JSON, encrypt it, and return the sealed string."""
    return await anyio.to_thread.run_sync(_seal, value, password, options)


async def unseal(sealed: str, password: Password, options: SealOptions = DEFAULTS) -> Any:
    """Verify and decrypt a sealed string, returning the original value.

    *password* may also be a mapping of password id to password; the
    id recorded in the seal (``"default"`` when empty) selects one.
    """
    return await anyio.to_thread.run_sync(_unseal, sealed, password, options)
