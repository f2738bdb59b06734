"""Security primitives — value signing and sealing.

Signing (tamper detection, value stays readable)::

    from satchel.security import SignOptions, sign, unsign

    signed = sign("sid", "abc", SignOptions(password=SECRET))

Sealing (encrypted and integrity protected)::

    from satchel.security import seal, unseal

    sealed = await seal({"user": 1}, SECRET)
"""

from satchel.security.iron import (
    DEFAULTS,
    IronError,
    KeyOptions,
    SealOptions,
    hmac_with_password,
    seal,
    unseal,
)
from satchel.security.signing import SignOptions, sign, unsign

__all__ = [
    "DEFAULTS",
    "IronError",
    "KeyOptions",
    "SealOptions",
    "SignOptions",
    "hmac_with_password",
    "seal",
    "sign",
    "unseal",
    "unsign",
]
