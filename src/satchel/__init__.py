"""Satchel — server-side HTTP cookie state.

Parses ``Cookie`` headers and formats ``Set-Cookie`` headers from
per-cookie definitions: RFC 6265 grammar (strict or loose), signed
values, and base64, JSON, form, and sealed (iron) encodings.

Basic usage::

    from satchel import Definitions

    definitions = Definitions()
    definitions.add("sid", {"encoding": "base64json", "sign": {"password": SECRET}})

    result = await definitions.parse("sid=eyJhIjoxfQ==.<salt>*<digest>")
    result.states  # {"sid": {"a": 1}}

    await definitions.format({"name": "sid", "value": {"a": 1}})
    # ['sid=eyJhIjoxfQ==.<salt>*<digest>; Secure; HttpOnly; SameSite=Strict']
"""

from importlib import import_module

__version__ = "0.1.0"
__all__ = [
    "BadRequest",
    "ConfigurationError",
    "Cookie",
    "CookieDefinition",
    "CookieParseError",
    "DecodeError",
    "Definitions",
    "FailureRecord",
    "HTTPError",
    "HeaderSyntaxError",
    "ImplementationError",
    "NameGrammarError",
    "ParseResult",
    "SatchelError",
    "SetCookie",
    "SignatureError",
    "ValueGrammarError",
    "exclude",
    "prepare_value",
]

_LAZY_IMPORTS: dict[str, str] = {
    "BadRequest": "satchel.errors",
    "ConfigurationError": "satchel.errors",
    "Cookie": "satchel.definitions",
    "CookieDefinition": "satchel.config",
    "CookieParseError": "satchel.errors",
    "DecodeError": "satchel.errors",
    "Definitions": "satchel.definitions",
    "FailureRecord": "satchel.definitions",
    "HTTPError": "satchel.errors",
    "HeaderSyntaxError": "satchel.errors",
    "ImplementationError": "satchel.errors",
    "NameGrammarError": "satchel.errors",
    "ParseResult": "satchel.definitions",
    "SatchelError": "satchel.errors",
    "SetCookie": "satchel.http.cookies",
    "SignatureError": "satchel.errors",
    "ValueGrammarError": "satchel.errors",
    "exclude": "satchel.http.cookies",
    "prepare_value": "satchel.definitions",
}


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import satchel`` fast while providing a clean top-level API.
    """
    module_name = _LAZY_IMPORTS.get(name)
    if module_name is None:
        msg = f"module {__name__!r} has no attribute {name!r}"
        raise AttributeError(msg)
    return getattr(import_module(module_name), name)
