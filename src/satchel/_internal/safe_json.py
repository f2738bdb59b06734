"""JSON parsing that refuses prototype-poisoning keys.

Cookie payloads are shared with JavaScript runtimes, where an object
key named ``__proto__`` rewrites the prototype of whatever the payload
is merged into. Such payloads are rejected outright instead of being
passed along.

Nesting deep enough to exhaust the interpreter stack is reported as
bad input too, so a hostile cookie fails like any other malformed one.
"""

import json
from typing import Any

FORBIDDEN_KEY = "__proto__"


def _reject_forbidden(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    for key, _ in pairs:
        if key == FORBIDDEN_KEY:
            msg = "Object contains forbidden prototype property"
            raise ValueError(msg)
    return dict(pairs)


def parse_json(text: str) -> Any:
    """Parse *text* as JSON, raising ``ValueError`` on bad input or ``__proto__`` keys."""
    try:
        return json.loads(text, object_pairs_hook=_reject_forbidden)
    except RecursionError as exc:
        msg = "JSON nesting too deep"
        raise ValueError(msg) from exc
