"""Invoke helpers — call sync or async hooks uniformly.

A ``contextualize`` hook can be ``def`` or ``async def``. Any code that
calls a user-provided hook must handle both cases. This module provides
a single helper so the sync/async check lives in exactly one place.

Usage::

    from satchel._internal.invoke import invoke

    await invoke(definition.contextualize, definition, context)
"""

import inspect
from typing import Any


async def invoke(hook: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a hook and await the result if it's awaitable.

    Works with both sync and async callables::

        # sync — returns immediately, no await needed
        def contextualize(definition, request):
            definition.domain = request.host

        # async — returns coroutine, awaited automatically
        async def contextualize(definition, request):
            definition.path = await tenant_path(request)

        # nested options are frozen; swap them out instead
        def contextualize(definition, request):
            definition.sign = replace(definition.sign, password=request.secret)
    """
    result = hook(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result
