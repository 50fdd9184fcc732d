"""Namespace dispatch table.

Maps namespace names to handler callables. A single wildcard entry
(``*``) catches every namespace without an exact registration; it is
invoked with the called namespace as its first argument.

Handlers receive the call's arguments positionally and may be plain
functions or coroutine functions.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

WILDCARD = "*"

Handler = Callable[..., Any]


class DispatchTable:
    """Registry of handlers keyed by namespace.

    Registering a namespace twice replaces the earlier handler.

    Example:
        table = DispatchTable()
        table.register("echo", lambda value: value)
        table.register("*", lambda namespace, *args: namespace)

        table.resolve("echo")(42)     # -> 42
        table.resolve("other")(1, 2)  # -> "other"
    """

    def __init__(self) -> None:
        self._handlers: dict[str, Handler] = {}

    def register(self, namespace: str, handler: Handler) -> None:
        """Register ``handler`` for ``namespace`` (``*`` for the wildcard)."""
        if not callable(handler):
            raise TypeError(f"Handler for '{namespace}' must be callable")
        replaced = namespace in self._handlers
        self._handlers[namespace] = handler
        logger.debug(f"{'Replaced' if replaced else 'Registered'} handler: {namespace}")

    def unregister(self, namespace: str) -> bool:
        """Remove the handler for ``namespace``.

        Returns:
            True if a handler was removed, False if none was registered
        """
        if self._handlers.pop(namespace, None) is None:
            return False
        logger.debug(f"Unregistered handler: {namespace}")
        return True

    def resolve(self, namespace: str) -> Handler | None:
        """Find the callable that services ``namespace``.

        Exact registrations win over the wildcard. A wildcard match comes
        back with the namespace already bound as first argument, so the
        result is always called with just the payload.

        Returns:
            The handler, or None when nothing matches
        """
        handler = self._handlers.get(namespace)
        if handler is not None:
            return handler

        wildcard = self._handlers.get(WILDCARD)
        if wildcard is not None:
            return functools.partial(wildcard, namespace)
        return None

    def namespaces(self) -> list[str]:
        """Registered namespace names, wildcard included."""
        return list(self._handlers)

    def __contains__(self, namespace: object) -> bool:
        return namespace in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)
