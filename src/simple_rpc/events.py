"""Lifecycle event listeners.

Small per-object listener table backing the ``on``/``off`` API of
transports, clients and servers. Unlike a global bus, every emitter owns
its own subscriptions.

Events used in this package:
- ``open``: transport connected
- ``close``: transport disconnected
- ``error``: transport-level failure (listener gets the exception)
- ``message``: inbound text frame (transports only)
- ``connection`` / ``disconnect``: server-side peer added or removed
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class EventEmitter:
    """Mixin providing ``on``, ``off`` and ``emit``.

    Listeners may be plain callables or coroutine functions. A failing
    listener is logged and never stops the others.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, listener: Listener) -> Callable[[], None]:
        """Subscribe ``listener`` to ``event``.

        Returns:
            Function that removes the subscription
        """
        self._listeners.setdefault(event, []).append(listener)

        def unsubscribe() -> None:
            self.off(event, listener)

        return unsubscribe

    def off(self, event: str, listener: Listener) -> None:
        """Remove ``listener`` from ``event`` (no-op if not subscribed)."""
        listeners = self._listeners.get(event)
        if listeners and listener in listeners:
            listeners.remove(listener)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    async def emit(self, event: str, *args: Any) -> None:
        """Call every listener of ``event`` with ``args``."""
        # Copy so listeners can unsubscribe while being notified
        for listener in list(self._listeners.get(event, [])):
            try:
                result = listener(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Error in '{event}' listener")
