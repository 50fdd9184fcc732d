"""Pending call registry.

Tracks calls that were sent and are still waiting for their response.
Each entry owns a timer; whichever of response or timeout comes first
settles the entry, and every later attempt is a no-op.

Keys are opaque hashables. A client peer keys by message id; the server
shares one registry between its connections and keys by
``(connection_id, message_id)``.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Hashable
from dataclasses import dataclass
from typing import Any

from .errors import CallTimeoutError

logger = logging.getLogger(__name__)

DEFAULT_CALL_TIMEOUT = 10.0

ResolveCallback = Callable[[Any], None]
RejectCallback = Callable[[BaseException], None]


@dataclass
class PendingCall:
    """A call waiting for its response."""

    key: Hashable
    on_resolve: ResolveCallback
    on_reject: RejectCallback
    timer: asyncio.TimerHandle | None = None
    namespace: str | None = None

    def cancel_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class PendingCallRegistry:
    """Table of in-flight calls with timeout eviction.

    Not thread-safe: all methods must run on the event loop that owns the
    registry. Under asyncio this needs no locking because no method awaits.

    Example:
        registry = PendingCallRegistry(timeout=5.0)
        future = registry.create_future(7, namespace="echo")
        ...
        registry.resolve(7, 42)  # future now holds 42
    """

    def __init__(self, timeout: float | None = DEFAULT_CALL_TIMEOUT) -> None:
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive (None disables it)")
        self.timeout = timeout
        self._pending: dict[Hashable, PendingCall] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, key: object) -> bool:
        return key in self._pending

    def register(
        self,
        key: Hashable,
        on_resolve: ResolveCallback,
        on_reject: RejectCallback,
        *,
        timeout: float | None = None,
        namespace: str | None = None,
    ) -> PendingCall:
        """Record a waiter and arm its timeout.

        Args:
            key: Correlation key for the call
            on_resolve: Invoked with the response value
            on_reject: Invoked with the failure (remote error or timeout)
            timeout: Seconds before the call is rejected; registry default if None
            namespace: Called namespace, used in the timeout message

        Returns:
            The registered PendingCall

        Raises:
            ValueError: If a call with the same key is still pending, or
                ``timeout`` is not positive
        """
        if timeout is not None and timeout <= 0:
            raise ValueError(f"Call timeout must be positive, got {timeout}")
        if key in self._pending:
            raise ValueError(f"Call {key!r} is already pending")

        pending = PendingCall(
            key=key, on_resolve=on_resolve, on_reject=on_reject, namespace=namespace
        )
        delay = self.timeout if timeout is None else timeout
        if delay is not None:
            loop = asyncio.get_running_loop()
            pending.timer = loop.call_later(delay, self._expire, key, delay)
        self._pending[key] = pending
        return pending

    def create_future(
        self,
        key: Hashable,
        *,
        timeout: float | None = None,
        namespace: str | None = None,
    ) -> asyncio.Future[Any]:
        """Register a call whose continuations complete an asyncio future."""
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()

        def on_resolve(value: Any) -> None:
            if not future.done():
                future.set_result(value)

        def on_reject(error: BaseException) -> None:
            if not future.done():
                future.set_exception(error)

        self.register(key, on_resolve, on_reject, timeout=timeout, namespace=namespace)
        return future

    def resolve(self, key: Hashable, value: Any) -> bool:
        """Settle a call successfully.

        Returns:
            True if the call was pending, False if unknown or already settled
        """
        pending = self._take(key)
        if pending is None:
            return False
        pending.on_resolve(value)
        return True

    def reject(self, key: Hashable, error: BaseException) -> bool:
        """Settle a call with a failure.

        Returns:
            True if the call was pending, False if unknown or already settled
        """
        pending = self._take(key)
        if pending is None:
            return False
        pending.on_reject(error)
        return True

    def discard(self, key: Hashable) -> bool:
        """Drop a call without settling it (e.g. its request never left)."""
        return self._take(key) is not None

    def reject_where(self, predicate: Callable[[Hashable], bool], error: BaseException) -> int:
        """Reject every pending call whose key matches ``predicate``.

        Returns:
            Number of calls rejected
        """
        keys = [key for key in self._pending if predicate(key)]
        return sum(1 for key in keys if self.reject(key, error))

    def reject_all(self, error: BaseException) -> int:
        """Reject every pending call."""
        return self.reject_where(lambda _key: True, error)

    def _take(self, key: Hashable) -> PendingCall | None:
        pending = self._pending.pop(key, None)
        if pending is not None:
            pending.cancel_timer()
        return pending

    def _expire(self, key: Hashable, delay: float) -> None:
        pending = self._pending.get(key)
        if pending is None:
            return
        target = f'"{pending.namespace}"' if pending.namespace else repr(key)
        logger.debug(f"Call {key!r} timed out after {delay}s")
        self.reject(key, CallTimeoutError(f"Call to {target} timed out."))
