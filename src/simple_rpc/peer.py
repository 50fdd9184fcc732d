"""Peer message pump.

A Peer is one end of an RPC connection. It turns outbound ``call`` and
``signal`` requests into envelopes, and classifies every inbound frame:

- call: looked up in the dispatch table and serviced in its own task, so
  the pump keeps reading while handlers run (a handler may even call back
  into the remote peer)
- response: settles the matching entry of the pending call registry
- anything undecodable: logged and dropped, never answered

Client and server endpoints both build on this class; they only differ in
how many peers they own and how registry keys are formed.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Hashable
from contextvars import ContextVar
from typing import Any

from .dispatch import DispatchTable, Handler
from .errors import (
    ConnectionClosedError,
    DecodeError,
    EncodeError,
    HandlerError,
    RemoteError,
    TransportSendError,
    UnregisteredNamespaceError,
)
from .protocol.codec import Codec, default_codec
from .protocol.envelope import Envelope
from .registry import PendingCallRegistry
from .transport.base import MessageTransport

logger = logging.getLogger(__name__)

_current_peer: ContextVar[Peer | None] = ContextVar("current_peer", default=None)


def current_peer() -> Peer:
    """Return the peer whose inbound call is being handled.

    Lets handlers reach the calling connection, e.g. to call back into it.

    Raises:
        RuntimeError: If called outside of a handler invocation
    """
    peer = _current_peer.get()
    if peer is None:
        raise RuntimeError("current_peer() called outside of an RPC handler")
    return peer


class Peer:
    """One side of an RPC connection.

    Args:
        transport: Where outbound frames go; only ``send`` is used here
        dispatch: Handler table, possibly shared with other peers
        registry: Pending calls, possibly shared with other peers
        connection_id: When set, registry keys are ``(connection_id, id)``
            so peers sharing a registry never collide
        codec: Envelope encoding, JSON by default
    """

    def __init__(
        self,
        transport: MessageTransport,
        *,
        dispatch: DispatchTable | None = None,
        registry: PendingCallRegistry | None = None,
        connection_id: str | None = None,
        codec: Codec | None = None,
    ) -> None:
        self.transport = transport
        self.dispatch = dispatch if dispatch is not None else DispatchTable()
        self.registry = registry if registry is not None else PendingCallRegistry()
        self.connection_id = connection_id
        self.codec = codec or default_codec
        self._next_id = 0
        self._tasks: set[asyncio.Task[None]] = set()

    # =========================================================================
    # Outbound
    # =========================================================================

    def next_id(self) -> int:
        """Allocate a correlation id."""
        message_id = self._next_id
        self._next_id += 1
        return message_id

    def reset_ids(self) -> None:
        """Restart the id counter (fresh connection, fresh id space)."""
        self._next_id = 0

    async def call(self, namespace: str, *args: Any, timeout: float | None = None) -> Any:
        """Invoke ``namespace`` on the remote peer and wait for its result.

        Args:
            namespace: Remote function name
            *args: Positional arguments, must be encodable by the codec
            timeout: Seconds to wait; the registry default if None

        Returns:
            The value returned by the remote handler

        Raises:
            RemoteError: The remote peer answered with a failure
            CallTimeoutError: No response within the timeout
            TransportSendError: The call could not be sent
            ConnectionClosedError: The connection closed before the response
            ValueError: ``timeout`` is not positive
        """
        if timeout is not None and timeout <= 0:
            raise ValueError(f"Call timeout must be positive, got {timeout}")
        message_id = self.next_id()
        key = self._key(message_id)
        future = self.registry.create_future(key, timeout=timeout, namespace=namespace)

        try:
            await self._send_envelope(Envelope.call(message_id, namespace, args))
        except BaseException:
            self.registry.discard(key)
            raise

        try:
            return await future
        except asyncio.CancelledError:
            self.registry.discard(key)
            raise

    async def signal(self, namespace: str, *args: Any) -> None:
        """Invoke ``namespace`` without waiting for (or getting) a response.

        Completes as soon as the frame is sent.

        Raises:
            TransportSendError: The signal could not be sent
        """
        await self._send_envelope(Envelope.signal(namespace, args))

    async def _send_envelope(self, envelope: Envelope) -> None:
        text = self.codec.encode(envelope)
        try:
            await self.transport.send(text)
        except TransportSendError:
            raise
        except Exception as e:
            raise TransportSendError(f"Failed to send message: {e}") from e

    # =========================================================================
    # Inbound
    # =========================================================================

    def feed(self, data: str | bytes) -> None:
        """Process one inbound frame without blocking the caller.

        Responses are settled immediately; calls are scheduled as tasks.
        """
        envelope = self._decode(data)
        if envelope is None:
            return

        if envelope.is_response:
            self._settle(envelope)
            return

        task = asyncio.create_task(self._serve(envelope))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def handle_message(self, data: str | bytes) -> None:
        """Process one inbound frame, waiting until a call has been answered."""
        envelope = self._decode(data)
        if envelope is None:
            return

        if envelope.is_response:
            self._settle(envelope)
        else:
            await self._serve(envelope)

    async def drain(self) -> None:
        """Wait for every handler task currently running."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _decode(self, data: str | bytes) -> Envelope | None:
        try:
            return self.codec.decode(data)
        except DecodeError as e:
            logger.warning(f"Dropping malformed message: {e}")
            return None

    def _settle(self, envelope: Envelope) -> None:
        key = self._key(envelope.id)
        if envelope.failed:
            settled = self.registry.reject(key, RemoteError.from_failure(envelope.error))
        else:
            settled = self.registry.resolve(key, envelope.data)

        if not settled:
            logger.debug(f"Dropping response for unknown or settled call {envelope.id}")

    async def _serve(self, envelope: Envelope) -> None:
        namespace = envelope.namespace or ""
        handler = self.dispatch.resolve(namespace)
        if handler is None:
            error = UnregisteredNamespaceError.for_namespace(namespace)
            logger.warning(str(error))
            await self._reply_failure(envelope, error)
            return

        token = _current_peer.set(self)
        try:
            result = await self._invoke(handler, envelope.args)
        except RemoteError as e:
            await self._reply_failure(envelope, e)
            return
        except Exception as e:
            logger.exception(f"Handler for '{namespace}' failed: {e}")
            await self._reply_failure(envelope, HandlerError.from_exception(e))
            return
        finally:
            _current_peer.reset(token)

        await self._reply(envelope, result)

    async def _invoke(self, handler: Handler, args: list[Any]) -> Any:
        result = handler(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def _reply(self, envelope: Envelope, value: Any) -> None:
        if not envelope.expects_response or envelope.id is None:
            return

        try:
            text = self.codec.encode(Envelope.result(envelope.id, value))
        except EncodeError as e:
            logger.error(f"Result of '{envelope.namespace}' cannot be encoded: {e}")
            error = HandlerError(
                f"Result of '{envelope.namespace}' cannot be encoded", name="EncodeError"
            )
            await self._reply_failure(envelope, error)
            return

        await self._send_reply(text)

    async def _reply_failure(self, envelope: Envelope, error: RemoteError) -> None:
        if not envelope.expects_response or envelope.id is None:
            return
        await self._send_reply(self.codec.encode(Envelope.failure(envelope.id, error.to_failure())))

    async def _send_reply(self, text: str) -> None:
        # Nobody awaits a reply, so send failures end here
        try:
            await self.transport.send(text)
        except Exception as e:
            logger.warning(f"Failed to send response: {e}")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def close(self, error: BaseException | None = None) -> int:
        """Abandon this peer's pending calls and stop its running handlers.

        Args:
            error: Rejection for pending calls; ConnectionClosedError if None

        Returns:
            Number of pending calls rejected
        """
        tasks = self.cancel_handlers()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        return self.abandon_pending(error)

    def cancel_handlers(self) -> list[asyncio.Task[None]]:
        """Cancel every running handler task except the calling one.

        A cancelled handler never replies, so no response from it can reach
        a later connection.

        Returns:
            The tasks that were cancelled
        """
        current = asyncio.current_task()
        tasks = [task for task in self._tasks if task is not current]
        for task in tasks:
            task.cancel()
        return tasks

    def abandon_pending(self, error: BaseException | None = None) -> int:
        """Reject every call this peer is still waiting on.

        Returns:
            Number of pending calls rejected
        """
        reason = error or ConnectionClosedError("Connection closed before a response arrived")
        rejected = self.registry.reject_where(self._owns, reason)
        if rejected:
            logger.info(f"Rejected {rejected} pending call(s)")
        return rejected

    def _key(self, message_id: int | None) -> Hashable:
        if self.connection_id is None:
            return message_id
        return (self.connection_id, message_id)

    def _owns(self, key: Hashable) -> bool:
        if self.connection_id is None:
            return True
        return isinstance(key, tuple) and key[0] == self.connection_id
