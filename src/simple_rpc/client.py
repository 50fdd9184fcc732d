"""RPC client endpoint.

A client is a single peer over a single transport: one id counter, one
pending call registry and one dispatch table. Servers can call functions
the client registers, exactly like the client calls the server.

Example:
    async with RpcClient("ws://localhost:4097/rpc") as client:
        client.register("ping", lambda: "pong")
        value = await client.call("echo", 42)
        await client.signal("log", "hello")
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from .config import RpcConfig
from .dispatch import DispatchTable, Handler
from .peer import Peer
from .protocol.codec import Codec
from .registry import PendingCallRegistry
from .transport.base import MessageTransport
from .transport.websocket import WebSocketClientTransport

logger = logging.getLogger(__name__)


class RpcClient:
    """Single-connection RPC peer.

    Args:
        url: WebSocket URL of the server; ignored when ``transport`` is given
        config: Timeouts, sub-protocol and reconnection settings
        transport: Custom transport (tests, other channels); must emit
            ``message`` and ``close`` events
        codec: Envelope encoding, JSON by default
    """

    def __init__(
        self,
        url: str | None = None,
        *,
        config: RpcConfig | None = None,
        transport: MessageTransport | None = None,
        codec: Codec | None = None,
    ) -> None:
        self.config = config or RpcConfig()
        if transport is None:
            if url is None:
                raise ValueError("RpcClient needs a url or a transport")
            transport = WebSocketClientTransport(url, self.config)
        self.transport = transport

        self._peer = Peer(
            transport,
            dispatch=DispatchTable(),
            registry=PendingCallRegistry(timeout=self.config.call_timeout),
            codec=codec,
        )
        transport.on("message", self._peer.feed)
        transport.on("close", self._on_transport_close)

    @property
    def peer(self) -> Peer:
        return self._peer

    @property
    def is_connected(self) -> bool:
        return self.transport.is_connected

    # =========================================================================
    # Connection lifecycle
    # =========================================================================

    async def connect(self) -> None:
        """Open the underlying transport, if it supports being opened."""
        connect = getattr(self.transport, "connect", None)
        if connect is not None:
            await connect()

    async def close(self) -> None:
        """Close the transport and fail every call still in flight."""
        disconnect = getattr(self.transport, "disconnect", None)
        if disconnect is not None:
            await disconnect()
        await self._peer.close()

    async def __aenter__(self) -> RpcClient:
        await self.connect()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _on_transport_close(self) -> None:
        # Ids restart, so nothing from the old connection may settle or reply
        self._peer.cancel_handlers()
        self._peer.abandon_pending()
        self._peer.reset_ids()

    # =========================================================================
    # Public API
    # =========================================================================

    def register(self, namespace: str, handler: Handler) -> None:
        """Expose ``handler`` to the server under ``namespace`` (``*`` = fallback)."""
        self._peer.dispatch.register(namespace, handler)

    def unregister(self, namespace: str) -> bool:
        """Stop exposing ``namespace``."""
        return self._peer.dispatch.unregister(namespace)

    async def call(self, namespace: str, *args: Any, timeout: float | None = None) -> Any:
        """Call ``namespace`` on the server and return its result."""
        return await self._peer.call(namespace, *args, timeout=timeout)

    async def signal(self, namespace: str, *args: Any) -> None:
        """Fire ``namespace`` on the server without waiting for a result."""
        await self._peer.signal(namespace, *args)

    def on(self, event: str, listener: Callable[..., Any]) -> Callable[[], None]:
        """Listen to transport lifecycle events (``open``, ``close``, ``error``)."""
        return self.transport.on(event, listener)

    def off(self, event: str, listener: Callable[..., Any]) -> None:
        self.transport.off(event, listener)

    def publish(self, *args: Any, **kwargs: Any) -> None:
        """Reserved for publish/subscribe; currently does nothing."""
