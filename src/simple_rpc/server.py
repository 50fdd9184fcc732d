"""RPC server endpoint.

Accepts many WebSocket connections and turns each one that negotiates the
RPC sub-protocol into a peer. All connections share one dispatch table and
one pending call registry; registry keys include the connection id so the
per-connection id counters never collide.

Handlers run with the calling connection available through
``current_peer()``, which makes server-to-client calls possible:

    server = RpcServer()

    @server.handler("whoami")
    async def whoami():
        connection = current_peer()
        return await connection.call("name")

    app = create_app(server)  # Starlette ASGI app, serve with uvicorn
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from starlette.applications import Starlette
from starlette.routing import WebSocketRoute
from starlette.websockets import WebSocket, WebSocketDisconnect

from .config import RpcConfig
from .dispatch import DispatchTable, Handler
from .events import EventEmitter
from .peer import Peer
from .protocol.codec import Codec
from .registry import PendingCallRegistry
from .transport.websocket import WebSocketServerTransport

logger = logging.getLogger(__name__)

DEFAULT_PATH = "/rpc"

# Close code used when a client does not offer the RPC sub-protocol
CLOSE_PROTOCOL_ERROR = 1002

FallbackHandler = Callable[[WebSocket], Awaitable[None]]


class ServerConnection(Peer):
    """A peer bound to one accepted WebSocket.

    Exposes ``call`` and ``signal`` towards that client. The raw Starlette
    WebSocket is available as ``websocket`` for anything outside RPC.
    """

    def __init__(self, websocket: WebSocket, server: RpcServer) -> None:
        self.websocket = websocket
        self.server = server
        super().__init__(
            WebSocketServerTransport(websocket, subprotocol=server.config.subprotocol),
            dispatch=server.dispatch,
            registry=server.registry,
            connection_id=uuid.uuid4().hex,
            codec=server.codec,
        )

    async def serve(self) -> None:
        """Accept the connection and pump its messages until it closes."""
        transport: WebSocketServerTransport = self.transport  # type: ignore[assignment]
        await transport.connect()
        await self.server._attach(self)

        try:
            async for text in transport.receive_messages():
                self.feed(text)
        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.exception(f"Connection {self.connection_id} failed: {e}")
            await self.server.emit("error", e, self)
        finally:
            await self.close()
            await transport.disconnect()
            await self.server._detach(self)


class RpcServer(EventEmitter):
    """Multi-connection RPC endpoint.

    Events (via ``on``/``off``):
    - ``connection``: a ServerConnection was promoted to an RPC peer
    - ``disconnect``: a ServerConnection ended
    - ``error``: a connection failed unexpectedly (exception, connection)

    Args:
        config: Timeouts and the required sub-protocol tag
        codec: Envelope encoding, JSON by default
        fallback: Coroutine handling WebSockets that did not offer the
            sub-protocol; without it those connections are refused
    """

    def __init__(
        self,
        *,
        config: RpcConfig | None = None,
        codec: Codec | None = None,
        fallback: FallbackHandler | None = None,
    ) -> None:
        super().__init__()
        self.config = config or RpcConfig()
        self.codec = codec
        self.dispatch = DispatchTable()
        self.registry = PendingCallRegistry(timeout=self.config.call_timeout)
        self._fallback = fallback
        self._connections: dict[str, ServerConnection] = {}

    # =========================================================================
    # Handler registration
    # =========================================================================

    def register(self, namespace: str, handler: Handler) -> None:
        """Expose ``handler`` to every connection under ``namespace``."""
        self.dispatch.register(namespace, handler)

    def unregister(self, namespace: str) -> bool:
        return self.dispatch.unregister(namespace)

    def handler(self, namespace: str) -> Callable[[Handler], Handler]:
        """Decorator form of ``register``."""

        def decorator(func: Handler) -> Handler:
            self.register(namespace, func)
            return func

        return decorator

    def publish(self, *args: Any, **kwargs: Any) -> None:
        """Reserved for publish/subscribe; currently does nothing."""

    # =========================================================================
    # Connections
    # =========================================================================

    @property
    def connections(self) -> list[ServerConnection]:
        """Live RPC connections."""
        return list(self._connections.values())

    def get_connection(self, connection_id: str) -> ServerConnection | None:
        return self._connections.get(connection_id)

    def accepts(self, websocket: WebSocket) -> bool:
        """Check whether the client offered the RPC sub-protocol."""
        return self.config.subprotocol in websocket.scope.get("subprotocols", [])

    async def endpoint(self, websocket: WebSocket) -> None:
        """Starlette WebSocket endpoint.

        Connections offering the sub-protocol become RPC peers; the rest go
        to the fallback handler, or are refused when there is none.
        """
        if not self.accepts(websocket):
            if self._fallback is not None:
                await self._fallback(websocket)
                return
            logger.info(
                f"Refusing WebSocket without sub-protocol '{self.config.subprotocol}'"
            )
            await websocket.close(code=CLOSE_PROTOCOL_ERROR)
            return

        connection = ServerConnection(websocket, self)
        await connection.serve()

    def routes(self, path: str = DEFAULT_PATH) -> list[WebSocketRoute]:
        """Starlette routes mounting the RPC endpoint at ``path``."""
        return [WebSocketRoute(path, self.endpoint)]

    async def _attach(self, connection: ServerConnection) -> None:
        self._connections[connection.connection_id] = connection
        logger.info(f"RPC connection opened: {connection.connection_id}")
        await self.emit("connection", connection)

    async def _detach(self, connection: ServerConnection) -> None:
        if self._connections.pop(connection.connection_id, None) is None:
            return
        logger.info(f"RPC connection closed: {connection.connection_id}")
        await self.emit("disconnect", connection)


def create_app(server: RpcServer, *, path: str = DEFAULT_PATH) -> Starlette:
    """Create a Starlette application serving ``server`` at ``path``."""
    return Starlette(routes=server.routes(path))
