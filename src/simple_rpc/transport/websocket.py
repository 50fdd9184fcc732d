"""WebSocket transport implementation.

Full-duplex text transport for RPC peers:
- WebSocketServerTransport wraps one accepted Starlette WebSocket
- WebSocketClientTransport dials a server with the ``websockets`` package
  and reconnects with exponential backoff when the connection drops

Both negotiate the RPC sub-protocol tag during the handshake.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator
from typing import Any

import websockets
from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState

from ..config import RpcConfig
from ..errors import TransportSendError
from ..events import EventEmitter

logger = logging.getLogger(__name__)


class WebSocketServerTransport(EventEmitter):
    """Server-side WebSocket transport.

    Handles a single WebSocket connection for bidirectional communication.
    Used by the server to talk to one connected client.
    """

    def __init__(self, websocket: WebSocket, subprotocol: str | None = None):
        super().__init__()
        self._websocket = websocket
        self._subprotocol = subprotocol
        self._connected = False
        self._send_lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        """Check if the WebSocket is connected."""
        return self._connected and self._websocket.client_state == WebSocketState.CONNECTED

    @property
    def subprotocol(self) -> str | None:
        return self._subprotocol

    async def connect(self) -> None:
        """Accept the WebSocket connection with the RPC sub-protocol."""
        await self._websocket.accept(subprotocol=self._subprotocol)
        self._connected = True
        await self.emit("open")

    async def disconnect(self) -> None:
        """Close the WebSocket connection."""
        was_connected = self._connected
        self._connected = False
        if self._websocket.client_state == WebSocketState.CONNECTED:
            with contextlib.suppress(RuntimeError):
                await self._websocket.close()
        if was_connected:
            await self.emit("close")

    async def send(self, text: str) -> None:
        """Send one text frame to the client.

        Raises:
            TransportSendError: If the connection is gone
        """
        async with self._send_lock:
            if not self.is_connected:
                raise TransportSendError("WebSocket is not connected")
            try:
                await self._websocket.send_text(text)
            except (WebSocketDisconnect, RuntimeError) as e:
                self._connected = False
                raise TransportSendError(f"WebSocket send failed: {e}") from e

    async def receive_messages(self) -> AsyncIterator[str]:
        """Yield inbound frames as text until the client disconnects."""
        try:
            while self.is_connected:
                message = await self._websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break

                text = message.get("text")
                if text is None:
                    data = message.get("bytes") or b""
                    text = data.decode("utf-8", errors="replace")
                await self.emit("message", text)
                yield text

        except WebSocketDisconnect:
            pass
        except Exception as e:
            logger.exception(f"WebSocket receive error: {e}")
            await self.emit("error", e)
        finally:
            self._connected = False


class WebSocketClientTransport(EventEmitter):
    """Client-side WebSocket transport with automatic reconnection.

    Emits ``open`` on every successful (re)connection, ``message`` for each
    inbound frame, ``close`` whenever the connection ends and ``error`` for
    failed reconnection attempts.
    """

    def __init__(self, url: str, config: RpcConfig | None = None):
        super().__init__()
        self.url = url.replace("http://", "ws://").replace("https://", "wss://")
        self.config = config or RpcConfig()
        self._websocket: Any = None  # websockets ClientConnection
        self._run_task: asyncio.Task[None] | None = None
        self._closing = False

    @property
    def is_connected(self) -> bool:
        return self._websocket is not None

    async def connect(self) -> None:
        """Connect to the server and start the receive loop.

        Raises:
            ConnectionError: If the first connection attempt fails
        """
        if self._run_task is not None:
            return

        self._closing = False
        await self._open()
        self._run_task = asyncio.create_task(self._run())

    async def disconnect(self) -> None:
        """Close the connection and stop reconnecting."""
        self._closing = True
        task, self._run_task = self._run_task, None

        if self._websocket is not None:
            await self._websocket.close()
            if task is not None:
                with contextlib.suppress(asyncio.CancelledError):
                    await task
        elif task is not None:
            # Waiting between reconnection attempts
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    async def send(self, text: str) -> None:
        """Send one text frame.

        Raises:
            TransportSendError: If not connected or the connection drops
        """
        websocket = self._websocket
        if websocket is None:
            raise TransportSendError("Not connected")
        try:
            await websocket.send(text)
        except websockets.ConnectionClosed as e:
            raise TransportSendError(f"Connection closed: {e}") from e

    async def _open(self) -> None:
        try:
            websocket = await websockets.connect(
                self.url,
                subprotocols=[self.config.subprotocol],
                ping_interval=self.config.ping_interval,
                ping_timeout=self.config.ping_timeout,
            )
        except (OSError, TimeoutError, websockets.WebSocketException) as e:
            raise ConnectionError(f"Failed to connect to {self.url}: {e}") from e

        if websocket.subprotocol != self.config.subprotocol:
            await websocket.close()
            raise ConnectionError(
                f"Server at {self.url} did not accept sub-protocol '{self.config.subprotocol}'"
            )

        self._websocket = websocket
        logger.info(f"Connected to {self.url}")
        await self.emit("open")

    async def _run(self) -> None:
        """Receive until the connection ends, then reconnect if configured."""
        while True:
            await self._receive_loop()
            self._websocket = None
            await self.emit("close")

            if self._closing or not self.config.reconnect:
                break
            if not await self._reconnect():
                break

    async def _receive_loop(self) -> None:
        try:
            async for message in self._websocket:
                text = message if isinstance(message, str) else message.decode("utf-8", "replace")
                await self.emit("message", text)
        except websockets.ConnectionClosed as e:
            logger.info(f"Connection to {self.url} closed: {e}")
        except Exception as e:
            logger.exception(f"WebSocket receive loop error: {e}")
            await self.emit("error", e)

    async def _reconnect(self) -> bool:
        delay = self.config.reconnect_delay
        while not self._closing:
            logger.info(f"Reconnecting to {self.url} in {delay:.1f}s")
            await asyncio.sleep(delay)
            try:
                await self._open()
                return True
            except ConnectionError as e:
                logger.warning(str(e))
                await self.emit("error", e)
                delay = min(delay * self.config.reconnect_backoff, self.config.max_reconnect_delay)
        return False
