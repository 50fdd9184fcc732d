"""Integration tests for RpcClient.

The client runs over a loopback transport against a plain Peer standing
in for the server, verifying:
- Calls, signals and server-to-client calls
- Connection loss failing in-flight calls
- Id space restarting after a reconnect
- Lifecycle events and the no-op publish hook
"""

from __future__ import annotations

import asyncio
import json
from typing import Any

import pytest

from simple_rpc import RpcClient, RpcConfig
from simple_rpc.errors import ConnectionClosedError, UnregisteredNamespaceError
from simple_rpc.peer import Peer

from conftest import LoopbackTransport, make_peer


@pytest.fixture
def link() -> tuple[RpcClient, Peer, LoopbackTransport]:
    """Client wired to a server-side peer: (client, server peer, client transport)."""
    client_side, server_side = LoopbackTransport.pair()
    client = RpcClient(transport=client_side, config=RpcConfig(call_timeout=1.0))
    server = make_peer(server_side)
    server.dispatch.register("echo", lambda value: value)
    return client, server, client_side


# =============================================================================
# Tests: Calls
# =============================================================================


class TestClientCalls:
    """Client to server and back."""

    @pytest.mark.asyncio
    async def test_call(self, link: tuple[RpcClient, Peer, LoopbackTransport]) -> None:
        client, _, _ = link

        assert await client.call("echo", {"text": "héllo"}) == {"text": "héllo"}

    @pytest.mark.asyncio
    async def test_unregistered_namespace(
        self, link: tuple[RpcClient, Peer, LoopbackTransport]
    ) -> None:
        client, _, _ = link

        with pytest.raises(UnregisteredNamespaceError):
            await client.call("missing")

    @pytest.mark.asyncio
    async def test_signal(self, link: tuple[RpcClient, Peer, LoopbackTransport]) -> None:
        client, server, _ = link
        received: list[Any] = []
        server.dispatch.register("log", received.append)

        await client.signal("log", "line")
        await server.drain()

        assert received == ["line"]

    @pytest.mark.asyncio
    async def test_server_calls_client(
        self, link: tuple[RpcClient, Peer, LoopbackTransport]
    ) -> None:
        """Functions registered on the client are callable by the server."""
        client, server, _ = link
        client.register("name", lambda: "client-1")

        assert await server.call("name") == "client-1"

        assert client.unregister("name") is True
        with pytest.raises(UnregisteredNamespaceError):
            await server.call("name")

    @pytest.mark.asyncio
    async def test_per_call_timeout(self, link: tuple[RpcClient, Peer, LoopbackTransport]) -> None:
        client, server, _ = link

        async def slow() -> None:
            await asyncio.sleep(1)

        server.dispatch.register("slow", slow)

        with pytest.raises(TimeoutError):
            await client.call("slow", timeout=0.05)

        await server.close()


# =============================================================================
# Tests: Connection lifecycle
# =============================================================================


class TestClientLifecycle:
    """Connection loss and shutdown."""

    def test_requires_url_or_transport(self) -> None:
        with pytest.raises(ValueError):
            RpcClient()

    @pytest.mark.asyncio
    async def test_close_rejects_in_flight_calls(
        self, link: tuple[RpcClient, Peer, LoopbackTransport]
    ) -> None:
        """Calls waiting when the connection closes fail with ConnectionClosedError."""
        client, _, transport = link
        transport.deliver = False

        task = asyncio.create_task(client.call("echo", 1))
        await asyncio.sleep(0)
        await client.close()

        with pytest.raises(ConnectionClosedError):
            await task
        assert len(client.peer.registry) == 0
        assert client.is_connected is False

    @pytest.mark.asyncio
    async def test_ids_restart_after_reconnect(
        self, link: tuple[RpcClient, Peer, LoopbackTransport]
    ) -> None:
        client, _, transport = link
        await client.call("echo", 1)
        await client.call("echo", 2)

        # Transport dropped and came back
        await transport.emit("close")
        await client.call("echo", 3)

        ids = [json.loads(frame)["id"] for frame in transport.sent]
        assert ids == [0, 1, 0]

    @pytest.mark.asyncio
    async def test_old_handler_cannot_answer_after_reconnect(
        self, link: tuple[RpcClient, Peer, LoopbackTransport]
    ) -> None:
        """A handler started on the old connection never replies on the new one."""
        client, old_server, transport = link
        release = asyncio.Event()

        async def slow() -> str:
            await release.wait()
            return "stale-from-old-connection"

        async def fast() -> str:
            await asyncio.sleep(0.01)
            return "fresh"

        client.register("slow", slow)
        client.register("fast", fast)

        old_call = asyncio.create_task(old_server.call("slow"))
        await asyncio.sleep(0)

        # Transport dropped and came back to a new server peer
        await transport.emit("close")
        new_side = LoopbackTransport()
        transport.other, new_side.other = new_side, transport
        new_server = make_peer(new_side)

        fresh_call = asyncio.create_task(new_server.call("fast"))
        await asyncio.sleep(0)
        release.set()

        assert await fresh_call == "fresh"
        await asyncio.sleep(0.02)
        assert [json.loads(frame)["data"] for frame in transport.sent] == ["fresh"]

        old_call.cancel()
        with pytest.raises(asyncio.CancelledError):
            await old_call

    @pytest.mark.asyncio
    async def test_context_manager(self, link: tuple[RpcClient, Peer, LoopbackTransport]) -> None:
        client, _, transport = link

        async with client as connected:
            assert connected is client
            assert await connected.call("echo", "x") == "x"

        assert transport.connected is False

    @pytest.mark.asyncio
    async def test_lifecycle_listeners(
        self, link: tuple[RpcClient, Peer, LoopbackTransport]
    ) -> None:
        client, _, _ = link
        closes: list[bool] = []
        client.on("close", lambda: closes.append(True))

        await client.close()

        assert closes == [True]

    def test_publish_is_noop(self, link: tuple[RpcClient, Peer, LoopbackTransport]) -> None:
        client, _, transport = link

        client.publish("topic", {"any": "thing"})

        assert transport.sent == []
