"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from simple_rpc.events import EventEmitter
from simple_rpc.peer import Peer
from simple_rpc.registry import PendingCallRegistry

# =============================================================================
# Loopback Transport (stub, not a mock - real delivery, no sockets)
# =============================================================================


class LoopbackTransport(EventEmitter):
    """In-memory transport delivering frames to a linked transport.

    Every frame sent is recorded in ``sent`` and emitted as a ``message``
    event on the other end.
    """

    def __init__(self) -> None:
        super().__init__()
        self.other: LoopbackTransport | None = None
        self.sent: list[str] = []
        self.connected = True
        self.fail_sends = False
        self.deliver = True

    @classmethod
    def pair(cls) -> tuple[LoopbackTransport, LoopbackTransport]:
        left, right = cls(), cls()
        left.other, right.other = right, left
        return left, right

    @property
    def is_connected(self) -> bool:
        return self.connected

    async def send(self, text: str) -> None:
        if self.fail_sends or not self.connected:
            raise ConnectionError("loopback is down")
        self.sent.append(text)
        if self.deliver and self.other is not None:
            await self.other.emit("message", text)

    async def disconnect(self) -> None:
        if self.connected:
            self.connected = False
            await self.emit("close")


def make_peer(transport: LoopbackTransport, timeout: float = 10.0) -> Peer:
    """Create a peer wired to receive the transport's messages."""
    peer = Peer(transport, registry=PendingCallRegistry(timeout=timeout))
    transport.on("message", peer.feed)
    return peer


@pytest.fixture
def transports() -> tuple[LoopbackTransport, LoopbackTransport]:
    return LoopbackTransport.pair()


@pytest.fixture
def peers(transports: tuple[LoopbackTransport, LoopbackTransport]) -> tuple[Peer, Peer]:
    """Two peers connected back to back: (server-ish A, client-ish B)."""
    left, right = transports
    return make_peer(left), make_peer(right)
