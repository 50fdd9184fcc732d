"""Transport contract consumed by the RPC peer.

The peer never touches sockets directly. It needs exactly two things from
a transport:
- ``send(text)``: deliver one text frame, raising on failure
- a ``message`` event carrying each inbound text frame

Lifecycle (``open``/``close``/``error``) is reported through the same
``on``/``off`` listener API. Connection management, framing, heartbeats
and reconnection stay inside the transport.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class MessageTransport(Protocol):
    """Protocol for duplex text transports."""

    @property
    def is_connected(self) -> bool:
        """Check if the transport can currently send."""
        ...

    async def send(self, text: str) -> None:
        """Send one text frame.

        Raises:
            ConnectionError: If the frame could not be sent
        """
        ...

    def on(self, event: str, listener: Callable[..., Any]) -> Callable[[], None]:
        """Subscribe to ``open``, ``close``, ``error`` or ``message``."""
        ...

    def off(self, event: str, listener: Callable[..., Any]) -> None:
        """Remove a listener."""
        ...
