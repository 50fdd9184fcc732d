"""Transport layer.

The RPC core only needs a duplex text channel: ``send(text)`` plus inbound
``message`` events. This package defines that contract and ships the
WebSocket implementations used by the client and server endpoints.
"""

from .base import MessageTransport
from .websocket import WebSocketClientTransport, WebSocketServerTransport

__all__ = [
    "MessageTransport",
    "WebSocketClientTransport",
    "WebSocketServerTransport",
]
