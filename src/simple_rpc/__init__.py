"""simple-rpc: symmetric request/response RPC over a duplex connection.

Either side can register named functions, call the other side's functions
and wait for the correlated result, or fire one-way signals.

Public API:
- RpcClient: single-connection peer (WebSocket client by default)
- RpcServer, create_app: multi-connection peer served by Starlette
- current_peer: the connection whose call is being handled
- Peer, DispatchTable, PendingCallRegistry: the building blocks
- Envelope, JSONCodec: wire format
"""

from .client import RpcClient
from .config import RpcConfig
from .dispatch import WILDCARD, DispatchTable
from .errors import (
    CallTimeoutError,
    ConnectionClosedError,
    DecodeError,
    EncodeError,
    HandlerError,
    RemoteError,
    RpcError,
    TransportSendError,
    UnregisteredNamespaceError,
)
from .peer import Peer, current_peer
from .protocol import Envelope, EnvelopeType, JSONCodec
from .registry import PendingCall, PendingCallRegistry
from .server import RpcServer, ServerConnection, create_app

__all__ = [
    "RpcClient",
    "RpcServer",
    "ServerConnection",
    "create_app",
    "RpcConfig",
    "Peer",
    "current_peer",
    "DispatchTable",
    "WILDCARD",
    "PendingCall",
    "PendingCallRegistry",
    "Envelope",
    "EnvelopeType",
    "JSONCodec",
    # Errors
    "RpcError",
    "DecodeError",
    "EncodeError",
    "RemoteError",
    "UnregisteredNamespaceError",
    "HandlerError",
    "CallTimeoutError",
    "TransportSendError",
    "ConnectionClosedError",
]

__version__ = "0.1.0"
