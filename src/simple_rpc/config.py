"""Runtime configuration.

Defaults are a 10 second call timeout and the
``simple-rpc`` WebSocket sub-protocol. Environment variables override the
defaults when loading with ``RpcConfig.from_env()``:

- ``SIMPLE_RPC_CALL_TIMEOUT``: seconds before an unanswered call fails
- ``SIMPLE_RPC_SUBPROTOCOL``: sub-protocol tag required by the server
- ``SIMPLE_RPC_RECONNECT``: ``0``/``false``/``no`` disables client reconnection
"""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Any

DEFAULT_SUBPROTOCOL = "simple-rpc"
DEFAULT_CALL_TIMEOUT = 10.0

_FALSE_VALUES = ("0", "false", "no", "off")


@dataclass
class RpcConfig:
    """Settings shared by client and server endpoints."""

    # Call correlation
    call_timeout: float = DEFAULT_CALL_TIMEOUT

    # Sub-protocol negotiated on the WebSocket handshake
    subprotocol: str = DEFAULT_SUBPROTOCOL

    # Client reconnection
    reconnect: bool = True
    reconnect_delay: float = 1.0
    max_reconnect_delay: float = 30.0
    reconnect_backoff: float = 2.0

    # WebSocket keep-alive (client side)
    ping_interval: float | None = 30.0
    ping_timeout: float | None = 10.0

    def __post_init__(self) -> None:
        if self.call_timeout <= 0:
            raise ValueError("call_timeout must be positive")
        if not self.subprotocol:
            raise ValueError("subprotocol must not be empty")
        if self.reconnect_backoff < 1.0:
            raise ValueError("reconnect_backoff must be >= 1.0")

    def with_overrides(self, **changes: Any) -> RpcConfig:
        """Copy with some fields replaced; ``None`` values are ignored."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})

    @classmethod
    def from_env(cls, **overrides: Any) -> RpcConfig:
        """Build a config from ``SIMPLE_RPC_*`` environment variables.

        Args:
            **overrides: Explicit values; they win over the environment

        Raises:
            ValueError: If a variable holds an unparsable value
        """
        values: dict[str, Any] = {}

        timeout = os.environ.get("SIMPLE_RPC_CALL_TIMEOUT")
        if timeout:
            try:
                values["call_timeout"] = float(timeout)
            except ValueError as e:
                raise ValueError(f"Invalid SIMPLE_RPC_CALL_TIMEOUT: {timeout!r}") from e

        subprotocol = os.environ.get("SIMPLE_RPC_SUBPROTOCOL")
        if subprotocol:
            values["subprotocol"] = subprotocol

        reconnect = os.environ.get("SIMPLE_RPC_RECONNECT")
        if reconnect:
            values["reconnect"] = reconnect.lower() not in _FALSE_VALUES

        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)
