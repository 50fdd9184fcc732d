"""Exception hierarchy for the RPC core.

Failures that originate on the remote side arrive as ``RemoteError``
subclasses; failures of the local machinery (decoding, timeouts, sends)
have their own types so callers can tell them apart.
"""

from __future__ import annotations

from typing import Any

# Failure codes written into the ``error`` field of a response envelope
UNREGISTERED_NAMESPACE = "unregistered_namespace"
HANDLER_ERROR = "handler_error"


class RpcError(Exception):
    """Base class for every error raised by simple_rpc."""


class DecodeError(RpcError):
    """An inbound message is not a well-formed envelope."""


class EncodeError(RpcError, ValueError):
    """An outbound envelope cannot be serialized (e.g. a non-JSON return value)."""


class RemoteError(RpcError):
    """A call failed on the remote peer.

    Attributes:
        code: Failure code (``unregistered_namespace``, ``handler_error`` or a
            code chosen by the remote handler)
        name: Name of the exception class raised remotely, if known
        message: Human readable description
        data: The raw failure value as received on the wire
    """

    code = "remote_error"

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        name: str | None = None,
        data: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        self.name = name or self.__class__.__name__
        self.data = data

    def to_failure(self) -> dict[str, Any]:
        """Serialize into the failure mapping carried by a response envelope."""
        return {"code": self.code, "name": self.name, "message": self.message}

    @classmethod
    def from_failure(cls, failure: Any) -> RemoteError:
        """Rebuild a local exception from the ``error`` field of a response.

        Peers written in other languages may send any value as the failure
        (a string, an object without our keys, ...). Those become a plain
        ``RemoteError`` carrying the value in ``data``.
        """
        if not isinstance(failure, dict):
            return RemoteError(str(failure), data=failure)

        code = failure.get("code")
        message = str(failure.get("message", failure))
        name = failure.get("name")
        error_cls = _FAILURE_TYPES.get(code, RemoteError)
        return error_cls(message, code=code, name=name, data=failure)


class UnregisteredNamespaceError(RemoteError):
    """No handler (and no wildcard) is registered for the called namespace."""

    code = UNREGISTERED_NAMESPACE

    @classmethod
    def for_namespace(cls, namespace: str) -> UnregisteredNamespaceError:
        return cls(f'Call to unregistered namespace "{namespace}".')


class HandlerError(RemoteError):
    """A registered handler raised while servicing a call."""

    code = HANDLER_ERROR

    @classmethod
    def from_exception(cls, exc: BaseException) -> HandlerError:
        return cls(str(exc) or exc.__class__.__name__, name=exc.__class__.__name__)


class CallTimeoutError(RpcError, TimeoutError):
    """No response arrived within the call timeout window."""


class TransportSendError(RpcError, ConnectionError):
    """The underlying transport failed to send a message."""


class ConnectionClosedError(RpcError, ConnectionError):
    """The connection closed while a call was still waiting for its response."""


_FAILURE_TYPES: dict[Any, type[RemoteError]] = {
    UNREGISTERED_NAMESPACE: UnregisteredNamespaceError,
    HANDLER_ERROR: HandlerError,
}
