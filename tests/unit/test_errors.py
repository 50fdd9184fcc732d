"""Unit tests for the error hierarchy and failure mapping."""

from __future__ import annotations

from simple_rpc.errors import (
    HANDLER_ERROR,
    UNREGISTERED_NAMESPACE,
    CallTimeoutError,
    ConnectionClosedError,
    HandlerError,
    RemoteError,
    RpcError,
    TransportSendError,
    UnregisteredNamespaceError,
)


class TestFailureMapping:
    """Conversion between exceptions and the wire failure value."""

    def test_unregistered_namespace_failure(self) -> None:
        error = UnregisteredNamespaceError.for_namespace("missing")

        assert error.to_failure() == {
            "code": UNREGISTERED_NAMESPACE,
            "name": "UnregisteredNamespaceError",
            "message": 'Call to unregistered namespace "missing".',
        }

    def test_handler_error_keeps_exception_name(self) -> None:
        error = HandlerError.from_exception(KeyError("k"))

        assert error.code == HANDLER_ERROR
        assert error.name == "KeyError"

    def test_handler_error_without_message(self) -> None:
        error = HandlerError.from_exception(RuntimeError())

        assert error.message == "RuntimeError"

    def test_from_failure_picks_subclass(self) -> None:
        """Known codes map back to their exception classes."""
        failure = UnregisteredNamespaceError.for_namespace("x").to_failure()

        error = RemoteError.from_failure(failure)

        assert isinstance(error, UnregisteredNamespaceError)
        assert error.message == failure["message"]
        assert error.data == failure

    def test_from_failure_unknown_code(self) -> None:
        error = RemoteError.from_failure({"code": "quota", "message": "too many"})

        assert type(error) is RemoteError
        assert error.code == "quota"
        assert str(error) == "too many"

    def test_from_failure_non_mapping(self) -> None:
        """Foreign peers may send a bare string as the failure."""
        error = RemoteError.from_failure("Call to unregistered namespace")

        assert type(error) is RemoteError
        assert error.data == "Call to unregistered namespace"
        assert str(error) == "Call to unregistered namespace"


class TestHierarchy:
    """Local failures stay compatible with builtin exception types."""

    def test_timeout_is_timeout_error(self) -> None:
        assert issubclass(CallTimeoutError, TimeoutError)
        assert issubclass(CallTimeoutError, RpcError)

    def test_connection_errors(self) -> None:
        assert issubclass(TransportSendError, ConnectionError)
        assert issubclass(ConnectionClosedError, ConnectionError)

    def test_remote_errors_are_rpc_errors(self) -> None:
        assert issubclass(HandlerError, RemoteError)
        assert issubclass(UnregisteredNamespaceError, RpcError)
