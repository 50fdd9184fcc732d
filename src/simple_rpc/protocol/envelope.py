"""Envelope definitions for the wire protocol.

Every message exchanged between peers is an Envelope:
- Calls (``type="c"``) carry a namespace and positional arguments
- Responses (``type="r"``) carry the return value or a failure

Example call:
    {"type": "c", "id": 3, "namespace": "echo", "data": [42]}

Example response:
    {"type": "r", "id": 3, "data": 42}

A call with ``"response": false`` is a signal: it is executed but never
answered, so it does not need an id.

Field types are strict: an id of ``"7"``, ``true`` or ``1.0`` is a decode
failure rather than being coerced. A ``namespace`` on a response is
ignored and dropped.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, StrictBool, StrictInt, StrictStr, model_validator


class EnvelopeType(str, Enum):
    """Envelope kinds."""

    CALL = "c"
    RESPONSE = "r"


class Envelope(BaseModel):
    """A single message on the wire.

    Fields:
    - ``type``: call or response
    - ``id``: correlation id, unique per connection while the call is pending
    - ``namespace``: target function name (calls only)
    - ``data``: argument list for calls, return value for responses
    - ``error``: failure description (failed responses only)
    - ``response``: False marks a call as a signal that must not be answered
    """

    type: EnvelopeType
    id: StrictInt | None = None
    namespace: StrictStr | None = None
    data: Any = None
    error: Any = None
    response: StrictBool = True

    @model_validator(mode="after")
    def _check_required_fields(self) -> Envelope:
        if self.type == EnvelopeType.CALL:
            if not self.namespace:
                raise ValueError("call envelope requires a namespace")
            if self.response and self.id is None:
                raise ValueError("call envelope expecting a response requires an id")
            if self.data is not None and not isinstance(self.data, list):
                raise ValueError("call envelope data must be a list of arguments")
        else:
            if self.id is None:
                raise ValueError("response envelope requires an id")
            self.namespace = None
        return self

    @property
    def is_call(self) -> bool:
        return self.type == EnvelopeType.CALL

    @property
    def is_response(self) -> bool:
        return self.type == EnvelopeType.RESPONSE

    @property
    def expects_response(self) -> bool:
        """True for calls that must be answered (i.e. not signals)."""
        return self.is_call and self.response

    @property
    def args(self) -> list[Any]:
        """Positional arguments of a call."""
        return list(self.data or [])

    @property
    def failed(self) -> bool:
        return self.is_response and self.error is not None

    # Factory methods for the envelopes a peer sends

    @classmethod
    def call(cls, message_id: int, namespace: str, args: list[Any] | tuple[Any, ...]) -> Envelope:
        """Create a call that expects a response."""
        return cls(type=EnvelopeType.CALL, id=message_id, namespace=namespace, data=list(args))

    @classmethod
    def signal(
        cls, namespace: str, args: list[Any] | tuple[Any, ...], message_id: int | None = None
    ) -> Envelope:
        """Create a one-way call that is never answered."""
        return cls(
            type=EnvelopeType.CALL,
            id=message_id,
            namespace=namespace,
            data=list(args),
            response=False,
        )

    @classmethod
    def result(cls, message_id: int, value: Any) -> Envelope:
        """Create a successful response."""
        return cls(type=EnvelopeType.RESPONSE, id=message_id, data=value)

    @classmethod
    def failure(cls, message_id: int, error: Any) -> Envelope:
        """Create a failed response."""
        return cls(type=EnvelopeType.RESPONSE, id=message_id, error=error)
