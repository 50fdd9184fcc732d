"""Envelope serialization.

The codec is the only place that knows the wire encoding. Peers exchange
text frames, so codecs turn envelopes into ``str`` and accept either ``str``
or ``bytes`` on the way back.
"""

from __future__ import annotations

import math
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError
from pydantic_core import PydanticSerializationError

from ..errors import DecodeError, EncodeError
from .envelope import Envelope


@runtime_checkable
class Codec(Protocol):
    """Protocol for envelope codecs."""

    name: str

    def encode(self, envelope: Envelope) -> str:
        """Serialize an envelope.

        Raises:
            EncodeError: If the payload holds a value the encoding cannot carry
        """
        ...

    def decode(self, data: str | bytes) -> Envelope:
        """Parse and validate an envelope.

        Raises:
            DecodeError: On malformed input or an invalid envelope shape
        """
        ...


class JSONCodec:
    """JSON codec.

    Fields that still hold their default value are left out of the wire
    form, so a plain call looks like ``{"type":"c","id":0,"namespace":"echo","data":[42]}``.

    NaN and infinities have no JSON form and raise EncodeError instead of
    being written as ``null``.
    """

    name = "json"

    def encode(self, envelope: Envelope) -> str:
        _check_finite(envelope.data)
        _check_finite(envelope.error)
        try:
            return envelope.model_dump_json(exclude_defaults=True)
        except PydanticSerializationError as e:
            raise EncodeError(f"Cannot encode envelope: {e}") from e

    def decode(self, data: str | bytes) -> Envelope:
        try:
            return Envelope.model_validate_json(data)
        except ValidationError as e:
            raise DecodeError(f"Invalid envelope: {e}") from e


def _check_finite(value: Any) -> None:
    if isinstance(value, float) and not math.isfinite(value):
        raise EncodeError(f"Cannot encode non-finite number {value!r}")
    if isinstance(value, dict):
        for item in value.values():
            _check_finite(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_finite(item)


default_codec = JSONCodec()


def encode(envelope: Envelope) -> str:
    """Serialize with the default codec."""
    return default_codec.encode(envelope)


def decode(data: str | bytes) -> Envelope:
    """Parse with the default codec."""
    return default_codec.decode(data)
