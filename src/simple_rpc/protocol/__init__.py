"""Wire protocol layer.

Defines the envelope exchanged between peers and the codec that moves it
across a text transport. The protocol is symmetric: both peers send calls
and both peers answer them.

Key concepts:
- Call: request naming a namespace, with positional arguments
- Signal: call flagged ``response: false``, never answered
- Response: carries the call's id and either a value or a failure
"""

from .codec import Codec, JSONCodec, decode, default_codec, encode
from .envelope import Envelope, EnvelopeType

__all__ = [
    "Codec",
    "JSONCodec",
    "Envelope",
    "EnvelopeType",
    "decode",
    "default_codec",
    "encode",
]
