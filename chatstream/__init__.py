"""Streaming chat client: consumes the flow service's SSE reply.

The critical interface is `StreamSession.start()`, which posts a
`ChatRequest` and calls `on_content(fragment)` for every `llmStream`
fragment in stream order, then exactly one of `on_complete()` or
`on_error(kind, error)`.
"""

from chatstream.envelope import decode_envelope, encode_envelope
from chatstream.errors import (
    EncodingError,
    EnvelopeDecodeError,
    ErrorKind,
    HTTPStatusError,
    InvalidRequestError,
    StreamError,
    TransportError,
)
from chatstream.models import (
    ChatParams,
    ChatRequest,
    Envelope,
    EnvelopeData,
    MessageType,
    encode_request,
)
from chatstream.reply import ReplyAccumulator
from chatstream.sse_parser import LineFramer, extract_payload
from chatstream.stream_session import SessionState, StreamSession

__all__ = [
    "ChatParams",
    "ChatRequest",
    "EncodingError",
    "Envelope",
    "EnvelopeData",
    "EnvelopeDecodeError",
    "ErrorKind",
    "HTTPStatusError",
    "InvalidRequestError",
    "LineFramer",
    "MessageType",
    "ReplyAccumulator",
    "SessionState",
    "StreamError",
    "StreamSession",
    "TransportError",
    "decode_envelope",
    "encode_envelope",
    "encode_request",
    "extract_payload",
]
