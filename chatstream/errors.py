"""Error types surfaced by the streaming client.

Only the stream session reports errors to the consumer, and it does so at
most once per run. `EnvelopeDecodeError` is the exception: it is raised per
event, logged and dropped, and never ends a stream.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_REQUEST = "invalid_request"
    ENCODING = "encoding"
    TRANSPORT = "transport"
    HTTP_STATUS = "http_status"
    DECODE = "decode"


class StreamError(Exception):
    """Base class for everything the stream session can report."""

    kind: ErrorKind

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        self.detail = detail

    @property
    def description(self) -> str:
        return self.detail


class InvalidRequestError(StreamError):
    """The target address could not be turned into a request."""

    kind = ErrorKind.INVALID_REQUEST

    @property
    def description(self) -> str:
        return f"Invalid URL: {self.detail}" if self.detail else "Invalid URL"


class EncodingError(StreamError):
    """The request body could not be serialized."""

    kind = ErrorKind.ENCODING

    @property
    def description(self) -> str:
        return f"Encoding error: {self.detail}"


class TransportError(StreamError):
    """Connection, DNS, reset or timeout failure."""

    kind = ErrorKind.TRANSPORT

    @property
    def description(self) -> str:
        return f"Network error: {self.detail}"


class HTTPStatusError(StreamError):
    kind = ErrorKind.HTTP_STATUS

    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP error: {status_code}")
        self.status_code = status_code


class EnvelopeDecodeError(StreamError):
    """A single event payload did not match the envelope schema."""

    kind = ErrorKind.DECODE

    def __init__(self, detail: str, payload: str = "") -> None:
        super().__init__(detail)
        self.payload = payload
