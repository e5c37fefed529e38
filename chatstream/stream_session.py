"""Stream session: one POST to the flow endpoint, consumed as SSE.

The session owns the transport handle and the line buffer for the current
run and feeds every body chunk through framing, payload extraction and
envelope decoding. Content fragments from `llmStream` envelopes go to the
consumer's sinks in stream order.

Delivery context: `start()` must be called from a running event loop. All
sinks are invoked on that loop, from the session's own task, one at a time.
Consumers on another thread should marshal from inside their sinks.

Replacement: calling `start()` while a run is active cancels that run first.
Each run is stamped with a generation number; a sink only fires while its
run's generation is still current, so nothing from a superseded or
cancelled run reaches the consumer.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

import httpx

from chatstream.config import Settings, settings as default_settings
from chatstream.envelope import decode_envelope
from chatstream.errors import (
    EnvelopeDecodeError,
    ErrorKind,
    HTTPStatusError,
    InvalidRequestError,
    StreamError,
    TransportError,
)
from chatstream.models import ChatRequest, Envelope, encode_request
from chatstream.sse_parser import LineFramer, extract_payload

logger = logging.getLogger(__name__)

ContentSink = Callable[[str], None]
ErrorSink = Callable[[ErrorKind, StreamError], None]
CompleteSink = Callable[[], None]
EnvelopeSink = Callable[[Envelope], None]

REQUEST_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class SessionState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


_ACTIVE_STATES = (SessionState.REQUESTING, SessionState.STREAMING)


@dataclass(slots=True)
class _Run:
    """Bookkeeping for a single start() call."""

    generation: int
    request: ChatRequest
    on_content: ContentSink
    on_error: ErrorSink
    on_complete: CompleteSink | None
    on_envelope: EnvelopeSink | None
    framer: LineFramer = field(default_factory=LineFramer)
    finished: bool = False


def build_url(raw: str) -> httpx.URL:
    """Parse the endpoint address; anything but absolute http(s) is rejected."""
    try:
        url = httpx.URL(raw)
    except httpx.InvalidURL as exc:
        raise InvalidRequestError(str(exc)) from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidRequestError(raw)
    return url


class StreamSession:
    """Drives at most one streaming request at a time."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or default_settings
        self._transport = transport
        self._generation = 0
        self._run: _Run | None = None
        self._task: asyncio.Task[None] | None = None
        self._state = SessionState.IDLE

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def is_active(self) -> bool:
        return self._state in _ACTIVE_STATES

    def start(
        self,
        request: ChatRequest,
        *,
        on_content: ContentSink,
        on_error: ErrorSink,
        on_complete: CompleteSink | None = None,
        on_envelope: EnvelopeSink | None = None,
    ) -> asyncio.Task[None]:
        """Issue ``request`` and stream the reply into the given sinks.

        Any run already in flight is cancelled first and its sinks are
        discarded. The new run does not open its connection until the old
        one has released its handle.
        """
        loop = asyncio.get_running_loop()
        previous = self._task
        self.cancel()

        self._generation += 1
        run = _Run(
            generation=self._generation,
            request=request,
            on_content=on_content,
            on_error=on_error,
            on_complete=on_complete,
            on_envelope=on_envelope,
        )
        self._run = run
        self._state = SessionState.REQUESTING
        self._task = loop.create_task(
            self._drive(run, previous), name=f"stream-session-{run.generation}"
        )
        return self._task

    def cancel(self) -> None:
        """Stop the current run. Idempotent and safe in any state.

        Once this returns no sink of the cancelled run fires again, even if
        a chunk was already being read.
        """
        run, self._run = self._run, None
        if run is None:
            return
        self._generation += 1
        run.framer.reset()
        if self._state in _ACTIVE_STATES:
            self._state = SessionState.CANCELLED
            logger.info("Stream session %d cancelled", run.generation)
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> None:
        """Wait for the current run to finish, however it ends."""
        task = self._task
        if task is None:
            return
        await asyncio.wait([task])
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            raise exc

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def _drive(self, run: _Run, previous: asyncio.Task[None] | None) -> None:
        if previous is not None and not previous.done():
            await asyncio.wait([previous])
        try:
            await asyncio.wait_for(
                self._stream(run), timeout=self._settings.stream_timeout_s
            )
        except asyncio.TimeoutError:
            self._fail(
                run,
                TransportError(f"stream exceeded {self._settings.stream_timeout_s:g}s"),
            )
        except StreamError as exc:
            self._fail(run, exc)
        except Exception:
            if self._is_current(run):
                self._state = SessionState.FAILED
            logger.exception("Stream session %d crashed", run.generation)
            raise

    async def _stream(self, run: _Run) -> None:
        url = build_url(self._settings.chat_url)
        body = encode_request(run.request)
        logger.info("Stream session %d: POST %s", run.generation, url)
        logger.debug("Request body: %s", body.decode("utf-8"))

        timeout = httpx.Timeout(self._settings.request_timeout_s)
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=timeout) as client:
                async with client.stream(
                    "POST", url, content=body, headers=REQUEST_HEADERS
                ) as response:
                    if not response.is_success:
                        raise HTTPStatusError(response.status_code)
                    if not self._is_current(run):
                        return
                    self._state = SessionState.STREAMING

                    async for chunk in response.aiter_bytes():
                        if not self._is_current(run):
                            return
                        self._process(run, run.framer.feed(chunk))
        except httpx.RequestError as exc:
            raise TransportError(str(exc) or type(exc).__name__) from exc

        self._process(run, run.framer.flush())
        self._complete(run)

    def _process(self, run: _Run, lines: list[str]) -> None:
        for line in lines:
            payload = extract_payload(line)
            if payload is None:
                continue
            try:
                envelope = decode_envelope(payload)
            except EnvelopeDecodeError as exc:
                logger.warning("Dropping undecodable event (%s): %s", exc, exc.payload)
                continue
            if envelope is not None:
                self._dispatch(run, envelope)

    def _dispatch(self, run: _Run, envelope: Envelope) -> None:
        if run.on_envelope is not None:
            self._deliver(run, run.on_envelope, envelope)
        fragment = envelope.fragment
        if fragment is not None:
            self._deliver(run, run.on_content, fragment)
        elif run.on_envelope is None:
            logger.debug("Ignoring %s envelope", envelope.msg_type.value)

    # ------------------------------------------------------------------
    # Sink delivery
    # ------------------------------------------------------------------

    def _is_current(self, run: _Run) -> bool:
        return self._run is run and run.generation == self._generation

    def _deliver(self, run: _Run, sink: Callable[..., None], *args) -> None:
        if not self._is_current(run) or run.finished:
            logger.debug("Dropping late callback from stream session %d", run.generation)
            return
        sink(*args)

    def _fail(self, run: _Run, error: StreamError) -> None:
        if not self._is_current(run) or run.finished:
            return
        run.finished = True
        self._state = SessionState.FAILED
        logger.warning("Stream session %d failed: %s", run.generation, error.description)
        run.on_error(error.kind, error)

    def _complete(self, run: _Run) -> None:
        if not self._is_current(run) or run.finished:
            return
        run.finished = True
        self._state = SessionState.COMPLETED
        logger.info("Stream session %d completed", run.generation)
        if run.on_complete is not None:
            run.on_complete()
