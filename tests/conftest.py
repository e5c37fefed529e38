"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncIterator, Iterable
from typing import Any

import httpx
import pytest
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sse_starlette.sse import AppStatus, EventSourceResponse, ServerSentEvent

from chatstream.config import Settings
from chatstream.envelope import decode_envelope
from chatstream.errors import EnvelopeDecodeError, ErrorKind, StreamError
from chatstream.models import Envelope
from chatstream.sse_parser import LineFramer, extract_payload

UPSTREAM_URL = "http://upstream.test"


@pytest.fixture
def flow_settings() -> Settings:
    """Settings pointing at the fake upstream, isolated from any .env file."""
    return Settings(_env_file=None, chat_base_url=UPSTREAM_URL)


@pytest.fixture
def recorder() -> SinkRecorder:
    return SinkRecorder()


@pytest.fixture(autouse=True)
def reset_sse_exit_event():
    """sse-starlette caches its shutdown event on the first loop it sees."""
    AppStatus.should_exit_event = None
    yield
    AppStatus.should_exit_event = None


# ---------------------------------------------------------------------------
# Wire helpers
# ---------------------------------------------------------------------------


def data_line(payload: dict[str, Any] | str) -> bytes:
    """One `data:` event followed by the blank separator line."""
    text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
    return f"data: {text}\n\n".encode("utf-8")


def llm_event(content: str, **extra: Any) -> dict[str, Any]:
    return {"msgType": "llmStream", "data": {"content": content, **extra}}


def node_event(node_id: str = "node-1", **extra: Any) -> dict[str, Any]:
    return {
        "msgType": "node",
        "data": {"nodeId": node_id, "nodeType": "llm", "status": "running", **extra},
    }


def split_every(raw: bytes, size: int) -> list[bytes]:
    return [raw[i : i + size] for i in range(0, len(raw), size)]


def pipeline_fragments(chunks: Iterable[bytes]) -> list[str]:
    """Run chunks through framing, extraction and decoding without HTTP."""
    framer = LineFramer()
    lines: list[str] = []
    for chunk in chunks:
        lines.extend(framer.feed(chunk))
    lines.extend(framer.flush())

    fragments = []
    for line in lines:
        payload = extract_payload(line)
        if payload is None:
            continue
        try:
            envelope = decode_envelope(payload)
        except EnvelopeDecodeError:
            continue
        if envelope is not None and envelope.fragment is not None:
            fragments.append(envelope.fragment)
    return fragments


# ---------------------------------------------------------------------------
# Sink recorder
# ---------------------------------------------------------------------------


class SinkRecorder:
    """Collects every sink invocation of a stream session."""

    def __init__(self) -> None:
        self.fragments: list[str] = []
        self.errors: list[tuple[ErrorKind, StreamError]] = []
        self.envelopes: list[Envelope] = []
        self.completed = 0

    def on_content(self, fragment: str) -> None:
        self.fragments.append(fragment)

    def on_error(self, kind: ErrorKind, error: StreamError) -> None:
        self.errors.append((kind, error))

    def on_complete(self) -> None:
        self.completed += 1

    def on_envelope(self, envelope: Envelope) -> None:
        self.envelopes.append(envelope)

    def sinks(self, *, envelopes: bool = False) -> dict[str, Any]:
        out: dict[str, Any] = {
            "on_content": self.on_content,
            "on_error": self.on_error,
            "on_complete": self.on_complete,
        }
        if envelopes:
            out["on_envelope"] = self.on_envelope
        return out

    @property
    def call_count(self) -> int:
        return len(self.fragments) + len(self.errors) + len(self.envelopes) + self.completed


# ---------------------------------------------------------------------------
# Mock transports
# ---------------------------------------------------------------------------


def streaming_transport(
    chunks: Iterable[bytes],
    *,
    status_code: int = 200,
    pause_after: int | None = None,
    gate: asyncio.Event | None = None,
    fail_with: Exception | None = None,
    requests: list[httpx.Request] | None = None,
) -> httpx.MockTransport:
    """MockTransport whose response body yields ``chunks`` one at a time.

    With ``pause_after`` and ``gate``, the body stalls after that chunk index
    until the gate is set. ``fail_with`` is raised once the chunks run out.
    """
    chunks = list(chunks)

    async def body() -> AsyncIterator[bytes]:
        for index, chunk in enumerate(chunks):
            yield chunk
            if gate is not None and index == pause_after:
                await gate.wait()
        if fail_with is not None:
            raise fail_with

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        return httpx.Response(status_code, content=body())

    return httpx.MockTransport(handler)


def failing_transport(exc: Exception, requests: list[httpx.Request] | None = None) -> httpx.MockTransport:
    """MockTransport that fails before any response headers arrive."""

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(request)
        raise exc

    return httpx.MockTransport(handler)


# ---------------------------------------------------------------------------
# Fake upstream flow service (FastAPI + sse-starlette)
# ---------------------------------------------------------------------------

upstream = FastAPI()


@upstream.post("/open/flow/run/invoke")
async def invoke(request: Request) -> EventSourceResponse:
    """Echo the prompt back word by word, wrapped in flow/node events."""
    body = await request.json()
    words = body["params"]["content"].split()

    async def events():
        yield ServerSentEvent(data=json.dumps({"msgType": "flow", "data": {"status": "running"}}))
        yield ServerSentEvent(comment="heartbeat")
        yield ServerSentEvent(data=json.dumps(node_event("echo")))
        for word in words:
            yield ServerSentEvent(event="token", data=json.dumps(llm_event(word + " ")))
        yield ServerSentEvent(data="{not json")
        yield ServerSentEvent(
            data=json.dumps({"msgType": "flow", "data": {"status": "done", "isEnd": True}}),
        )

    return EventSourceResponse(events())


@upstream.post("/broken")
async def broken() -> JSONResponse:
    return JSONResponse({"detail": "upstream unavailable"}, status_code=503)
