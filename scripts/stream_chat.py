#!/usr/bin/env python3
"""Stream one reply from the configured flow endpoint to the terminal.

Usage:
    CHAT_BASE_URL=http://localhost:8001 python scripts/stream_chat.py "How do I move on?"

Fragments are printed as they arrive. Press Ctrl-C to cancel mid-stream.
Exits 1 if the stream fails.
"""

import asyncio
import logging
import sys

from chatstream.config import settings
from chatstream.errors import ErrorKind, StreamError
from chatstream.models import ChatRequest
from chatstream.reply import ReplyAccumulator
from chatstream.stream_session import StreamSession


async def main(prompt: str) -> int:
    session = StreamSession(settings)
    reply = ReplyAccumulator()

    def on_content(fragment: str) -> None:
        reply.append(fragment)
        print(fragment, end="", flush=True)

    def on_error(kind: ErrorKind, error: StreamError) -> None:
        reply.fail(kind, error)
        print(f"\n{reply.text}", file=sys.stderr)

    print(f"POST {settings.chat_url}\n")
    session.start(
        ChatRequest.for_content(prompt, settings),
        on_content=on_content,
        on_error=on_error,
        on_complete=reply.finish,
    )
    try:
        await session.wait()
    except asyncio.CancelledError:
        session.cancel()
        raise
    print()
    return 1 if reply.error is not None else 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(2)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    try:
        sys.exit(asyncio.run(main(" ".join(sys.argv[1:]))))
    except KeyboardInterrupt:
        print("\ncancelled", file=sys.stderr)
        sys.exit(130)
