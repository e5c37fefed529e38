"""Consumer-side accumulator for one assistant reply.

The stream session never concatenates text; it only emits fragments in
order. A `ReplyAccumulator` is what a chat view holds for its in-progress
message: plug its bound methods into `StreamSession.start()` and read
`text` whenever the view redraws.
"""

from __future__ import annotations

from chatstream.errors import ErrorKind, StreamError

FALLBACK_TEMPLATE = "Sorry, an error occurred: {description}"


class ReplyAccumulator:
    def __init__(self) -> None:
        self._chunks: list[str] = []
        self.error: StreamError | None = None
        self.done = False

    @property
    def text(self) -> str:
        if self.error is not None:
            return FALLBACK_TEMPLATE.format(description=self.error.description)
        return "".join(self._chunks)

    def append(self, fragment: str) -> None:
        self._chunks.append(fragment)

    def fail(self, kind: ErrorKind, error: StreamError) -> None:
        """Replace the partial reply with a fallback message."""
        self.error = error
        self.done = True

    def finish(self) -> None:
        self.done = True
