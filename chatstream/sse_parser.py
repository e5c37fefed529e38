"""Incremental text/event-stream framing.

`LineFramer` turns raw body chunks into complete lines and `extract_payload`
picks the JSON payload out of `data:` lines. Neither knows anything about
the envelope schema; see `chatstream.envelope` for that.
"""

from __future__ import annotations

import codecs
import re

DATA_PREFIX = "data:"
COMMENT_PREFIX = ":"

_LINE_BREAK = re.compile(r"\r\n|\r|\n")


class LineFramer:
    """Reassembles arbitrarily split byte chunks into logical lines.

    Bytes go through an incremental UTF-8 decoder, so a multi-byte character
    split across chunks stays buffered until its remaining bytes arrive.
    Invalid sequences decode to U+FFFD instead of stalling the stream.

    After every :meth:`feed` the pending tail holds only the text after the
    last line break. A trailing ``\\r`` is held back too, because the ``\\n``
    completing a ``\\r\\n`` pair may be in the next chunk.
    """

    def __init__(self) -> None:
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._tail = ""

    @property
    def pending(self) -> str:
        """Decoded text not yet emitted as a line."""
        return self._tail

    def feed(self, chunk: bytes) -> list[str]:
        """Append ``chunk`` and return every line it completed, in order."""
        text = self._tail + self._decoder.decode(chunk)
        return self._split(text)

    def flush(self) -> list[str]:
        """End of body: return the unterminated last line, if any."""
        text = self._tail + self._decoder.decode(b"", final=True)
        lines = self._split(text)
        last, self._tail = self._tail, ""
        if last.endswith("\r"):
            lines.append(last[:-1])
        elif last:
            lines.append(last)
        return lines

    def reset(self) -> None:
        """Discard everything buffered."""
        self._decoder.reset()
        self._tail = ""

    def _split(self, text: str) -> list[str]:
        held = ""
        if text.endswith("\r"):
            text, held = text[:-1], "\r"
        *lines, tail = _LINE_BREAK.split(text)
        self._tail = tail + held
        return lines


def extract_payload(line: str) -> str | None:
    """Return the payload of a `data:` line, or None for any other line.

    Blank lines (event boundaries), `:` comments and heartbeats, and other
    fields such as `event:`, `id:` and `retry:` all yield None. Only the
    five-character prefix is removed; whitespace is left for the decoder.
    """
    if not line or line.startswith(COMMENT_PREFIX):
        return None
    if line.startswith(DATA_PREFIX):
        return line[len(DATA_PREFIX):]
    return None
