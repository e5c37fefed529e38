"""Envelope decoding for `data:` payloads."""

from __future__ import annotations

from pydantic import ValidationError

from chatstream.errors import EnvelopeDecodeError
from chatstream.models import Envelope


def decode_envelope(payload: str) -> Envelope | None:
    """Decode one extracted payload.

    Surrounding whitespace and newlines are trimmed first; a payload that is
    empty after trimming is not an event and returns None.

    Raises:
        EnvelopeDecodeError: malformed JSON, a missing or unknown `msgType`,
            or a field of the wrong type. Callers log and drop it.
    """
    text = payload.strip()
    if not text:
        return None
    try:
        # wire keys only; field names are for Python-side construction
        return Envelope.model_validate_json(text, by_alias=True, by_name=False)
    except ValidationError as exc:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}"
            for err in exc.errors()
        )
        raise EnvelopeDecodeError(errors, payload=text) from exc


def encode_envelope(envelope: Envelope) -> str:
    """Serialize ``envelope`` back to its wire JSON."""
    return envelope.model_dump_json(by_alias=True, exclude_unset=True)
