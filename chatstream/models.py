"""Pydantic models: the wire contract with the upstream flow service.

Request models describe the POST body sent to the flow endpoint. Envelope
models describe the JSON carried by each `data:` line of the event stream.
Python attributes are snake_case; the camelCase wire names are aliases, and
`duration_ms` travels as `duration`.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictInt,
    StrictStr,
    field_validator,
)
from pydantic.alias_generators import to_camel

from chatstream.config import Settings
from chatstream.errors import EncodingError

# ---------------------------------------------------------------------------
# Arbitrary JSON values
# ---------------------------------------------------------------------------

JsonValue = Union[
    None,
    bool,
    int,
    float,
    str,
    List["JsonValue"],
    Dict[str, "JsonValue"],
]


def coerce_json_value(value: Any) -> JsonValue:
    """Classify ``value`` as one arm of :data:`JsonValue`, recursively.

    Arms are tried in a fixed order: null, bool, int, float, string,
    sequence, mapping. Bool is checked before int because ``bool`` is an
    ``int`` subclass, and int before float so ``1`` and ``1.0`` keep their
    distinct types through a round trip.

    Raises:
        ValueError: if ``value`` (or anything nested in it) is not JSON.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value
    if isinstance(value, str):
        return value
    if isinstance(value, (list, tuple)):
        return [coerce_json_value(item) for item in value]
    if isinstance(value, dict):
        out: dict[str, JsonValue] = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueError(f"JSON object keys must be strings, got {type(key).__name__}")
            out[key] = coerce_json_value(item)
        return out
    raise ValueError(f"{type(value).__name__} is not a JSON value")


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class ChatParams(BaseModel):
    content: str
    role: str


class ChatRequest(BaseModel):
    """POST body for the flow endpoint."""
    model_config = ConfigDict(populate_by_name=True)

    params: ChatParams
    label: str = "roles"
    session_id: str = Field(default="1-1", alias="sessionId")
    stream: bool = True

    @classmethod
    def for_content(cls, content: str, settings: Settings) -> ChatRequest:
        return cls(
            params=ChatParams(content=content, role=settings.system_role),
            label=settings.chat_label,
            session_id=settings.chat_session_id,
            stream=True,
        )


def encode_request(request: ChatRequest) -> bytes:
    """Serialize ``request`` to UTF-8 JSON using wire names."""
    try:
        return request.model_dump_json(by_alias=True).encode("utf-8")
    except ValueError as exc:
        raise EncodingError(str(exc)) from exc


# ---------------------------------------------------------------------------
# SSE envelope
# ---------------------------------------------------------------------------

class MessageType(str, Enum):
    FLOW = "flow"
    NODE = "node"
    LLM_STREAM = "llmStream"


class EnvelopeData(BaseModel):
    """Payload bag of one envelope. Every field is optional."""
    model_config = ConfigDict(alias_generator=to_camel, validate_by_alias=True, validate_by_name=True)

    status: StrictStr | None = None
    is_end: StrictBool | None = None
    content: StrictStr | None = None
    is_thinking: StrictBool | None = None
    node_id: StrictStr | None = None
    node_type: StrictStr | None = None
    duration_ms: StrictInt | None = Field(default=None, alias="duration")
    result: dict[str, Any] | None = None
    next_node_ids: list[StrictStr] | None = None

    @field_validator("result", mode="before")
    @classmethod
    def check_result_is_json(cls, value: Any) -> Any:
        if value is None:
            return None
        if not isinstance(value, dict):
            raise ValueError("result must be a JSON object")
        return coerce_json_value(value)


class Envelope(BaseModel):
    """One decoded server-sent event."""
    model_config = ConfigDict(validate_by_alias=True, validate_by_name=True)

    msg_type: MessageType = Field(alias="msgType")
    data: EnvelopeData

    @property
    def fragment(self) -> str | None:
        """Text to append for the typing effect, if this event carries any."""
        if self.msg_type is not MessageType.LLM_STREAM:
            return None
        return self.data.content or None
