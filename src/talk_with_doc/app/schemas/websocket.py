"""
WebSocket message models for the voice endpoint.

Inbound frames are validated into one of the client message models using the
``type`` field as discriminator. Field names are camelCase on the wire.
Outbound events are plain dicts built by the ``*_event`` helpers.
"""

import time
from typing import Annotated
from typing import Any
from typing import Literal
from typing import Optional
from typing import Union

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import TypeAdapter
from pydantic import field_validator
from pydantic.alias_generators import to_camel

from talk_with_doc.services import DEFAULTS


def now_ms() -> int:
    """Milliseconds since the epoch."""
    return int(time.time() * 1000)


class WireMessage(BaseModel):
    """Base model for client messages."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ConnectionInitMessage(WireMessage):
    type: Literal["connection_init"]
    user_id: str
    session_id: str
    document_id: str


class SpeechStartMessage(WireMessage):
    type: Literal["speech_start"]
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    document_id: Optional[str] = None
    timestamp: Optional[int] = None
    is_barge_in: bool = False


class AudioChunkMessage(WireMessage):
    type: Literal["audio_chunk"]
    data: str
    sequence: int = Field(ge=0)
    sample_rate: int = Field(default=16000, gt=0)
    timestamp: Optional[int] = None

    @field_validator("data")
    @classmethod
    def data_length(cls, v):
        if len(v) > DEFAULTS["max_message_bytes"]:
            raise ValueError(f'Audio chunk too large (max {DEFAULTS["max_message_bytes"]} bytes)')
        return v


class SpeechEndMessage(WireMessage):
    type: Literal["speech_end"]
    duration: Optional[float] = None


class DisconnectMessage(WireMessage):
    type: Literal["disconnect"]
    user_id: Optional[str] = None


InboundMessage = Annotated[
    Union[
        ConnectionInitMessage,
        SpeechStartMessage,
        AudioChunkMessage,
        SpeechEndMessage,
        DisconnectMessage,
    ],
    Field(discriminator="type"),
]

_inbound_adapter = TypeAdapter(InboundMessage)


def parse_inbound(raw: Union[str, bytes, dict[str, Any]]) -> InboundMessage:
    """
    Validate one inbound frame.

    Raises:
        pydantic.ValidationError: On malformed JSON, unknown type or bad fields
    """
    if isinstance(raw, dict):
        return _inbound_adapter.validate_python(raw)
    return _inbound_adapter.validate_json(raw)


def connection_ack_event(visitor_id: str) -> dict[str, Any]:
    return {"type": "connection_ack", "visitorId": visitor_id, "timestamp": now_ms()}


def interrupt_event() -> dict[str, Any]:
    return {"type": "interrupt", "timestamp": now_ms()}


def transcript_event(text: str) -> dict[str, Any]:
    return {"type": "transcript", "text": text, "timestamp": now_ms()}


def agent_response_event(agent_id: str, text: str, audio: Optional[str] = None) -> dict[str, Any]:
    """Persona reply; ``audio`` is omitted for text-only replies."""
    event = {"type": "agent_response", "agentId": agent_id, "text": text, "timestamp": now_ms()}
    if audio:
        event["audio"] = audio
    return event


def error_event(message: str, code: str) -> dict[str, Any]:
    return {"type": "error", "message": message, "code": code, "timestamp": now_ms()}
