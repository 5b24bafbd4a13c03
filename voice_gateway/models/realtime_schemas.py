"""
Pydantic models for OpenAI Realtime API message structures.

This module provides type-safe models for the control messages the gateway sends
to the Realtime API and for the server events it consumes. Server events are
classified into the closed RealtimeEventKind set; legacy type names seen from
earlier API revisions map onto the same kinds, and anything else is UNKNOWN.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from voice_gateway.audio_codec import REALTIME_AUDIO_FORMAT
from voice_gateway.config.constants import (
    DEFAULT_VOICE,
    MESSAGE_TYPE_INPUT_AUDIO_APPEND,
    MESSAGE_TYPE_INPUT_AUDIO_COMMIT,
    MESSAGE_TYPE_RESPONSE_CANCEL,
    MESSAGE_TYPE_RESPONSE_CREATE,
    MESSAGE_TYPE_SESSION_UPDATE,
)
from voice_gateway.exceptions import MalformedEventError


class RealtimeEventKind(str, Enum):
    """Server event kinds the relay reacts to."""
    SESSION_CREATED = "session.created"
    SESSION_UPDATED = "session.updated"
    AUDIO_DELTA = "response.audio.delta"
    RESPONSE_DONE = "response.done"
    TRANSCRIPT_DELTA = "response.audio_transcript.delta"
    TEXT_DELTA = "response.text.delta"
    ERROR = "error"
    UNKNOWN = "unknown"


REALTIME_EVENT_TYPES: Dict[str, RealtimeEventKind] = {
    "session.created": RealtimeEventKind.SESSION_CREATED,
    "session.updated": RealtimeEventKind.SESSION_UPDATED,
    "response.audio.delta": RealtimeEventKind.AUDIO_DELTA,
    "response.done": RealtimeEventKind.RESPONSE_DONE,
    "response.completed": RealtimeEventKind.RESPONSE_DONE,
    "response.audio_transcript.delta": RealtimeEventKind.TRANSCRIPT_DELTA,
    "response.transcript.delta": RealtimeEventKind.TRANSCRIPT_DELTA,
    "response.text.delta": RealtimeEventKind.TEXT_DELTA,
    "response.output_text.delta": RealtimeEventKind.TEXT_DELTA,
    "error": RealtimeEventKind.ERROR,
}


# Outbound control messages

class TurnDetection(BaseModel):
    type: str = "server_vad"


class SessionConfig(BaseModel):
    """Body of a session.update message."""

    instructions: str
    modalities: List[str] = Field(default_factory=lambda: ["audio", "text"])
    voice: str = DEFAULT_VOICE
    input_audio_format: str = REALTIME_AUDIO_FORMAT
    output_audio_format: str = REALTIME_AUDIO_FORMAT
    turn_detection: TurnDetection = Field(default_factory=TurnDetection)
    max_response_output_tokens: Optional[int] = None


class ResponseOptions(BaseModel):
    instructions: Optional[str] = None
    modalities: Optional[List[str]] = None


class RealtimeControlMessage(BaseModel):
    """Base model for messages sent to the Realtime API."""
    type: str

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


class SessionUpdateMessage(RealtimeControlMessage):
    type: Literal["session.update"] = MESSAGE_TYPE_SESSION_UPDATE
    session: SessionConfig


class ResponseCreateMessage(RealtimeControlMessage):
    type: Literal["response.create"] = MESSAGE_TYPE_RESPONSE_CREATE
    response: Optional[ResponseOptions] = None


class ResponseCancelMessage(RealtimeControlMessage):
    type: Literal["response.cancel"] = MESSAGE_TYPE_RESPONSE_CANCEL


class InputAudioAppendMessage(RealtimeControlMessage):
    type: Literal["input_audio_buffer.append"] = MESSAGE_TYPE_INPUT_AUDIO_APPEND
    audio: str = Field(..., description="Base64-encoded mu-law audio")


class InputAudioCommitMessage(RealtimeControlMessage):
    type: Literal["input_audio_buffer.commit"] = MESSAGE_TYPE_INPUT_AUDIO_COMMIT


# Inbound server events

class RealtimeErrorDetail(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    code: Optional[str] = None
    message: Optional[str] = None
    param: Optional[str] = None


class RealtimeEvent(BaseModel):
    """One server event; only the fields the relay consumes are typed."""

    model_config = ConfigDict(extra="allow")

    type: str
    event_id: Optional[str] = None
    delta: Optional[str] = None
    audio: Optional[str] = None
    error: Optional[RealtimeErrorDetail] = None

    @property
    def kind(self) -> RealtimeEventKind:
        return REALTIME_EVENT_TYPES.get(self.type, RealtimeEventKind.UNKNOWN)

    @property
    def audio_payload(self) -> Optional[str]:
        # Current API revisions put audio in "delta", older ones in "audio"
        return self.delta or self.audio


def decode_realtime_event(message: Any) -> RealtimeEvent:
    """
    Decode one message received from the Realtime API.

    Raises:
        MalformedEventError: If the message is not a JSON object with a type
    """
    if isinstance(message, (bytes, bytearray)):
        try:
            message = message.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEventError(f"Realtime message is not UTF-8 text: {e}") from e
    try:
        data = json.loads(message)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedEventError(f"Realtime message is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("type"), str):
        raise MalformedEventError("Realtime message has no type")
    try:
        return RealtimeEvent.model_validate(data)
    except ValidationError as e:
        raise MalformedEventError(f"Invalid {data['type']} event: {e}") from e
