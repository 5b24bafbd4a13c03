"""
Pydantic models for the telephony media-stream protocol.

Inbound messages are JSON objects discriminated by their "event" field. Every
known event name maps to its own model class tagged with a TelephonyEventKind;
names outside that closed set decode to UnknownTelephonyEvent so new event types
are ignored instead of breaking the stream.
"""

import json
from enum import Enum
from typing import Any, ClassVar, Dict, List, Literal, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from voice_gateway.audio_codec import is_valid_payload
from voice_gateway.config.constants import (
    TELEPHONY_EVENT_CONNECTED,
    TELEPHONY_EVENT_DTMF,
    TELEPHONY_EVENT_MARK,
    TELEPHONY_EVENT_MEDIA,
    TELEPHONY_EVENT_START,
    TELEPHONY_EVENT_STOP,
)
from voice_gateway.exceptions import MalformedEventError

INBOUND_TRACK = "inbound"


class TelephonyEventKind(str, Enum):
    """Closed set of telephony event kinds the relay distinguishes."""
    CONNECTED = TELEPHONY_EVENT_CONNECTED
    START = TELEPHONY_EVENT_START
    MEDIA = TELEPHONY_EVENT_MEDIA
    STOP = TELEPHONY_EVENT_STOP
    MARK = TELEPHONY_EVENT_MARK
    DTMF = TELEPHONY_EVENT_DTMF
    UNKNOWN = "unknown"


class TelephonyMediaFormat(BaseModel):
    """Audio format negotiated by the telephony side at stream start."""

    encoding: Optional[str] = None
    sampleRate: Optional[int] = None
    channels: Optional[int] = None


class StreamStartDetails(BaseModel):
    callSid: Optional[str] = None
    streamSid: Optional[str] = None
    accountSid: Optional[str] = None
    tracks: List[str] = Field(default_factory=list)
    customParameters: Dict[str, Any] = Field(default_factory=dict)
    mediaFormat: Optional[TelephonyMediaFormat] = None


class MediaDetails(BaseModel):
    payload: str = Field(..., description="Base64-encoded mu-law audio")
    track: Optional[str] = None
    chunk: Optional[Union[str, int]] = None
    timestamp: Optional[Union[str, int]] = None

    @field_validator("payload")
    def validate_payload(cls, v):
        """Validate that the payload is non-empty base64."""
        if not is_valid_payload(v):
            raise ValueError("Invalid base64 encoded audio data")
        return v


class TelephonyEvent(BaseModel):
    """Base model for all inbound telephony events."""

    model_config = ConfigDict(extra="allow")

    kind: ClassVar[TelephonyEventKind] = TelephonyEventKind.UNKNOWN

    event: str = Field(..., description="Event name")
    streamSid: Optional[str] = None
    sequenceNumber: Optional[Union[str, int]] = None


class ConnectedEvent(TelephonyEvent):
    kind: ClassVar[TelephonyEventKind] = TelephonyEventKind.CONNECTED

    protocol: Optional[str] = None
    version: Optional[str] = None


class StartEvent(TelephonyEvent):
    kind: ClassVar[TelephonyEventKind] = TelephonyEventKind.START

    start: StreamStartDetails = Field(default_factory=StreamStartDetails)

    @property
    def call_id(self) -> Optional[str]:
        return self.start.callSid

    @property
    def stream_id(self) -> Optional[str]:
        return self.start.streamSid or self.streamSid


class MediaEvent(TelephonyEvent):
    kind: ClassVar[TelephonyEventKind] = TelephonyEventKind.MEDIA

    media: MediaDetails

    @property
    def payload(self) -> str:
        return self.media.payload

    @property
    def is_inbound(self) -> bool:
        # Unidirectional streams omit the track name
        return self.media.track is None or self.media.track == INBOUND_TRACK


class StopEvent(TelephonyEvent):
    kind: ClassVar[TelephonyEventKind] = TelephonyEventKind.STOP

    stop: Optional[Dict[str, Any]] = None


class MarkEvent(TelephonyEvent):
    kind: ClassVar[TelephonyEventKind] = TelephonyEventKind.MARK

    mark: Optional[Dict[str, Any]] = None


class DtmfEvent(TelephonyEvent):
    kind: ClassVar[TelephonyEventKind] = TelephonyEventKind.DTMF

    dtmf: Optional[Dict[str, Any]] = None


class UnknownTelephonyEvent(TelephonyEvent):
    """Any event name outside the known set; decoded so it can be ignored."""


_EVENT_MODELS: Dict[str, Type[TelephonyEvent]] = {
    TELEPHONY_EVENT_CONNECTED: ConnectedEvent,
    TELEPHONY_EVENT_START: StartEvent,
    TELEPHONY_EVENT_MEDIA: MediaEvent,
    TELEPHONY_EVENT_STOP: StopEvent,
    TELEPHONY_EVENT_MARK: MarkEvent,
    TELEPHONY_EVENT_DTMF: DtmfEvent,
}


def decode_telephony_event(text: str) -> TelephonyEvent:
    """
    Decode one inbound telephony message.

    Args:
        text: Raw JSON text received on the telephony websocket

    Returns:
        The typed event; unknown event names yield UnknownTelephonyEvent

    Raises:
        MalformedEventError: If the text is not a JSON object with a valid shape
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError) as e:
        raise MalformedEventError(f"Telephony message is not valid JSON: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("event"), str):
        raise MalformedEventError("Telephony message has no event name")

    model = _EVENT_MODELS.get(data["event"], UnknownTelephonyEvent)
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise MalformedEventError(f"Invalid {data['event']} event: {e}") from e


class OutboundMediaPayload(BaseModel):
    payload: str


class OutboundMediaMessage(BaseModel):
    """Media frame sent back to the telephony side."""

    event: Literal["media"] = "media"
    streamSid: Optional[str] = None
    media: OutboundMediaPayload

    @classmethod
    def for_payload(cls, payload: str, stream_id: Optional[str] = None) -> "OutboundMediaMessage":
        return cls(streamSid=stream_id, media=OutboundMediaPayload(payload=payload))

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)
