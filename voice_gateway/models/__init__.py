"""
Models module for wire messages and per-call state in the voice gateway.

Key components:
- telephony_schemas: inbound telephony stream events and outbound media frames.
- realtime_schemas: Realtime API control messages and server events.
- call_session: per-call state and its lifecycle phases.
- call_report: the end-of-call record sent to the outcome webhook.
"""

from voice_gateway.models.call_report import CallReport
from voice_gateway.models.call_session import CallPhase, CallSession
from voice_gateway.models.realtime_schemas import (
    RealtimeEvent,
    RealtimeEventKind,
    SessionConfig,
    decode_realtime_event,
)
from voice_gateway.models.telephony_schemas import (
    MediaEvent,
    OutboundMediaMessage,
    StartEvent,
    StopEvent,
    TelephonyEvent,
    TelephonyEventKind,
    decode_telephony_event,
)
