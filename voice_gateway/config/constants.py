"""
Constants and configuration values used throughout the application.

This module defines constants that are used across different parts of the gateway,
providing a centralized location for wire-protocol names and defaults so the
telephony and realtime sides stay consistent.
"""

# Logger name used throughout the application
LOGGER_NAME = "voice_gateway"

# Default OpenAI model and endpoint for the Realtime API
DEFAULT_REALTIME_MODEL = "gpt-4o-realtime-preview-2024-12-17"
DEFAULT_REALTIME_URL = "wss://api.openai.com/v1/realtime"
REALTIME_BETA_HEADER = "realtime=v1"
DEFAULT_VOICE = "alloy"

# Telephony stream acceptance
STREAM_PATH_PREFIX = "/stream"
DEFAULT_STREAM_SUBPROTOCOL = "audio"
LEAD_QUERY_PARAM = "leadId"
UNKNOWN_LEAD = "unknown"

# Commit policy defaults
DEFAULT_COMMIT_FRAME_THRESHOLD = 25  # 20ms frames, ~500ms of caller audio
DEFAULT_COMMIT_INTERVAL_MS = 1000

# End-of-call report status values
CALL_STATUS_COMPLETED = "completed"
CALL_STATUS_INTERRUPTED = "interrupted"

# Telephony event names
TELEPHONY_EVENT_CONNECTED = "connected"
TELEPHONY_EVENT_START = "start"
TELEPHONY_EVENT_MEDIA = "media"
TELEPHONY_EVENT_STOP = "stop"
TELEPHONY_EVENT_MARK = "mark"
TELEPHONY_EVENT_DTMF = "dtmf"

# Realtime API outbound message types
MESSAGE_TYPE_SESSION_UPDATE = "session.update"
MESSAGE_TYPE_RESPONSE_CREATE = "response.create"
MESSAGE_TYPE_RESPONSE_CANCEL = "response.cancel"
MESSAGE_TYPE_INPUT_AUDIO_APPEND = "input_audio_buffer.append"
MESSAGE_TYPE_INPUT_AUDIO_COMMIT = "input_audio_buffer.commit"

# Default conversational text (plain configuration, override via environment)
DEFAULT_INSTRUCTIONS = (
    "You are a friendly phone assistant. Keep replies brief and natural, "
    "one or two short sentences. Disclose that you are an AI assistant if asked."
)
DEFAULT_GREETING = "Greet the caller briefly and ask how you can help."
DEFAULT_SUMMARY_INSTRUCTIONS = "Give a 2-sentence summary of the call outcome."
