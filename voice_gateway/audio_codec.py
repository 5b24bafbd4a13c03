"""
Media frame codec shared by both sides of the relay.

Telephony media frames and realtime audio deltas use the same representation:
base64-wrapped G.711 mu-law at 8 kHz, mono. The relay therefore never
transcodes; payload strings are carried through unchanged and these helpers
only validate and unwrap them.
"""

import base64
import binascii
from typing import Optional

from voice_gateway.exceptions import MalformedEventError, MediaFormatError

TELEPHONY_ENCODING = "audio/x-mulaw"
TELEPHONY_SAMPLE_RATE = 8000
TELEPHONY_CHANNELS = 1

# Name of the same format on the realtime API side
REALTIME_AUDIO_FORMAT = "g711_ulaw"

def decode_payload(payload: str) -> bytes:
    """
    Unwrap a base64 media payload into raw mu-law bytes.

    Raises:
        MalformedEventError: If the payload is empty or not valid base64
    """
    if not payload:
        raise MalformedEventError("Audio payload cannot be empty")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedEventError(f"Invalid base64 audio payload: {e}") from e

def is_valid_payload(payload: str) -> bool:
    try:
        decode_payload(payload)
    except MalformedEventError:
        return False
    return True

def check_media_format(encoding: Optional[str], sample_rate: Optional[int],
                       channels: Optional[int] = TELEPHONY_CHANNELS) -> None:
    """
    Verify the telephony side negotiated the fixed relay format.

    Raises:
        MediaFormatError: If encoding, sample rate or channel count differ
    """
    if encoding is not None and encoding.lower() != TELEPHONY_ENCODING:
        raise MediaFormatError(
            f"Unsupported telephony encoding {encoding!r}, expected {TELEPHONY_ENCODING!r}"
        )
    if sample_rate is not None and sample_rate != TELEPHONY_SAMPLE_RATE:
        raise MediaFormatError(
            f"Unsupported sample rate {sample_rate}, expected {TELEPHONY_SAMPLE_RATE}"
        )
    if channels is not None and channels != TELEPHONY_CHANNELS:
        raise MediaFormatError(f"Unsupported channel count {channels}, expected mono")
