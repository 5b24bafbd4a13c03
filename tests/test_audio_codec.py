import base64

import pytest

from voice_gateway.audio_codec import (
    check_media_format,
    decode_payload,
    is_valid_payload,
)
from voice_gateway.exceptions import MalformedEventError, MediaFormatError


def test_decode_payload_returns_raw_bytes():
    audio = bytes(range(256)) * 2

    assert decode_payload(base64.b64encode(audio).decode("ascii")) == audio


@pytest.mark.parametrize("payload", ["", "not base64!", "AAE"])
def test_decode_rejects_bad_payloads(payload):
    with pytest.raises(MalformedEventError):
        decode_payload(payload)
    assert not is_valid_payload(payload)


def test_malformed_event_error_is_value_error():
    with pytest.raises(ValueError):
        decode_payload("")


def test_check_media_format_accepts_mulaw_8k():
    check_media_format("audio/x-mulaw", 8000, 1)
    check_media_format("AUDIO/X-MULAW", 8000)
    check_media_format(None, None, None)


@pytest.mark.parametrize(
    "encoding, sample_rate, channels",
    [
        ("audio/l16", 8000, 1),
        ("audio/x-mulaw", 16000, 1),
        ("audio/x-mulaw", 8000, 2),
    ],
)
def test_check_media_format_rejects_mismatch(encoding, sample_rate, channels):
    with pytest.raises(MediaFormatError):
        check_media_format(encoding, sample_rate, channels)
