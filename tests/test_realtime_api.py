"""
Unit tests for the OpenAI Realtime API client.

These tests verify the RealtimeSessionClient class, which connects to the
Realtime API, sends the session configuration and control messages, and
decodes server events for the relay.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from websockets.exceptions import ConnectionClosedError

from voice_gateway.bot.realtime_api import RealtimeSessionClient, session_config_from_settings
from voice_gateway.config.settings import GatewaySettings
from voice_gateway.exceptions import MissingCredentialError, UpstreamConnectionError
from voice_gateway.models.realtime_schemas import RealtimeEventKind, SessionConfig


class ScriptedSocket:
    """Minimal websocket double: replays messages, then optionally fails."""

    def __init__(self, messages, error=None):
        self.messages = list(messages)
        self.error = error
        self.send = AsyncMock()
        self.close = AsyncMock()
        self.transport = MagicMock()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for message in self.messages:
            yield message
        if self.error is not None:
            raise self.error


@pytest.fixture
def session_config():
    return SessionConfig(instructions="Be brief.", max_response_output_tokens=90)


@pytest.fixture
def realtime_client(session_config):
    """Create a RealtimeSessionClient instance for testing."""
    return RealtimeSessionClient("test-api-key", session_config, model="gpt-4o-realtime-preview-test")


@pytest.fixture
def connected_client(realtime_client):
    realtime_client.ws = ScriptedSocket([])
    return realtime_client


def sent_messages(client):
    return [json.loads(call.args[0]) for call in client.ws.send.call_args_list]


@pytest.mark.asyncio
async def test_connect_success(realtime_client):
    """Test successful connection to the OpenAI Realtime API."""
    mock_ws = ScriptedSocket([])

    with patch("voice_gateway.bot.realtime_api.websockets.connect", new=AsyncMock(return_value=mock_ws)) as mock_connect:
        await realtime_client.connect()

    assert realtime_client.ws is mock_ws
    assert realtime_client.is_open
    url = mock_connect.call_args.args[0]
    assert url.endswith("?model=gpt-4o-realtime-preview-test")
    headers = mock_connect.call_args.kwargs["additional_headers"]
    assert headers["Authorization"] == "Bearer test-api-key"
    assert headers["OpenAI-Beta"] == "realtime=v1"


@pytest.mark.asyncio
async def test_connect_without_api_key(session_config):
    client = RealtimeSessionClient(None, session_config)

    with patch("voice_gateway.bot.realtime_api.websockets.connect", new=AsyncMock()) as mock_connect:
        with pytest.raises(MissingCredentialError):
            await client.connect()

    mock_connect.assert_not_called()
    assert not client.is_open


@pytest.mark.asyncio
async def test_connect_failure(realtime_client):
    """Test connection failure to the OpenAI Realtime API."""
    with patch("voice_gateway.bot.realtime_api.websockets.connect",
               new=AsyncMock(side_effect=OSError("Connection refused"))):
        with pytest.raises(UpstreamConnectionError, match="Connection refused"):
            await realtime_client.connect()

    assert not realtime_client.is_open


@pytest.mark.asyncio
async def test_connect_timeout(session_config):
    client = RealtimeSessionClient("test-api-key", session_config, connect_timeout=0.01)

    async def hang(*args, **kwargs):
        await asyncio.sleep(1)

    with patch("voice_gateway.bot.realtime_api.websockets.connect", new=hang):
        with pytest.raises(UpstreamConnectionError, match="Timeout"):
            await client.connect()


@pytest.mark.asyncio
async def test_configure_sends_session_update(connected_client):
    assert await connected_client.configure() is True

    messages = sent_messages(connected_client)
    assert len(messages) == 1
    session = messages[0]["session"]
    assert messages[0]["type"] == "session.update"
    assert session["input_audio_format"] == "g711_ulaw"
    assert session["output_audio_format"] == "g711_ulaw"
    assert session["turn_detection"] == {"type": "server_vad"}
    assert session["modalities"] == ["audio", "text"]
    assert session["max_response_output_tokens"] == 90


@pytest.mark.asyncio
async def test_configure_with_greeting(connected_client):
    connected_client.greeting = "Say hello to the caller."

    await connected_client.configure()

    messages = sent_messages(connected_client)
    assert [m["type"] for m in messages] == ["session.update", "response.create"]
    assert messages[1]["response"]["instructions"] == "Say hello to the caller."


@pytest.mark.asyncio
async def test_control_messages(connected_client):
    await connected_client.append_audio("AAEC")
    await connected_client.commit()
    await connected_client.cancel_response()
    await connected_client.request_response(instructions="Summarize.", modalities=["text"])
    await connected_client.request_response()

    assert sent_messages(connected_client) == [
        {"type": "input_audio_buffer.append", "audio": "AAEC"},
        {"type": "input_audio_buffer.commit"},
        {"type": "response.cancel"},
        {"type": "response.create", "response": {"instructions": "Summarize.", "modalities": ["text"]}},
        {"type": "response.create"},
    ]


@pytest.mark.asyncio
async def test_send_when_not_connected(realtime_client):
    assert await realtime_client.append_audio("AAEC") is False


@pytest.mark.asyncio
async def test_send_connection_closed(connected_client):
    """Test sending when the connection drops underneath."""
    connected_client.ws.send.side_effect = ConnectionClosedError(None, None)

    assert await connected_client.commit() is False


@pytest.mark.asyncio
async def test_events_decodes_and_skips_malformed(connected_client):
    connected_client.ws.messages = [
        json.dumps({"type": "session.created"}),
        "not json",
        json.dumps({"no_type": True}),
        json.dumps({"type": "response.audio.delta", "delta": "AAEC"}).encode("utf-8"),
    ]

    events = [event async for event in connected_client.events()]

    assert [event.kind for event in events] == [
        RealtimeEventKind.SESSION_CREATED,
        RealtimeEventKind.AUDIO_DELTA,
    ]
    assert events[1].audio_payload == "AAEC"


@pytest.mark.asyncio
async def test_events_end_on_abnormal_close(connected_client):
    connected_client.ws.messages = [json.dumps({"type": "response.done"})]
    connected_client.ws.error = ConnectionClosedError(None, None)

    events = [event async for event in connected_client.events()]

    assert len(events) == 1


@pytest.mark.asyncio
async def test_events_without_connection(realtime_client):
    assert [event async for event in realtime_client.events()] == []


@pytest.mark.asyncio
async def test_close_is_idempotent(connected_client):
    await connected_client.close()
    await connected_client.close()

    connected_client.ws.close.assert_awaited_once()
    assert not connected_client.is_open
    assert await connected_client.commit() is False


def test_session_config_from_settings():
    settings = GatewaySettings(
        openai_api_key="k",
        instructions="Qualify the lead.",
        voice="verse",
        max_response_output_tokens=120,
    )

    config = session_config_from_settings(settings)

    assert config.instructions == "Qualify the lead."
    assert config.voice == "verse"
    assert config.max_response_output_tokens == 120
