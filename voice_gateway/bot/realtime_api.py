"""
Client for the OpenAI Realtime API session that backs one call.

The client owns a single websocket: it opens it, sends the session
configuration, forwards control messages (append, commit, cancel, response
requests) and yields decoded server events. Transport failures are never
retried; a lost connection ends the event stream and the caller tears the call
down.
"""

import asyncio
import logging
import socket
import time
import traceback
from typing import AsyncIterator, List, Optional

import websockets
from websockets.exceptions import ConnectionClosed, ConnectionClosedError, ConnectionClosedOK

from voice_gateway.config.constants import (
    DEFAULT_REALTIME_MODEL,
    DEFAULT_REALTIME_URL,
    LOGGER_NAME,
    REALTIME_BETA_HEADER,
)
from voice_gateway.exceptions import (
    MalformedEventError,
    MissingCredentialError,
    UpstreamConnectionError,
)
from voice_gateway.models.realtime_schemas import (
    InputAudioAppendMessage,
    InputAudioCommitMessage,
    RealtimeControlMessage,
    RealtimeEvent,
    ResponseCancelMessage,
    ResponseCreateMessage,
    ResponseOptions,
    SessionConfig,
    SessionUpdateMessage,
    decode_realtime_event,
)

logger = logging.getLogger(LOGGER_NAME)

CONNECTION_TIMEOUT = 10  # seconds

# WebSocket configuration for low latency
WS_MAX_SIZE = 16 * 1024 * 1024  # 16MB - large enough for audio chunks
WS_MAX_QUEUE = 32  # Small queue to prevent buffering
WS_PING_INTERVAL = 5  # 5 seconds between pings


class RealtimeSessionClient:
    """
    Upstream connection to the OpenAI Realtime API for a single call.
    """

    def __init__(self, api_key: Optional[str], session_config: SessionConfig,
                 model: str = DEFAULT_REALTIME_MODEL, url: str = DEFAULT_REALTIME_URL,
                 greeting: Optional[str] = None,
                 connect_timeout: float = CONNECTION_TIMEOUT):
        self.api_key = api_key
        self.model = model
        self.url = url
        self.session_config = session_config
        self.greeting = greeting
        self.connect_timeout = connect_timeout
        self.ws = None
        self._is_closing = False

    @property
    def is_open(self) -> bool:
        return self.ws is not None and not self._is_closing

    async def connect(self) -> None:
        """
        Open the websocket to the Realtime API.

        Raises:
            MissingCredentialError: If no API key is configured
            UpstreamConnectionError: If the transport or authentication fails
        """
        if not self.api_key:
            raise MissingCredentialError("OPENAI_API_KEY environment variable not set")

        url = f"{self.url}?model={self.model}"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "OpenAI-Beta": REALTIME_BETA_HEADER,
        }

        logger.info(f"Connecting to OpenAI Realtime API with model: {self.model}")
        logger.debug("Using headers: Authorization: Bearer [API_KEY_HIDDEN], OpenAI-Beta: realtime=v1")
        connection_start = time.time()
        try:
            self.ws = await asyncio.wait_for(
                websockets.connect(
                    url,
                    max_size=WS_MAX_SIZE,
                    max_queue=WS_MAX_QUEUE,
                    ping_interval=WS_PING_INTERVAL,
                    ping_timeout=10,
                    compression=None,  # Disable compression for lower latency
                    additional_headers=headers,
                ),
                timeout=self.connect_timeout,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamConnectionError(
                f"Timeout while connecting to OpenAI Realtime API (after {self.connect_timeout}s)"
            ) from e
        except Exception as e:
            logger.debug(f"Connection error details: {traceback.format_exc()}")
            raise UpstreamConnectionError(f"Failed to connect to OpenAI Realtime API: {e}") from e

        logger.debug(f"WebSocket connection established in {time.time() - connection_start:.2f} seconds")
        self._set_nodelay()
        logger.info("Successfully connected to OpenAI Realtime API")

    def _set_nodelay(self) -> None:
        transport = getattr(self.ws, "transport", None)
        sock = transport.get_extra_info("socket") if transport is not None else None
        if sock is None:
            return
        try:
            # Disable Nagle's algorithm to send packets immediately
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            logger.debug("Optimized OpenAI socket: TCP_NODELAY enabled for low latency")
        except OSError as e:
            logger.warning(f"Could not optimize OpenAI socket: {e}")

    async def configure(self) -> bool:
        """
        Send the session configuration followed by the optional greeting turn.

        The configuration is not acknowledged here; session.updated arrives
        later on the event stream.

        Returns:
            bool: True if the configuration message was sent
        """
        sent = await self._send(SessionUpdateMessage(session=self.session_config))
        if not sent:
            return False
        logger.info(
            f"Session configured: voice={self.session_config.voice}, "
            f"format={self.session_config.input_audio_format}, "
            f"turn_detection={self.session_config.turn_detection.type}"
        )
        if self.greeting:
            await self.request_response(instructions=self.greeting)
        return True

    async def append_audio(self, payload: str) -> bool:
        """Forward one base64 caller frame into the input audio buffer."""
        return await self._send(InputAudioAppendMessage(audio=payload))

    async def commit(self) -> bool:
        """Flush the input audio buffer so the model can act on it."""
        return await self._send(InputAudioCommitMessage())

    async def cancel_response(self) -> bool:
        """Ask the model to stop the in-flight response; harmless if none is running."""
        return await self._send(ResponseCancelMessage())

    async def request_response(self, instructions: Optional[str] = None,
                               modalities: Optional[List[str]] = None) -> bool:
        """Request a generation turn, optionally with one-off instructions."""
        options = None
        if instructions or modalities:
            options = ResponseOptions(instructions=instructions, modalities=modalities)
        return await self._send(ResponseCreateMessage(response=options))

    async def _send(self, message: RealtimeControlMessage) -> bool:
        if not self.is_open:
            logger.debug(f"Dropping {message.type}: upstream connection not open")
            return False
        try:
            await self.ws.send(message.to_json())
            return True
        except ConnectionClosed as e:
            logger.warning(f"Upstream connection closed while sending {message.type}: {e}")
            return False
        except Exception as e:
            logger.error(f"Error sending {message.type} upstream: {e}")
            logger.debug(f"Send error details: {traceback.format_exc()}")
            return False

    async def events(self) -> AsyncIterator[RealtimeEvent]:
        """
        Yield decoded server events until the connection closes.

        Malformed messages are logged and skipped. Both normal and abnormal
        closure end the iteration without raising.
        """
        if self.ws is None:
            logger.error("WebSocket not initialized for receive loop")
            return
        try:
            async for message in self.ws:
                try:
                    event = decode_realtime_event(message)
                except MalformedEventError as e:
                    logger.warning(f"Dropping malformed upstream event: {e}")
                    continue
                yield event
        except ConnectionClosedOK:
            logger.info("Upstream WebSocket connection closed normally")
        except ConnectionClosedError as e:
            logger.warning(f"Upstream WebSocket connection closed unexpectedly: {e}")
        logger.info("Upstream receive loop exited")

    async def close(self) -> None:
        """Close the websocket; safe to call more than once."""
        if self._is_closing:
            return
        self._is_closing = True
        if self.ws is not None:
            logger.debug("Closing upstream WebSocket connection")
            await self.ws.close()
        logger.info("OpenAI Realtime client closed")


def session_config_from_settings(settings) -> SessionConfig:
    """Build the session.update body from GatewaySettings."""
    return SessionConfig(
        instructions=settings.instructions,
        voice=settings.voice,
        max_response_output_tokens=settings.max_response_output_tokens,
    )
