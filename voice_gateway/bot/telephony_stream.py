"""
Telephony side of the relay: the accepted media-stream websocket.

The handler decodes inbound stream events and sends synthesized audio back as
media frames. It records closure on the call session so nothing is sent after
the telephony side has gone away.
"""

import logging
from typing import AsyncIterator

from fastapi import WebSocket

from voice_gateway.config.constants import LOGGER_NAME
from voice_gateway.exceptions import MalformedEventError
from voice_gateway.models.call_session import CallSession
from voice_gateway.models.telephony_schemas import (
    OutboundMediaMessage,
    TelephonyEvent,
    decode_telephony_event,
)

logger = logging.getLogger(LOGGER_NAME)


class TelephonyStreamHandler:
    """Wraps the telephony websocket for one call session."""

    def __init__(self, websocket: WebSocket, session: CallSession):
        self.websocket = websocket
        self.session = session

    @property
    def closed(self) -> bool:
        return self.session.downstream_closed

    async def events(self) -> AsyncIterator[TelephonyEvent]:
        """
        Yield decoded telephony events until the connection closes.

        Malformed messages and binary frames are logged and dropped. A
        disconnect marks the downstream side closed and ends the iteration.
        """
        while not self.session.downstream_closed:
            try:
                message = await self.websocket.receive()
            except RuntimeError as e:
                # Raised by Starlette when receiving on a socket we already closed
                logger.debug(f"Telephony stream no longer readable: {e}")
                break

            if message["type"] == "websocket.disconnect":
                logger.info(f"Telephony stream disconnected (code {message.get('code', 1000)})")
                break
            text = message.get("text")
            if text is None:
                logger.warning("Dropping non-text frame on telephony stream")
                continue

            try:
                event = decode_telephony_event(text)
            except MalformedEventError as e:
                logger.warning(f"Dropping malformed telephony event: {e}")
                continue
            yield event

        self.session.downstream_closed = True

    async def send_media(self, payload: str) -> bool:
        """
        Send one base64 audio payload to the caller.

        Returns:
            bool: True if the frame was written; failures are logged, never raised
        """
        if self.session.downstream_closed:
            return False
        message = OutboundMediaMessage.for_payload(payload, self.session.stream_id)
        try:
            await self.websocket.send_text(message.to_json())
            return True
        except Exception as e:
            logger.error(f"Error sending media to telephony stream: {e}")
            return False

    async def close(self, code: int = 1000) -> None:
        """Close the telephony websocket; safe to call more than once."""
        if self.session.downstream_closed:
            return
        self.session.downstream_closed = True
        await self.websocket.close(code=code)
        logger.info("Telephony stream closed")
