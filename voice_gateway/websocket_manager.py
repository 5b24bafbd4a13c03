"""
Acceptance of telephony media-stream connections.

The StreamConnectionManager negotiates the websocket sub-protocol, reads the
correlation token from the query string and runs one RelayOrchestrator per
accepted connection for the lifetime of that connection.
"""

import logging
from typing import Callable, List, Optional, Set, Tuple

from fastapi import WebSocket

from voice_gateway.bot.relay import RelayOrchestrator
from voice_gateway.config.constants import LEAD_QUERY_PARAM, LOGGER_NAME, UNKNOWN_LEAD
from voice_gateway.config.settings import GatewaySettings, get_settings
from voice_gateway.services.outcome_notifier import OutcomeNotifier

logger = logging.getLogger(LOGGER_NAME)

# WebSocket close code sent when the required sub-protocol is missing
PROTOCOL_ERROR_CLOSE_CODE = 1002

RelayFactory = Callable[[WebSocket, str, GatewaySettings, OutcomeNotifier], RelayOrchestrator]


class StreamConnectionManager:
    """Accepts telephony stream websockets and runs a relay for each one.

    The sub-protocol policy is controlled by GatewaySettings: when
    require_subprotocol is false, clients that do not offer the expected token
    are still accepted (without a sub-protocol); when true, they are refused
    before the handshake completes.
    """

    def __init__(self, settings: Optional[GatewaySettings] = None,
                 notifier: Optional[OutcomeNotifier] = None,
                 relay_factory: RelayFactory = RelayOrchestrator.for_call):
        self.settings = settings or get_settings()
        self.notifier = notifier or OutcomeNotifier(
            self.settings.outcome_webhook_url, timeout=self.settings.outcome_timeout_seconds
        )
        self.relay_factory = relay_factory
        self.active_relays: Set[RelayOrchestrator] = set()

    @property
    def active_calls(self) -> int:
        return len(self.active_relays)

    def negotiate_subprotocol(self, offered: List[str]) -> Tuple[bool, Optional[str]]:
        """
        Decide whether to accept a connection and which sub-protocol to select.

        Args:
            offered: Sub-protocols listed by the client, in its order of preference

        Returns:
            (accept, subprotocol) where subprotocol is None when none is selected
        """
        expected = self.settings.stream_subprotocol
        if expected in offered:
            return True, expected
        if self.settings.require_subprotocol:
            return False, None
        return True, None

    async def handle_websocket(self, websocket: WebSocket) -> None:
        """Handle a telephony stream connection throughout its lifecycle.

        Args:
            websocket (WebSocket): The FastAPI WebSocket connection object

        This method:
        1. Negotiates the sub-protocol and accepts (or refuses) the connection
        2. Extracts the correlation token from the query string
        3. Runs a RelayOrchestrator until the call is torn down
        """
        offered = list(websocket.scope.get("subprotocols") or [])
        logger.info(f"Stream connection requested with subprotocol(s): {offered}")
        accepted, subprotocol = self.negotiate_subprotocol(offered)
        if not accepted:
            logger.warning(
                f"Refusing stream connection: sub-protocol {self.settings.stream_subprotocol!r} not offered"
            )
            await websocket.close(code=PROTOCOL_ERROR_CLOSE_CODE)
            return

        await websocket.accept(subprotocol=subprotocol)
        lead_reference = websocket.query_params.get(LEAD_QUERY_PARAM) or UNKNOWN_LEAD
        logger.info(f"Telephony stream connected: lead={lead_reference}, protocol={subprotocol}")

        relay = self.relay_factory(websocket, lead_reference, self.settings, self.notifier)
        self.active_relays.add(relay)
        try:
            await relay.run()
        finally:
            self.active_relays.discard(relay)
            logger.info(f"Telephony stream finished: lead={lead_reference}")
