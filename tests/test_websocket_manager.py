"""
Tests for accepting telephony stream connections.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from voice_gateway.config.settings import GatewaySettings
from voice_gateway.websocket_manager import PROTOCOL_ERROR_CLOSE_CODE, StreamConnectionManager


def make_websocket(subprotocols=None, query=None):
    websocket = MagicMock()
    websocket.scope = {"type": "websocket", "subprotocols": subprotocols or []}
    websocket.query_params = query or {}
    websocket.accept = AsyncMock()
    websocket.close = AsyncMock()
    return websocket


@pytest.fixture
def relay():
    relay = MagicMock()
    relay.run = AsyncMock()
    return relay


@pytest.fixture
def factory(relay):
    return MagicMock(return_value=relay)


def make_manager(factory, **settings):
    return StreamConnectionManager(
        GatewaySettings(**settings), notifier=MagicMock(), relay_factory=factory
    )


class TestNegotiateSubprotocol:
    def test_expected_protocol_offered(self, factory):
        manager = make_manager(factory)

        assert manager.negotiate_subprotocol(["other", "audio"]) == (True, "audio")

    def test_missing_protocol_is_tolerated_by_default(self, factory):
        manager = make_manager(factory)

        assert manager.negotiate_subprotocol([]) == (True, None)

    def test_missing_protocol_refused_when_required(self, factory):
        manager = make_manager(factory, require_subprotocol=True)

        assert manager.negotiate_subprotocol(["other"]) == (False, None)

    def test_custom_protocol(self, factory):
        manager = make_manager(factory, stream_subprotocol="twilio")

        assert manager.negotiate_subprotocol(["twilio"]) == (True, "twilio")


@pytest.mark.asyncio
async def test_handle_websocket_runs_relay(factory, relay):
    manager = make_manager(factory)
    websocket = make_websocket(["audio"], {"leadId": "lead-42"})

    await manager.handle_websocket(websocket)

    websocket.accept.assert_awaited_once_with(subprotocol="audio")
    factory.assert_called_once_with(websocket, "lead-42", manager.settings, manager.notifier)
    relay.run.assert_awaited_once()
    assert manager.active_calls == 0


@pytest.mark.asyncio
async def test_handle_websocket_without_lead(factory):
    manager = make_manager(factory)
    websocket = make_websocket()

    await manager.handle_websocket(websocket)

    websocket.accept.assert_awaited_once_with(subprotocol=None)
    assert factory.call_args.args[1] == "unknown"


@pytest.mark.asyncio
async def test_handle_websocket_refuses_without_protocol(factory):
    manager = make_manager(factory, require_subprotocol=True)
    websocket = make_websocket()

    await manager.handle_websocket(websocket)

    websocket.close.assert_awaited_once_with(code=PROTOCOL_ERROR_CLOSE_CODE)
    websocket.accept.assert_not_called()
    factory.assert_not_called()


@pytest.mark.asyncio
async def test_active_calls_tracked_while_running(factory, relay):
    manager = make_manager(factory)
    seen = []

    async def run():
        seen.append(manager.active_calls)

    relay.run = AsyncMock(side_effect=run)

    await manager.handle_websocket(make_websocket(["audio"]))

    assert seen == [1]
    assert manager.active_calls == 0


@pytest.mark.asyncio
async def test_relay_removed_when_run_fails(factory, relay):
    manager = make_manager(factory)
    relay.run = AsyncMock(side_effect=RuntimeError("boom"))

    with pytest.raises(RuntimeError):
        await manager.handle_websocket(make_websocket(["audio"]))

    assert manager.active_calls == 0
