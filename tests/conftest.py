import logging
from typing import Optional
from unittest.mock import MagicMock

import pytest

from fakes import FakeRealtimeClient, FakeTelephonySocket
from voice_gateway.bot.relay import RelayOrchestrator
from voice_gateway.bot.telephony_stream import TelephonyStreamHandler
from voice_gateway.config.commit_policy import CommitPolicy
from voice_gateway.models.call_session import CallSession
from voice_gateway.services.outcome_notifier import OutcomeNotifier


@pytest.fixture(autouse=True)
def reset_logging():
    """Reset logging configuration before each test"""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    logging.basicConfig(level=logging.NOTSET)
    yield


@pytest.fixture
def session():
    return CallSession(lead_reference="lead-7")


@pytest.fixture
def telephony_socket():
    return FakeTelephonySocket()


@pytest.fixture
def upstream():
    return FakeRealtimeClient()


@pytest.fixture
def notifier():
    return MagicMock(spec=OutcomeNotifier)


@pytest.fixture
def make_relay(session, telephony_socket, upstream, notifier):
    """Build a relay over the fakes; commits every 5 frames, no timer by default."""
    def _make(policy: Optional[CommitPolicy] = None, **kwargs) -> RelayOrchestrator:
        return RelayOrchestrator(
            session,
            upstream,
            TelephonyStreamHandler(telephony_socket, session),
            notifier,
            policy=policy or CommitPolicy(frame_threshold=5, interval_ms=0),
            **kwargs,
        )
    return _make
