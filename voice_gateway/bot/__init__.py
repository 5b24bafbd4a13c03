"""
Bot module relaying telephony media streams to the OpenAI Realtime API.

Key components:
- RealtimeSessionClient: upstream websocket to the Realtime API (configure,
  append, commit, cancel, decoded server events).
- TelephonyStreamHandler: the accepted telephony websocket (decoded stream
  events, outbound media frames).
- RelayOrchestrator: one per call; serializes both event streams, applies the
  commit policy and barge-in, and owns teardown and the end-of-call report.

Usage example:
```python
from voice_gateway.bot import RelayOrchestrator
from voice_gateway.config.settings import get_settings
from voice_gateway.services.outcome_notifier import OutcomeNotifier

async def relay_call(websocket, lead_id):
    settings = get_settings()
    notifier = OutcomeNotifier(settings.outcome_webhook_url)
    relay = RelayOrchestrator.for_call(websocket, lead_id, settings, notifier)
    await relay.run()
```
"""

from voice_gateway.bot.realtime_api import RealtimeSessionClient
from voice_gateway.bot.relay import RelayOrchestrator
from voice_gateway.bot.telephony_stream import TelephonyStreamHandler

__all__ = ["RealtimeSessionClient", "RelayOrchestrator", "TelephonyStreamHandler"]
