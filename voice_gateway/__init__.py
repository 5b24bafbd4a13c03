"""
Voice gateway: telephony media streams relayed to the OpenAI Realtime API.

Package layout:
- config: constants, logging, commit policy and environment settings
- models: wire models for both protocols, per-call state and the call report
- bot: the upstream Realtime client, the telephony stream handler and the relay
- services: delivery of end-of-call reports
- websocket_manager: acceptance of telephony stream connections
- main: the FastAPI application
"""

__version__ = "1.0.0"
