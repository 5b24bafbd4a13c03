"""
Configuration module for the voice gateway.

This module provides centralized configuration management for the gateway,
including constants, logging setup, the commit policy and environment-based
settings.

Key components:
- constants: Wire-protocol names, default model settings and default texts.
- logging_config: Console and rotating-file logging for the gateway logger.
- commit_policy: Frame-count and timer rules for flushing caller audio.
- settings: GatewaySettings built from environment variables.

Usage examples:
```python
from voice_gateway.config.logging_config import configure_logging
from voice_gateway.config.settings import get_settings

logger = configure_logging()
settings = get_settings()
logger.info(f"Committing every {settings.commit_policy.frame_threshold} frames")
```
"""
