"""
Environment-driven settings for the gateway.

Values come from the process environment (a .env file, if present, is loaded
by voice_gateway.main before the first call to get_settings). The API key is
optional at this level: a missing key only fails the upstream connect step of
each call, so the health endpoint stays available.
"""

from functools import lru_cache
from typing import Optional

from pydantic import AliasChoices, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from voice_gateway.config.commit_policy import CommitPolicy
from voice_gateway.config.constants import (
    DEFAULT_COMMIT_FRAME_THRESHOLD,
    DEFAULT_COMMIT_INTERVAL_MS,
    DEFAULT_GREETING,
    DEFAULT_INSTRUCTIONS,
    DEFAULT_REALTIME_MODEL,
    DEFAULT_REALTIME_URL,
    DEFAULT_STREAM_SUBPROTOCOL,
    DEFAULT_SUMMARY_INSTRUCTIONS,
    DEFAULT_VOICE,
)


class GatewaySettings(BaseSettings):
    """Runtime configuration shared by every call the gateway relays."""

    model_config = SettingsConfigDict(
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )

    # Realtime API
    openai_api_key: Optional[str] = Field(default=None, description="Realtime API credential")
    realtime_model: str = Field(
        default=DEFAULT_REALTIME_MODEL, validation_alias="OPENAI_REALTIME_MODEL"
    )
    realtime_url: str = Field(default=DEFAULT_REALTIME_URL, validation_alias="OPENAI_REALTIME_URL")
    voice: str = Field(default=DEFAULT_VOICE, validation_alias="OPENAI_VOICE")
    instructions: str = Field(default=DEFAULT_INSTRUCTIONS, validation_alias="AGENT_INSTRUCTIONS")
    greeting: Optional[str] = Field(
        default=DEFAULT_GREETING,
        validation_alias="AGENT_GREETING",
        description="One-off instructions for the opening turn; empty skips it",
    )
    summary_instructions: str = Field(default=DEFAULT_SUMMARY_INSTRUCTIONS)
    max_response_output_tokens: Optional[int] = Field(default=90, gt=0)
    upstream_connect_timeout: float = Field(default=10.0, gt=0)

    # Outcome webhook
    outcome_webhook_url: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OUTCOME_WEBHOOK_URL", "N8N_OUTCOME_URL"),
        description="End-of-call report target",
    )
    outcome_timeout_seconds: float = Field(default=10.0, gt=0)

    # Telephony stream acceptance
    stream_subprotocol: str = Field(default=DEFAULT_STREAM_SUBPROTOCOL)
    require_subprotocol: bool = Field(
        default=False, description="Refuse connections that do not offer stream_subprotocol"
    )
    wait_for_session_ack: bool = Field(
        default=False, description="Gate audio on session.updated instead of on sending the config"
    )

    # Input buffer commits (0 disables either trigger, not both)
    commit_frame_threshold: int = Field(default=DEFAULT_COMMIT_FRAME_THRESHOLD, ge=0)
    commit_interval_ms: int = Field(default=DEFAULT_COMMIT_INTERVAL_MS, ge=0)

    @field_validator(
        "openai_api_key", "greeting", "outcome_webhook_url", "max_response_output_tokens",
        mode="before",
    )
    @classmethod
    def blank_as_unset(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def require_commit_trigger(self) -> "GatewaySettings":
        """Fail at startup rather than on the first call if no commit trigger is enabled."""
        try:
            self.commit_policy
        except ValidationError as e:
            raise ValueError(str(e)) from e
        return self

    @property
    def commit_policy(self) -> CommitPolicy:
        return CommitPolicy(
            frame_threshold=self.commit_frame_threshold,
            interval_ms=self.commit_interval_ms,
        )

    @property
    def api_key_configured(self) -> bool:
        return bool(self.openai_api_key)


@lru_cache(maxsize=1)
def get_settings() -> GatewaySettings:
    """Return a cached GatewaySettings instance built from the environment."""
    return GatewaySettings()
