"""
End-of-call report sent to the outcome webhook.

Field names are snake_case in Python and camelCase on the wire, matching what
the receiving workflow already consumes.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from voice_gateway.models.call_session import CallSession


class CallReport(BaseModel):
    """Outcome record for a single call."""

    model_config = ConfigDict(populate_by_name=True)

    lead_id: str = Field(..., alias="leadId")
    call_id: Optional[str] = Field(None, alias="callSid")
    status: str
    started_at: int = Field(..., alias="startedAt", description="Epoch milliseconds")
    ended_at: int = Field(..., alias="endedAt", description="Epoch milliseconds")
    summary: str = ""
    transcript: str = ""

    @classmethod
    def from_session(cls, session: CallSession, status: str) -> "CallReport":
        """Snapshot the session's identifiers, timestamps and accumulated text."""
        return cls(
            lead_id=session.lead_reference,
            call_id=session.call_id,
            status=status,
            started_at=session.call_started_at,
            ended_at=session.mark_ended(),
            summary=session.accumulated_summary,
            transcript=session.accumulated_transcript,
        )

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)
