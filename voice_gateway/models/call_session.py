"""
Per-call state for one relayed telephony stream.

A CallSession is created when a telephony connection is accepted and is only
mutated by its RelayOrchestrator while the orchestrator holds the session lock,
so none of these fields need their own synchronization.
"""

import time
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from voice_gateway.config.constants import UNKNOWN_LEAD
from voice_gateway.exceptions import SessionStateError


class CallPhase(str, Enum):
    """Lifecycle phases of a relayed call."""
    CONNECTING = "connecting"
    CONFIGURING = "configuring"
    ACTIVE = "active"
    WRAPPING_UP = "wrapping_up"
    CLOSED = "closed"


# CLOSED is reachable from everywhere and has no successors
_ALLOWED_TRANSITIONS: Dict[CallPhase, FrozenSet[CallPhase]] = {
    CallPhase.CONNECTING: frozenset({CallPhase.CONFIGURING, CallPhase.WRAPPING_UP, CallPhase.CLOSED}),
    CallPhase.CONFIGURING: frozenset({CallPhase.ACTIVE, CallPhase.WRAPPING_UP, CallPhase.CLOSED}),
    CallPhase.ACTIVE: frozenset({CallPhase.WRAPPING_UP, CallPhase.CLOSED}),
    CallPhase.WRAPPING_UP: frozenset({CallPhase.CLOSED}),
    CallPhase.CLOSED: frozenset(),
}


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


@dataclass
class CallSession:
    """Mutable state for a single call, from accept to teardown."""

    lead_reference: str = UNKNOWN_LEAD
    call_id: Optional[str] = None
    stream_id: Optional[str] = None
    phase: CallPhase = CallPhase.CONNECTING
    upstream_ready: bool = False
    agent_speaking: bool = False
    downstream_closed: bool = False
    pending_input_frames: int = 0
    call_started_at: int = 0
    call_ended_at: Optional[int] = None
    accumulated_transcript: str = ""
    accumulated_summary: str = ""
    report_emitted: bool = False

    def __post_init__(self):
        if not self.call_started_at:
            self.call_started_at = now_ms()

    @property
    def closed(self) -> bool:
        return self.phase is CallPhase.CLOSED

    def can_transition(self, target: CallPhase) -> bool:
        return target in _ALLOWED_TRANSITIONS[self.phase]

    def transition(self, target: CallPhase) -> None:
        """
        Move the session to a new phase.

        Raises:
            SessionStateError: If the transition is not allowed from the current phase
        """
        if not self.can_transition(target):
            raise SessionStateError(
                f"Cannot move call {self.call_id or self.lead_reference} "
                f"from {self.phase.value} to {target.value}"
            )
        self.phase = target

    def record_frame(self) -> int:
        """Count one appended input frame and return the new pending total."""
        self.pending_input_frames += 1
        return self.pending_input_frames

    def take_pending_frames(self) -> int:
        """Return the pending frame count and reset it to zero."""
        pending = self.pending_input_frames
        self.pending_input_frames = 0
        return pending

    def mark_ended(self) -> int:
        if self.call_ended_at is None:
            self.call_ended_at = max(now_ms(), self.call_started_at)
        return self.call_ended_at
