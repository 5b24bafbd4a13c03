"""
Input-buffer commit policy for the relay.

Caller audio appended to the realtime session is flushed with an explicit
commit in two independent ways: after a threshold number of appended frames,
and on a fixed timer. Either can be switched off, but not both, so there is
always an upper bound on how long appended audio can stay uncommitted even if
server-side voice activity detection never commits on its own.
"""

from pydantic import BaseModel, Field, model_validator

from voice_gateway.config.constants import (
    DEFAULT_COMMIT_FRAME_THRESHOLD,
    DEFAULT_COMMIT_INTERVAL_MS,
)


class CommitPolicy(BaseModel):
    """Frame-count and timer commit settings for one deployment."""

    frame_threshold: int = Field(
        DEFAULT_COMMIT_FRAME_THRESHOLD,
        ge=0,
        description="Commit after this many appended frames (0 disables)",
    )
    interval_ms: int = Field(
        DEFAULT_COMMIT_INTERVAL_MS,
        ge=0,
        description="Commit pending frames every this many milliseconds (0 disables)",
    )

    @model_validator(mode="after")
    def require_staleness_bound(self) -> "CommitPolicy":
        """Reject a policy where nothing would ever force a commit."""
        if not self.frame_threshold and not self.interval_ms:
            raise ValueError(
                "At least one of frame_threshold or interval_ms must be enabled"
            )
        return self

    @property
    def frame_commits_enabled(self) -> bool:
        return self.frame_threshold > 0

    @property
    def timer_commits_enabled(self) -> bool:
        return self.interval_ms > 0

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0

    def threshold_reached(self, pending_frames: int) -> bool:
        """
        Check whether the frame counter has crossed the commit threshold.

        Args:
            pending_frames: Frames appended since the last commit

        Returns:
            bool: True if a frame-count commit is due
        """
        return self.frame_commits_enabled and pending_frames >= self.frame_threshold
