"""Session-scoped sync records and commit results."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

LaneId = int | str


class SyncPhase(str, Enum):
    """Phases of a sync session."""

    PICKING_TIME = "picking-time"
    ADJUSTING = "adjusting"

    # Terminal
    COMMITTED = "committed"
    CANCELLED = "cancelled"


class ClipLoadState(str, Enum):
    """Playback source state of a clip in the review grid."""

    NO_SOURCE = "no-source"
    PENDING = "pending"
    READY = "ready"
    FAILED = "failed"


class CameraAtSyncPoint(BaseModel):
    """
    Working record for one clip covering the sync timestamp.

    Created when a session enters the adjusting phase and discarded when
    the session ends. Only ``offset_ms`` and ``is_anchor`` change while the
    session is open.

    A positive offset means this camera's clock runs ahead of the anchor,
    so the playhead moves earlier in the clip to show the same instant.
    """

    lane: LaneId
    lane_label: str
    clip_id: str
    clip_name: str
    video_url: str = ""

    # Placement on the shared timeline
    clip_start_ms: int
    clip_end_ms: int
    clip_duration_ms: int
    original_position_ms: int = Field(frozen=True)

    offset_ms: int = 0
    is_anchor: bool = False

    # sync timestamp - clip start
    sync_point_in_clip_ms: int

    @property
    def seek_position_ms(self) -> int:
        """Position within this clip that shows the synced instant."""
        if self.is_anchor:
            return self.sync_point_in_clip_ms
        target = self.sync_point_in_clip_ms - self.offset_ms
        return max(0, min(target, self.clip_duration_ms))

    @property
    def is_adjusted(self) -> bool:
        return not self.is_anchor and self.offset_ms != 0

    @property
    def new_position_ms(self) -> int:
        """Timeline position this clip would be saved at."""
        return max(0, self.original_position_ms + self.offset_ms)


class ClipPositionUpdate(BaseModel):
    """A single clip position write produced by a commit."""

    model_config = ConfigDict(frozen=True)

    clip_id: str
    new_position_ms: int = Field(ge=0)


class FailedUpdate(BaseModel):
    """An update the clip store could not apply."""

    update: ClipPositionUpdate
    reason: str


class BatchWriteResult(BaseModel):
    """Outcome of writing a batch of position updates."""

    succeeded: list[ClipPositionUpdate] = Field(default_factory=list)
    failed: list[FailedUpdate] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    @classmethod
    def all_failed(cls, updates: list[ClipPositionUpdate], reason: str) -> "BatchWriteResult":
        return cls(failed=[FailedUpdate(update=u, reason=reason) for u in updates])
