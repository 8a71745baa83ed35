"""Core data models for the clip sync engine."""

from filmsync.models.sync import (
    BatchWriteResult,
    CameraAtSyncPoint,
    ClipLoadState,
    ClipPositionUpdate,
    FailedUpdate,
    LaneId,
    SyncPhase,
)
from filmsync.models.timeline import (
    ActiveClipInfo,
    CameraLane,
    GameTimeline,
    TimelineClip,
    format_time_ms,
    parse_lane_id,
    parse_time_to_ms,
    snap_to_grid,
)

__all__ = [
    # Timeline
    "TimelineClip",
    "CameraLane",
    "GameTimeline",
    "ActiveClipInfo",
    "format_time_ms",
    "parse_lane_id",
    "parse_time_to_ms",
    "snap_to_grid",
    # Sync
    "CameraAtSyncPoint",
    "ClipPositionUpdate",
    "FailedUpdate",
    "BatchWriteResult",
    "SyncPhase",
    "ClipLoadState",
    "LaneId",
]
