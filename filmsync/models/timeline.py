"""Camera lane timeline models."""

from __future__ import annotations

from typing import Iterable, Iterator

import structlog
from pydantic import BaseModel, Field

from filmsync.models.sync import CameraAtSyncPoint, ClipPositionUpdate, LaneId

logger = structlog.get_logger(__name__)

MAX_LANES = 5
SNAP_GRID_MS = 1000

DEFAULT_LANE_LABELS: dict[int, str] = {
    1: "Camera 1",
    2: "Camera 2",
    3: "Camera 3",
    4: "Camera 4",
    5: "Camera 5",
}

# Common camera positions at youth football games
SUGGESTED_LANE_LABELS = [
    "Sideline",
    "End Zone",
    "Press Box",
    "Aerial",
    "All-22",
    "Parent/Fan",
    "Game Broadcast",
    "Coaches Film",
]


class TimelineClip(BaseModel):
    """A video clip placed on a camera lane."""

    id: str
    video_id: str = ""
    video_name: str = ""
    video_url: str = ""  # Stored path or URL, resolved for playback elsewhere
    camera_lane: LaneId = 1

    lane_position_ms: int = Field(default=0, ge=0)
    duration_ms: int = Field(default=0, ge=0)

    # Trim points within the source video
    start_offset_ms: int = 0
    end_offset_ms: int | None = None

    thumbnail_url: str | None = None

    @property
    def end_ms(self) -> int:
        return self.lane_position_ms + self.duration_ms

    def covers(self, timestamp_ms: int) -> bool:
        """Whether the half-open interval ``[start, end)`` contains the timestamp."""
        return self.lane_position_ms <= timestamp_ms < self.end_ms


class CameraLane(BaseModel):
    """One physical camera's track on the shared timeline."""

    lane: LaneId
    label: str = ""
    clips: list[TimelineClip] = Field(default_factory=list)
    sync_offset_ms: int = 0

    def sorted_clips(self) -> list[TimelineClip]:
        return sorted(self.clips, key=lambda c: c.lane_position_ms)

    def clip_at(self, timestamp_ms: int) -> TimelineClip | None:
        """Get the clip covering the timestamp, if any."""
        for clip in self.sorted_clips():
            if clip.covers(timestamp_ms):
                return clip
        return None

    def next_clip_start(self, after_ms: int) -> int | None:
        """Start of the first clip beginning after the given time."""
        starts = [c.lane_position_ms for c in self.clips if c.lane_position_ms > after_ms]
        return min(starts) if starts else None


class ActiveClipInfo(BaseModel):
    """Which clip plays on a lane at a given game time."""

    clip: TimelineClip | None = None
    clip_time_ms: int = 0  # Position within the clip
    is_in_gap: bool = True
    next_clip_start_ms: int | None = None


class GameTimeline(BaseModel):
    """All camera lanes for one game's video group."""

    game_id: str = ""
    video_group_id: str
    lanes: list[CameraLane] = Field(default_factory=list)
    is_timeline_mode: bool = True

    @property
    def total_duration_ms(self) -> int:
        return max((clip.end_ms for clip in self.iter_clips()), default=0)

    def iter_clips(self) -> Iterator[TimelineClip]:
        for lane in self.lanes:
            yield from lane.clips

    def get_lane(self, lane_id: LaneId) -> CameraLane | None:
        for lane in self.lanes:
            if lane.lane == lane_id:
                return lane
        return None

    def get_clip(self, clip_id: str) -> TimelineClip | None:
        for clip in self.iter_clips():
            if clip.id == clip_id:
                return clip
        return None

    def find_clips_at_time(self, timestamp_ms: int) -> list[CameraAtSyncPoint]:
        """
        Find the clip covering a timestamp on every lane.

        Pure and synchronous so it can run on every slider input event.

        Args:
            timestamp_ms: Position on the shared timeline

        Returns:
            At most one CameraAtSyncPoint per lane, in lane order, with zero
            offset and no anchor set
        """
        result = []

        for lane in self.lanes:
            clip = next((c for c in lane.clips if c.covers(timestamp_ms)), None)
            if clip is None:
                continue

            result.append(CameraAtSyncPoint(
                lane=lane.lane,
                lane_label=lane.label,
                clip_id=clip.id,
                clip_name=clip.video_name,
                video_url=clip.video_url,
                clip_start_ms=clip.lane_position_ms,
                clip_end_ms=clip.end_ms,
                clip_duration_ms=clip.duration_ms,
                original_position_ms=clip.lane_position_ms,
                sync_point_in_clip_ms=timestamp_ms - clip.lane_position_ms,
            ))

        return result

    def find_active_clip(self, lane_id: LaneId, game_time_ms: int) -> ActiveClipInfo:
        """
        Find which clip covers a game time on a specific lane.

        Used for automatic clip switching when the playhead is dragged or a
        clip ends.
        """
        lane = self.get_lane(lane_id)
        if lane is None or not lane.clips:
            return ActiveClipInfo()

        clip = lane.clip_at(game_time_ms)
        if clip is not None:
            return ActiveClipInfo(
                clip=clip,
                clip_time_ms=game_time_ms - clip.lane_position_ms,
                is_in_gap=False,
            )

        return ActiveClipInfo(next_clip_start_ms=lane.next_clip_start(game_time_ms))

    def find_lane_for_video(self, video_id: str) -> LaneId | None:
        for lane in self.lanes:
            if any(c.video_id == video_id for c in lane.clips):
                return lane.lane
        return None

    def apply_position_updates(self, updates: Iterable[ClipPositionUpdate]) -> list[str]:
        """
        Write committed clip positions back into the model.

        Returns:
            Ids of the clips that were updated
        """
        applied = []
        for update in updates:
            clip = self.get_clip(update.clip_id)
            if clip is None:
                logger.warning("Position update for unknown clip", clip_id=update.clip_id)
                continue
            clip.lane_position_ms = update.new_position_ms
            applied.append(clip.id)
        return applied


def format_time_ms(ms: int) -> str:
    """Format milliseconds as ``m:ss`` or ``h:mm:ss``."""
    total_seconds = max(0, int(ms)) // 1000
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}:{minutes:02d}:{seconds:02d}"
    return f"{minutes}:{seconds:02d}"


def parse_time_to_ms(value: str) -> int:
    """
    Parse ``h:mm:ss``, ``m:ss`` or plain seconds into milliseconds.

    Raises:
        ValueError: If the value is not a recognised time
    """
    parts = value.strip().split(":")
    if len(parts) > 3:
        raise ValueError(f"Invalid time: {value!r}")

    try:
        numbers = [float(p) for p in parts]
    except ValueError:
        raise ValueError(f"Invalid time: {value!r}") from None

    seconds = 0.0
    for number in numbers:
        seconds = seconds * 60 + number
    return int(round(seconds * 1000))


def snap_to_grid(time_ms: int, grid_ms: int = SNAP_GRID_MS) -> int:
    return int(round(time_ms / grid_ms)) * grid_ms


def parse_lane_id(value: str) -> LaneId:
    """Lane ids are integers when numeric, otherwise free-form labels."""
    value = value.strip()
    return int(value) if value.lstrip("-").isdigit() else value
