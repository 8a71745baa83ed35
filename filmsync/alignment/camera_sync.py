"""
Conversions between game timeline time and video time.

Used when switching cameras during film review: the game position is kept
and each camera's clip is sought to the matching point in its video.
"""

from __future__ import annotations

from typing import Sequence

from pydantic import BaseModel

from filmsync.models.sync import LaneId
from filmsync.models.timeline import CameraLane, GameTimeline, TimelineClip


class ClipSelection(BaseModel):
    """The clip to play for a target game time."""

    clip: TimelineClip | None = None
    video_id: str | None = None
    seek_time_seconds: float = 0.0
    is_in_gap: bool = True
    next_coverage_start_ms: int | None = None  # For gap messaging
    lane: LaneId | None = None


def game_time_to_video_time(game_time_ms: int, clip: TimelineClip) -> float:
    """
    Convert a game timeline position to seconds into the clip's video.

    A clip placed at 5000 ms shows game time 7000 ms two seconds into its
    (untrimmed) video.
    """
    clip_relative_ms = game_time_ms - clip.lane_position_ms
    video_time_ms = clip_relative_ms + clip.start_offset_ms
    return max(0.0, video_time_ms / 1000)


def video_time_to_game_time(video_time_seconds: float, clip: TimelineClip) -> int:
    video_time_ms = video_time_seconds * 1000
    clip_relative_ms = video_time_ms - clip.start_offset_ms
    return int(round(clip.lane_position_ms + clip_relative_ms))


def game_time_to_video_time_legacy(game_time_ms: int, sync_offset_seconds: float) -> float:
    """Game to video time for games not in timeline mode."""
    offset_ms = sync_offset_seconds * 1000
    return max(0.0, (game_time_ms - offset_ms) / 1000)


def video_time_to_game_time_legacy(video_time_seconds: float, sync_offset_seconds: float) -> int:
    return int(round(video_time_seconds * 1000 + sync_offset_seconds * 1000))


def get_video_offset(clip: TimelineClip) -> int:
    """Timeline position that the start of the clip's video maps to."""
    return clip.lane_position_ms - clip.start_offset_ms


def calculate_timeline_duration(lanes: Sequence[CameraLane]) -> int:
    return max((clip.end_ms for lane in lanes for clip in lane.clips), default=0)


def find_next_coverage_start(lanes: Sequence[CameraLane], after_ms: int) -> int | None:
    """Earliest clip start after the given time on any lane."""
    starts = [
        clip.lane_position_ms
        for lane in lanes
        for clip in lane.clips
        if clip.lane_position_ms > after_ms
    ]
    return min(starts) if starts else None


def find_next_clip_on_lane(
    lanes: Sequence[CameraLane],
    current_clip: TimelineClip,
) -> TimelineClip | None:
    lane = next((candidate for candidate in lanes if candidate.lane == current_clip.camera_lane), None)
    if lane is None:
        return None

    following = [c for c in lane.sorted_clips() if c.lane_position_ms >= current_clip.end_ms]
    return following[0] if following else None


def find_clip_for_time(
    timeline: GameTimeline,
    target_game_time_ms: int,
    preferred_lane: LaneId | None = None,
) -> ClipSelection:
    """
    Find the clip to play for a game time.

    Args:
        timeline: Game timeline
        target_game_time_ms: Position to find coverage for
        preferred_lane: Lane to use if given. A gap on this lane is reported
            as a gap rather than falling back to other lanes

    Returns:
        ClipSelection with the clip and the seek time into its video
    """
    if preferred_lane is not None and timeline.get_lane(preferred_lane) is not None:
        info = timeline.find_active_clip(preferred_lane, target_game_time_ms)
        if info.clip is not None:
            return _selection(info.clip, target_game_time_ms, preferred_lane)
        return ClipSelection(
            next_coverage_start_ms=info.next_clip_start_ms,
            lane=preferred_lane,
        )

    for lane in timeline.lanes:
        info = timeline.find_active_clip(lane.lane, target_game_time_ms)
        if info.clip is not None:
            return _selection(info.clip, target_game_time_ms, lane.lane)

    return ClipSelection(
        next_coverage_start_ms=find_next_coverage_start(timeline.lanes, target_game_time_ms),
    )


def _selection(clip: TimelineClip, game_time_ms: int, lane: LaneId) -> ClipSelection:
    return ClipSelection(
        clip=clip,
        video_id=clip.video_id,
        seek_time_seconds=game_time_to_video_time(game_time_ms, clip),
        is_in_gap=False,
        lane=lane,
    )
