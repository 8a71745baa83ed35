"""Shared fixtures for the film sync tests."""

import pytest

from filmsync.models.timeline import CameraLane, GameTimeline, TimelineClip


def make_clip(clip_id, lane, position_ms, duration_ms, url=None):
    return TimelineClip(
        id=clip_id,
        video_id=f"video-{clip_id}",
        video_name=f"{clip_id}.mp4",
        video_url=url if url is not None else f"https://cdn.example.com/game_videos/{clip_id}.mp4",
        camera_lane=lane,
        lane_position_ms=position_ms,
        duration_ms=duration_ms,
    )


@pytest.fixture
def three_lane_timeline():
    """Three cameras covering t=10000 at 4000, 6000 and 9000 ms into their clips."""
    return GameTimeline(
        game_id="game-1",
        video_group_id="group-1",
        lanes=[
            CameraLane(lane=1, label="Sideline", clips=[make_clip("clip-a", 1, 6_000, 20_000)]),
            CameraLane(lane=2, label="End Zone", clips=[make_clip("clip-b", 2, 4_000, 20_000)]),
            CameraLane(lane=3, label="Press Box", clips=[make_clip("clip-c", 3, 1_000, 12_000)]),
        ],
    )


@pytest.fixture
def two_clip_timeline():
    """Anchor clip A at 0 and clip B at 2000, overlapping from 2000 to 10000."""
    return GameTimeline(
        game_id="game-2",
        video_group_id="group-2",
        lanes=[
            CameraLane(lane=1, label="Sideline", clips=[make_clip("clip-a", 1, 0, 10_000)]),
            CameraLane(lane=2, label="End Zone", clips=[make_clip("clip-b", 2, 2_000, 10_000)]),
        ],
    )
