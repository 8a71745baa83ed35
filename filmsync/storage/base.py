"""Interfaces for the clip store and playback URL gateway."""

from __future__ import annotations

from abc import ABC, abstractmethod

from filmsync.models.sync import BatchWriteResult, ClipPositionUpdate
from filmsync.models.timeline import CameraLane, GameTimeline


class ClipStore(ABC):
    """Persistent store of camera lanes and clip positions."""

    @abstractmethod
    async def read_timeline(self, video_group_id: str) -> GameTimeline:
        """
        Load a game's timeline.

        Raises:
            TimelineNotFoundError: No timeline for this video group
        """
        pass

    async def read_lanes(self, video_group_id: str) -> list[CameraLane]:
        """Current lanes and clips with position and duration."""
        timeline = await self.read_timeline(video_group_id)
        return timeline.lanes

    @abstractmethod
    async def save_timeline(self, timeline: GameTimeline) -> None:
        """Create or replace a timeline."""
        pass

    @abstractmethod
    async def write_batch(self, updates: list[ClipPositionUpdate]) -> BatchWriteResult:
        """
        Write a batch of clip positions.

        Implementations report every update as either succeeded or failed.
        A store that cannot write atomically reports exactly which updates
        failed.
        """
        pass


class PlaybackUrlGateway(ABC):
    """Maps a clip's stored source to a time-limited playable URL."""

    @abstractmethod
    async def resolve_playback_url(self, source_ref: str) -> str:
        """
        Resolve a playable URL. Safe to call repeatedly for the same source.

        Raises:
            PlaybackSourceError: The source cannot be played
        """
        pass
