"""
Multi-camera clip alignment.

- Sync sessions: pick a moment, anchor one clip, offset the others
- Playback coordination for the review grid
- Game time / video time conversions
"""

from filmsync.alignment.camera_sync import ClipSelection, find_clip_for_time
from filmsync.alignment.playback import (
    PlaybackCoordinator,
    SourceResolution,
    VideoSurface,
    resolve_sources,
)
from filmsync.alignment.session import SyncSession

__all__ = [
    "SyncSession",
    "PlaybackCoordinator",
    "VideoSurface",
    "SourceResolution",
    "resolve_sources",
    "ClipSelection",
    "find_clip_for_time",
]
