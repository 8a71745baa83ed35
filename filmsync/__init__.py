"""
filmsync

Multi-camera clip synchronization for game film review. Lines up
independently recorded camera angles of the same game on a shared timeline.
"""

from filmsync.engine import FilmStudioEngine
from filmsync.models.timeline import GameTimeline, CameraLane, TimelineClip
from filmsync.models.sync import CameraAtSyncPoint, ClipPositionUpdate, SyncPhase
from filmsync.alignment.session import SyncSession
from filmsync.alignment.playback import PlaybackCoordinator

__version__ = "0.1.0"

__all__ = [
    # Core
    "FilmStudioEngine",
    # Models
    "GameTimeline",
    "CameraLane",
    "TimelineClip",
    "CameraAtSyncPoint",
    "ClipPositionUpdate",
    "SyncPhase",
    # Alignment
    "SyncSession",
    "PlaybackCoordinator",
]
