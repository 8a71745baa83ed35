"""Exceptions raised by the clip synchronization engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from filmsync.models.sync import FailedUpdate


class SyncError(Exception):
    """Base class for all sync engine errors."""


class InsufficientCoverageError(SyncError, ValueError):
    """Fewer cameras than required have footage at the chosen sync time."""

    def __init__(self, found: int, required: int = 2):
        self.found = found
        self.required = required
        super().__init__(
            f"Need at least {required} cameras with footage at this time to sync "
            f"(found {found})."
        )


class InvalidPhaseError(SyncError, RuntimeError):
    """An operation was called while the session was in the wrong phase."""


class UnknownClipError(SyncError, LookupError):
    """No clip with the given id is part of the session or timeline."""

    def __init__(self, clip_id: str):
        self.clip_id = clip_id
        super().__init__(f"Unknown clip: {clip_id}")


class UnknownLaneError(SyncError, LookupError):
    """No camera at the sync point belongs to the given lane."""

    def __init__(self, lane: int | str):
        self.lane = lane
        super().__init__(f"No camera on lane {lane} at the sync point")


class TimelineNotFoundError(SyncError, LookupError):
    """The clip store has no timeline for the given video group."""

    def __init__(self, video_group_id: str):
        self.video_group_id = video_group_id
        super().__init__(f"Timeline not found: {video_group_id}")


class CommitError(SyncError, RuntimeError):
    """
    Persisting clip positions failed, fully or partially.

    ``failed`` lists every update that was not written. Updates that were
    written are not listed and need no retry.
    """

    def __init__(self, failed: list[FailedUpdate], message: str | None = None):
        self.failed = failed
        if message is None:
            message = f"Failed to save {len(failed)} clip position(s)"
        super().__init__(message)


class PlaybackSourceError(SyncError, RuntimeError):
    """A clip's stored source could not be turned into a playable URL."""

    def __init__(self, source_ref: str, reason: str):
        self.source_ref = source_ref
        self.reason = reason
        super().__init__(f"Could not resolve playback URL for {source_ref!r}: {reason}")
