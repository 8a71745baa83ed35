"""
Playback coordination for the sync review grid.

Keeps one video surface per clip at the sync point, seeks each to the
position that shows the synced instant, and drives play/pause for all of
them together. Source failures are contained per clip.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Sequence

import structlog

from filmsync.alignment.session import SyncSession
from filmsync.config import SyncConfig
from filmsync.errors import PlaybackSourceError
from filmsync.models.sync import CameraAtSyncPoint, ClipLoadState, SyncPhase
from filmsync.storage.base import PlaybackUrlGateway

logger = structlog.get_logger(__name__)

PLACEHOLDERS = {
    ClipLoadState.NO_SOURCE: "No video",
    ClipLoadState.PENDING: "Loading...",
    ClipLoadState.FAILED: "Video failed to load",
}


class VideoSurface(ABC):
    """A video player showing one clip."""

    @property
    @abstractmethod
    def current_time(self) -> float:
        """Playhead position in seconds."""
        pass

    @abstractmethod
    def seek(self, time_seconds: float) -> None:
        pass

    @abstractmethod
    def play(self) -> None:
        pass

    @abstractmethod
    def pause(self) -> None:
        pass


SurfaceFactory = Callable[[CameraAtSyncPoint, str], VideoSurface]


@dataclass
class SourceResolution:
    """Outcome of resolving one clip's playback URL."""

    clip_id: str
    state: ClipLoadState
    url: str | None = None
    error: str | None = None


async def resolve_sources(
    cameras: Sequence[CameraAtSyncPoint],
    gateway: PlaybackUrlGateway,
) -> dict[str, SourceResolution]:
    """
    Resolve playable URLs for several clips concurrently.

    Each clip succeeds or fails on its own; one failure never affects the
    others.

    Returns:
        Resolution per clip id
    """

    async def _resolve(camera: CameraAtSyncPoint) -> SourceResolution:
        if not camera.video_url:
            return SourceResolution(camera.clip_id, ClipLoadState.NO_SOURCE)
        url = await gateway.resolve_playback_url(camera.video_url)
        return SourceResolution(camera.clip_id, ClipLoadState.READY, url=url)

    outcomes = await asyncio.gather(
        *(_resolve(camera) for camera in cameras),
        return_exceptions=True,
    )

    results: dict[str, SourceResolution] = {}
    for camera, outcome in zip(cameras, outcomes):
        if isinstance(outcome, SourceResolution):
            results[camera.clip_id] = outcome
            continue

        if not isinstance(outcome, Exception):
            raise outcome

        reason = outcome.reason if isinstance(outcome, PlaybackSourceError) else str(outcome)
        logger.warning(
            "Playback source failed",
            clip_id=camera.clip_id,
            clip_name=camera.clip_name,
            error=reason,
        )
        results[camera.clip_id] = SourceResolution(
            camera.clip_id, ClipLoadState.FAILED, error=reason
        )

    return results


class PlaybackCoordinator:
    """
    Drives every clip player in a sync session.

    While paused, any change to the session's offsets or anchor re-seeks
    all players. Playing starts every player; pausing stops them and seeks
    each back to its sync-mapped position.
    """

    def __init__(
        self,
        session: SyncSession,
        gateway: PlaybackUrlGateway,
        surface_factory: SurfaceFactory,
        config: SyncConfig | None = None,
    ):
        self.session = session
        self.gateway = gateway
        self.surface_factory = surface_factory
        self.config = config or session.config

        self.is_playing = False
        self._urls: dict[str, str] = {}
        self._surfaces: dict[str, VideoSurface] = {}
        self._failed: dict[str, str] = {}

        session.add_listener(self._on_session_changed)

    @property
    def visible_clip_ids(self) -> list[str]:
        """Clips shown as live video, in session order."""
        return [c.clip_id for c in self.session.cameras if c.clip_id in self._surfaces]

    @property
    def failed_clip_ids(self) -> set[str]:
        return set(self._failed)

    def surface(self, clip_id: str) -> VideoSurface | None:
        return self._surfaces.get(clip_id)

    def playback_url(self, clip_id: str) -> str | None:
        return self._urls.get(clip_id)

    def load_state(self, clip_id: str) -> ClipLoadState:
        if clip_id in self._failed:
            return ClipLoadState.FAILED
        if clip_id in self._urls:
            return ClipLoadState.READY

        camera = self._find_camera(clip_id)
        if camera is not None and not camera.video_url:
            return ClipLoadState.NO_SOURCE
        return ClipLoadState.PENDING

    def placeholder(self, clip_id: str) -> str | None:
        """Text shown instead of video, or None when the clip is playing live."""
        return PLACEHOLDERS.get(self.load_state(clip_id))

    async def load_sources(self) -> dict[str, SourceResolution]:
        """
        Resolve URLs for clips that have none yet and create their players.

        Clips that already failed are never retried.
        """
        to_resolve = [
            c for c in self.session.cameras
            if c.video_url and c.clip_id not in self._urls and c.clip_id not in self._failed
        ]
        if not to_resolve:
            return {}

        results = await resolve_sources(to_resolve, self.gateway)

        for clip_id, resolution in results.items():
            camera = self._find_camera(clip_id)
            if camera is None:
                # Working set changed while resolving
                continue

            if resolution.state is ClipLoadState.READY and resolution.url:
                self._urls[clip_id] = resolution.url
                self._surfaces[clip_id] = self.surface_factory(camera, resolution.url)
            elif resolution.state is ClipLoadState.FAILED:
                self._mark_failed(clip_id, resolution.error or "unknown error")

        return results

    def handle_loaded(self, clip_id: str) -> None:
        """A player finished loading: show the synced frame."""
        camera = self._find_camera(clip_id)
        if camera is not None:
            self._seek(camera)

    def handle_load_error(self, clip_id: str, reason: str = "video failed to load") -> None:
        """
        A player failed to load its source.

        The clip leaves the live grid for good but stays adjustable and is
        still included in the commit.
        """
        logger.error("Video failed to load", clip_id=clip_id, reason=reason)
        self._mark_failed(clip_id, reason)

    def seek_all(self) -> None:
        for camera in self.session.cameras:
            self._seek(camera)

    def toggle_playback(self) -> bool:
        """
        Play or pause every player together.

        Returns:
            Whether playback is now running
        """
        if self.session.phase != SyncPhase.ADJUSTING:
            return False

        self.is_playing = not self.is_playing

        for surface in self._surfaces.values():
            if self.is_playing:
                surface.play()
            else:
                surface.pause()

        if not self.is_playing:
            self.seek_all()

        logger.debug("Playback toggled", playing=self.is_playing, players=len(self._surfaces))
        return self.is_playing

    def close(self) -> None:
        for surface in self._surfaces.values():
            surface.pause()
        self.is_playing = False
        self._surfaces.clear()
        self._urls.clear()
        self._failed.clear()
        self.session.remove_listener(self._on_session_changed)

    def _seek(self, camera: CameraAtSyncPoint) -> None:
        surface = self._surfaces.get(camera.clip_id)
        if surface is None:
            return

        target_seconds = camera.seek_position_ms / 1000
        if abs(surface.current_time - target_seconds) > self.config.seek_tolerance_seconds:
            surface.seek(target_seconds)

    def _mark_failed(self, clip_id: str, reason: str) -> None:
        self._failed[clip_id] = reason
        self._urls.pop(clip_id, None)
        surface = self._surfaces.pop(clip_id, None)
        if surface is not None:
            surface.pause()

    def _find_camera(self, clip_id: str) -> CameraAtSyncPoint | None:
        return next((c for c in self.session.cameras if c.clip_id == clip_id), None)

    def _on_session_changed(self, session: SyncSession) -> None:
        if session.phase != SyncPhase.ADJUSTING:
            # Working set discarded; failed sources stay excluded until the tool closes
            for surface in self._surfaces.values():
                surface.pause()
            self.is_playing = False
            self._surfaces.clear()
            self._urls.clear()
            if session.is_closed:
                self._failed.clear()
            return

        current = {c.clip_id for c in session.cameras}
        for clip_id in list(self._surfaces):
            if clip_id not in current:
                self._surfaces.pop(clip_id).pause()
                self._urls.pop(clip_id, None)

        if not self.is_playing:
            self.seek_all()
