"""Film studio engine: timelines, stores and sync sessions."""

from __future__ import annotations

from uuid import UUID

import structlog

from filmsync.alignment.playback import SourceResolution, resolve_sources
from filmsync.alignment.session import SyncSession
from filmsync.config import SyncConfig
from filmsync.errors import TimelineNotFoundError
from filmsync.models.sync import BatchWriteResult, ClipPositionUpdate, LaneId
from filmsync.models.timeline import GameTimeline
from filmsync.storage.base import ClipStore, PlaybackUrlGateway
from filmsync.storage.gateway import PassthroughUrlGateway, S3PlaybackUrlGateway
from filmsync.storage.json_store import JsonFileClipStore
from filmsync.storage.memory import InMemoryClipStore

logger = structlog.get_logger()


def get_store(config: SyncConfig) -> ClipStore:
    """Clip store for a config: JSON file if a path is set, else in-memory."""
    if config.timeline_store_path:
        return JsonFileClipStore(config.timeline_store_path)
    return InMemoryClipStore()


def get_url_gateway(config: SyncConfig) -> PlaybackUrlGateway:
    """S3 presigning when an endpoint or region is configured, else passthrough."""
    if config.s3_endpoint_url or config.s3_region:
        return S3PlaybackUrlGateway.from_config(config)
    return PassthroughUrlGateway()


class FilmStudioEngine:
    """
    Main interface for multi-camera film sync.

    Example:
        ```python
        engine = FilmStudioEngine(store=InMemoryClipStore([timeline]))

        await engine.load_timeline("group-1")
        session = engine.open_sync_session("group-1", current_lane=1, current_time_ms=10_000)
        session.confirm_sync_time()
        session.set_offset("clip-b", 750)

        updates = await engine.commit_session(session.id)
        ```
    """

    def __init__(
        self,
        store: ClipStore | None = None,
        url_gateway: PlaybackUrlGateway | None = None,
        config: SyncConfig | None = None,
    ):
        """
        Args:
            store: Clip store (built from config if omitted)
            url_gateway: Playback URL gateway (built from config if omitted)
            config: Engine configuration
        """
        self.config = config or SyncConfig()
        self.store = store or get_store(self.config)
        self.url_gateway = url_gateway or get_url_gateway(self.config)

        self._timelines: dict[str, GameTimeline] = {}
        self._sessions: dict[UUID, SyncSession] = {}

        logger.info(
            "FilmStudioEngine initialized",
            store=type(self.store).__name__,
            url_gateway=type(self.url_gateway).__name__,
        )

    # ----- Timelines -----

    async def load_timeline(self, video_group_id: str, refresh: bool = False) -> GameTimeline:
        """
        Get a timeline, reading it from the store on first use.

        Raises:
            TimelineNotFoundError: The store has no such timeline
        """
        if not refresh and video_group_id in self._timelines:
            return self._timelines[video_group_id]

        timeline = await self.store.read_timeline(video_group_id)
        self._timelines[video_group_id] = timeline

        logger.info(
            "Timeline loaded",
            video_group_id=video_group_id,
            lanes=len(timeline.lanes),
            total_duration_ms=timeline.total_duration_ms,
        )
        return timeline

    def get_timeline(self, video_group_id: str) -> GameTimeline | None:
        return self._timelines.get(video_group_id)

    async def register_timeline(self, timeline: GameTimeline) -> GameTimeline:
        """Save a timeline to the store and cache it."""
        await self.store.save_timeline(timeline)
        self._timelines[timeline.video_group_id] = timeline
        return timeline

    # ----- Sync sessions -----

    def open_sync_session(
        self,
        video_group_id: str,
        current_lane: LaneId,
        current_time_ms: int,
    ) -> SyncSession:
        """
        Open the sync tool on a loaded timeline.

        Args:
            video_group_id: Timeline to sync
            current_lane: Lane the tool was opened from
            current_time_ms: Playhead position when the tool was opened

        Raises:
            TimelineNotFoundError: Timeline not loaded
        """
        timeline = self._timelines.get(video_group_id)
        if timeline is None:
            raise TimelineNotFoundError(video_group_id)

        session: SyncSession | None = None

        async def _write(updates: list[ClipPositionUpdate]) -> BatchWriteResult:
            return await self.store.write_batch(updates)

        def _forget() -> None:
            if session is not None:
                self._sessions.pop(session.id, None)

        session = SyncSession(
            timeline,
            current_lane=current_lane,
            current_time_ms=current_time_ms,
            config=self.config,
            on_commit=_write,
            on_cancel=_forget,
        )
        self._sessions[session.id] = session
        return session

    def get_session(self, session_id: UUID | str) -> SyncSession | None:
        if isinstance(session_id, str):
            session_id = UUID(session_id)
        return self._sessions.get(session_id)

    def list_sessions(self) -> list[SyncSession]:
        return list(self._sessions.values())

    def cancel_session(self, session_id: UUID | str) -> bool:
        session = self.get_session(session_id)
        if session is None:
            return False
        session.cancel()
        return True

    async def commit_session(self, session_id: UUID | str) -> list[ClipPositionUpdate]:
        """
        Commit a session's adjustments to the store.

        The session is forgotten on success and kept for retry on failure.

        Raises:
            LookupError: Unknown session
            CommitError: The store did not accept every update
        """
        session = self.get_session(session_id)
        if session is None:
            raise LookupError(f"Sync session not found: {session_id}")

        updates = await session.commit()
        self._sessions.pop(session.id, None)
        return updates

    async def resolve_session_sources(
        self,
        session_id: UUID | str,
    ) -> dict[str, SourceResolution]:
        """Resolve playback URLs for every camera in an adjusting session."""
        session = self.get_session(session_id)
        if session is None:
            raise LookupError(f"Sync session not found: {session_id}")
        return await resolve_sources(session.cameras, self.url_gateway)
