"""FastAPI application for the film sync studio."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator
from uuid import UUID

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from filmsync import __version__
from filmsync.alignment.camera_sync import ClipSelection, find_clip_for_time
from filmsync.alignment.session import SyncSession
from filmsync.config import SyncConfig
from filmsync.engine import FilmStudioEngine
from filmsync.errors import (
    CommitError,
    InsufficientCoverageError,
    InvalidPhaseError,
    TimelineNotFoundError,
    UnknownClipError,
    UnknownLaneError,
)
from filmsync.models.sync import CameraAtSyncPoint, ClipPositionUpdate, LaneId
from filmsync.models.timeline import CameraLane, GameTimeline, format_time_ms, parse_lane_id

app = FastAPI(
    title="Film Sync Studio",
    description="API for lining up multi-camera game film on a shared timeline",
    version=__version__,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Global engine instance (would be dependency-injected in production)
_engine: FilmStudioEngine | None = None


def get_engine() -> FilmStudioEngine:
    """Get or create the engine instance."""
    global _engine
    if _engine is None:
        _engine = FilmStudioEngine(config=SyncConfig.from_env())
    return _engine


# ----- Request/Response Models -----

class TimelineResponse(BaseModel):
    """Response with a timeline and its lanes."""
    video_group_id: str
    game_id: str
    total_duration_ms: int
    lanes: list[CameraLane]


class CameraResponse(BaseModel):
    """A camera at the sync point with its seek mapping."""
    lane: LaneId
    lane_label: str
    clip_id: str
    clip_name: str
    clip_start_ms: int
    clip_end_ms: int
    clip_duration_ms: int
    original_position_ms: int
    offset_ms: int
    is_anchor: bool
    sync_point_in_clip_ms: int
    seek_position_ms: int
    new_position_ms: int


class CoverageResponse(BaseModel):
    """Which cameras have footage at a timeline position."""
    time_ms: int
    time_label: str
    cameras: list[CameraResponse]
    selection: ClipSelection


class OpenSessionRequest(BaseModel):
    """Request to open the sync tool."""
    current_lane: LaneId
    current_time_ms: int = Field(default=0, ge=0)


class SessionResponse(BaseModel):
    """Response with sync session state."""
    id: UUID
    video_group_id: str
    phase: str
    sync_time_ms: int
    sync_time_label: str
    total_duration_ms: int
    can_advance: bool
    candidates: list[CameraResponse]
    cameras: list[CameraResponse]
    adjusted_count: int
    is_saving: bool


class SyncTimeRequest(BaseModel):
    time_ms: int


class StepRequest(BaseModel):
    steps: int = 1


class AnchorRequest(BaseModel):
    lane: LaneId


class NudgeRequest(BaseModel):
    delta_ms: int


class OffsetRequest(BaseModel):
    offset_ms: int


class SourceResponse(BaseModel):
    """Playback source for one clip."""
    clip_id: str
    state: str
    url: str | None = None
    error: str | None = None


class CommitResponse(BaseModel):
    """Response with the position updates written."""
    updates: list[ClipPositionUpdate]


# ----- Helpers -----

def _camera_response(camera: CameraAtSyncPoint) -> CameraResponse:
    return CameraResponse(
        **camera.model_dump(exclude={"video_url"}),
        seek_position_ms=camera.seek_position_ms,
        new_position_ms=camera.new_position_ms,
    )


def _session_response(session: SyncSession) -> SessionResponse:
    return SessionResponse(
        id=session.id,
        video_group_id=session.timeline.video_group_id,
        phase=session.phase.value,
        sync_time_ms=session.sync_time_ms,
        sync_time_label=format_time_ms(session.sync_time_ms),
        total_duration_ms=session.total_duration_ms,
        can_advance=session.can_advance,
        candidates=[_camera_response(c) for c in session.candidates],
        cameras=[_camera_response(c) for c in session.cameras],
        adjusted_count=session.adjusted_count,
        is_saving=session.is_saving,
    )


def _session_or_404(session_id: UUID) -> SyncSession:
    session = get_engine().get_session(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Sync session not found")
    return session


async def _timeline_or_404(video_group_id: str) -> GameTimeline:
    try:
        return await get_engine().load_timeline(video_group_id)
    except TimelineNotFoundError:
        raise HTTPException(status_code=404, detail="Timeline not found")


@contextmanager
def _session_errors() -> Iterator[None]:
    """Map session errors to HTTP responses."""
    try:
        yield
    except (UnknownClipError, UnknownLaneError) as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (InvalidPhaseError, InsufficientCoverageError) as e:
        raise HTTPException(status_code=409, detail=str(e))


# ----- Endpoints -----

@app.get("/")
async def root():
    """Health check."""
    return {
        "service": "Film Sync Studio",
        "version": __version__,
        "status": "healthy",
    }


@app.post("/timelines", response_model=TimelineResponse)
async def register_timeline(timeline: GameTimeline):
    """Create or replace a game timeline."""
    engine = get_engine()
    await engine.register_timeline(timeline)

    return TimelineResponse(
        video_group_id=timeline.video_group_id,
        game_id=timeline.game_id,
        total_duration_ms=timeline.total_duration_ms,
        lanes=timeline.lanes,
    )


@app.get("/timelines/{video_group_id}", response_model=TimelineResponse)
async def get_timeline(video_group_id: str):
    """Get a game timeline."""
    timeline = await _timeline_or_404(video_group_id)

    return TimelineResponse(
        video_group_id=timeline.video_group_id,
        game_id=timeline.game_id,
        total_duration_ms=timeline.total_duration_ms,
        lanes=timeline.lanes,
    )


@app.get("/timelines/{video_group_id}/coverage", response_model=CoverageResponse)
async def get_coverage(video_group_id: str, time_ms: int, preferred_lane: str | None = None):
    """Get the cameras with footage at a timeline position."""
    timeline = await _timeline_or_404(video_group_id)
    lane = parse_lane_id(preferred_lane) if preferred_lane is not None else None

    return CoverageResponse(
        time_ms=time_ms,
        time_label=format_time_ms(time_ms),
        cameras=[_camera_response(c) for c in timeline.find_clips_at_time(time_ms)],
        selection=find_clip_for_time(timeline, time_ms, preferred_lane=lane),
    )


@app.post("/timelines/{video_group_id}/sync-sessions", response_model=SessionResponse)
async def open_sync_session(video_group_id: str, request: OpenSessionRequest):
    """Open the sync tool on a timeline."""
    await _timeline_or_404(video_group_id)

    session = get_engine().open_sync_session(
        video_group_id,
        current_lane=request.current_lane,
        current_time_ms=request.current_time_ms,
    )
    return _session_response(session)


@app.get("/sync-sessions/{session_id}", response_model=SessionResponse)
async def get_sync_session(session_id: UUID):
    """Get sync session state."""
    return _session_response(_session_or_404(session_id))


@app.put("/sync-sessions/{session_id}/sync-time", response_model=SessionResponse)
async def set_sync_time(session_id: UUID, request: SyncTimeRequest):
    """Move the sync point."""
    session = _session_or_404(session_id)
    with _session_errors():
        session.set_sync_time(request.time_ms)
    return _session_response(session)


@app.post("/sync-sessions/{session_id}/sync-time/step", response_model=SessionResponse)
async def step_sync_time(session_id: UUID, request: StepRequest):
    """Move the sync point by whole steps."""
    session = _session_or_404(session_id)
    with _session_errors():
        session.step_sync_time(request.steps)
    return _session_response(session)


@app.post("/sync-sessions/{session_id}/confirm", response_model=SessionResponse)
async def confirm_sync_time(session_id: UUID):
    """Fix the sync point and start adjusting."""
    session = _session_or_404(session_id)
    with _session_errors():
        session.confirm_sync_time()
    return _session_response(session)


@app.post("/sync-sessions/{session_id}/pick-time", response_model=SessionResponse)
async def return_to_pick_time(session_id: UUID):
    """Go back to picking the sync point."""
    session = _session_or_404(session_id)
    with _session_errors():
        session.return_to_pick_time()
    return _session_response(session)


@app.put("/sync-sessions/{session_id}/anchor", response_model=SessionResponse)
async def set_anchor(session_id: UUID, request: AnchorRequest):
    """Choose the anchor camera."""
    session = _session_or_404(session_id)
    with _session_errors():
        session.set_anchor(request.lane)
    return _session_response(session)


@app.post("/sync-sessions/{session_id}/offsets/{clip_id}/nudge", response_model=SessionResponse)
async def nudge_offset(session_id: UUID, clip_id: str, request: NudgeRequest):
    """Nudge a clip's offset."""
    session = _session_or_404(session_id)
    with _session_errors():
        session.adjust_offset(clip_id, request.delta_ms)
    return _session_response(session)


@app.put("/sync-sessions/{session_id}/offsets/{clip_id}", response_model=SessionResponse)
async def set_offset(session_id: UUID, clip_id: str, request: OffsetRequest):
    """Set a clip's offset."""
    session = _session_or_404(session_id)
    with _session_errors():
        session.set_offset(clip_id, request.offset_ms)
    return _session_response(session)


@app.delete("/sync-sessions/{session_id}/offsets/{clip_id}", response_model=SessionResponse)
async def reset_offset(session_id: UUID, clip_id: str):
    """Reset a clip's offset to zero."""
    session = _session_or_404(session_id)
    with _session_errors():
        session.reset_offset(clip_id)
    return _session_response(session)


@app.delete("/sync-sessions/{session_id}/offsets", response_model=SessionResponse)
async def reset_all_offsets(session_id: UUID):
    """Reset every offset to zero."""
    session = _session_or_404(session_id)
    with _session_errors():
        session.reset_all()
    return _session_response(session)


@app.get("/sync-sessions/{session_id}/sources", response_model=list[SourceResponse])
async def get_sources(session_id: UUID):
    """Resolve playback URLs for the cameras being synced."""
    session = _session_or_404(session_id)
    resolutions = await get_engine().resolve_session_sources(session.id)

    return [
        SourceResponse(
            clip_id=r.clip_id,
            state=r.state.value,
            url=r.url,
            error=r.error,
        )
        for r in resolutions.values()
    ]


@app.post("/sync-sessions/{session_id}/commit", response_model=CommitResponse)
async def commit_sync_session(session_id: UUID):
    """Save the adjusted clip positions."""
    session = _session_or_404(session_id)

    try:
        with _session_errors():
            updates = await get_engine().commit_session(session.id)
    except CommitError as e:
        raise HTTPException(
            status_code=502,
            detail={
                "message": str(e),
                "failed": [f.model_dump() for f in e.failed],
            },
        )

    return CommitResponse(updates=updates)


@app.delete("/sync-sessions/{session_id}")
async def cancel_sync_session(session_id: UUID):
    """Close the sync tool without saving."""
    session = _session_or_404(session_id)
    with _session_errors():
        get_engine().cancel_session(session.id)
    return {"cancelled": True, "id": str(session.id)}
