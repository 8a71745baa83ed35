"""
Two-phase clip synchronization session.

A session first lets the user scrub to a moment covered by several
cameras, then fixes that moment, anchors one clip and lets the user shift
the others until their footage lines up with the anchor. Adjustments live
in a session-local working set and only reach the clip store on commit.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Optional
from uuid import UUID, uuid4

import structlog

from filmsync.config import SyncConfig
from filmsync.errors import (
    CommitError,
    InsufficientCoverageError,
    InvalidPhaseError,
    UnknownClipError,
    UnknownLaneError,
)
from filmsync.models.sync import (
    BatchWriteResult,
    CameraAtSyncPoint,
    ClipPositionUpdate,
    FailedUpdate,
    LaneId,
    SyncPhase,
)
from filmsync.models.timeline import GameTimeline

logger = structlog.get_logger(__name__)

CommitCallback = Callable[[list[ClipPositionUpdate]], Awaitable[BatchWriteResult]]
CancelCallback = Callable[[], None]
SessionListener = Callable[["SyncSession"], None]

MIN_SYNC_CAMERAS = 2


class SyncSession:
    """
    Interactive sync session over a game timeline.

    Phases:
    1. ``picking-time``: scrub ``sync_time_ms``; ``candidates`` shows which
       lanes have footage there.
    2. ``adjusting``: the sync time is fixed, one clip is the anchor and every
       other clip carries a signed offset in milliseconds.

    The session never mutates the timeline before commit. Cancel is
    synchronous from either phase and writes nothing. While a commit is
    waiting on the store every other operation is rejected.

    Example:
        ```python
        session = SyncSession(timeline, current_lane=1, current_time_ms=10_000)
        session.confirm_sync_time()
        session.set_offset("clip-b", 750)
        updates = await session.commit()
        ```
    """

    def __init__(
        self,
        timeline: GameTimeline,
        current_lane: LaneId,
        current_time_ms: int,
        config: SyncConfig | None = None,
        on_commit: CommitCallback | None = None,
        on_cancel: CancelCallback | None = None,
    ):
        """
        Open a session in the picking-time phase.

        Args:
            timeline: Timeline the session reads from and updates on commit
            current_lane: Lane the tool was opened from (preferred anchor)
            current_time_ms: Initial sync time, clamped to the timeline
            config: Offset limits and step sizes
            on_commit: Persists a batch of position updates. Without one,
                commits only update the timeline model
            on_cancel: Called once when the session is cancelled
        """
        self.id: UUID = uuid4()
        self.timeline = timeline
        self.current_lane = current_lane
        self.config = config or SyncConfig()

        self._on_commit = on_commit
        self._on_cancel = on_cancel
        self._listeners: list[SessionListener] = []

        self.phase = SyncPhase.PICKING_TIME
        self.sync_time_ms = self._clamp_time(current_time_ms)

        self._cameras: list[CameraAtSyncPoint] = []
        # clip id -> position already persisted by an earlier partial commit
        self._written: dict[str, int] = {}
        self._is_saving = False

        self.logger = logger.bind(session_id=str(self.id))
        self.logger.info(
            "Sync session opened",
            video_group_id=timeline.video_group_id,
            current_lane=current_lane,
            sync_time_ms=self.sync_time_ms,
        )

    # ----- Phase 1: pick time -----

    @property
    def total_duration_ms(self) -> int:
        return self.timeline.total_duration_ms

    @property
    def candidates(self) -> list[CameraAtSyncPoint]:
        """Clips covering the current sync time, recomputed on every read."""
        return self.timeline.find_clips_at_time(self.sync_time_ms)

    @property
    def required_cameras(self) -> int:
        return max(MIN_SYNC_CAMERAS, self.config.min_cameras)

    @property
    def can_advance(self) -> bool:
        return len(self.candidates) >= self.required_cameras

    def set_sync_time(self, time_ms: int) -> list[CameraAtSyncPoint]:
        """
        Move the sync point.

        Returns:
            The clips covering the new sync time
        """
        self._require_phase(SyncPhase.PICKING_TIME)
        self.sync_time_ms = self._clamp_time(time_ms)
        return self.candidates

    def step_sync_time(self, steps: int = 1) -> list[CameraAtSyncPoint]:
        """Move the sync point by whole coarse steps (negative moves back)."""
        return self.set_sync_time(self.sync_time_ms + steps * self.config.sync_time_step_ms)

    def confirm_sync_time(self) -> list[CameraAtSyncPoint]:
        """
        Fix the sync time and enter the adjusting phase.

        The clip on the lane the tool was opened from becomes the anchor,
        or the first covering clip if that lane has no footage here.

        Raises:
            InsufficientCoverageError: Fewer than two clips cover the sync time
        """
        self._require_phase(SyncPhase.PICKING_TIME)

        found = self.candidates
        if len(found) < self.required_cameras:
            self.logger.info(
                "Not enough coverage to sync",
                sync_time_ms=self.sync_time_ms,
                found=len(found),
            )
            raise InsufficientCoverageError(len(found), self.required_cameras)

        anchor = next((c for c in found if c.lane == self.current_lane), found[0])
        for camera in found:
            camera.is_anchor = camera.lane == anchor.lane
            camera.offset_ms = 0

        self._cameras = found
        self.phase = SyncPhase.ADJUSTING

        self.logger.info(
            "Sync point confirmed",
            sync_time_ms=self.sync_time_ms,
            cameras=len(found),
            anchor_lane=anchor.lane,
        )
        self._notify()
        return self.cameras

    # ----- Phase 2: adjust -----

    @property
    def cameras(self) -> list[CameraAtSyncPoint]:
        return list(self._cameras)

    @property
    def anchor(self) -> Optional[CameraAtSyncPoint]:
        return next((c for c in self._cameras if c.is_anchor), None)

    @property
    def adjusted_cameras(self) -> list[CameraAtSyncPoint]:
        return [c for c in self._cameras if c.is_adjusted]

    @property
    def adjusted_count(self) -> int:
        return len(self.adjusted_cameras)

    def return_to_pick_time(self) -> None:
        """Go back to picking a sync time, discarding all adjustments."""
        self._require_phase(SyncPhase.ADJUSTING)
        self._cameras = []
        self._written.clear()
        self.phase = SyncPhase.PICKING_TIME
        self.logger.info("Returned to sync time picking")
        self._notify()

    def set_anchor(self, lane: LaneId) -> CameraAtSyncPoint:
        """
        Make the clip on the given lane the anchor.

        The new anchor's offset is forced to 0. The previous anchor keeps
        its offset (always 0) and every other offset is untouched.
        """
        self._require_phase(SyncPhase.ADJUSTING)

        target = next((c for c in self._cameras if c.lane == lane), None)
        if target is None:
            raise UnknownLaneError(lane)

        for camera in self._cameras:
            camera.is_anchor = camera is target
        target.offset_ms = 0

        self.logger.debug("Anchor changed", anchor_lane=lane, clip_id=target.clip_id)
        self._notify()
        return target

    def adjust_offset(self, clip_id: str, delta_ms: int) -> int:
        """
        Nudge a clip's offset by ``delta_ms``, clamped to the offset range.

        Returns:
            The clip's offset after the change (0 for the anchor)
        """
        self._require_phase(SyncPhase.ADJUSTING)
        camera = self._camera(clip_id)
        if camera.is_anchor:
            return camera.offset_ms

        camera.offset_ms = self.config.clamp_offset(camera.offset_ms + int(delta_ms))
        self._notify()
        return camera.offset_ms

    def set_offset(self, clip_id: str, offset_ms: int) -> int:
        """
        Set a clip's offset to an absolute value, clamped to the offset range.

        Returns:
            The clip's offset after the change (0 for the anchor)
        """
        self._require_phase(SyncPhase.ADJUSTING)
        camera = self._camera(clip_id)
        if camera.is_anchor:
            return camera.offset_ms

        camera.offset_ms = self.config.clamp_offset(int(offset_ms))
        self._notify()
        return camera.offset_ms

    def reset_offset(self, clip_id: str) -> None:
        self._require_phase(SyncPhase.ADJUSTING)
        camera = self._camera(clip_id)
        if camera.offset_ms == 0:
            return
        camera.offset_ms = 0
        self._notify()

    def reset_all(self) -> None:
        self._require_phase(SyncPhase.ADJUSTING)
        for camera in self._cameras:
            camera.offset_ms = 0
        self._notify()

    def seek_position_ms(self, clip_id: str) -> int:
        """Position within the clip that shows the synced instant."""
        return self._camera(clip_id).seek_position_ms

    def seek_positions(self) -> dict[str, int]:
        return {c.clip_id: c.seek_position_ms for c in self._cameras}

    def add_listener(self, listener: SessionListener) -> None:
        """Register a callback run after every change to the working set."""
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ----- Commit / cancel -----

    @property
    def is_saving(self) -> bool:
        return self._is_saving

    @property
    def is_closed(self) -> bool:
        return self.phase in (SyncPhase.COMMITTED, SyncPhase.CANCELLED)

    def build_updates(self) -> list[ClipPositionUpdate]:
        """
        Minimal set of position writes realizing the current adjustments.

        The anchor and clips at offset 0 are omitted.
        """
        return [
            ClipPositionUpdate(clip_id=c.clip_id, new_position_ms=c.new_position_ms)
            for c in self._cameras
            if c.is_adjusted
        ]

    async def commit(self) -> list[ClipPositionUpdate]:
        """
        Persist the adjustments and end the session.

        Only writes not already persisted by an earlier partial commit are
        sent. On any failure the session stays in the adjusting phase with
        every adjustment intact, so the commit can be retried.

        Returns:
            The updates realized by this session

        Raises:
            CommitError: Some or all writes failed; lists every failed update
            InvalidPhaseError: Not adjusting, or a commit is already running
        """
        self._require_phase(SyncPhase.ADJUSTING)

        updates = self.build_updates()
        pending = self._pending_writes()

        if not pending:
            self.logger.info("Nothing to save, closing session", updates=len(updates))
            self._close(SyncPhase.COMMITTED)
            return updates

        self.logger.info("Committing clip positions", pending=len(pending))

        if self._on_commit is None:
            result = BatchWriteResult(succeeded=pending)
        else:
            self._is_saving = True
            try:
                result = await self._on_commit(pending)
            except Exception as e:
                self.logger.error("Commit failed", error=str(e), pending=len(pending))
                raise CommitError(
                    [FailedUpdate(update=u, reason=str(e)) for u in pending],
                    message=f"Failed to save clip positions: {e}",
                ) from e
            finally:
                self._is_saving = False

        failed = self._collect_failures(pending, result)

        pending_ids = {u.clip_id for u in pending}
        succeeded = [u for u in result.succeeded if u.clip_id in pending_ids]
        self.timeline.apply_position_updates(succeeded)
        for update in succeeded:
            self._written[update.clip_id] = update.new_position_ms

        if failed:
            self.logger.warning(
                "Commit partially failed",
                succeeded=len(succeeded),
                failed=[f.update.clip_id for f in failed],
            )
            raise CommitError(failed)

        self.logger.info("Sync committed", updated=len(updates))
        self._close(SyncPhase.COMMITTED)
        return updates

    def cancel(self) -> None:
        """
        Discard the session. Writes nothing.

        Raises:
            InvalidPhaseError: A commit is in progress
        """
        if self.is_closed:
            return
        if self._is_saving:
            raise InvalidPhaseError("Cannot cancel while a commit is in progress")
        if self._written:
            self.logger.warning(
                "Cancelled after a partial commit",
                persisted=list(self._written),
            )
        self._close(SyncPhase.CANCELLED)
        self.logger.info("Sync session cancelled")
        if self._on_cancel is not None:
            self._on_cancel()

    # ----- Internals -----

    def _pending_writes(self) -> list[ClipPositionUpdate]:
        """Writes needed to bring the store in line with the working set."""
        pending = []
        for camera in self._cameras:
            desired = camera.new_position_ms if camera.is_adjusted else camera.original_position_ms
            written = self._written.get(camera.clip_id)

            if camera.is_adjusted and written != desired:
                pending.append(ClipPositionUpdate(clip_id=camera.clip_id, new_position_ms=desired))
            elif not camera.is_adjusted and written is not None and written != desired:
                # Persisted earlier, then reset or made anchor: write it back
                pending.append(ClipPositionUpdate(clip_id=camera.clip_id, new_position_ms=desired))
        return pending

    def _collect_failures(
        self,
        pending: list[ClipPositionUpdate],
        result: BatchWriteResult,
    ) -> list[FailedUpdate]:
        failed = list(result.failed)
        reported = {u.clip_id for u in result.succeeded} | {f.update.clip_id for f in failed}
        for update in pending:
            if update.clip_id not in reported:
                failed.append(FailedUpdate(update=update, reason="Not acknowledged by clip store"))
        return failed

    def _close(self, phase: SyncPhase) -> None:
        self.phase = phase
        self._cameras = []
        self._notify()
        self._listeners.clear()

    def _camera(self, clip_id: str) -> CameraAtSyncPoint:
        for camera in self._cameras:
            if camera.clip_id == clip_id:
                return camera
        raise UnknownClipError(clip_id)

    def _require_phase(self, phase: SyncPhase) -> None:
        if self.phase != phase:
            raise InvalidPhaseError(
                f"Operation requires phase '{phase.value}', session is '{self.phase.value}'"
            )
        if self._is_saving:
            raise InvalidPhaseError("A commit is in progress")

    def _clamp_time(self, time_ms: int) -> int:
        return max(0, min(int(time_ms), self.total_duration_ms))

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener(self)
