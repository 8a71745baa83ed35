"""In-memory clip store."""

from __future__ import annotations

import structlog

from filmsync.errors import TimelineNotFoundError
from filmsync.models.sync import BatchWriteResult, ClipPositionUpdate, FailedUpdate
from filmsync.models.timeline import GameTimeline, TimelineClip
from filmsync.storage.base import ClipStore

logger = structlog.get_logger(__name__)


class InMemoryClipStore(ClipStore):
    """
    Clip store backed by a dict of timelines.

    With ``atomic=True`` a batch containing any unknown clip is rejected as
    a whole. Otherwise known clips are written and the rest reported failed.
    """

    def __init__(self, timelines: list[GameTimeline] | None = None, atomic: bool = True):
        self.atomic = atomic
        self._timelines: dict[str, GameTimeline] = {}
        for timeline in timelines or []:
            self._timelines[timeline.video_group_id] = timeline.model_copy(deep=True)

    async def read_timeline(self, video_group_id: str) -> GameTimeline:
        timeline = self._timelines.get(video_group_id)
        if timeline is None:
            raise TimelineNotFoundError(video_group_id)
        # Callers get their own copy; positions change only via write_batch
        return timeline.model_copy(deep=True)

    async def save_timeline(self, timeline: GameTimeline) -> None:
        self._timelines[timeline.video_group_id] = timeline.model_copy(deep=True)
        logger.info("Timeline saved", video_group_id=timeline.video_group_id)

    async def write_batch(self, updates: list[ClipPositionUpdate]) -> BatchWriteResult:
        found: list[tuple[ClipPositionUpdate, TimelineClip]] = []
        failed: list[FailedUpdate] = []

        for update in updates:
            clip = self._find_clip(update.clip_id)
            if clip is None:
                failed.append(FailedUpdate(update=update, reason="Clip not found"))
            else:
                found.append((update, clip))

        if failed and self.atomic:
            logger.warning("Batch rejected", failed=[f.update.clip_id for f in failed])
            rejected = [
                FailedUpdate(update=u, reason="Batch rejected: another update failed")
                for u, _ in found
            ]
            return BatchWriteResult(failed=failed + rejected)

        for update, clip in found:
            clip.lane_position_ms = update.new_position_ms

        logger.info("Batch written", written=len(found), failed=len(failed))
        return BatchWriteResult(succeeded=[u for u, _ in found], failed=failed)

    def _find_clip(self, clip_id: str) -> TimelineClip | None:
        for timeline in self._timelines.values():
            clip = timeline.get_clip(clip_id)
            if clip is not None:
                return clip
        return None
