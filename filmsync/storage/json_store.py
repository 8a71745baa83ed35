"""Clip store backed by a timeline JSON file."""

from __future__ import annotations

import os
from pathlib import Path

import structlog

from filmsync.errors import TimelineNotFoundError
from filmsync.models.sync import BatchWriteResult, ClipPositionUpdate, FailedUpdate
from filmsync.models.timeline import GameTimeline
from filmsync.storage.base import ClipStore

logger = structlog.get_logger(__name__)


class JsonFileClipStore(ClipStore):
    """
    Stores a single game timeline as a JSON document.

    Batches are all-or-nothing: every clip is checked before the file is
    rewritten, and the rewrite goes through a temporary file.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> GameTimeline:
        if not self.path.exists():
            raise FileNotFoundError(f"Timeline file not found: {self.path}")
        return GameTimeline.model_validate_json(self.path.read_text())

    def dump(self, timeline: GameTimeline) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(timeline.model_dump_json(indent=2))
        os.replace(tmp_path, self.path)

    async def read_timeline(self, video_group_id: str) -> GameTimeline:
        if not self.path.exists():
            raise TimelineNotFoundError(video_group_id)
        timeline = self.load()
        if timeline.video_group_id != video_group_id:
            raise TimelineNotFoundError(video_group_id)
        return timeline

    async def save_timeline(self, timeline: GameTimeline) -> None:
        self.dump(timeline)
        logger.info("Timeline saved", path=str(self.path), video_group_id=timeline.video_group_id)

    async def write_batch(self, updates: list[ClipPositionUpdate]) -> BatchWriteResult:
        try:
            timeline = self.load()
        except (OSError, ValueError) as e:
            logger.error("Could not read timeline file", path=str(self.path), error=str(e))
            return BatchWriteResult.all_failed(updates, f"Could not read timeline: {e}")

        missing = [u for u in updates if timeline.get_clip(u.clip_id) is None]
        if missing:
            missing_ids = {u.clip_id for u in missing}
            return BatchWriteResult(failed=[
                FailedUpdate(
                    update=u,
                    reason="Clip not found" if u.clip_id in missing_ids
                    else "Batch rejected: another update failed",
                )
                for u in updates
            ])

        timeline.apply_position_updates(updates)

        try:
            self.dump(timeline)
        except OSError as e:
            logger.error("Could not write timeline file", path=str(self.path), error=str(e))
            return BatchWriteResult.all_failed(updates, f"Could not write timeline: {e}")

        logger.info("Batch written", path=str(self.path), written=len(updates))
        return BatchWriteResult(succeeded=list(updates))
