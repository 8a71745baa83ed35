"""Runtime configuration for the sync engine."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


@dataclass
class SyncConfig:
    """Configuration for sync sessions, playback and storage."""

    # Offsets
    max_offset_ms: int = 30_000
    nudge_fine_ms: int = 100
    nudge_coarse_ms: int = 1_000
    offset_slider_step_ms: int = 100

    # Sync point picking
    sync_time_step_ms: int = 1_000
    min_cameras: int = 2

    # Playback
    seek_tolerance_seconds: float = 0.05

    # Storage
    storage_bucket: str = "game_videos"
    signed_url_expiry_seconds: int = 3600
    s3_endpoint_url: str | None = None
    s3_region: str | None = None
    timeline_store_path: str | None = None  # JSON file store; in-memory if unset

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "SyncConfig":
        """
        Build a config from ``FILMSYNC_*`` environment variables.

        Args:
            dotenv: Load a ``.env`` file first, if one exists

        Returns:
            SyncConfig with defaults for every variable that is not set
        """
        if dotenv:
            load_dotenv()

        defaults = cls()

        def _int(name: str, default: int) -> int:
            value = os.environ.get(name)
            return int(value) if value else default

        return cls(
            max_offset_ms=_int("FILMSYNC_MAX_OFFSET_MS", defaults.max_offset_ms),
            nudge_fine_ms=_int("FILMSYNC_NUDGE_FINE_MS", defaults.nudge_fine_ms),
            nudge_coarse_ms=_int("FILMSYNC_NUDGE_COARSE_MS", defaults.nudge_coarse_ms),
            offset_slider_step_ms=_int(
                "FILMSYNC_OFFSET_SLIDER_STEP_MS", defaults.offset_slider_step_ms
            ),
            sync_time_step_ms=_int("FILMSYNC_SYNC_TIME_STEP_MS", defaults.sync_time_step_ms),
            min_cameras=_int("FILMSYNC_MIN_CAMERAS", defaults.min_cameras),
            seek_tolerance_seconds=float(
                os.environ.get("FILMSYNC_SEEK_TOLERANCE_SECONDS", defaults.seek_tolerance_seconds)
            ),
            storage_bucket=os.environ.get("FILMSYNC_STORAGE_BUCKET", defaults.storage_bucket),
            signed_url_expiry_seconds=_int(
                "FILMSYNC_SIGNED_URL_EXPIRY_SECONDS", defaults.signed_url_expiry_seconds
            ),
            s3_endpoint_url=os.environ.get("FILMSYNC_S3_ENDPOINT_URL") or None,
            s3_region=os.environ.get("FILMSYNC_S3_REGION") or None,
            timeline_store_path=os.environ.get("FILMSYNC_TIMELINE_STORE") or None,
        )

    def clamp_offset(self, offset_ms: int) -> int:
        """Clamp an offset into ``[-max_offset_ms, +max_offset_ms]``."""
        return max(-self.max_offset_ms, min(self.max_offset_ms, offset_ms))
