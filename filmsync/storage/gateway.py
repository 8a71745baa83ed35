"""Playback URL gateways."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from filmsync.config import SyncConfig
from filmsync.errors import PlaybackSourceError
from filmsync.storage.base import PlaybackUrlGateway

logger = structlog.get_logger(__name__)

PUBLIC_OBJECT_MARKER = "/object/public/"


class PassthroughUrlGateway(PlaybackUrlGateway):
    """Treats every stored source as directly playable."""

    async def resolve_playback_url(self, source_ref: str) -> str:
        if not source_ref:
            raise PlaybackSourceError(source_ref, "no source")
        return source_ref


class S3PlaybackUrlGateway(PlaybackUrlGateway):
    """
    Presigns private bucket objects with boto3.

    - Public object URLs are returned unchanged.
    - URLs containing ``/<bucket>/`` are presigned for the key after it.
    - Anything else is returned unchanged.

    Presigned URLs are cached per source until ``refresh_margin_seconds``
    before they expire.
    """

    def __init__(
        self,
        client: Any,
        bucket: str = "game_videos",
        expires_in: int = 3600,
        refresh_margin_seconds: int = 60,
    ):
        """
        Args:
            client: A boto3 S3 client
            bucket: Bucket holding the game videos
            expires_in: Lifetime of presigned URLs in seconds
            refresh_margin_seconds: Re-sign this long before expiry
        """
        self.client = client
        self.bucket = bucket
        self.expires_in = expires_in
        self.refresh_margin_seconds = min(refresh_margin_seconds, expires_in // 2)
        self._cache: dict[str, tuple[str, float]] = {}

    @classmethod
    def from_config(cls, config: SyncConfig) -> "S3PlaybackUrlGateway":
        import boto3

        client = boto3.client(
            "s3",
            endpoint_url=config.s3_endpoint_url,
            region_name=config.s3_region,
        )
        return cls(
            client,
            bucket=config.storage_bucket,
            expires_in=config.signed_url_expiry_seconds,
        )

    def object_key(self, source_ref: str) -> str | None:
        """Extract the bucket key from a stored URL or path, if it has one."""
        marker = f"/{self.bucket}/"
        if PUBLIC_OBJECT_MARKER in source_ref or marker not in source_ref:
            return None
        key = source_ref.split(marker, 1)[1].split("?", 1)[0]
        return key or None

    async def resolve_playback_url(self, source_ref: str) -> str:
        if not source_ref:
            raise PlaybackSourceError(source_ref, "no source")

        key = self.object_key(source_ref)
        if key is None:
            return source_ref

        cached = self._cache.get(source_ref)
        now = time.monotonic()
        if cached and cached[1] - self.refresh_margin_seconds > now:
            return cached[0]

        try:
            url = await asyncio.to_thread(
                self.client.generate_presigned_url,
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.expires_in,
            )
        except (BotoCoreError, ClientError) as e:
            logger.warning("Presigning failed", key=key, error=str(e))
            raise PlaybackSourceError(source_ref, str(e)) from e

        self._cache[source_ref] = (url, now + self.expires_in)
        logger.debug("Presigned playback URL", key=key, expires_in=self.expires_in)
        return url
