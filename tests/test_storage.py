"""
Tests for clip stores and playback URL gateways.
"""

import asyncio

import pytest
from botocore.exceptions import ClientError

from filmsync.errors import PlaybackSourceError, TimelineNotFoundError
from filmsync.models import ClipPositionUpdate
from filmsync.storage import (
    InMemoryClipStore,
    JsonFileClipStore,
    PassthroughUrlGateway,
    S3PlaybackUrlGateway,
)


def update(clip_id, position):
    return ClipPositionUpdate(clip_id=clip_id, new_position_ms=position)


class TestInMemoryClipStore:
    """Tests for InMemoryClipStore."""

    def test_read_returns_copy(self, three_lane_timeline):
        """Test readers cannot change stored positions."""
        store = InMemoryClipStore([three_lane_timeline])

        timeline = asyncio.run(store.read_timeline("group-1"))
        timeline.get_clip("clip-b").lane_position_ms = 0

        again = asyncio.run(store.read_timeline("group-1"))
        assert again.get_clip("clip-b").lane_position_ms == 4_000

    def test_read_lanes(self, three_lane_timeline):
        store = InMemoryClipStore([three_lane_timeline])

        lanes = asyncio.run(store.read_lanes("group-1"))

        assert [lane.label for lane in lanes] == ["Sideline", "End Zone", "Press Box"]

    def test_unknown_timeline(self):
        with pytest.raises(TimelineNotFoundError):
            asyncio.run(InMemoryClipStore().read_timeline("missing"))

    def test_write_batch(self, three_lane_timeline):
        """Test a valid batch is applied."""
        store = InMemoryClipStore([three_lane_timeline])

        result = asyncio.run(store.write_batch([update("clip-b", 4_750), update("clip-c", 0)]))

        assert result.ok
        timeline = asyncio.run(store.read_timeline("group-1"))
        assert timeline.get_clip("clip-b").lane_position_ms == 4_750
        assert timeline.get_clip("clip-c").lane_position_ms == 0

    def test_atomic_batch_rejected(self, three_lane_timeline):
        """Test an unknown clip rejects the whole batch."""
        store = InMemoryClipStore([three_lane_timeline])

        result = asyncio.run(store.write_batch([update("clip-b", 4_750), update("ghost", 10)]))

        assert result.succeeded == []
        reasons = {f.update.clip_id: f.reason for f in result.failed}
        assert reasons == {
            "ghost": "Clip not found",
            "clip-b": "Batch rejected: another update failed",
        }
        timeline = asyncio.run(store.read_timeline("group-1"))
        assert timeline.get_clip("clip-b").lane_position_ms == 4_000

    def test_non_atomic_partial_write(self, three_lane_timeline):
        """Test a non-atomic store reports exactly which updates failed."""
        store = InMemoryClipStore([three_lane_timeline], atomic=False)

        result = asyncio.run(store.write_batch([update("clip-b", 4_750), update("ghost", 10)]))

        assert result.succeeded == [update("clip-b", 4_750)]
        assert [f.update.clip_id for f in result.failed] == ["ghost"]


class TestJsonFileClipStore:
    """Tests for JsonFileClipStore."""

    def test_save_and_read(self, tmp_path, three_lane_timeline):
        """Test a timeline round-trips through the file."""
        store = JsonFileClipStore(tmp_path / "game.json")
        asyncio.run(store.save_timeline(three_lane_timeline))

        timeline = asyncio.run(store.read_timeline("group-1"))

        assert timeline == three_lane_timeline
        assert not (tmp_path / "game.json.tmp").exists()

    def test_missing_or_other_timeline(self, tmp_path, three_lane_timeline):
        store = JsonFileClipStore(tmp_path / "game.json")

        with pytest.raises(TimelineNotFoundError):
            asyncio.run(store.read_timeline("group-1"))

        asyncio.run(store.save_timeline(three_lane_timeline))
        with pytest.raises(TimelineNotFoundError):
            asyncio.run(store.read_timeline("group-2"))

    def test_write_batch(self, tmp_path, three_lane_timeline):
        """Test written positions land in the file."""
        store = JsonFileClipStore(tmp_path / "game.json")
        store.dump(three_lane_timeline)

        result = asyncio.run(store.write_batch([update("clip-b", 4_750)]))

        assert result.ok
        assert store.load().get_clip("clip-b").lane_position_ms == 4_750

    def test_write_batch_all_or_nothing(self, tmp_path, three_lane_timeline):
        """Test an unknown clip leaves the file untouched."""
        store = JsonFileClipStore(tmp_path / "game.json")
        store.dump(three_lane_timeline)

        result = asyncio.run(store.write_batch([update("clip-b", 4_750), update("ghost", 0)]))

        assert len(result.failed) == 2
        assert store.load().get_clip("clip-b").lane_position_ms == 4_000

    def test_write_batch_unreadable_file(self, tmp_path):
        """Test a corrupt file fails every update."""
        path = tmp_path / "game.json"
        path.write_text("{not json")
        store = JsonFileClipStore(path)

        result = asyncio.run(store.write_batch([update("clip-b", 4_750)]))

        assert not result.ok
        assert result.failed[0].reason.startswith("Could not read timeline")


class FakeS3Client:
    """Stands in for a boto3 S3 client."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def generate_presigned_url(self, operation, Params, ExpiresIn):
        self.calls.append((operation, Params, ExpiresIn))
        if self.error is not None:
            raise self.error
        return f"https://s3.example.com/{Params['Bucket']}/{Params['Key']}?sig={len(self.calls)}"


PRIVATE_URL = "https://project.supabase.co/storage/v1/object/sign/game_videos/team-1/game.mp4?token=old"
PUBLIC_URL = "https://project.supabase.co/storage/v1/object/public/game_videos/team-1/game.mp4"


class TestUrlGateways:
    """Tests for playback URL gateways."""

    def test_passthrough(self):
        gateway = PassthroughUrlGateway()

        assert asyncio.run(gateway.resolve_playback_url(PUBLIC_URL)) == PUBLIC_URL
        with pytest.raises(PlaybackSourceError):
            asyncio.run(gateway.resolve_playback_url(""))

    def test_object_key(self):
        gateway = S3PlaybackUrlGateway(FakeS3Client())

        assert gateway.object_key(PRIVATE_URL) == "team-1/game.mp4"
        assert gateway.object_key(PUBLIC_URL) is None
        assert gateway.object_key("https://youtube.com/watch?v=abc") is None

    def test_public_url_unchanged(self):
        client = FakeS3Client()
        gateway = S3PlaybackUrlGateway(client)

        assert asyncio.run(gateway.resolve_playback_url(PUBLIC_URL)) == PUBLIC_URL
        assert client.calls == []

    def test_private_url_presigned(self):
        """Test private objects are presigned for the configured lifetime."""
        client = FakeS3Client()
        gateway = S3PlaybackUrlGateway(client, expires_in=3600)

        url = asyncio.run(gateway.resolve_playback_url(PRIVATE_URL))

        assert url == "https://s3.example.com/game_videos/team-1/game.mp4?sig=1"
        assert client.calls == [
            ("get_object", {"Bucket": "game_videos", "Key": "team-1/game.mp4"}, 3600),
        ]

    def test_presigned_url_cached(self):
        """Test repeated resolution reuses a fresh URL and re-signs a stale one."""
        client = FakeS3Client()
        gateway = S3PlaybackUrlGateway(client)

        first = asyncio.run(gateway.resolve_playback_url(PRIVATE_URL))
        second = asyncio.run(gateway.resolve_playback_url(PRIVATE_URL))
        assert first == second
        assert len(client.calls) == 1

        gateway._cache[PRIVATE_URL] = (first, 0.0)
        third = asyncio.run(gateway.resolve_playback_url(PRIVATE_URL))
        assert third.endswith("?sig=2")

    def test_presign_failure(self):
        """Test boto errors surface as playback source errors."""
        error = ClientError({"Error": {"Code": "NoSuchKey", "Message": "missing"}}, "GetObject")
        gateway = S3PlaybackUrlGateway(FakeS3Client(error=error))

        with pytest.raises(PlaybackSourceError) as exc_info:
            asyncio.run(gateway.resolve_playback_url(PRIVATE_URL))

        assert exc_info.value.source_ref == PRIVATE_URL
