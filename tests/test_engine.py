"""
Tests for the film studio engine.
"""

import asyncio

import pytest

from filmsync.config import SyncConfig
from filmsync.engine import FilmStudioEngine, get_store, get_url_gateway
from filmsync.errors import CommitError, TimelineNotFoundError
from filmsync.models import BatchWriteResult, ClipLoadState, ClipPositionUpdate
from filmsync.storage import (
    InMemoryClipStore,
    JsonFileClipStore,
    PassthroughUrlGateway,
    S3PlaybackUrlGateway,
)


class FailingStore(InMemoryClipStore):
    """Store whose writes always fail."""

    async def write_batch(self, updates):
        return BatchWriteResult.all_failed(updates, "database unavailable")


@pytest.fixture
def engine(three_lane_timeline):
    engine = FilmStudioEngine(
        store=InMemoryClipStore([three_lane_timeline]),
        url_gateway=PassthroughUrlGateway(),
    )
    asyncio.run(engine.load_timeline("group-1"))
    return engine


class TestFilmStudioEngine:
    """Tests for FilmStudioEngine."""

    def test_engine_defaults(self):
        """Test default collaborators."""
        engine = FilmStudioEngine()

        assert isinstance(engine.store, InMemoryClipStore)
        assert isinstance(engine.url_gateway, PassthroughUrlGateway)
        assert engine.list_sessions() == []

    def test_load_timeline_cached(self, engine):
        """Test timelines are read once unless refreshed."""
        first = asyncio.run(engine.load_timeline("group-1"))
        second = asyncio.run(engine.load_timeline("group-1"))
        refreshed = asyncio.run(engine.load_timeline("group-1", refresh=True))

        assert first is second
        assert refreshed is not first
        assert engine.get_timeline("group-1") is refreshed

    def test_load_unknown_timeline(self, engine):
        with pytest.raises(TimelineNotFoundError):
            asyncio.run(engine.load_timeline("missing"))

    def test_register_timeline(self, two_clip_timeline):
        engine = FilmStudioEngine()

        asyncio.run(engine.register_timeline(two_clip_timeline))

        stored = asyncio.run(engine.store.read_timeline("group-2"))
        assert stored == two_clip_timeline
        assert engine.get_timeline("group-2") is two_clip_timeline

    def test_open_session_requires_loaded_timeline(self, engine):
        with pytest.raises(TimelineNotFoundError):
            engine.open_sync_session("group-2", current_lane=1, current_time_ms=0)

    def test_commit_session(self, engine):
        """Test a commit reaches the store and closes the session."""
        session = engine.open_sync_session("group-1", current_lane=1, current_time_ms=10_000)
        session.confirm_sync_time()
        session.set_offset("clip-b", 750)

        updates = asyncio.run(engine.commit_session(str(session.id)))

        assert updates == [ClipPositionUpdate(clip_id="clip-b", new_position_ms=4_750)]
        assert engine.get_session(session.id) is None
        stored = asyncio.run(engine.store.read_timeline("group-1"))
        assert stored.get_clip("clip-b").lane_position_ms == 4_750
        assert engine.get_timeline("group-1").get_clip("clip-b").lane_position_ms == 4_750

    def test_commit_failure_keeps_session(self, three_lane_timeline):
        """Test a failed commit leaves the session open for retry."""
        engine = FilmStudioEngine(store=FailingStore([three_lane_timeline]))
        asyncio.run(engine.load_timeline("group-1"))
        session = engine.open_sync_session("group-1", current_lane=1, current_time_ms=10_000)
        session.confirm_sync_time()
        session.set_offset("clip-b", 750)

        with pytest.raises(CommitError) as exc_info:
            asyncio.run(engine.commit_session(session.id))

        assert exc_info.value.failed[0].reason == "database unavailable"
        assert engine.get_session(session.id) is session

    def test_commit_unknown_session(self, engine):
        with pytest.raises(LookupError):
            asyncio.run(engine.commit_session("00000000-0000-0000-0000-000000000000"))

    def test_cancel_session(self, engine):
        """Test cancelled sessions are forgotten."""
        session = engine.open_sync_session("group-1", current_lane=1, current_time_ms=10_000)

        assert engine.list_sessions() == [session]
        assert engine.cancel_session(session.id)
        assert engine.list_sessions() == []
        assert not engine.cancel_session(session.id)

    def test_resolve_session_sources(self, engine):
        session = engine.open_sync_session("group-1", current_lane=1, current_time_ms=10_000)
        session.confirm_sync_time()

        results = asyncio.run(engine.resolve_session_sources(session.id))

        assert set(results) == {"clip-a", "clip-b", "clip-c"}
        assert all(r.state == ClipLoadState.READY for r in results.values())


class TestFactories:
    """Tests for building collaborators from config."""

    def test_get_store(self, tmp_path):
        assert isinstance(get_store(SyncConfig()), InMemoryClipStore)

        store = get_store(SyncConfig(timeline_store_path=str(tmp_path / "t.json")))
        assert isinstance(store, JsonFileClipStore)

    def test_get_url_gateway(self):
        assert isinstance(get_url_gateway(SyncConfig()), PassthroughUrlGateway)

        gateway = get_url_gateway(SyncConfig(s3_region="us-east-1", storage_bucket="film"))
        assert isinstance(gateway, S3PlaybackUrlGateway)
        assert gateway.bucket == "film"

    def test_config_from_env(self, monkeypatch):
        """Test configuration is read from the environment."""
        monkeypatch.setenv("FILMSYNC_MAX_OFFSET_MS", "10000")
        monkeypatch.setenv("FILMSYNC_STORAGE_BUCKET", "film")
        monkeypatch.delenv("FILMSYNC_S3_REGION", raising=False)

        config = SyncConfig.from_env(dotenv=False)

        assert config.max_offset_ms == 10_000
        assert config.storage_bucket == "film"
        assert config.s3_region is None
        assert config.clamp_offset(-25_000) == -10_000
