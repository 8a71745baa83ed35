"""Clip store and playback URL collaborators."""

from filmsync.storage.base import ClipStore, PlaybackUrlGateway
from filmsync.storage.gateway import PassthroughUrlGateway, S3PlaybackUrlGateway
from filmsync.storage.json_store import JsonFileClipStore
from filmsync.storage.memory import InMemoryClipStore

__all__ = [
    "ClipStore",
    "PlaybackUrlGateway",
    "InMemoryClipStore",
    "JsonFileClipStore",
    "PassthroughUrlGateway",
    "S3PlaybackUrlGateway",
]
