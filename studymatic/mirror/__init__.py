"""Local mirror: freshness inspection, metadata documents and the sync engine."""

from .engine import SyncEngine
from .serializer import MetadataSerializer
from .store import LocalMirrorStore

__all__ = ["LocalMirrorStore", "MetadataSerializer", "SyncEngine"]
