# Snapshot store service
from teletext_mirror.services.store.snapshot_store import SnapshotStore

__all__ = ["SnapshotStore"]
