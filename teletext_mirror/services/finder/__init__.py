# Snapshot finder service
from teletext_mirror.services.finder.resolver import SnapshotResolver, find_timestamp_at

__all__ = ["SnapshotResolver", "find_timestamp_at"]
