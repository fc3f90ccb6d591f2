# Data models
from teletext_mirror.models.page import PageMetadata
from teletext_mirror.models.snapshot import SnapshotKey
from teletext_mirror.models.monitor import CrawlReport, PageOutcome, PageState

__all__ = ["PageMetadata", "SnapshotKey", "CrawlReport", "PageOutcome", "PageState"]
