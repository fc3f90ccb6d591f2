"""
PageOutcome / CrawlReport 模型 - 一次采集中每个页面的监测结果。
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from teletext_mirror.core.exceptions import FailureKind


class PageState(str, Enum):
    """
    单次采集中页面的状态。

    NOT_VISITED -> METADATA_FETCHED -> UP_TO_DATE
                                    -> SYNCING -> SYNCED | SYNC_FAILED
    NOT_VISITED -> METADATA_FETCH_FAILED
    """
    NOT_VISITED = "NOT_VISITED"
    METADATA_FETCHED = "METADATA_FETCHED"
    METADATA_FETCH_FAILED = "METADATA_FETCH_FAILED"
    UP_TO_DATE = "UP_TO_DATE"
    SYNCING = "SYNCING"
    SYNCED = "SYNCED"
    SYNC_FAILED = "SYNC_FAILED"


_FAILED_STATES = {PageState.METADATA_FETCH_FAILED, PageState.SYNC_FAILED}


@dataclass
class PageOutcome:
    """单个页面的同步结果。"""
    page_nr: int
    state: PageState = PageState.NOT_VISITED
    timestamp: Optional[int] = None
    subpage_count: Optional[int] = None
    previous_timestamp: Optional[int] = None
    snapshots_written: int = 0
    failure_kind: Optional[FailureKind] = None
    error_message: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.state in _FAILED_STATES

    def __repr__(self) -> str:
        return f"<PageOutcome(page_nr={self.page_nr}, state={self.state.value})>"


@dataclass
class CrawlReport:
    """一次完整页面链采集的报告。"""
    start_page: int
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    completed_at: Optional[datetime] = None
    outcomes: Dict[int, PageOutcome] = field(default_factory=dict)

    def outcome_for(self, page_nr: int) -> PageOutcome:
        """获取页面结果，不存在时创建。"""
        if page_nr not in self.outcomes:
            self.outcomes[page_nr] = PageOutcome(page_nr=page_nr)
        return self.outcomes[page_nr]

    @property
    def visited_pages(self) -> List[int]:
        """按访问顺序排列的页码。"""
        return list(self.outcomes)

    @property
    def failures(self) -> List[PageOutcome]:
        return [o for o in self.outcomes.values() if o.failed]

    @property
    def pages_synced(self) -> int:
        return sum(1 for o in self.outcomes.values() if o.state is PageState.SYNCED)

    @property
    def snapshots_written(self) -> int:
        return sum(o.snapshots_written for o in self.outcomes.values())

    def count_by_state(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for outcome in self.outcomes.values():
            counts[outcome.state.value] = counts.get(outcome.state.value, 0) + 1
        return counts

    def to_dict(self) -> dict:
        return {
            "start_page": self.start_page,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "pages_visited": len(self.outcomes),
            "pages_synced": self.pages_synced,
            "snapshots_written": self.snapshots_written,
            "states": self.count_by_state(),
            "failures": [
                {
                    "page_nr": o.page_nr,
                    "state": o.state.value,
                    "kind": o.failure_kind.value if o.failure_kind else None,
                    "error": o.error_message,
                }
                for o in self.failures
            ],
        }
