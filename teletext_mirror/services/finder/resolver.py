"""
快照解析服务。
查找某个时间点上生效的子页面快照。
"""
from typing import Iterable, Optional

from teletext_mirror.core.logging import get_logger
from teletext_mirror.models.snapshot import SnapshotKey
from teletext_mirror.services.store import SnapshotStore

logger = get_logger(__name__)


def find_timestamp_at(timestamps: Iterable[int], target_timestamp: int) -> Optional[int]:
    """
    返回不晚于 target_timestamp 的最大时间戳。

    timestamps 无需预先排序。没有符合条件的时间戳时返回 None。
    """
    for timestamp in sorted(timestamps, reverse=True):
        if timestamp <= target_timestamp:
            return timestamp
    return None


class SnapshotResolver:
    """
    按时间点解析快照。

    目标时间早于所有已保存快照，或子页面没有任何快照时，结果为 None。
    """

    def __init__(self, store: SnapshotStore):
        self.store = store

    async def resolve_timestamp_at(
        self,
        page_nr: int,
        subpage_nr: int,
        target_timestamp: int
    ) -> Optional[int]:
        """查找目标时间点生效的快照时间戳。"""
        available = await self.store.list_timestamps(page_nr, subpage_nr)
        timestamp = find_timestamp_at(available, target_timestamp)
        if timestamp is None:
            logger.debug(
                f"未找到快照: {page_nr}/{subpage_nr} @ {target_timestamp} "
                f"(可用 {len(available)} 个)"
            )
        return timestamp

    async def resolve_key_at(
        self,
        page_nr: int,
        subpage_nr: int,
        target_timestamp: int
    ) -> Optional[str]:
        """查找目标时间点生效的快照存储键。"""
        timestamp = await self.resolve_timestamp_at(page_nr, subpage_nr, target_timestamp)
        if timestamp is None:
            return None
        return SnapshotKey(page_nr, subpage_nr, timestamp).storage_key

    async def resolve_url_at(
        self,
        page_nr: int,
        subpage_nr: int,
        target_timestamp: int
    ) -> Optional[str]:
        """查找目标时间点生效的快照公开 URL。"""
        timestamp = await self.resolve_timestamp_at(page_nr, subpage_nr, target_timestamp)
        if timestamp is None:
            return None
        return self.store.public_url(page_nr, subpage_nr, timestamp)
