"""
快照存储服务。
在存储后端之上保存子页面图片快照和每个页面的最后同步时间戳。
"""
from typing import Optional, Set

from teletext_mirror.core.logging import get_logger
from teletext_mirror.core.storage import StorageBackend
from teletext_mirror.models.page import parse_leading_int
from teletext_mirror.models.snapshot import SnapshotKey, subpage_prefix, watermark_key

logger = get_logger(__name__)


class SnapshotStore:
    """
    快照与时间戳存储。

    键格式:
    - "{page}/{subpage}/{timestamp}.png": 子页面图片快照
    - "{page}/LAST_TS": 页面最后同步时间戳 (明文整数)
    """

    def __init__(self, storage: StorageBackend, list_page_size: int = 1000):
        self.storage = storage
        self.list_page_size = list_page_size

    async def put_snapshot(
        self,
        page_nr: int,
        subpage_nr: int,
        timestamp: int,
        data: bytes
    ) -> str:
        """
        保存子页面图片快照。不检查是否已存在，由调用方保证。

        Returns:
            快照的存储键
        """
        key = SnapshotKey(page_nr, subpage_nr, timestamp).storage_key
        await self.storage.save(key, data)
        logger.debug(f"快照已保存: {key} ({len(data)} 字节)")
        return key

    async def put_watermark(self, page_nr: int, timestamp: int) -> None:
        """保存页面最后同步时间戳。"""
        key = watermark_key(page_nr)
        await self.storage.save(key, str(timestamp).encode("utf-8"))
        logger.debug(f"时间戳已更新: {key} = {timestamp}")

    async def get_watermark(self, page_nr: int) -> Optional[int]:
        """
        读取页面最后同步时间戳。

        Returns:
            时间戳；对象不存在或内容为空时返回 None (视为从未同步)
        """
        content = await self.storage.read(watermark_key(page_nr))
        if not content:
            return None
        text = content.decode("utf-8", errors="replace").strip()
        if not text:
            return None
        timestamp = parse_leading_int(text)
        if timestamp is None:
            logger.warning(f"页面 {page_nr} 的时间戳内容无法解析: {text!r}，视为从未同步")
        return timestamp

    async def list_timestamps(self, page_nr: int, subpage_nr: int) -> Set[int]:
        """
        列出子页面所有已保存快照的时间戳 (无序)。

        无法解析的键会被跳过。单次列举最多返回 list_page_size 个对象，
        超出部分不会出现在结果中。
        """
        prefix = subpage_prefix(page_nr, subpage_nr)
        keys = await self.storage.list_keys(prefix, max_keys=self.list_page_size)

        timestamps = set()
        for key in keys:
            snapshot = SnapshotKey.parse(key)
            if snapshot is None or (snapshot.page_nr, snapshot.subpage_nr) != (page_nr, subpage_nr):
                logger.debug(f"跳过无法解析的键: {key}")
                continue
            timestamps.add(snapshot.timestamp)
        return timestamps

    def public_url(self, page_nr: int, subpage_nr: int, timestamp: int) -> str:
        """快照的公开访问 URL。"""
        key = SnapshotKey(page_nr, subpage_nr, timestamp).storage_key
        return self.storage.public_url(key)
