"""
图文电视更新服务。
沿页面链遍历，检测变更并保存新版本的子页面图片。
"""
import asyncio
from collections import deque
from datetime import datetime, timezone
from typing import Deque, List, Optional, Set

from teletext_mirror.core.config import CrawlerSettings
from teletext_mirror.core.exceptions import classify_failure
from teletext_mirror.core.logging import get_logger
from teletext_mirror.models.monitor import CrawlReport, PageOutcome, PageState
from teletext_mirror.models.page import PageMetadata
from teletext_mirror.services.source import TeletextClient
from teletext_mirror.services.store import SnapshotStore

logger = get_logger(__name__)


class TeletextUpdater:
    """
    变更检测与同步服务。

    对每个页面比较源站时间戳与已保存的最后同步时间戳:
    - 更新: 按子页顺序逐个获取图片并保存，最后更新时间戳
    - 未变化: 不做任何请求和写入
    """

    def __init__(
        self,
        client: TeletextClient,
        store: SnapshotStore,
        settings: Optional[CrawlerSettings] = None
    ):
        self.client = client
        self.store = store
        self.settings = settings or CrawlerSettings()

    async def sync_page_if_newer(
        self,
        page_nr: int,
        source_timestamp: int,
        subpage_count: int,
        outcome: Optional[PageOutcome] = None
    ) -> PageOutcome:
        """
        源站版本比已保存版本新时，保存页面所有子页图片。

        Args:
            page_nr: 页码
            source_timestamp: 源站页面时间戳
            subpage_count: 子页数量

        Returns:
            PageOutcome，状态为 UP_TO_DATE 或 SYNCED

        Raises:
            获取或保存失败时原样抛出；此时最后同步时间戳不会更新
        """
        if outcome is None:
            outcome = PageOutcome(page_nr=page_nr, state=PageState.METADATA_FETCHED)
        outcome.timestamp = source_timestamp
        outcome.subpage_count = subpage_count

        try:
            last_stored_at = await self.store.get_watermark(page_nr)
            outcome.previous_timestamp = last_stored_at

            if last_stored_at is not None and source_timestamp <= last_stored_at:
                outcome.state = PageState.UP_TO_DATE
                logger.debug(f"页面 {page_nr} 未变化 ({source_timestamp} <= {last_stored_at})")
                return outcome

            outcome.state = PageState.SYNCING
            for subpage_nr in range(1, subpage_count + 1):
                image = await self.client.fetch_subpage_image(page_nr, subpage_nr)
                await self.store.put_snapshot(page_nr, subpage_nr, source_timestamp, image)
                outcome.snapshots_written += 1

            await self.store.put_watermark(page_nr, source_timestamp)
        except Exception as e:
            outcome.state = PageState.SYNC_FAILED
            outcome.failure_kind = classify_failure(e)
            outcome.error_message = str(e)
            raise

        outcome.state = PageState.SYNCED
        logger.info(
            f"页面 {page_nr} 已同步: {subpage_count} 个子页 @ {source_timestamp} "
            f"(上次 {last_stored_at})"
        )
        return outcome

    async def _sync_task(self, metadata: PageMetadata, outcome: PageOutcome) -> PageOutcome:
        """同步单个页面，失败记录在 outcome 中，不影响其他页面。"""
        try:
            await self.sync_page_if_newer(
                metadata.page_nr,
                metadata.timestamp,
                metadata.subpage_count,
                outcome
            )
        except Exception as e:
            logger.error(
                f"页面 {metadata.page_nr} 同步失败 "
                f"({outcome.failure_kind.value}): {e}"
            )
        return outcome

    async def crawl_and_sync(self, start_page: Optional[int] = None) -> CrawlReport:
        """
        从 start_page 开始沿 nextpg 指针遍历页面链并同步每个页面。

        页面同步与链遍历并发进行，全部完成后返回。
        页面元数据获取失败时，遍历在该页结束。

        Args:
            start_page: 起始页码 (默认使用配置的起始页)

        Returns:
            CrawlReport
        """
        start = start_page if start_page is not None else self.settings.start_page
        report = CrawlReport(start_page=start)
        logger.info(f"开始采集，起始页 {start}")

        worklist: Deque[int] = deque([start])
        visited: Set[int] = set()
        sync_tasks: List[asyncio.Task] = []

        while worklist:
            page_nr = worklist.popleft()
            if page_nr in visited:
                logger.warning(f"页面链出现循环，停止于 {page_nr}")
                break
            if len(visited) >= self.settings.max_pages:
                logger.warning(f"已达到最大页面数 {self.settings.max_pages}，停止于 {page_nr}")
                break
            visited.add(page_nr)

            outcome = report.outcome_for(page_nr)
            try:
                metadata = await self.client.fetch_page_metadata(page_nr)
            except Exception as e:
                outcome.state = PageState.METADATA_FETCH_FAILED
                outcome.failure_kind = classify_failure(e)
                outcome.error_message = str(e)
                logger.error(f"页面 {page_nr} 元数据获取失败 ({outcome.failure_kind.value}): {e}")
                break

            outcome.state = PageState.METADATA_FETCHED
            sync_tasks.append(asyncio.create_task(self._sync_task(metadata, outcome)))

            if metadata.next_page is not None:
                worklist.append(metadata.next_page)

        if sync_tasks:
            await asyncio.gather(*sync_tasks)

        report.completed_at = datetime.now(timezone.utc)
        logger.info(
            f"采集完成: 访问 {len(report.outcomes)} 页，同步 {report.pages_synced} 页，"
            f"写入 {report.snapshots_written} 个快照，失败 {len(report.failures)} 页"
        )
        return report
