"""
teletext-mirror 入口。

组装存储、客户端与服务:
- teletext_images_fetch(): 采集入口，从配置的起始页遍历整个页面链
- build_resolver(): 查询入口使用的快照解析器
"""
from typing import Optional

from teletext_mirror.core.config import Settings, get_settings
from teletext_mirror.core.storage import get_storage
from teletext_mirror.models.monitor import CrawlReport
from teletext_mirror.services.finder import SnapshotResolver
from teletext_mirror.services.source import TeletextClient
from teletext_mirror.services.store import SnapshotStore
from teletext_mirror.services.updater import TeletextUpdater


def build_store(settings: Settings) -> SnapshotStore:
    """按配置创建快照存储。"""
    return SnapshotStore(get_storage(settings), settings.storage.list_page_size)


def build_resolver(settings: Settings) -> SnapshotResolver:
    """按配置创建快照解析器。"""
    return SnapshotResolver(build_store(settings))


async def run_crawl(settings: Settings, start_page: Optional[int] = None) -> CrawlReport:
    """使用给定设置执行一次完整采集。"""
    store = build_store(settings)
    async with TeletextClient(settings.source) as client:
        updater = TeletextUpdater(client, store, settings.crawler)
        return await updater.crawl_and_sync(start_page)


async def teletext_images_fetch() -> CrawlReport:
    """
    获取所有图文电视页面的元数据并与已保存数据比较，
    保存自上次运行以来发生变化的页面的 PNG 图片。
    """
    return await run_crawl(get_settings())
