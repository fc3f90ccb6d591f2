"""
teletext-mirror 命令行。

用法:
    python -m teletext_mirror crawl [--start-page 100]
    python -m teletext_mirror resolve 100 1 1693588579
    python -m teletext_mirror schedule
"""
import argparse
import asyncio
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from teletext_mirror.core.config import Settings, init_settings
from teletext_mirror.core.exceptions import MirrorError
from teletext_mirror.core.logging import get_logger, setup_logging_from_settings
from teletext_mirror.main import build_resolver, run_crawl

logger = get_logger(__name__)


async def _crawl(settings: Settings, start_page: Optional[int]) -> int:
    report = await run_crawl(settings, start_page)
    print(json.dumps(report.to_dict(), ensure_ascii=False, indent=2))
    return 1 if report.failures else 0


async def _resolve(settings: Settings, page_nr: int, subpage_nr: int, timestamp: int) -> int:
    url = await build_resolver(settings).resolve_url_at(page_nr, subpage_nr, timestamp)
    if url is None:
        print(f"未找到 {page_nr}/{subpage_nr} @ {timestamp}", file=sys.stderr)
        return 1
    print(url)
    return 0


async def _scheduled_crawl(settings: Settings) -> None:
    try:
        await run_crawl(settings)
    except MirrorError as e:
        logger.error(f"定时采集失败: {e}")


async def _schedule(settings: Settings) -> int:
    """按 [scheduler] 配置的间隔循环采集，直到进程被终止。"""
    interval = settings.scheduler.interval_minutes
    job_options = {}
    if settings.scheduler.run_on_start:
        job_options["next_run_time"] = datetime.now()

    scheduler = AsyncIOScheduler()
    scheduler.add_job(
        _scheduled_crawl,
        "interval",
        args=[settings],
        minutes=interval,
        id="teletext_images_fetch",
        max_instances=1,
        coalesce=True,
        replace_existing=True,
        **job_options,
    )
    scheduler.start()
    logger.info(f"定时采集已启动 (每 {interval} 分钟)")
    try:
        await asyncio.Event().wait()
    finally:
        scheduler.shutdown(wait=False)
        logger.info("定时采集已停止")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="teletext_mirror",
        description="Yle 图文电视页面镜像: 采集快照并按时间点查询",
    )
    parser.add_argument("--config", type=Path, default=None, help="config.toml 路径")
    parser.add_argument("--log-level", default=None, help="覆盖 [general] log_level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    crawl = subparsers.add_parser("crawl", help="遍历页面链并保存新版本图片")
    crawl.add_argument("--start-page", type=int, default=None, help="起始页码")

    resolve = subparsers.add_parser("resolve", help="查询某时间点生效的快照 URL")
    resolve.add_argument("page", type=int)
    resolve.add_argument("subpage", type=int)
    resolve.add_argument("time", type=int, help="Unix 时间戳 (秒)")

    subparsers.add_parser("schedule", help="按固定间隔循环采集")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    settings = init_settings(args.config)
    if args.log_level:
        settings.general.log_level = args.log_level
    setup_logging_from_settings(settings.general)

    try:
        if args.command == "crawl":
            return asyncio.run(_crawl(settings, args.start_page))
        if args.command == "resolve":
            return asyncio.run(_resolve(settings, args.page, args.subpage, args.time))
        return asyncio.run(_schedule(settings))
    except MirrorError as e:
        logger.error(str(e))
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
