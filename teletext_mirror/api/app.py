"""
查询接口。
按时间点重定向到图文电视子页面快照图片。
"""
from typing import Optional

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.responses import RedirectResponse

from teletext_mirror.core.config import Settings, get_settings
from teletext_mirror.core.exceptions import StoreError
from teletext_mirror.core.logging import get_logger, setup_logging_from_settings
from teletext_mirror.main import build_resolver
from teletext_mirror.models.page import parse_leading_int
from teletext_mirror.services.finder import SnapshotResolver

logger = get_logger(__name__)


def _positive_int(value: Optional[str]) -> Optional[int]:
    number = parse_leading_int(value)
    if number is None or number <= 0:
        return None
    return number


def create_app(
    settings: Optional[Settings] = None,
    resolver: Optional[SnapshotResolver] = None
) -> FastAPI:
    """
    创建查询接口应用。

    GET {base_path}/{page_nr}/{subpage}?time={unix 时间戳}
    - 找到快照: 302 重定向到快照公开 URL
    - 参数无效或未找到: 404
    - 存储不可用: 503

    按 [general] 配置初始化日志，独立部署时无需宿主进程另行配置。
    """
    if settings is None:
        settings = get_settings()
    setup_logging_from_settings(settings.general)
    if resolver is None:
        resolver = build_resolver(settings)

    app = FastAPI(title=settings.general.app_name)
    router = APIRouter(prefix=settings.api.base_path.rstrip("/"))

    @app.get("/health")
    async def health():
        return {"status": "healthy"}

    @router.get("/{page_nr}/{subpage_filename}")
    async def get_teletext_image_at(page_nr: str, subpage_filename: str, time: Optional[str] = None):
        """例如 /v1/100/1?time=1693588579 或 /v1/100/1.png?time=1693588579"""
        page = _positive_int(page_nr)
        subpage = _positive_int(subpage_filename)
        timestamp = _positive_int(time)
        if page is None or subpage is None or timestamp is None:
            raise HTTPException(status_code=404)

        try:
            image_url = await resolver.resolve_url_at(page, subpage, timestamp)
        except StoreError as e:
            logger.error(f"查询 {page}/{subpage} @ {timestamp} 时存储失败: {e}")
            raise HTTPException(status_code=503, detail="Storage unavailable")

        if image_url is None:
            raise HTTPException(status_code=404)
        return RedirectResponse(image_url, status_code=302)

    app.include_router(router)
    return app
