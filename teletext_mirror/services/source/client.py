"""
Yle 图文电视 API 客户端。
获取页面元数据和子页面 PNG 图片。
"""
from typing import Optional

import httpx

from teletext_mirror.core.config import SourceSettings
from teletext_mirror.core.exceptions import (
    ConfigurationError,
    MalformedPageError,
    PageNotFoundError,
    RemoteError,
)
from teletext_mirror.core.logging import get_logger
from teletext_mirror.models.page import PageMetadata

logger = get_logger(__name__)


class TeletextClient:
    """
    Yle External API 图文电视接口客户端。

    所有请求自动附带 app_id / app_key 查询参数。失败分三类:
    - 404: PageNotFoundError
    - 其他 HTTP 错误状态: RemoteError (带状态码)
    - 没有 HTTP 状态的传输层错误: 原样抛出
    """

    def __init__(
        self,
        settings: SourceSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        if not settings.app_id or not settings.app_key:
            raise ConfigurationError("缺少 YLE_API_APP_ID 或 YLE_API_APP_KEY")
        self.settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def start(self) -> None:
        """创建 HTTP 连接池。"""
        if self._client is not None:
            return
        self._client = httpx.AsyncClient(
            timeout=self.settings.timeout_seconds,
            follow_redirects=True,
            transport=self._transport,
        )
        logger.debug(f"HTTP 客户端已创建: {self.settings.api_origin}")

    async def stop(self) -> None:
        """关闭 HTTP 连接池。"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def api_url(self, path: str) -> httpx.URL:
        """
        构建带凭据的 API URL。

        例如 api_url("pages/100.json") ->
        https://external.api.yle.fi/v1/teletext/pages/100.json?app_id=<ID>&app_key=<KEY>
        """
        root_path = self.settings.api_root_path.strip("/")
        url = httpx.URL(self.settings.api_origin).join(f"/{root_path}/{path}")
        return url.copy_merge_params({
            "app_id": self.settings.app_id,
            "app_key": self.settings.app_key,
        })

    def page_data_url(self, page_nr: int) -> httpx.URL:
        return self.api_url(f"pages/{page_nr}.json")

    def page_image_url(self, page_nr: int, subpage_nr: int) -> httpx.URL:
        return self.api_url(f"images/{page_nr}/{subpage_nr}.png")

    async def _get(
        self,
        url: httpx.URL,
        page_nr: int,
        subpage_nr: Optional[int] = None
    ) -> httpx.Response:
        if self._client is None:
            await self.start()

        target = f"页面 {page_nr}" if subpage_nr is None else f"页面 {page_nr} 子页 {subpage_nr}"
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 404:
                raise PageNotFoundError(
                    f"{target} 不存在", str(url), page_nr, subpage_nr
                ) from e
            raise RemoteError(
                f"{target} 请求失败，HTTP 状态 {status}",
                str(url), page_nr, subpage_nr, status=status
            ) from e
        return response

    async def fetch_page_metadata(self, page_nr: int) -> PageMetadata:
        """
        获取页面元数据。

        Args:
            page_nr: 页码

        Returns:
            PageMetadata，包含时间戳、子页数和下一页页码
        """
        url = self.page_data_url(page_nr)
        response = await self._get(url, page_nr)
        try:
            metadata = PageMetadata.from_api_response(
                page_nr, response.json(), self.settings.timezone
            )
        except ValueError as e:
            raise MalformedPageError(
                f"页面 {page_nr} 元数据无法解析: {e}", str(url), page_nr
            ) from e

        logger.debug(f"已获取元数据: {metadata!r}")
        return metadata

    async def fetch_subpage_image(self, page_nr: int, subpage_nr: int) -> bytes:
        """
        获取子页面 PNG 图片的原始字节。

        Args:
            page_nr: 页码
            subpage_nr: 子页码 (从 1 开始)
        """
        url = self.page_image_url(page_nr, subpage_nr)
        response = await self._get(url, page_nr, subpage_nr)
        return response.content

    async def __aenter__(self) -> "TeletextClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
