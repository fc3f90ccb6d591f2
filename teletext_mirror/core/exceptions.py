"""
teletext-mirror 异常定义。

采集和查询过程中的失败分为固定的几类，见 FailureKind。
传输层异常 (httpx.TransportError 等) 不做包装，原样抛出。
"""
from enum import Enum
from typing import Optional


class MirrorError(Exception):
    """所有 teletext-mirror 异常的基类。"""


class ConfigurationError(MirrorError):
    """缺少必需配置 (例如 API 凭据)。"""


class SourceError(MirrorError):
    """
    来自 Yle 图文电视 API 的错误。

    始终携带出错的 URL、页码，以及可能的子页码。
    """

    def __init__(
        self,
        message: str,
        url: str,
        page_nr: int,
        subpage_nr: Optional[int] = None
    ):
        super().__init__(message)
        self.message = message
        self.url = url
        self.page_nr = page_nr
        self.subpage_nr = subpage_nr


class PageNotFoundError(SourceError):
    """页面或子页面请求返回 404。"""


class RemoteError(SourceError):
    """页面或子页面请求返回非 404 的 HTTP 错误状态。"""

    def __init__(
        self,
        message: str,
        url: str,
        page_nr: int,
        subpage_nr: Optional[int] = None,
        status: int = 0
    ):
        super().__init__(message, url, page_nr, subpage_nr)
        self.status = status


class MalformedPageError(SourceError):
    """页面元数据无法解析。"""


class StoreError(MirrorError):
    """存储后端读写或列举失败。"""

    def __init__(self, message: str, key: str, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.key = key
        self.status = status


class FailureKind(str, Enum):
    """失败类别。"""
    NOT_FOUND = "not_found"
    REMOTE_ERROR = "remote_error"
    MALFORMED = "malformed"
    STORE_FAILURE = "store_failure"
    TRANSPORT_FAILURE = "transport_failure"


def classify_failure(exc: BaseException) -> FailureKind:
    """将捕获的异常映射到 FailureKind。未识别的异常归为传输层失败。"""
    if isinstance(exc, PageNotFoundError):
        return FailureKind.NOT_FOUND
    if isinstance(exc, RemoteError):
        return FailureKind.REMOTE_ERROR
    if isinstance(exc, MalformedPageError):
        return FailureKind.MALFORMED
    if isinstance(exc, StoreError):
        return FailureKind.STORE_FAILURE
    return FailureKind.TRANSPORT_FAILURE
