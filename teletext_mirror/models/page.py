"""
PageMetadata 模型 - 源站图文电视页面的元数据。
"""
import re
from datetime import datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel, Field, field_validator

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_leading_int(value: Any) -> Optional[int]:
    """
    解析字符串开头的整数，例如 "101" -> 101, "4 " -> 4, "" -> None。
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = _LEADING_INT.match(str(value))
    if not match:
        return None
    return int(match.group(1))


def parse_page_time(value: str, timezone: str) -> int:
    """
    将页面时间转换为 Unix 时间戳 (秒)。

    不带时区的时间按 timezone 解释，带偏移的时间保留其偏移。
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=ZoneInfo(timezone))
    return int(parsed.timestamp())


class PageMetadata(BaseModel):
    """
    页面元数据。

    对应 API 响应中的 `teletext.page` 对象。
    """
    page_nr: int
    timestamp: int
    subpage_count: int = Field(ge=1)
    next_page: Optional[int] = None

    @field_validator("next_page", mode="before")
    @classmethod
    def normalize_next_page(cls, value: Any) -> Optional[int]:
        # 缺失、非数字或非正数都表示页面链结束
        next_page = parse_leading_int(value)
        if next_page is None or next_page <= 0:
            return None
        return next_page

    @classmethod
    def from_api_response(
        cls,
        page_nr: int,
        payload: dict,
        timezone: str = "Europe/Helsinki"
    ) -> "PageMetadata":
        """
        从 pages/{page}.json 响应构建元数据。

        Raises:
            ValueError: 响应结构缺失或字段无法解析
        """
        try:
            page_info = payload["teletext"]["page"]
            time_value = page_info["time"]
        except (KeyError, TypeError) as e:
            raise ValueError(f"响应中缺少字段: {e}") from e

        return cls(
            page_nr=page_nr,
            timestamp=parse_page_time(str(time_value), timezone),
            subpage_count=parse_leading_int(page_info.get("subpagecount")),
            next_page=page_info.get("nextpg"),
        )

    def __repr__(self) -> str:
        return (
            f"<PageMetadata(page_nr={self.page_nr}, timestamp={self.timestamp}, "
            f"subpages={self.subpage_count}, next={self.next_page})>"
        )
