"""
SnapshotKey 模型 - 子页面快照的存储键 (页码, 子页码, 时间戳)。
"""
import re
from dataclasses import dataclass
from typing import Optional

LAST_TIMESTAMP_KEY = "LAST_TS"
IMAGE_SUFFIX = ".png"

_DIGITS = re.compile(r"[0-9]+")


def subpage_prefix(page_nr: int, subpage_nr: int) -> str:
    """子页面所有快照共享的键前缀。"""
    return f"{page_nr}/{subpage_nr}/"


def watermark_key(page_nr: int) -> str:
    """页面最后同步时间戳对象的键，例如 "100/LAST_TS"。"""
    return f"{page_nr}/{LAST_TIMESTAMP_KEY}"


@dataclass(frozen=True)
class SnapshotKey:
    """
    快照标识。

    同一 (页码, 子页码, 时间戳) 只会写入一次，写入后不再修改。
    """
    page_nr: int
    subpage_nr: int
    timestamp: int

    @property
    def storage_key(self) -> str:
        """存储键，例如 "100/1/1693724400.png"。"""
        return f"{subpage_prefix(self.page_nr, self.subpage_nr)}{self.timestamp}{IMAGE_SUFFIX}"

    @classmethod
    def parse(cls, key: str) -> Optional["SnapshotKey"]:
        """
        从存储键解析快照标识。无法解析时返回 None。

        文件名中第一个 "." 之前的部分为时间戳，扩展名可省略。
        """
        parts = key.split("/")
        if len(parts) != 3:
            return None
        page_part, subpage_part, filename = parts
        timestamp_part = filename.split(".")[0]
        # 只接受 ASCII 数字; str.isdigit() 对 "²" 之类的字符也返回 True
        if not all(_DIGITS.fullmatch(part) for part in (page_part, subpage_part, timestamp_part)):
            return None
        return cls(int(page_part), int(subpage_part), int(timestamp_part))

    def __str__(self) -> str:
        return self.storage_key
