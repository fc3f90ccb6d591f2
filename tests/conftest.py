"""
测试共用的内存存储和假客户端。
"""
from typing import Dict, List, Optional, Set, Union

import pytest

from teletext_mirror.core.config import SourceSettings
from teletext_mirror.core.exceptions import PageNotFoundError, StoreError
from teletext_mirror.core.storage import StorageBackend
from teletext_mirror.models.page import PageMetadata
from teletext_mirror.services.store import SnapshotStore


class MemoryStorage(StorageBackend):
    """内存存储后端。fail_keys 中的键写入时抛出 StoreError。"""

    def __init__(self, fail_keys: Optional[Set[str]] = None):
        self.objects: Dict[str, bytes] = {}
        self.fail_keys = fail_keys or set()
        self.list_calls: List[tuple] = []

    async def save(self, path: str, content: bytes) -> str:
        if path in self.fail_keys:
            raise StoreError(f"写入 {path} 失败", path, 500)
        self.objects[path] = content
        return f"memory://{path}"

    async def read(self, path: str) -> Optional[bytes]:
        return self.objects.get(path)

    async def list_keys(self, prefix: str, max_keys: int = 1000) -> List[str]:
        self.list_calls.append((prefix, max_keys))
        return sorted(k for k in self.objects if k.startswith(prefix))[:max_keys]

    def public_url(self, path: str) -> str:
        return f"https://images.example/{path}"


class RecordingSnapshotStore(SnapshotStore):
    """记录所有读写调用的快照存储。"""

    def __init__(self, storage: StorageBackend):
        super().__init__(storage)
        self.watermark_reads: List[int] = []
        self.snapshot_writes: List[tuple] = []
        self.watermark_writes: List[tuple] = []

    async def get_watermark(self, page_nr: int) -> Optional[int]:
        self.watermark_reads.append(page_nr)
        return await super().get_watermark(page_nr)

    async def put_snapshot(self, page_nr, subpage_nr, timestamp, data) -> str:
        self.snapshot_writes.append((page_nr, subpage_nr, timestamp, data))
        return await super().put_snapshot(page_nr, subpage_nr, timestamp, data)

    async def put_watermark(self, page_nr: int, timestamp: int) -> None:
        self.watermark_writes.append((page_nr, timestamp))
        await super().put_watermark(page_nr, timestamp)


class FakeTeletextClient:
    """
    假的图文电视客户端。

    pages: 页码 -> PageMetadata 或要抛出的异常
    image_errors: (页码, 子页码) -> 要抛出的异常
    """

    def __init__(
        self,
        pages: Optional[Dict[int, Union[PageMetadata, Exception]]] = None,
        image_errors: Optional[Dict[tuple, Exception]] = None,
        image: bytes = b"testing"
    ):
        self.pages = pages or {}
        self.image_errors = image_errors or {}
        self.image = image
        self.metadata_calls: List[int] = []
        self.image_calls: List[tuple] = []

    async def fetch_page_metadata(self, page_nr: int) -> PageMetadata:
        self.metadata_calls.append(page_nr)
        result = self.pages.get(page_nr)
        if result is None:
            raise PageNotFoundError(f"页面 {page_nr} 不存在", f"pages/{page_nr}.json", page_nr)
        if isinstance(result, Exception):
            raise result
        return result

    async def fetch_subpage_image(self, page_nr: int, subpage_nr: int) -> bytes:
        self.image_calls.append((page_nr, subpage_nr))
        error = self.image_errors.get((page_nr, subpage_nr))
        if error is not None:
            raise error
        return self.image


@pytest.fixture
def memory_storage():
    return MemoryStorage()


@pytest.fixture
def recording_store(memory_storage):
    return RecordingSnapshotStore(memory_storage)


@pytest.fixture
def source_settings():
    return SourceSettings(
        api_origin="https://external.api.yle.fi",
        app_id="foo",
        app_key="bar",
    )
