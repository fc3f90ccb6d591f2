"""
teletext-mirror 存储模块。
提供本地和 OSS 存储后端的抽象。

键统一使用 "/" 分隔的相对路径，例如 "100/1/1693724400.png"。
"""
import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

import oss2

from teletext_mirror.core.config import OSSSettings, Settings, StorageSettings
from teletext_mirror.core.exceptions import StoreError
from teletext_mirror.core.logging import get_logger

logger = get_logger(__name__)


class StorageBackend(ABC):
    """存储后端抽象基类。"""

    @abstractmethod
    async def save(self, path: str, content: bytes) -> str:
        """
        将内容保存到存储。

        Args:
            path: 存储内的相对路径
            content: 要保存的二进制内容

        Returns:
            已保存文件的完整路径/URL
        """

    @abstractmethod
    async def read(self, path: str) -> Optional[bytes]:
        """从存储读取内容。对象不存在时返回 None。"""

    @abstractmethod
    async def list_keys(self, prefix: str, max_keys: int = 1000) -> List[str]:
        """
        列举以 prefix 开头的键。

        只做一次列举调用，结果最多 max_keys 个，超出部分被截断，不报错。
        """

    @abstractmethod
    def public_url(self, path: str) -> str:
        """返回对象的公开访问 URL。"""


class LocalStorage(StorageBackend):
    """用于开发/测试的本地文件系统存储后端。"""

    def __init__(self, base_dir: str = "./data/oss", public_base_url: str = ""):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")
        logger.info(f"本地存储初始化于: {self.base_dir.absolute()}")

    async def save(self, path: str, content: bytes) -> str:
        """将内容保存到本地文件系统。"""
        full_path = self.base_dir / path
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(content)
        except OSError as e:
            raise StoreError(f"写入 {path} 失败: {e}", path) from e

        logger.debug(f"已保存 {len(content)} 字节到 {full_path}")
        return str(full_path)

    async def read(self, path: str) -> Optional[bytes]:
        """从本地文件系统读取内容。"""
        full_path = self.base_dir / path
        try:
            return full_path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StoreError(f"读取 {path} 失败: {e}", path) from e

    async def list_keys(self, prefix: str, max_keys: int = 1000) -> List[str]:
        """列举本地目录中以 prefix 开头的文件。"""
        # 只遍历 prefix 最后一个 "/" 之前的目录
        search_root = self.base_dir
        if "/" in prefix:
            search_root = self.base_dir / prefix.rsplit("/", 1)[0]
        if not search_root.is_dir():
            return []

        keys = sorted(
            p.relative_to(self.base_dir).as_posix()
            for p in search_root.rglob("*")
            if p.is_file()
        )
        return [key for key in keys if key.startswith(prefix)][:max_keys]

    def public_url(self, path: str) -> str:
        if self.public_base_url:
            return f"{self.public_base_url}/{path}"
        return (self.base_dir / path).absolute().as_uri()


class OSSStorage(StorageBackend):
    """用于生产环境的阿里云 OSS 存储后端。"""

    def __init__(self, settings: OSSSettings, bucket: Optional[oss2.Bucket] = None):
        self.settings = settings
        self._bucket = bucket

    def _get_bucket(self) -> oss2.Bucket:
        """获取或创建 OSS bucket 实例。"""
        if self._bucket is None:
            auth = oss2.Auth(
                self.settings.access_key_id,
                self.settings.access_key_secret
            )
            self._bucket = oss2.Bucket(
                auth,
                self.settings.endpoint,
                self.settings.bucket
            )
        return self._bucket

    def _full_path(self, path: str) -> str:
        if self.settings.prefix:
            return f"{self.settings.prefix}/{path}"
        return path

    def _relative_path(self, full_path: str) -> str:
        if self.settings.prefix:
            return full_path[len(self.settings.prefix) + 1:]
        return full_path

    async def save(self, path: str, content: bytes) -> str:
        """将内容保存到 OSS。"""
        bucket = self._get_bucket()
        full_path = self._full_path(path)
        try:
            await asyncio.to_thread(bucket.put_object, full_path, content)
        except oss2.exceptions.OssError as e:
            raise StoreError(f"写入 {full_path} 失败: {e.code}", full_path, e.status) from e

        oss_url = f"oss://{self.settings.bucket}/{full_path}"
        logger.debug(f"已保存 {len(content)} 字节到 {oss_url}")
        return oss_url

    async def read(self, path: str) -> Optional[bytes]:
        """从 OSS 读取内容。"""
        bucket = self._get_bucket()
        full_path = self._full_path(path)

        def _read() -> bytes:
            return bucket.get_object(full_path).read()

        try:
            return await asyncio.to_thread(_read)
        except oss2.exceptions.NoSuchKey:
            return None
        except oss2.exceptions.OssError as e:
            raise StoreError(f"读取 {full_path} 失败: {e.code}", full_path, e.status) from e

    async def list_keys(self, prefix: str, max_keys: int = 1000) -> List[str]:
        """列举 OSS 中以 prefix 开头的对象。"""
        bucket = self._get_bucket()
        full_prefix = self._full_path(prefix)
        # TODO: 按 next_marker 分页；目前单个子页超过 max_keys 个版本时结果不完整
        try:
            result = await asyncio.to_thread(
                bucket.list_objects, prefix=full_prefix, max_keys=max_keys
            )
        except oss2.exceptions.OssError as e:
            raise StoreError(f"列举 {full_prefix} 失败: {e.code}", full_prefix, e.status) from e

        if result.is_truncated:
            logger.warning(f"列举 {full_prefix} 结果被截断于 {max_keys} 个对象")
        return [self._relative_path(obj.key) for obj in result.object_list]

    def public_url(self, path: str) -> str:
        hostname = self.settings.public_hostname or f"{self.settings.bucket}.{self.settings.endpoint}"
        return f"https://{hostname}/{self._full_path(path)}"


def get_storage(settings: Settings) -> StorageBackend:
    """
    根据 [storage] 配置获取存储后端实例。

    backend = "local" 使用本地存储 (用于开发和测试)，
    backend = "oss" 使用 OSS 存储 (用于生产)。
    """
    storage_settings: StorageSettings = settings.storage
    if storage_settings.backend == "oss":
        return OSSStorage(settings.oss)
    return LocalStorage(storage_settings.local_dir, storage_settings.public_base_url)
