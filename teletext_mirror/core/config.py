"""
teletext-mirror 配置模块。
从 config.toml 和环境变量加载设置。
"""
from pathlib import Path
from typing import Literal, Optional

import tomli
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def load_toml_config(config_path: Path) -> dict:
    """从 TOML 文件加载配置。"""
    if config_path.exists():
        with open(config_path, "rb") as f:
            return tomli.load(f)
    return {}


class GeneralSettings(BaseSettings):
    """通用应用设置。"""
    app_name: str = "teletext-mirror"
    log_level: str = "INFO"
    log_file: Optional[str] = None


class SourceSettings(BaseSettings):
    """Yle 图文电视 API 设置。"""

    model_config = SettingsConfigDict(
        env_prefix="YLE_API_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    api_origin: str = "https://external.api.yle.fi"
    api_root_path: str = "/v1/teletext"
    # 环境变量 YLE_API_APP_ID / YLE_API_APP_KEY
    app_id: str = ""
    app_key: str = ""
    timeout_seconds: float = 30.0
    # 源站返回的页面时间不带时区
    timezone: str = "Europe/Helsinki"


class CrawlerSettings(BaseSettings):
    """页面链遍历设置。"""
    start_page: int = Field(default=100, ge=1)
    max_pages: int = Field(default=2000, ge=1)


class StorageSettings(BaseSettings):
    """存储后端选择。"""
    backend: Literal["local", "oss"] = "local"
    local_dir: str = "./data/oss"
    # 本地存储对外暴露的 URL 前缀，为空时使用 file:// 路径
    public_base_url: str = ""
    # 单次列举返回的最大对象数 (不分页)
    list_page_size: int = Field(default=1000, ge=1)


class OSSSettings(BaseSettings):
    """OSS 存储设置。"""

    model_config = SettingsConfigDict(
        env_prefix="OSS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    bucket: str = "teletext-images"
    endpoint: str = "oss-eu-central-1.aliyuncs.com"
    prefix: str = ""
    access_key_id: str = ""
    access_key_secret: str = ""
    # 公开访问域名 (CDN 或自定义域名)，为空时使用 {bucket}.{endpoint}
    public_hostname: str = ""

    @field_validator("prefix")
    @classmethod
    def strip_prefix_slashes(cls, value: str) -> str:
        return value.strip("/")


class ApiSettings(BaseSettings):
    """查询接口设置。"""
    base_path: str = "/v1"


class SchedulerSettings(BaseSettings):
    """定时采集设置。"""
    interval_minutes: int = Field(default=5, ge=1)
    run_on_start: bool = True


class Settings(BaseSettings):
    """主设置容器。"""
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    general: GeneralSettings = Field(default_factory=GeneralSettings)
    source: SourceSettings = Field(default_factory=SourceSettings)
    crawler: CrawlerSettings = Field(default_factory=CrawlerSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    oss: OSSSettings = Field(default_factory=OSSSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)

    @classmethod
    def from_toml(cls, config_path: Optional[Path] = None) -> "Settings":
        """从 TOML 文件和环境变量加载设置。"""
        if config_path is None:
            # 尝试在常见位置找到 config.toml
            for path in [
                Path("config/config.toml"),
                Path("../config/config.toml"),
                Path(__file__).parent.parent.parent / "config" / "config.toml"
            ]:
                if path.exists():
                    config_path = path
                    break

        toml_config = {}
        if config_path and config_path.exists():
            toml_config = load_toml_config(config_path)

        # 从 TOML 构建嵌套设置
        sections = {
            "general": GeneralSettings,
            "source": SourceSettings,
            "crawler": CrawlerSettings,
            "storage": StorageSettings,
            "oss": OSSSettings,
            "api": ApiSettings,
            "scheduler": SchedulerSettings,
        }
        settings_dict = {}
        for name, section_cls in sections.items():
            if name in toml_config:
                settings_dict[name] = section_cls(**toml_config[name])

        return cls(**settings_dict)


# 全局设置实例，仅供入口使用；组件通过构造函数接收设置
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """获取全局设置实例。"""
    global _settings
    if _settings is None:
        _settings = Settings.from_toml()
    return _settings


def init_settings(config_path: Optional[Path] = None) -> Settings:
    """从指定配置文件初始化设置。"""
    global _settings
    _settings = Settings.from_toml(config_path)
    return _settings
