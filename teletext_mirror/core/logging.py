"""
teletext-mirror 日志配置。
使用 loguru 进行结构化日志记录。
"""
import sys
from pathlib import Path
from typing import Optional, TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from teletext_mirror.core.config import GeneralSettings


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    rotation: str = "10 MB",
    retention: str = "7 days"
) -> None:
    """
    配置 loguru 日志记录器。

    Args:
        level: 日志级别 (DEBUG, INFO, WARNING, ERROR)
        log_file: 可选的日志文件路径
        rotation: 日志文件轮转大小
        retention: 日志文件保留时间
    """
    logger.remove()
    logger.configure(extra={"name": "teletext_mirror"})

    # 控制台输出带上绑定的模块名，便于区分采集与查询
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
               "<level>{level: <8}</level> | "
               "<cyan>{extra[name]}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
               "<level>{message}</level>",
        colorize=True,
    )

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level=level.upper(),
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[name]}:{function}:{line} | {message}",
            rotation=rotation,
            retention=retention,
            encoding="utf-8",
        )


def setup_logging_from_settings(general: "GeneralSettings") -> None:
    """按 [general] 配置段初始化日志。"""
    log_file = Path(general.log_file) if general.log_file else None
    setup_logging(level=general.log_level, log_file=log_file)


def get_logger(name: str = __name__):
    """获取指定名称的日志记录器实例。"""
    return logger.bind(name=name)
