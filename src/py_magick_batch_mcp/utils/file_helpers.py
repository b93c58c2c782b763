"""文件工具模块。

提供目录扫描等文件相关的实用函数。
"""

import os
from pathlib import Path

from ..core.path_validator import validate_directory_path
from ..models.constants import ImageFormats
from .logging_helpers import get_logger
from .message_formatter import MessageFormatter


logger = get_logger()


def find_image_files(
    directory: str | os.PathLike,
    recursive: bool = False,
    extensions: list[str] | None = None,
) -> list[Path]:
    """查找目录中的图像文件。

    Args:
        directory: 搜索目录
        recursive: 是否递归搜索子目录
        extensions: 扩展名列表（含点），默认使用常见图像格式

    Returns:
        list[Path]: 排序后的图像文件路径
    """
    directory = validate_directory_path(directory)

    if not directory.exists():
        logger.warning(MessageFormatter.directory_not_found(directory))
        return []

    if not directory.is_dir():
        logger.warning(MessageFormatter.path_not_directory(directory))
        return []

    wanted = (
        {ext.lower() for ext in extensions}
        if extensions is not None
        else ImageFormats.get_scan_extensions()
    )
    pattern = "**/*" if recursive else "*"

    try:
        return sorted(
            path
            for path in directory.glob(pattern)
            if path.is_file() and path.suffix.lower() in wanted
        )
    except PermissionError:
        logger.error(MessageFormatter.permission_error(directory, "访问目录"))
        raise


def ensure_directory(directory: Path) -> Path:
    """确保目录存在"""
    directory.mkdir(parents=True, exist_ok=True)
    return directory
