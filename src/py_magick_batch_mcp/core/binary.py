"""ImageMagick 可执行文件查找模块。

按自定义路径、PATH、常见安装目录、额外搜索路径的顺序定位 magick，
并解析版本与格式列表输出。
"""

import os
import re
import shutil
from pathlib import Path

from ..exceptions import BinaryNotFoundError, ParseError
from ..models.constants import BinaryDefaults
from ..models.execution import VersionInfo
from ..utils.logging_helpers import get_logger
from .path_validator import validate_file_path


logger = get_logger()

_VERSION_PATTERN = re.compile(r"ImageMagick (\d+)\.(\d+)\.(\d+)-?(\d+)?")
_FORMAT_LINE_PATTERN = re.compile(r"^\s*([A-Z0-9]+)\*?\s")


def _is_executable(path: Path) -> bool:
    return path.is_file() and os.access(path, os.X_OK)


class BinaryLocator:
    """ImageMagick 可执行文件定位器

    解析结果会被缓存，修改搜索设置时自动失效。
    """

    def __init__(
        self,
        custom_path: str | Path | None = None,
        search_paths: list[str | Path] | None = None,
        binary_name: str | None = None,
    ):
        """初始化定位器

        Args:
            custom_path: 用户指定的可执行文件路径，优先级最高
            search_paths: 额外的候选路径
            binary_name: PATH 中查找的程序名，默认 magick
        """
        self.binary_name = binary_name or BinaryDefaults.BINARY_NAME
        self._custom_path: Path | None = (
            validate_file_path(custom_path) if custom_path else None
        )
        self._search_paths: list[Path] = [
            validate_file_path(p) for p in (search_paths or [])
        ]
        self._cached: Path | None = None

    @property
    def custom_path(self) -> Path | None:
        return self._custom_path

    @property
    def search_paths(self) -> list[Path]:
        return list(self._search_paths)

    def set_binary_path(self, binary_path: str | Path) -> None:
        """设置自定义路径"""
        self._custom_path = validate_file_path(binary_path)
        self.clear_cache()

    def add_search_path(self, search_path: str | Path) -> None:
        """添加额外的候选路径"""
        self._search_paths.append(validate_file_path(search_path))
        self.clear_cache()

    def clear_search_paths(self) -> None:
        self._search_paths.clear()
        self.clear_cache()

    def clear_cache(self) -> None:
        self._cached = None

    def resolve(self) -> Path:
        """查找可执行文件

        Raises:
            BinaryNotFoundError: 所有位置都没有找到
        """
        if self._cached is not None:
            return self._cached

        for candidate in self._iter_candidates():
            if candidate is not None and _is_executable(candidate):
                logger.debug(f"找到 ImageMagick: {candidate}")
                self._cached = candidate
                return candidate

        raise BinaryNotFoundError()

    def is_available(self) -> bool:
        """检查 ImageMagick 是否可用"""
        try:
            self.resolve()
            return True
        except BinaryNotFoundError as e:
            logger.debug(f"ImageMagick 不可用: {e}")
            return False

    def _iter_candidates(self):
        yield self._custom_path

        found = shutil.which(self.binary_name)
        yield Path(found) if found else None

        for path in BinaryDefaults.get_platform_paths():
            yield Path(path)

        yield from self._search_paths


def parse_version_output(output: str) -> VersionInfo:
    """解析 `magick -version` 的输出

    Raises:
        ParseError: 输出中没有版本号
    """
    lines = output.splitlines()
    if not lines:
        raise ParseError("版本输出为空", output)

    match = _VERSION_PATTERN.search(lines[0])
    if not match:
        raise ParseError(f"无法解析版本号: {lines[0]}", output)

    major, minor, patch = (int(match.group(i)) for i in range(1, 4))
    revision = match.group(4) or "0"

    features: list[str] = []
    delegates: list[str] = []
    for line in lines:
        if line.startswith("Features:"):
            features = line.removeprefix("Features:").split()
        elif line.startswith("Delegates"):
            delegates = re.sub(r"^Delegates.*?:\s*", "", line).split()

    return VersionInfo(
        version=f"{major}.{minor}.{patch}-{revision}",
        major=major,
        minor=minor,
        patch=patch,
        features=features,
        delegates=delegates,
    )


def parse_format_list(output: str) -> list[str]:
    """解析 `magick -list format` 的输出，返回去重排序后的小写格式名"""
    formats = {
        match.group(1).lower()
        for line in output.splitlines()
        if (match := _FORMAT_LINE_PATTERN.match(line))
    }
    return sorted(formats)
