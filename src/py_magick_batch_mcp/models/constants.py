"""ImageMagick 相关常量定义。

格式列表、扫描扩展名和常见安装路径。
"""

import sys
from typing import Final

from PIL import Image


class ImageFormats:
    """批量处理使用的格式管理"""

    # 批量输出允许的格式
    BATCH_FORMATS: Final[frozenset[str]] = frozenset(
        {
            "jpg",
            "jpeg",
            "png",
            "gif",
            "webp",
            "avif",
            "heic",
            "heif",
            "tiff",
            "tif",
            "bmp",
            "ico",
            "pdf",
            "svg",
            "psd",
            "eps",
            "dng",
            "cr2",
            "nef",
            "raw",
            "jp2",
            "jxr",
        }
    )

    # 目录扫描的默认扩展名（Pillow 不认识的格式在此补充）
    SCAN_EXTENSIONS: Final[tuple[str, ...]] = (
        ".jpg",
        ".jpeg",
        ".png",
        ".gif",
        ".webp",
        ".tiff",
        ".tif",
        ".bmp",
        ".heic",
        ".avif",
    )

    @classmethod
    def normalize(cls, format_name: str) -> str:
        """统一为小写且去掉前导点"""
        return format_name.lower().lstrip(".")

    @classmethod
    def is_batch_format(cls, format_name: str) -> bool:
        return cls.normalize(format_name) in cls.BATCH_FORMATS

    @classmethod
    def get_scan_extensions(cls) -> set[str]:
        """默认扫描扩展名，合并 Pillow 注册的光栅格式"""
        pillow_exts = {
            ext.lower()
            for ext, fmt in Image.registered_extensions().items()
            if fmt and cls.normalize(ext) in cls.BATCH_FORMATS
        }
        return set(cls.SCAN_EXTENSIONS) | pillow_exts


class BinaryDefaults:
    """外部程序查找相关常量"""

    BINARY_NAME: Final[str] = "magick.exe" if sys.platform == "win32" else "magick"

    COMMON_PATHS: Final[dict[str, tuple[str, ...]]] = {
        "win32": (
            "C:\\Program Files\\ImageMagick-7.1.1-Q16-HDRI\\magick.exe",
            "C:\\Program Files\\ImageMagick-7.1.0-Q16-HDRI\\magick.exe",
            "C:\\Program Files\\ImageMagick-7.0.0-Q16-HDRI\\magick.exe",
            "C:\\Program Files (x86)\\ImageMagick-7.1.1-Q16-HDRI\\magick.exe",
            "C:\\Program Files (x86)\\ImageMagick-7.1.0-Q16-HDRI\\magick.exe",
        ),
        "darwin": (
            "/opt/homebrew/bin/magick",
            "/usr/local/bin/magick",
            "/opt/local/bin/magick",
        ),
        "linux": ("/usr/bin/magick", "/usr/local/bin/magick", "/snap/bin/magick"),
    }

    @classmethod
    def get_platform_paths(cls) -> tuple[str, ...]:
        return cls.COMMON_PATHS.get(sys.platform, ())
