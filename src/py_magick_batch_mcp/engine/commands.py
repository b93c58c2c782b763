"""命令构建器模块。

为常见批量操作生成 “文件 → 参数列表” 的构建函数。
输入路径在构建函数内校验，校验失败只影响当前条目。
"""

from collections.abc import Callable
from pathlib import Path

from ..core.path_validator import validate_file_path
from ..exceptions import UnsupportedFormatError
from ..models.constants import ImageFormats
from ..models.execution import CommandSpec


FileCommandBuilder = Callable[[str | Path], CommandSpec]


def validate_image_format(format_name: str) -> str:
    """校验输出格式，返回规范化后的格式名"""
    if not ImageFormats.is_batch_format(format_name):
        raise UnsupportedFormatError(format_name, ImageFormats.BATCH_FORMATS)
    return ImageFormats.normalize(format_name)


def build_geometry(width: int | None, height: int | None) -> str | None:
    """生成 WxH 几何参数，两者都为空时返回 None"""
    if width is None and height is None:
        return None
    return f"{width if width is not None else ''}x{height if height is not None else ''}"


class CommandBuilders:
    """批量操作的命令构建器工厂"""

    @staticmethod
    def resize(
        output_dir: Path,
        width: int | None = None,
        height: int | None = None,
        quality: int | None = None,
        format: str | None = None,
    ) -> FileCommandBuilder:
        """缩放：convert <in> -resize WxH [-quality Q] <out>"""
        geometry = build_geometry(width, height)

        def build(file: str | Path) -> CommandSpec:
            source = validate_file_path(file)
            ext = format or source.suffix.lstrip(".")
            args = ["convert", str(source)]
            if geometry is not None:
                args += ["-resize", geometry]
            if quality is not None:
                args += ["-quality", str(quality)]
            args.append(str(output_dir / f"{source.stem}.{ext}"))
            return tuple(args)

        return build

    @staticmethod
    def convert(
        output_dir: Path, format: str, quality: int | None = None
    ) -> FileCommandBuilder:
        """格式转换：convert <in> [-quality Q] <out.format>"""

        def build(file: str | Path) -> CommandSpec:
            source = validate_file_path(file)
            args = ["convert", str(source)]
            if quality is not None:
                args += ["-quality", str(quality)]
            args.append(str(output_dir / f"{source.stem}.{format}"))
            return tuple(args)

        return build

    @staticmethod
    def optimize(
        output_dir: Path, quality: int | None = None, strip: bool = True
    ) -> FileCommandBuilder:
        """优化：去除元数据并使用渐进式编码"""

        def build(file: str | Path) -> CommandSpec:
            source = validate_file_path(file)
            args = ["convert", str(source)]
            if strip:
                args.append("-strip")
            args += ["-interlace", "Plane"]
            if quality is not None:
                args += ["-quality", str(quality)]
            args.append(str(output_dir / source.name))
            return tuple(args)

        return build

    @staticmethod
    def watermark(
        output_dir: Path,
        watermark: Path,
        gravity: str = "SouthEast",
        opacity: int | None = None,
    ) -> FileCommandBuilder:
        """水印：composite [-dissolve N] -gravity G <mark> <in> <out>"""

        def build(file: str | Path) -> CommandSpec:
            source = validate_file_path(file)
            args = ["composite"]
            if opacity is not None:
                args += ["-dissolve", str(opacity)]
            args += ["-gravity", gravity]
            args += [str(watermark), str(source), str(output_dir / source.name)]
            return tuple(args)

        return build
