"""批量处理器模块。

在调度器之上提供常见的批量图像操作：缩放、转换、优化、加水印。
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from ..core.path_validator import validate_directory_path, validate_file_path
from ..models.batch_result import BatchResult
from ..utils.file_helpers import ensure_directory, find_image_files
from ..utils.logging_helpers import get_logger
from .commands import CommandBuilders, FileCommandBuilder, validate_image_format
from .scheduler import BatchScheduler


logger = get_logger()


class BatchProcessor:
    """批量图像处理器

    输出目录和格式在开始前校验，单个文件的路径问题只记为该文件失败。
    其余关键字参数（concurrency、continue_on_error、on_progress、
    execution_config）原样传给调度器。
    """

    def __init__(self, scheduler: BatchScheduler | None = None):
        self.scheduler = scheduler or BatchScheduler()

    async def batch_resize(
        self,
        files: Sequence[str | Path],
        output_dir: str | Path,
        width: int | None = None,
        height: int | None = None,
        quality: int | None = None,
        format: str | None = None,
        **batch_options: Any,
    ) -> BatchResult:
        """批量缩放"""
        output_dir = self._prepare_output_dir(output_dir)
        if format is not None:
            format = validate_image_format(format)

        builder = CommandBuilders.resize(output_dir, width, height, quality, format)
        return await self._run(files, builder, batch_options)

    async def batch_convert(
        self,
        files: Sequence[str | Path],
        output_dir: str | Path,
        format: str,
        quality: int | None = None,
        **batch_options: Any,
    ) -> BatchResult:
        """批量格式转换"""
        format = validate_image_format(format)
        output_dir = self._prepare_output_dir(output_dir)

        builder = CommandBuilders.convert(output_dir, format, quality)
        return await self._run(files, builder, batch_options)

    async def batch_optimize(
        self,
        files: Sequence[str | Path],
        output_dir: str | Path,
        quality: int | None = None,
        strip: bool = True,
        **batch_options: Any,
    ) -> BatchResult:
        """批量优化"""
        output_dir = self._prepare_output_dir(output_dir)

        builder = CommandBuilders.optimize(output_dir, quality, strip)
        return await self._run(files, builder, batch_options)

    async def batch_watermark(
        self,
        files: Sequence[str | Path],
        watermark: str | Path,
        output_dir: str | Path,
        gravity: str = "SouthEast",
        opacity: int | None = None,
        **batch_options: Any,
    ) -> BatchResult:
        """批量添加水印"""
        output_dir = self._prepare_output_dir(output_dir)
        watermark_path = validate_file_path(watermark)

        builder = CommandBuilders.watermark(output_dir, watermark_path, gravity, opacity)
        return await self._run(files, builder, batch_options)

    async def process_directory(
        self,
        input_dir: str | Path,
        build_command: FileCommandBuilder,
        recursive: bool = False,
        extensions: list[str] | None = None,
        **batch_options: Any,
    ) -> BatchResult:
        """扫描目录中的图像并用给定构建函数批量处理"""
        files = find_image_files(input_dir, recursive=recursive, extensions=extensions)
        if not files:
            logger.info(f"未找到图像文件: {input_dir}")
        return await self._run(files, build_command, batch_options)

    def _prepare_output_dir(self, output_dir: str | Path) -> Path:
        """校验并创建输出目录"""
        return ensure_directory(validate_directory_path(output_dir))

    async def _run(
        self,
        files: Sequence[str | Path],
        builder: FileCommandBuilder,
        batch_options: dict[str, Any],
    ) -> BatchResult:
        return await self.scheduler.run_batch(list(files), builder, **batch_options)
