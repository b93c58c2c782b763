#!/usr/bin/env python3
"""批量处理演示脚本。

展示 py_magick_batch_mcp 库的核心功能，包括：
- 参数安全检查与路径校验
- 单条命令执行
- 带进度回调的批量缩放
"""

import asyncio
import sys
from pathlib import Path

from PIL import Image

from py_magick_batch_mcp import (
    BatchProcessor,
    BatchProgress,
    ExecutionConfig,
    ProcessExecutor,
    sanitize_arguments,
    validate_file_path,
)
from py_magick_batch_mcp.exceptions import MagickError


def get_output_dir(subdir: str = "") -> Path:
    """获取输出目录 - 使用项目的 tmp 目录"""
    project_root = Path(__file__).parent.parent
    output_dir = project_root / "tmp" / "examples"
    if subdir:
        output_dir = output_dir / subdir
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


def create_sample_images(count: int = 6) -> list[Path]:
    """用 Pillow 生成演示图片"""
    source_dir = get_output_dir("source")
    images = []
    for i in range(count):
        path = source_dir / f"sample_{i}.png"
        Image.new("RGB", (400 + i * 50, 300), color=(i * 40 % 256, 120, 200)).save(path)
        images.append(path)
    return images


def demo_security() -> None:
    """演示参数检查"""
    print("🔒 参数安全检查")
    for args in (
        ["convert", "in.jpg", "-resize", "800x600+10+20", "out.jpg"],
        ["convert", "in.jpg", "-resize", "800x600; rm -rf /", "out.jpg"],
    ):
        try:
            sanitize_arguments(args)
            print(f"  ✅ 通过: {args}")
        except MagickError as e:
            print(f"  ❌ 拒绝: {e}")

    try:
        validate_file_path("../../etc/passwd", "/home/user/images")
    except MagickError as e:
        print(f"  ❌ 拒绝: {e}")


async def demo_execute(executor: ProcessExecutor) -> None:
    """演示单条命令"""
    print("\n⚙️ 执行单条命令")
    version = await executor.get_version()
    print(f"  ImageMagick {version.version}")


async def demo_batch(executor: ProcessExecutor) -> None:
    """演示批量缩放"""
    print("\n📂 批量缩放")
    images = create_sample_images()

    def on_progress(progress: BatchProgress) -> None:
        status = "❌" if progress.error else "✅"
        print(
            f"  {status} [{progress.index}/{progress.total}] "
            f"{progress.percentage_complete}% {Path(progress.current_item).name}"
        )

    processor = BatchProcessor()
    result = await processor.batch_resize(
        images,
        get_output_dir("resized"),
        width=200,
        format="webp",
        concurrency=3,
        on_progress=on_progress,
        execution_config=ExecutionConfig(timeout_ms=30000),
    )
    print(f"  {result.get_summary()}")


async def main() -> int:
    demo_security()

    executor = ProcessExecutor()
    if not executor.locator.is_available():
        print("\n⚠️ 未找到 ImageMagick，跳过执行演示")
        return 1

    await demo_execute(executor)
    await demo_batch(executor)
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
