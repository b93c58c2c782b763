"""ImageMagick 批量处理 MCP 服务器。

把命令执行和批量处理能力以 MCP 工具的形式提供。
"""

from pathlib import Path
from typing import Any

from fastmcp import FastMCP

from .config import get_config
from .core.executor import ProcessExecutor
from .engine.batch import BatchProcessor
from .engine.scheduler import BatchScheduler
from .exceptions import (
    BinaryNotFoundError,
    CommandTimeoutError,
    ErrorHandler,
    ExecutionError,
    MagickError,
    ValidationError,
)
from .models.batch_result import BatchResult
from .models.execution import ExecutionConfig
from .utils.logging_helpers import configure_logging, get_logger
from .utils.message_formatter import MessageFormatter


# MCP 服务器响应类型定义
MCPResponse = dict[str, Any]

BATCH_OPERATIONS = ("resize", "convert", "optimize", "watermark")


class MCPResponseBuilder:
    """MCP 服务器响应构建器，专门用于构建符合 MCP 协议的响应格式。"""

    @staticmethod
    def error(
        message: str,
        error_type: str = "general",
        details: dict[str, Any] | None = None,
    ) -> MCPResponse:
        """构建错误结果。

        Args:
            message: 错误消息
            error_type: 错误类型
            details: 额外的错误详情

        Returns:
            dict: 标准化的错误响应
        """
        result = {
            "success": False,
            "error": message,
            "error_type": error_type,
        }

        if details:
            result["details"] = details

        return result

    @staticmethod
    def from_exception(error: Exception) -> MCPResponse:
        """根据异常类型构建错误结果"""
        match error:
            case ValidationError():
                error_type = "validation"
            case BinaryNotFoundError():
                error_type = "binary"
            case CommandTimeoutError():
                error_type = "timeout"
            case ExecutionError():
                error_type = "execution"
            case _:
                error_type = "processing"
        return MCPResponseBuilder.error(
            str(error), error_type, ErrorHandler.describe(error)
        )


logger = get_logger(__name__)

app_config = get_config()

# 创建MCP应用
mcp: FastMCP[Any] = FastMCP("ImageMagick 批量处理服务")

# 全局执行器与批量处理器实例
executor = ProcessExecutor(app_config=app_config)
batch_processor = BatchProcessor(BatchScheduler(executor, app_config))


def _format_batch_result(result: BatchResult) -> dict[str, Any]:
    """格式化批量结果为MCP响应格式"""
    return {
        "total": result.total,
        "succeeded": [str(item) for item in result.succeeded],
        "failed": [
            {"item": str(f.item), **ErrorHandler.describe(f.error)}
            for f in result.failed
        ],
        "not_attempted": [str(item) for item in result.not_attempted],
        "aborted": result.aborted,
        "duration_ms": round(result.duration_ms, 1),
        "success_rate": result.get_success_rate(),
        "summary": result.get_summary(),
    }


async def run_magick_command(
    args: list[str],
    timeout_ms: int | None = None,
    working_directory: str | None = None,
) -> MCPResponse:
    """执行单条 ImageMagick 命令"""
    try:
        config = ExecutionConfig(
            timeout_ms=(
                timeout_ms if timeout_ms is not None else app_config.execution.TIMEOUT_MS
            ),
            working_directory=Path(working_directory) if working_directory else None,
        )
        outcome = await executor.execute(args, config)
        return {
            "success": True,
            "exit_code": outcome.exit_code,
            "stdout": outcome.stdout,
            "stderr": outcome.stderr,
        }
    except MagickError as e:
        logger.warning(MessageFormatter.operation_failed("执行命令", args, e))
        return MCPResponseBuilder.from_exception(e)
    except Exception as e:
        logger.error(MessageFormatter.operation_failed("执行命令", args, e))
        return MCPResponseBuilder.error(str(e), "processing")


async def run_batch_operation(
    files: list[str],
    output_dir: str,
    operation: str,
    width: int | None = None,
    height: int | None = None,
    quality: int | None = None,
    format: str | None = None,
    watermark: str | None = None,
    concurrency: int = 1,
    continue_on_error: bool = True,
) -> MCPResponse:
    """执行批量操作"""
    options: dict[str, Any] = {
        "concurrency": concurrency,
        "continue_on_error": continue_on_error,
    }
    try:
        match operation:
            case "resize":
                result = await batch_processor.batch_resize(
                    files, output_dir, width, height, quality, format, **options
                )
            case "convert":
                if not format:
                    return MCPResponseBuilder.error(
                        "convert 操作必须指定 format", "validation", {"field": "format"}
                    )
                result = await batch_processor.batch_convert(
                    files, output_dir, format, quality, **options
                )
            case "optimize":
                result = await batch_processor.batch_optimize(
                    files, output_dir, quality, **options
                )
            case "watermark":
                if not watermark:
                    return MCPResponseBuilder.error(
                        "watermark 操作必须指定水印文件",
                        "validation",
                        {"field": "watermark"},
                    )
                result = await batch_processor.batch_watermark(
                    files, watermark, output_dir, **options
                )
            case _:
                return MCPResponseBuilder.error(
                    f"不支持的操作: {operation}，可选: {', '.join(BATCH_OPERATIONS)}",
                    "validation",
                    {"field": "operation"},
                )

        return {
            "success": result.success,
            "result": _format_batch_result(result),
            "error": None if result.success else result.get_summary(),
        }
    except MagickError as e:
        logger.warning(MessageFormatter.operation_failed("批量处理", output_dir, e))
        return MCPResponseBuilder.from_exception(e)
    except ValueError as e:
        return MCPResponseBuilder.error(str(e), "validation")
    except OSError as e:
        logger.error(MessageFormatter.operation_failed("批量处理", output_dir, e))
        return MCPResponseBuilder.error(str(e), "file", {"file_path": output_dir})


async def collect_magick_info() -> MCPResponse:
    """获取 ImageMagick 的版本和格式信息"""
    try:
        binary = executor.locator.resolve()
        version = await executor.get_version()
        formats = await executor.get_supported_formats()
        return {
            "success": True,
            "binary_path": str(binary),
            "version": version.version,
            "is_v7": version.is_v7,
            "features": version.features,
            "delegates": version.delegates,
            "formats": formats,
        }
    except MagickError as e:
        logger.warning(
            MessageFormatter.operation_failed("获取 ImageMagick 信息", "magick", e)
        )
        return MCPResponseBuilder.from_exception(e)


# ============================================================================
# 🎯 MCP 工具
# ============================================================================


@mcp.tool()
async def run_magick(
    args: list[str],
    timeout_ms: int | None = None,
    working_directory: str | None = None,
) -> MCPResponse:
    """执行一条 ImageMagick 命令

    Args:
        args: 参数列表（不含 magick 本身），如 ["convert", "in.png", "-resize", "50%", "out.png"]
        timeout_ms: 超时时间（毫秒），0 表示不限制
        working_directory: 工作目录

    Returns:
        dict: 包含 exit_code、stdout、stderr 的结果，失败时包含错误类型和诊断信息
    """
    return await run_magick_command(args, timeout_ms, working_directory)


@mcp.tool()
async def batch_process(
    files: list[str],
    output_dir: str,
    operation: str,
    width: int | None = None,
    height: int | None = None,
    quality: int | None = None,
    format: str | None = None,
    watermark: str | None = None,
    concurrency: int = 1,
    continue_on_error: bool = True,
) -> MCPResponse:
    """批量处理图像文件

    Args:
        files: 输入文件列表
        output_dir: 输出目录
        operation: 操作类型 resize / convert / optimize / watermark
        width: 目标宽度（resize）
        height: 目标高度（resize）
        quality: 输出质量 1-100
        format: 输出格式（convert 必填，resize 可选）
        watermark: 水印文件路径（watermark 必填）
        concurrency: 并发数
        continue_on_error: 出错后是否继续处理其他文件

    Returns:
        dict: 批量结果，列出成功、失败和未执行的文件
    """
    return await run_batch_operation(
        files,
        output_dir,
        operation,
        width,
        height,
        quality,
        format,
        watermark,
        concurrency,
        continue_on_error,
    )


@mcp.tool()
async def get_magick_info() -> MCPResponse:
    """获取 ImageMagick 版本、编译特性和支持的格式"""
    return await collect_magick_info()


# ============================================================================
# 应用入口
# ============================================================================


def main() -> None:
    """启动 MCP 服务器"""
    configure_logging(app_config)
    logger.info("启动 ImageMagick 批量处理 MCP 服务器")
    mcp.run()


if __name__ == "__main__":
    main()
