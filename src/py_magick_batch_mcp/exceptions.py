"""命令执行异常处理模块。

定义统一的异常类和错误处理机制。
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Any

from .models.batch_result import BatchFailure
from .utils.logging_helpers import get_logger
from .utils.message_formatter import MessageFormatter


logger = get_logger()


class MagickError(Exception):
    """ImageMagick 相关错误基类"""

    code: str = "MAGICK_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


# 输入校验错误
class ValidationError(MagickError):
    """参数验证错误"""

    code = "VALIDATION_ERROR"


class InvalidTypeError(ValidationError, TypeError):
    """参数类型错误"""

    code = "INVALID_TYPE"


class InvalidPathError(ValidationError):
    """路径为空或类型不正确"""

    code = "INVALID_PATH"


class NullByteError(ValidationError):
    """参数包含 NUL 字节"""

    code = "NULL_BYTE"

    def __init__(self, token: str, index: int | None = None):
        location = f"位置 {index} 的参数" if index is not None else "参数"
        super().__init__(f"{location}包含空字节，不允许执行")
        self.token = token
        self.index = index


class InjectionPatternError(ValidationError):
    """参数命中命令注入特征"""

    code = "INJECTION_PATTERN"

    def __init__(self, token: str, index: int | None = None):
        location = f"位置 {index} 的参数" if index is not None else "参数"
        super().__init__(f"{location}包含危险模式，可能是命令注入: {token!r}")
        self.token = token
        self.index = index


class PathTraversalError(ValidationError):
    """路径越出允许的目录"""

    code = "PATH_TRAVERSAL"

    def __init__(self, path: str | Path, allowed_dir: str | Path):
        super().__init__(f"检测到路径穿越: {path} 不在允许的目录 {allowed_dir} 内")
        self.path = path
        self.allowed_dir = allowed_dir


class UnsupportedFormatError(ValidationError):
    """不支持的图像格式"""

    code = "UNSUPPORTED_FORMAT"

    def __init__(self, format_name: str, supported: Sequence[str] | None = None):
        message = f"不支持的格式: {format_name}"
        if supported:
            message += f"，支持的格式: {', '.join(sorted(supported))}"
        super().__init__(message)
        self.format = format_name
        self.supported = list(supported or [])


# 执行错误
class BinaryNotFoundError(MagickError):
    """找不到或无法启动 ImageMagick 可执行文件"""

    code = "BINARY_NOT_FOUND"

    def __init__(
        self, binary_path: str | Path | None = None, cause: OSError | None = None
    ):
        if binary_path:
            message = f"无法启动 ImageMagick: {binary_path}"
        else:
            message = "未找到 ImageMagick，请安装并确保 magick 在 PATH 中"
        if cause is not None:
            # 工作目录不存在等情况下 filename 指向的不是可执行文件
            message += f" (errno={cause.errno}, {cause.strerror}: {cause.filename})"
        super().__init__(message)
        self.binary_path = binary_path
        self.errno = cause.errno if cause is not None else None
        self.filename = cause.filename if cause is not None else None


class CommandTimeoutError(MagickError, TimeoutError):
    """命令执行超时，进程已被强制结束"""

    code = "TIMEOUT"

    def __init__(self, command: str, timeout_ms: int):
        super().__init__(f"命令执行超过 {timeout_ms}ms 已终止: {command}")
        self.command = command
        self.timeout_ms = timeout_ms


class ExecutionError(MagickError):
    """命令以非零退出码结束"""

    code = "EXECUTION_FAILED"

    def __init__(
        self,
        message: str,
        command: str,
        args: Sequence[str],
        exit_code: int,
        stderr: str,
        stdout: str,
    ):
        super().__init__(message)
        self.command = command
        self.args_list = list(args)
        self.exit_code = exit_code
        self.stderr = stderr
        self.stdout = stdout

    @property
    def full_command(self) -> str:
        """实际执行的完整命令"""
        return MessageFormatter.command_line(self.command, self.args_list)


class ParseError(MagickError):
    """解析 ImageMagick 输出失败"""

    code = "PARSE_ERROR"

    def __init__(self, message: str, raw_output: str | None = None):
        super().__init__(message)
        self.raw_output = raw_output


class ErrorHandler:
    """统一错误处理器

    把单个条目的异常转换为 BatchFailure，并按错误类型选择日志级别。
    """

    @staticmethod
    def _log_error(
        operation: str, target: Any, error: Exception, level: str = "error"
    ) -> None:
        """标准化的错误日志记录

        Args:
            operation: 操作名称
            target: 相关条目
            error: 异常对象
            level: 日志级别 ("error", "warning", "debug")
        """
        log_msg = MessageFormatter.format_error(operation, target, error)
        getattr(logger, level, logger.error)(log_msg)

    @staticmethod
    def handle_item_error(
        error: Exception, item: Any, operation: str = "批量条目"
    ) -> BatchFailure:
        """记录条目错误并生成失败结果"""
        match error:
            case ValidationError():
                ErrorHandler._log_error(f"{operation} - 参数校验", item, error, "warning")
            case ExecutionError() as ee:
                ErrorHandler._log_error(
                    f"{operation} - 退出码 {ee.exit_code}", item, error, "warning"
                )
            case CommandTimeoutError():
                ErrorHandler._log_error(f"{operation} - 超时", item, error, "error")
            case BinaryNotFoundError():
                ErrorHandler._log_error(f"{operation} - 程序缺失", item, error, "error")
            case _:
                ErrorHandler._log_error(operation, item, error, "error")

        return BatchFailure(item=item, error=error)

    @staticmethod
    def describe(error: Exception) -> dict[str, Any]:
        """把异常转换为可序列化的诊断信息"""
        details: dict[str, Any] = {
            "type": type(error).__name__,
            "message": str(error),
            "code": getattr(error, "code", None),
        }
        match error:
            case ExecutionError() as ee:
                details.update(
                    command=ee.full_command,
                    exit_code=ee.exit_code,
                    stderr=ee.stderr,
                    stdout=ee.stdout,
                )
            case CommandTimeoutError() as te:
                details.update(command=te.command, timeout_ms=te.timeout_ms)
            case InjectionPatternError() | NullByteError() as se:
                details.update(index=se.index)
            case PathTraversalError() as pe:
                details.update(path=str(pe.path), allowed_dir=str(pe.allowed_dir))
            case BinaryNotFoundError() as be if be.errno is not None:
                details.update(errno=be.errno, filename=be.filename)
        return details
