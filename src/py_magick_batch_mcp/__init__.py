"""ImageMagick 命令执行与批量处理库。

以安全的参数检查、带超时的进程执行和有限并发的批量调度封装 magick 命令行。
"""

__version__ = "0.1.0"
__author__ = "crper"
__description__ = "ImageMagick 安全执行与批量处理库"

# 核心功能导出
from .core.binary import BinaryLocator
from .core.executor import ProcessExecutor, StreamingExecution
from .core.path_validator import validate_directory_path, validate_file_path
from .core.sanitizer import sanitize_argument, sanitize_arguments
from .engine.batch import BatchProcessor
from .engine.scheduler import BatchScheduler
from .models.batch_result import BatchFailure, BatchProgress, BatchResult
from .models.execution import ExecutionConfig, ExecutionOutcome


__all__ = [
    "BatchFailure",
    "BatchProcessor",
    "BatchProgress",
    "BatchResult",
    "BatchScheduler",
    "BinaryLocator",
    "ExecutionConfig",
    "ExecutionOutcome",
    "ProcessExecutor",
    "StreamingExecution",
    "get_version",
    "sanitize_argument",
    "sanitize_arguments",
    "validate_directory_path",
    "validate_file_path",
]


def get_version() -> str:
    """获取版本号。"""
    return __version__
