"""数据模型包。

定义命令执行和批量处理相关的数据结构和模型。
"""

from .batch_result import BatchFailure, BatchProgress, BatchResult
from .constants import BinaryDefaults, ImageFormats
from .execution import CommandSpec, ExecutionConfig, ExecutionOutcome, VersionInfo


__all__ = [
    "BatchFailure",
    "BatchProgress",
    "BatchResult",
    "BinaryDefaults",
    "CommandSpec",
    "ExecutionConfig",
    "ExecutionOutcome",
    "ImageFormats",
    "VersionInfo",
]
