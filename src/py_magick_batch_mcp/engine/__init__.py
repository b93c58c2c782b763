"""批量处理引擎模块。

包含批量调度、命令构建和常见批量操作。
"""

from .batch import BatchProcessor
from .commands import CommandBuilders
from .scheduler import BatchScheduler


__all__ = [
    "BatchProcessor",
    "BatchScheduler",
    "CommandBuilders",
]
