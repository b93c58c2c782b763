"""消息格式化工具模块。

提供统一的错误消息、日志消息格式化功能。
"""

from collections.abc import Sequence
from pathlib import Path
from typing import Any


class MessageFormatter:
    """统一的消息格式化器"""

    @staticmethod
    def directory_not_found(directory: str | Path) -> str:
        """目录不存在错误消息"""
        return f"目录不存在: {directory}"

    @staticmethod
    def path_not_directory(path: str | Path) -> str:
        """路径不是目录错误消息"""
        return f"路径不是目录: {path}"

    @staticmethod
    def permission_error(path: str | Path, operation: str = "访问") -> str:
        """权限错误消息"""
        return f"权限错误，无法{operation}: {path}"

    @staticmethod
    def operation_failed(
        operation: str, target: Any, error: Exception | None = None
    ) -> str:
        """操作失败消息"""
        msg = f"{operation}失败: {target}"
        if error:
            msg += f" - {error}"
        return msg

    @staticmethod
    def validation_error(field: str, value: Any, reason: str | None = None) -> str:
        """参数验证错误消息"""
        msg = f"参数验证失败 - {field}: {value}"
        if reason:
            msg += f" ({reason})"
        return msg

    @staticmethod
    def format_error(operation: str, target: Any, error: Exception) -> str:
        """格式化通用错误消息"""
        return f"{operation}失败 [{target}]: {error}"

    @staticmethod
    def command_line(binary: str | Path, args: Sequence[str]) -> str:
        """拼接用于日志展示的命令行（不用于执行）"""
        return " ".join([str(binary), *args])

    @staticmethod
    def batch_progress(index: int, total: int, item: Any, failed: bool) -> str:
        """批量进度消息"""
        status = "失败" if failed else "完成"
        return f"[{index}/{total}] {status}: {item}"
