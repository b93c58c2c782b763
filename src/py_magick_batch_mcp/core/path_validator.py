"""路径与参数校验模块。

纯路径运算，不访问文件系统：存在性与可读性由调用方或外部程序负责。
"""

import os
import re
from pathlib import Path
from typing import Any

from ..exceptions import (
    InvalidPathError,
    InvalidTypeError,
    PathTraversalError,
    ValidationError,
)
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter


logger = get_logger()

_SEPARATORS = re.compile(r"[\\/]")


def _coerce_path(path: Any, kind: str) -> str:
    if isinstance(path, os.PathLike):
        path = os.fspath(path)
    if not isinstance(path, str) or not path.strip():
        raise InvalidPathError(f"{kind}必须是非空字符串")
    return path


def _resolve(path: str) -> Path:
    # abspath 只做字面上的 .. 折叠，不解析符号链接
    return Path(os.path.abspath(path))


def validate_file_path(
    path: str | os.PathLike, allowed_dir: str | os.PathLike | None = None
) -> Path:
    """校验文件路径并返回绝对路径

    Args:
        path: 待校验的路径，相对路径以当前工作目录为基准
        allowed_dir: 允许的根目录（可选）

    Returns:
        Path: 折叠 .. 之后的绝对路径

    Raises:
        InvalidPathError: 路径为空或类型错误
        PathTraversalError: 路径不在 allowed_dir 内
    """
    raw = _coerce_path(path, "文件路径")
    resolved = _resolve(raw)

    if allowed_dir is not None:
        allowed_resolved = _resolve(_coerce_path(allowed_dir, "允许目录"))
        if not resolved.is_relative_to(allowed_resolved):
            raise PathTraversalError(raw, allowed_dir)
    else:
        # Path.parts 会丢弃 "." 组件，这里按分隔符手动拆分
        for part in _SEPARATORS.split(raw):
            if part in ("..", "."):
                logger.warning(f"路径包含 {part} 组件: {raw}")

    return resolved


def validate_directory_path(path: str | os.PathLike) -> Path:
    """校验目录路径并返回绝对路径"""
    return _resolve(_coerce_path(path, "目录路径"))


def validate_number(
    value: Any,
    name: str,
    min_value: float | None = None,
    max_value: float | None = None,
) -> float:
    """校验数值参数，字符串会尝试转换"""
    if isinstance(value, bool):
        raise InvalidTypeError(MessageFormatter.validation_error(name, value, "需要数字"))

    if isinstance(value, int | float):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            raise ValidationError(
                MessageFormatter.validation_error(name, value, "需要数字")
            ) from None
    else:
        raise InvalidTypeError(MessageFormatter.validation_error(name, value, "需要数字"))

    if number != number:  # NaN
        raise ValidationError(MessageFormatter.validation_error(name, value, "需要数字"))
    if min_value is not None and number < min_value:
        raise ValidationError(
            MessageFormatter.validation_error(name, value, f"不能小于 {min_value}")
        )
    if max_value is not None and number > max_value:
        raise ValidationError(
            MessageFormatter.validation_error(name, value, f"不能大于 {max_value}")
        )
    return number


def validate_string(value: Any, name: str, max_length: int | None = None) -> str:
    """校验字符串参数"""
    if not isinstance(value, str):
        raise InvalidTypeError(
            MessageFormatter.validation_error(name, type(value).__name__, "需要字符串")
        )
    if max_length is not None and len(value) > max_length:
        raise ValidationError(
            MessageFormatter.validation_error(name, value, f"长度不能超过 {max_length}")
        )
    return value
