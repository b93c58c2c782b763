"""核心执行模块。

包含参数安全检查、路径校验、可执行文件定位和进程执行。
"""

from .binary import BinaryLocator, parse_format_list, parse_version_output
from .executor import ProcessExecutor, StreamingExecution
from .path_validator import (
    validate_directory_path,
    validate_file_path,
    validate_number,
    validate_string,
)
from .sanitizer import sanitize_argument, sanitize_arguments


__all__ = [
    "BinaryLocator",
    "ProcessExecutor",
    "StreamingExecution",
    "parse_format_list",
    "parse_version_output",
    "sanitize_argument",
    "sanitize_arguments",
    "validate_directory_path",
    "validate_file_path",
    "validate_number",
    "validate_string",
]
