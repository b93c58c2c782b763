"""命令参数安全检查模块。

在参数到达进程创建之前拦截命令注入特征。参数总是以独立的 argv
传递、不经过 shell，这里的检查是额外的一道防线。
"""

import re
from collections.abc import Sequence
from functools import lru_cache
from typing import Any

from ..config import SecurityDefaults
from ..exceptions import InjectionPatternError, InvalidTypeError, NullByteError
from ..utils.logging_helpers import get_logger


logger = get_logger()

_DEFAULT_SECURITY = SecurityDefaults()


@lru_cache(maxsize=16)
def _compile_patterns(patterns: tuple[str, ...]) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p) for p in patterns)


def sanitize_argument(
    token: Any,
    security: SecurityDefaults | None = None,
    index: int | None = None,
) -> str:
    """检查单个命令参数

    ImageMagick 的几何参数会用到 %、!、^、@、+ 等字符，这些直接放行；
    $、反引号、反斜杠和引号只记录告警。

    Args:
        token: 待检查的参数
        security: 安全配置，默认使用内置规则
        index: 参数在数组中的位置，仅用于错误信息

    Returns:
        str: 原样返回的参数

    Raises:
        InvalidTypeError: 参数不是字符串
        NullByteError: 参数包含 NUL 字节
        InjectionPatternError: 参数命中注入特征
    """
    if not isinstance(token, str):
        raise InvalidTypeError(f"参数必须是字符串，实际类型: {type(token).__name__}")

    if "\0" in token:
        raise NullByteError(token, index)

    security = security or _DEFAULT_SECURITY

    risky = [char for char in security.RISKY_CHARACTERS if char in token]
    if risky:
        logger.warning(f"参数包含特殊字符 {', '.join(risky)}，请确认来源可信: {token!r}")

    for pattern in _compile_patterns(tuple(security.INJECTION_PATTERNS)):
        if pattern.search(token):
            raise InjectionPatternError(token, index)

    return token


def sanitize_arguments(
    tokens: Sequence[str], security: SecurityDefaults | None = None
) -> list[str]:
    """检查整个参数数组，错误信息中包含出错参数的位置"""
    if not isinstance(tokens, list | tuple):
        raise InvalidTypeError(f"参数必须是列表，实际类型: {type(tokens).__name__}")

    return [
        sanitize_argument(token, security, index) for index, token in enumerate(tokens)
    ]
