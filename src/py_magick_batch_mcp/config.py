"""统一配置管理模块。

提供应用程序的配置管理，包括默认值、环境变量支持等。
配置对象通过构造参数显式传递给执行器和调度器，运行期间不做修改。
"""

import os
from dataclasses import dataclass, field

from .models.execution import ExecutionConfig


@dataclass(frozen=True)
class ExecutionDefaults:
    """进程执行相关的默认配置"""

    # 超时设置（毫秒），0 表示不限制
    TIMEOUT_MS: int = 60000

    # 外部程序
    BINARY_PATH: str | None = None
    VERSION_TIMEOUT_MS: int = 5000
    FORMAT_LIST_TIMEOUT_MS: int = 10000

    VERBOSE: bool = False


@dataclass(frozen=True)
class BatchDefaults:
    """批量处理相关的默认配置"""

    CONCURRENCY: int = 1
    CONTINUE_ON_ERROR: bool = True


@dataclass(frozen=True)
class SecurityDefaults:
    """参数安全检查相关的默认配置"""

    # 允许但需要告警的字符
    RISKY_CHARACTERS: tuple[str, ...] = ("$", "`", "\\", '"', "'")

    # 命令注入特征
    INJECTION_PATTERNS: tuple[str, ...] = field(
        default_factory=lambda: (
            r"\|\s*\w+",  # 管道到命令
            r";\s*\w+",  # 命令分隔符
            r"&\s*\w+",  # 后台/并列执行
            r"\$\([^)]+\)",  # 命令替换
            r"`[^`]+`",  # 反引号命令替换
        )
    )


@dataclass(frozen=True)
class LoggingDefaults:
    """日志相关的默认配置"""

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AppConfig:
    """应用程序配置管理器

    支持环境变量覆盖默认配置
    """

    def __init__(self):
        self.execution = ExecutionDefaults()
        self.batch = BatchDefaults()
        self.security = SecurityDefaults()
        self.logging = LoggingDefaults()

        # 从环境变量加载配置
        self._load_from_env()

    def _load_from_env(self):
        """从环境变量加载配置"""
        # 执行配置
        if binary_path := os.getenv("PMB_BINARY_PATH"):
            object.__setattr__(self.execution, "BINARY_PATH", binary_path)

        if timeout_ms := os.getenv("PMB_TIMEOUT_MS"):
            object.__setattr__(self.execution, "TIMEOUT_MS", int(timeout_ms))

        if verbose := os.getenv("PMB_VERBOSE"):
            object.__setattr__(
                self.execution, "VERBOSE", verbose.lower() in ("true", "1", "yes")
            )

        # 批量配置
        if concurrency := os.getenv("PMB_CONCURRENCY"):
            object.__setattr__(self.batch, "CONCURRENCY", int(concurrency))

        # 日志配置
        if log_level := os.getenv("PMB_LOG_LEVEL"):
            object.__setattr__(self.logging, "LOG_LEVEL", log_level.upper())

    def execution_config(self) -> ExecutionConfig:
        """根据默认值生成执行配置"""
        return ExecutionConfig(
            timeout_ms=self.execution.TIMEOUT_MS,
            verbose=self.execution.VERBOSE,
        )


# 进程启动时创建的默认配置实例
config = AppConfig()


def get_config() -> AppConfig:
    """获取默认配置实例"""
    return config


def reset_config():
    """重置配置（主要用于测试）"""
    global config
    config = AppConfig()
