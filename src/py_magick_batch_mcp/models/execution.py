"""命令执行模型。

定义外部进程执行的配置和结果数据结构。
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


# 单次调用的完整参数向量（不含可执行文件本身）
CommandSpec = tuple[str, ...]


class ExecutionConfig(BaseModel):
    """单次执行配置"""

    model_config = ConfigDict(frozen=True)

    working_directory: Path | None = Field(None, description="工作目录")
    timeout_ms: int = Field(60000, ge=0, description="超时时间（毫秒），0 表示不限制")
    env: dict[str, str] | None = Field(None, description="额外的环境变量")
    verbose: bool = Field(False, description="输出详细日志")

    @property
    def timeout_seconds(self) -> float | None:
        """asyncio 使用的超时秒数，未启用时为 None"""
        if self.timeout_ms <= 0:
            return None
        return self.timeout_ms / 1000


class ExecutionOutcome(BaseModel):
    """进程成功退出后的结果"""

    exit_code: int = Field(description="退出码")
    stdout: str = Field("", description="标准输出")
    stderr: str = Field("", description="标准错误")

    @property
    def success(self) -> bool:
        return self.exit_code == 0


class VersionInfo(BaseModel):
    """ImageMagick 版本信息"""

    version: str = Field(description="完整版本号，如 7.1.1-21")
    major: int
    minor: int
    patch: int
    features: list[str] = Field(default_factory=list, description="编译特性")
    delegates: list[str] = Field(default_factory=list, description="内置委托库")

    @property
    def is_v7(self) -> bool:
        return self.major >= 7
