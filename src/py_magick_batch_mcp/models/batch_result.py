"""批量处理结果模型。

定义批量执行的进度事件与结果数据结构。
"""

from datetime import timedelta
from typing import Any

from humanize import precisedelta
from pydantic import BaseModel, ConfigDict, Field


class BatchProgress(BaseModel):
    """单个条目完成时发出的进度事件"""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    current_item: Any = Field(description="当前条目")
    index: int = Field(ge=1, description="条目在输入列表中的位置（从 1 开始）")
    total: int = Field(ge=1, description="条目总数")
    percentage_complete: int = Field(ge=0, le=100, description="完成百分比")
    is_complete: bool = Field(description="是否为最后一个条目")
    error: Exception | None = Field(None, description="条目失败时的错误")

    @classmethod
    def for_item(
        cls, item: Any, index: int, total: int, error: Exception | None = None
    ) -> "BatchProgress":
        """根据位置计算进度字段"""
        return cls(
            current_item=item,
            index=index,
            total=total,
            percentage_complete=round(index / total * 100),
            is_complete=index == total,
            error=error,
        )


class BatchFailure(BaseModel):
    """失败条目及其错误"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    item: Any = Field(description="失败的条目")
    error: Exception = Field(description="导致失败的错误")

    @property
    def error_message(self) -> str:
        return str(self.error)


class BatchResult(BaseModel):
    """批量执行结果

    succeeded 与 failed 互不相交。aborted 为 True 时，
    not_attempted 中的条目从未执行，既不算成功也不算失败。
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    succeeded: list[Any] = Field(default_factory=list, description="成功的条目")
    failed: list[BatchFailure] = Field(default_factory=list, description="失败的条目")
    not_attempted: list[Any] = Field(
        default_factory=list, description="因提前终止而未执行的条目"
    )
    total: int = Field(0, ge=0, description="输入条目总数")
    duration_ms: float = Field(0.0, ge=0, description="耗时（毫秒）")
    aborted: bool = Field(False, description="是否因失败提前终止")

    @property
    def success(self) -> bool:
        return not self.failed and not self.aborted

    def get_success_count(self) -> int:
        return len(self.succeeded)

    def get_failure_count(self) -> int:
        return len(self.failed)

    def get_attempted_count(self) -> int:
        return len(self.succeeded) + len(self.failed)

    def get_success_rate(self) -> float:
        """获取成功率（百分比，按已执行条目计算）"""
        attempted = self.get_attempted_count()
        if attempted == 0:
            return 0.0
        return (self.get_success_count() / attempted) * 100

    def get_failed_items(self) -> list[Any]:
        return [f.item for f in self.failed]

    def get_duration_human(self) -> str:
        """人类可读的耗时"""
        return precisedelta(
            timedelta(milliseconds=self.duration_ms), minimum_unit="milliseconds"
        )

    def get_summary(self) -> str:
        """批量处理摘要"""
        summary = (
            f"处理 {self.get_success_count()}/{self.total} 个条目 "
            f"(失败 {self.get_failure_count()}), "
            f"耗时 {self.get_duration_human()}"
        )
        if self.aborted:
            summary += f", 提前终止，{len(self.not_attempted)} 个条目未执行"
        return summary
