"""批量调度器模块。

在有限并发下为每个条目构建命令并执行，汇总成功/失败并报告进度。
"""

import asyncio
import time
from collections.abc import Callable, Sequence
from typing import Any

from ..config import AppConfig, get_config
from ..core.executor import ProcessExecutor
from ..exceptions import ErrorHandler
from ..models.batch_result import BatchFailure, BatchProgress, BatchResult
from ..models.execution import ExecutionConfig, ExecutionOutcome
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter


logger = get_logger()

CommandBuilder = Callable[[Any], Sequence[str]]
ProgressCallback = Callable[[BatchProgress], None]


class _BatchRun:
    """单次批量执行的累积状态，只在协调协程中修改"""

    def __init__(self, total: int, on_progress: ProgressCallback | None):
        self.total = total
        self.on_progress = on_progress
        self.succeeded: list[Any] = []
        self.failed: list[BatchFailure] = []

    def record(self, index: int, item: Any, error: Exception | None) -> None:
        if error is None:
            self.succeeded.append(item)
        else:
            self.failed.append(ErrorHandler.handle_item_error(error, item))

        logger.debug(
            MessageFormatter.batch_progress(index, self.total, item, error is not None)
        )
        self._emit(BatchProgress.for_item(item, index, self.total, error))

    def _emit(self, progress: BatchProgress) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(progress)
        except Exception:
            logger.exception(f"进度回调执行失败: {progress.current_item}")


class BatchScheduler:
    """批量命令调度器

    concurrency 为 1 时严格顺序执行；大于 1 时按固定大小分块，
    块内并发执行，整块结束后才派发下一块。
    """

    def __init__(
        self,
        executor: ProcessExecutor | None = None,
        app_config: AppConfig | None = None,
    ):
        """初始化调度器

        Args:
            executor: 命令执行器
            app_config: 应用配置，提供并发数和出错策略的默认值
        """
        self.app_config = app_config or get_config()
        self.executor = executor or ProcessExecutor(app_config=self.app_config)

    async def run_batch(
        self,
        items: Sequence[Any],
        build_command: CommandBuilder,
        *,
        concurrency: int | None = None,
        continue_on_error: bool | None = None,
        on_progress: ProgressCallback | None = None,
        execution_config: ExecutionConfig | None = None,
    ) -> BatchResult:
        """批量执行命令

        Args:
            items: 条目列表，调度器不会修改条目
            build_command: 把条目转换为参数列表的函数
            concurrency: 最大并发数，默认 1
            continue_on_error: 出错后是否继续，默认 True
            on_progress: 每个条目结束时调用的进度回调
            execution_config: 应用到所有条目的执行配置

        Returns:
            BatchResult: 批量结果。提前终止时 aborted 为 True，
            未执行的条目在 not_attempted 中，不会计入成功

        Raises:
            ValueError: concurrency 不是正整数
            TypeError: build_command 不可调用
        """
        if concurrency is None:
            concurrency = self.app_config.batch.CONCURRENCY
        if continue_on_error is None:
            continue_on_error = self.app_config.batch.CONTINUE_ON_ERROR

        if isinstance(concurrency, bool) or not isinstance(concurrency, int):
            raise ValueError(f"concurrency 必须是正整数: {concurrency!r}")
        if concurrency < 1:
            raise ValueError(f"concurrency 必须是正整数: {concurrency!r}")
        if not callable(build_command):
            raise TypeError("build_command 必须可调用")

        items = list(items)
        total = len(items)
        if total == 0:
            return BatchResult(total=0)

        execution_config = execution_config or self.app_config.execution_config()
        run = _BatchRun(total, on_progress)

        started = time.perf_counter()
        if concurrency == 1:
            not_attempted = await self._run_sequential(
                run, items, build_command, continue_on_error, execution_config
            )
        else:
            not_attempted = await self._run_chunked(
                run,
                items,
                build_command,
                concurrency,
                continue_on_error,
                execution_config,
            )
        duration_ms = (time.perf_counter() - started) * 1000

        result = BatchResult(
            succeeded=run.succeeded,
            failed=run.failed,
            not_attempted=not_attempted,
            total=total,
            duration_ms=duration_ms,
            aborted=bool(not_attempted),
        )
        logger.info(result.get_summary())
        return result

    def run_batch_sync(
        self, items: Sequence[Any], build_command: CommandBuilder, **options: Any
    ) -> BatchResult:
        """同步版本的 run_batch"""
        return asyncio.run(self.run_batch(items, build_command, **options))

    async def _run_item(
        self, item: Any, build_command: CommandBuilder, config: ExecutionConfig
    ) -> ExecutionOutcome:
        return await self.executor.execute(build_command(item), config)

    async def _run_sequential(
        self,
        run: _BatchRun,
        items: list[Any],
        build_command: CommandBuilder,
        continue_on_error: bool,
        config: ExecutionConfig,
    ) -> list[Any]:
        """顺序执行，返回未执行的条目"""
        for index, item in enumerate(items, start=1):
            try:
                await self._run_item(item, build_command, config)
            except Exception as e:
                run.record(index, item, e)
                if not continue_on_error:
                    return items[index:]
            else:
                run.record(index, item, None)
        return []

    async def _run_chunked(
        self,
        run: _BatchRun,
        items: list[Any],
        build_command: CommandBuilder,
        chunk_size: int,
        continue_on_error: bool,
        config: ExecutionConfig,
    ) -> list[Any]:
        """分块并发执行，返回未执行的条目"""
        for start in range(0, len(items), chunk_size):
            chunk = items[start : start + chunk_size]
            tasks = {
                asyncio.create_task(self._run_item(item, build_command, config)): (
                    index,
                    item,
                )
                for index, item in enumerate(chunk, start=start + 1)
            }

            chunk_failed = False
            pending = set(tasks)
            try:
                while pending:
                    done, pending = await asyncio.wait(
                        pending, return_when=asyncio.FIRST_COMPLETED
                    )
                    for task in sorted(done, key=lambda t: tasks[t][0]):
                        index, item = tasks[task]
                        error = task.exception()
                        run.record(index, item, error)
                        chunk_failed = chunk_failed or error is not None
            except asyncio.CancelledError:
                for task in pending:
                    task.cancel()
                # 等待被取消的条目结束，执行器在此期间回收子进程
                await asyncio.gather(*pending, return_exceptions=True)
                raise

            # 块内已派发的条目全部结束后才停止
            if chunk_failed and not continue_on_error:
                return items[start + chunk_size :]
        return []
