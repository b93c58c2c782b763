"""批量调度器测试。

大部分用例使用假的执行器，最后一组用例启动真实子进程。
"""

import asyncio

import pytest

from py_magick_batch_mcp.core.executor import ProcessExecutor
from py_magick_batch_mcp.core.path_validator import validate_file_path
from py_magick_batch_mcp.engine.scheduler import BatchScheduler
from py_magick_batch_mcp.exceptions import ExecutionError, PathTraversalError
from py_magick_batch_mcp.models.batch_result import BatchProgress
from py_magick_batch_mcp.models.execution import ExecutionConfig
from tests.conftest import FakeExecutor, py


def by_name(item) -> list[str]:
    return [str(item)]


class TestSequential:
    """concurrency=1 的顺序执行"""

    @pytest.mark.asyncio
    async def test_progress_indices_strictly_increasing(self, fake_executor):
        """测试顺序执行时进度位置为 1..N"""
        events: list[BatchProgress] = []
        scheduler = BatchScheduler(fake_executor)

        result = await scheduler.run_batch(
            ["a", "b", "c", "d"], by_name, on_progress=events.append
        )

        assert [e.index for e in events] == [1, 2, 3, 4]
        assert [e.percentage_complete for e in events] == [25, 50, 75, 100]
        assert [e.is_complete for e in events] == [False, False, False, True]
        assert all(e.total == 4 and e.error is None for e in events)
        assert result.succeeded == ["a", "b", "c", "d"]
        assert fake_executor.max_in_flight == 1

    @pytest.mark.asyncio
    async def test_fail_fast_returns_partial_result(self):
        """测试出错即停：返回部分结果而不是抛出异常"""
        executor = FakeExecutor(fail_on=["3"])
        scheduler = BatchScheduler(executor)

        result = await scheduler.run_batch(
            [1, 2, 3, 4, 5], by_name, continue_on_error=False, concurrency=1
        )

        assert result.succeeded == [1, 2]
        assert result.get_failed_items() == [3]
        assert isinstance(result.failed[0].error, ExecutionError)
        assert result.not_attempted == [4, 5]
        assert result.aborted
        assert not result.success
        assert executor.calls == [("1",), ("2",), ("3",)]

    @pytest.mark.asyncio
    async def test_continue_on_error_partition(self):
        """测试继续执行时成功与失败覆盖全部条目且互不相交"""
        items = list(range(10))
        executor = FakeExecutor(fail_on=["2", "5", "9"])
        scheduler = BatchScheduler(executor)

        result = await scheduler.run_batch(items, by_name)

        failed = result.get_failed_items()
        assert len(result.succeeded) + len(failed) == len(items)
        assert not set(result.succeeded) & set(failed)
        assert failed == [2, 5, 9]
        assert result.not_attempted == []
        assert not result.aborted

    @pytest.mark.asyncio
    async def test_failure_progress_carries_error(self):
        executor = FakeExecutor(fail_on=["b"])
        events: list[BatchProgress] = []

        await BatchScheduler(executor).run_batch(
            ["a", "b"], by_name, on_progress=events.append
        )

        assert events[0].error is None
        assert isinstance(events[1].error, ExecutionError)
        assert events[1].is_complete


class TestChunked:
    """concurrency>1 的分块并发"""

    @pytest.mark.asyncio
    async def test_ten_items_concurrency_four(self, fake_executor):
        """测试 10 个条目、并发 4 全部成功"""
        events: list[BatchProgress] = []
        scheduler = BatchScheduler(fake_executor)

        result = await scheduler.run_batch(
            list(range(1, 11)), by_name, concurrency=4, on_progress=events.append
        )

        assert len(result.succeeded) == 10
        assert len(result.failed) == 0
        assert len(events) >= 3
        assert sorted(e.index for e in events) == list(range(1, 11))
        assert fake_executor.max_in_flight <= 4

    @pytest.mark.asyncio
    async def test_concurrency_bound(self):
        """测试同时运行的条目数不超过并发数"""
        executor = FakeExecutor(delay=0.02)

        await BatchScheduler(executor).run_batch(
            list(range(9)), by_name, concurrency=3
        )

        assert executor.max_in_flight == 3

    @pytest.mark.asyncio
    async def test_chunk_barrier(self):
        """测试上一块全部结束后才派发下一块"""
        executor = FakeExecutor(delays={"1": 0.2})

        await BatchScheduler(executor).run_batch([1, 2, 3, 4], by_name, concurrency=2)

        events = executor.events
        assert events.index(("start", "3")) > events.index(("end", "1"))
        assert events.index(("start", "4")) > events.index(("end", "1"))

    @pytest.mark.asyncio
    async def test_progress_index_is_input_position(self):
        """测试进度位置对应输入位置，而不是完成顺序"""
        executor = FakeExecutor(delays={"a": 0.1, "b": 0.01})
        events: list[BatchProgress] = []

        await BatchScheduler(executor).run_batch(
            ["a", "b"], by_name, concurrency=2, on_progress=events.append
        )

        assert [(e.current_item, e.index) for e in events] == [("b", 2), ("a", 1)]
        assert events[0].is_complete
        assert not events[1].is_complete

    @pytest.mark.asyncio
    async def test_fail_fast_lets_chunk_finish(self):
        """测试出错即停时同一块内已派发的条目会执行完"""
        executor = FakeExecutor(fail_on=["2"], delays={"3": 0.1})

        result = await BatchScheduler(executor).run_batch(
            [1, 2, 3, 4, 5, 6], by_name, concurrency=3, continue_on_error=False
        )

        assert sorted(result.succeeded) == [1, 3]
        assert result.get_failed_items() == [2]
        assert result.not_attempted == [4, 5, 6]
        assert result.aborted
        assert len(executor.calls) == 3

    @pytest.mark.asyncio
    async def test_continue_on_error_partition(self):
        items = list(range(12))
        executor = FakeExecutor(fail_on=["0", "7", "11"])

        result = await BatchScheduler(executor).run_batch(items, by_name, concurrency=5)

        failed = result.get_failed_items()
        assert len(result.succeeded) + len(failed) == 12
        assert sorted(failed) == [0, 7, 11]
        assert not set(result.succeeded) & set(failed)


class TestBatchContract:
    """参数校验与通用行为"""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("concurrency", [0, -1, 1.5, True])
    async def test_invalid_concurrency(self, fake_executor, concurrency):
        with pytest.raises(ValueError):
            await BatchScheduler(fake_executor).run_batch(
                [1], by_name, concurrency=concurrency
            )

    @pytest.mark.asyncio
    async def test_build_command_not_callable(self, fake_executor):
        with pytest.raises(TypeError):
            await BatchScheduler(fake_executor).run_batch([1], "convert")

    @pytest.mark.asyncio
    async def test_empty_items(self, fake_executor):
        result = await BatchScheduler(fake_executor).run_batch([], by_name)

        assert result.total == 0
        assert result.succeeded == []
        assert result.failed == []
        assert fake_executor.calls == []

    @pytest.mark.asyncio
    async def test_builder_error_is_item_failure(self, fake_executor, tmp_path):
        """测试构建命令时的错误只影响当前条目"""
        allowed = tmp_path / "images"

        def build(item: str) -> list[str]:
            return [str(validate_file_path(item, allowed))]

        items = [str(allowed / "ok.png"), "../../etc/passwd", str(allowed / "ok2.png")]
        result = await BatchScheduler(fake_executor).run_batch(items, build)

        assert len(result.succeeded) == 2
        assert result.get_failed_items() == ["../../etc/passwd"]
        assert isinstance(result.failed[0].error, PathTraversalError)

    @pytest.mark.asyncio
    async def test_progress_callback_error_does_not_break_batch(self, fake_executor):
        def on_progress(progress: BatchProgress) -> None:
            raise RuntimeError("callback broken")

        result = await BatchScheduler(fake_executor).run_batch(
            [1, 2], by_name, on_progress=on_progress
        )
        assert result.succeeded == [1, 2]

    @pytest.mark.asyncio
    async def test_execution_config_applied_to_every_item(self, fake_executor):
        config = ExecutionConfig(timeout_ms=1234)

        await BatchScheduler(fake_executor).run_batch(
            [1, 2, 3], by_name, concurrency=2, execution_config=config
        )

        assert all(c is config for c in fake_executor.configs)

    @pytest.mark.asyncio
    async def test_duration_and_summary(self):
        executor = FakeExecutor(delay=0.05)

        result = await BatchScheduler(executor).run_batch([1, 2], by_name)

        assert result.duration_ms >= 90
        assert result.total == 2
        assert "2/2" in result.get_summary()

    @pytest.mark.asyncio
    async def test_cancellation_cancels_in_flight_items(self):
        executor = FakeExecutor(delay=5)
        task = asyncio.create_task(
            BatchScheduler(executor).run_batch([1, 2], by_name, concurrency=2)
        )
        await asyncio.sleep(0.05)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert executor.in_flight == 0

    def test_run_batch_sync(self, fake_executor):
        result = BatchScheduler(fake_executor).run_batch_sync([1, 2, 3], by_name)
        assert result.succeeded == [1, 2, 3]


class TestWithRealProcesses:
    """使用真实子进程的批量执行"""

    @pytest.mark.asyncio
    async def test_mixed_results(self, executor: ProcessExecutor):
        commands = {
            "ok-1": py("print(1)"),
            "fail": py("import sys\nsys.stderr.write('bad')\nsys.exit(1)"),
            "ok-2": py("print(2)"),
            "ok-3": py("print(3)"),
        }

        result = await BatchScheduler(executor).run_batch(
            list(commands), commands.__getitem__, concurrency=2
        )

        assert sorted(result.succeeded) == ["ok-1", "ok-2", "ok-3"]
        assert result.get_failed_items() == ["fail"]
        error = result.failed[0].error
        assert isinstance(error, ExecutionError)
        assert error.exit_code == 1
        assert error.stderr == "bad"

    @pytest.mark.asyncio
    async def test_timeout_item_recorded_as_failure(self, executor: ProcessExecutor):
        commands = {
            "slow": py("import time\ntime.sleep(10)"),
            "fast": py("print('fast')"),
        }

        result = await BatchScheduler(executor).run_batch(
            list(commands),
            commands.__getitem__,
            concurrency=2,
            execution_config=ExecutionConfig(timeout_ms=1000),
        )

        assert result.succeeded == ["fast"]
        assert result.get_failed_items() == ["slow"]
        assert isinstance(result.failed[0].error, TimeoutError)
