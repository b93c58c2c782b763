"""命令执行器模块。

以独立 argv 启动 ImageMagick 子进程，负责超时控制、输出收集和退出码映射。
"""

import asyncio
import os
import signal
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from ..config import AppConfig, get_config
from ..exceptions import BinaryNotFoundError, CommandTimeoutError, ExecutionError
from ..models.execution import ExecutionConfig, ExecutionOutcome, VersionInfo
from ..utils.logging_helpers import get_logger
from ..utils.message_formatter import MessageFormatter
from .binary import BinaryLocator, parse_format_list, parse_version_output
from .sanitizer import sanitize_arguments


logger = get_logger()

_READ_CHUNK_SIZE = 64 * 1024

_POSIX = os.name == "posix"

# 进程退出后等待输出管道关闭的最短时间（秒）
_DRAIN_GRACE_SECONDS = 0.1
# 强制结束后等待输出管道关闭的时间（秒）
_KILL_GRACE_SECONDS = 0.5


@dataclass
class StreamingExecution:
    """流式执行句柄

    stdout/stderr 是实时输出流，done 在进程结束后给出与 execute 相同的结果或异常。
    """

    process: asyncio.subprocess.Process
    stdout: asyncio.StreamReader
    stderr: asyncio.StreamReader
    stdin: asyncio.StreamWriter | None
    done: "asyncio.Task[ExecutionOutcome]"


@dataclass
class _SpawnedCommand:
    process: asyncio.subprocess.Process
    binary: Path
    args: list[str]
    config: ExecutionConfig

    @property
    def command_line(self) -> str:
        return MessageFormatter.command_line(self.binary, self.args)


async def _drain(
    stream: asyncio.StreamReader,
    chunks: list[bytes],
    sink: asyncio.StreamReader | None = None,
) -> None:
    """读取整个输出流到 chunks，可选地同时转发给实时读取者

    读取被取消时已读到的内容保留在 chunks 中。
    """
    try:
        while chunk := await stream.read(_READ_CHUNK_SIZE):
            chunks.append(chunk)
            if sink is not None:
                sink.feed_data(chunk)
    finally:
        if sink is not None:
            sink.feed_eof()


async def _feed_stdin(
    stdin: asyncio.StreamWriter | None, data: bytes | None, close: bool
) -> None:
    if stdin is None:
        return
    try:
        if data:
            stdin.write(data)
            await stdin.drain()
        if close:
            stdin.close()
    except (BrokenPipeError, ConnectionResetError) as e:
        # 进程未读取输入就已退出，结果以退出码为准
        logger.debug(f"写入标准输入中断: {e}")


def _kill(process: asyncio.subprocess.Process) -> None:
    """强制结束进程及其派生的子进程（如 gs、ffmpeg 等委托程序）"""
    try:
        if _POSIX:
            # 进程以新会话启动，进程组号等于其 pid
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except (ProcessLookupError, PermissionError):
        logger.debug(f"进程组已退出: pid={process.pid}")


class ProcessExecutor:
    """ImageMagick 命令执行器

    所有参数先经过安全检查，再以 argv 形式启动进程，从不拼接 shell 字符串。
    """

    def __init__(
        self,
        locator: BinaryLocator | None = None,
        app_config: AppConfig | None = None,
    ):
        """初始化执行器

        Args:
            locator: 可执行文件定位器，默认按配置中的路径创建
            app_config: 应用配置，默认使用进程级默认实例
        """
        self.app_config = app_config or get_config()
        self.locator = locator or BinaryLocator(
            custom_path=self.app_config.execution.BINARY_PATH
        )

    async def execute(
        self,
        tokens: Sequence[str],
        config: ExecutionConfig | None = None,
        input_data: bytes | None = None,
    ) -> ExecutionOutcome:
        """执行命令并等待结束

        Args:
            tokens: 参数列表（不含可执行文件）
            config: 执行配置
            input_data: 写入标准输入的数据（可选）

        Returns:
            ExecutionOutcome: 退出码为 0 时的结果

        Raises:
            ValidationError: 参数未通过安全检查
            BinaryNotFoundError: 找不到或无法启动可执行文件
            CommandTimeoutError: 超时，进程已被强制结束
            ExecutionError: 非零退出码
        """
        spawned = await self._spawn(tokens, config)
        return await self._supervise(spawned, input_data, close_stdin=True)

    async def execute_streaming(
        self,
        tokens: Sequence[str],
        config: ExecutionConfig | None = None,
        input_data: bytes | None = None,
    ) -> StreamingExecution:
        """以流式方式执行命令

        未提供 input_data 时标准输入保持打开，由调用方写入并关闭。
        """
        spawned = await self._spawn(tokens, config)
        live_stdout = asyncio.StreamReader()
        live_stderr = asyncio.StreamReader()

        done = asyncio.create_task(
            self._supervise(
                spawned,
                input_data,
                close_stdin=input_data is not None,
                sinks=(live_stdout, live_stderr),
            )
        )

        return StreamingExecution(
            process=spawned.process,
            stdout=live_stdout,
            stderr=live_stderr,
            stdin=spawned.process.stdin,
            done=done,
        )

    async def execute_subcommand(
        self,
        subcommand: str,
        args: Sequence[str],
        config: ExecutionConfig | None = None,
    ) -> ExecutionOutcome:
        """执行子命令，如 convert、identify、mogrify"""
        return await self.execute([subcommand, *args], config)

    async def execute_many(
        self,
        commands: Sequence[Sequence[str]],
        config: ExecutionConfig | None = None,
    ) -> list[ExecutionOutcome]:
        """并发执行多条命令，任一失败即抛出该错误"""
        return list(
            await asyncio.gather(*(self.execute(tokens, config) for tokens in commands))
        )

    async def execute_sequential(
        self,
        commands: Sequence[Sequence[str]],
        config: ExecutionConfig | None = None,
    ) -> list[ExecutionOutcome]:
        """按顺序执行多条命令，遇到失败立即抛出"""
        results = []
        for tokens in commands:
            results.append(await self.execute(tokens, config))
        return results

    async def get_version(self) -> VersionInfo:
        """获取 ImageMagick 版本信息"""
        outcome = await self.execute(
            ["-version"],
            ExecutionConfig(timeout_ms=self.app_config.execution.VERSION_TIMEOUT_MS),
        )
        return parse_version_output(outcome.stdout)

    async def get_supported_formats(self) -> list[str]:
        """获取 ImageMagick 支持的格式列表"""
        outcome = await self.execute(
            ["-list", "format"],
            ExecutionConfig(
                timeout_ms=self.app_config.execution.FORMAT_LIST_TIMEOUT_MS
            ),
        )
        return parse_format_list(outcome.stdout)

    def run_sync(
        self, tokens: Sequence[str], config: ExecutionConfig | None = None
    ) -> ExecutionOutcome:
        """同步执行命令，供非异步调用方使用"""
        return asyncio.run(self.execute(tokens, config))

    async def _spawn(
        self, tokens: Sequence[str], config: ExecutionConfig | None
    ) -> _SpawnedCommand:
        """检查参数、定位程序并启动进程"""
        args = sanitize_arguments(tokens, self.app_config.security)
        binary = self.locator.resolve()
        config = config or self.app_config.execution_config()

        env = {**os.environ, **config.env} if config.env else None

        if config.verbose:
            logger.info(f"执行: {MessageFormatter.command_line(binary, args)}")

        try:
            process = await asyncio.create_subprocess_exec(
                str(binary),
                *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=config.working_directory,
                env=env,
                start_new_session=_POSIX,
            )
        except OSError as e:
            logger.error(MessageFormatter.operation_failed("启动进程", binary, e))
            raise BinaryNotFoundError(binary, e) from e

        return _SpawnedCommand(process=process, binary=binary, args=args, config=config)

    async def _supervise(
        self,
        spawned: _SpawnedCommand,
        input_data: bytes | None,
        close_stdin: bool,
        sinks: tuple[asyncio.StreamReader, asyncio.StreamReader] | None = None,
    ) -> ExecutionOutcome:
        """等待进程结束并读完输出，超过期限则强制结束整个进程组

        期限同时约束进程退出和输出读取：委托程序继承了输出管道时，
        主进程退出后管道仍可能保持打开。
        """
        process = spawned.process
        config = spawned.config
        stdout_sink, stderr_sink = sinks or (None, None)

        loop = asyncio.get_running_loop()
        timeout = config.timeout_seconds
        deadline = loop.time() + timeout if timeout is not None else None

        stdout_chunks: list[bytes] = []
        stderr_chunks: list[bytes] = []
        readers = asyncio.gather(
            _drain(process.stdout, stdout_chunks, stdout_sink),
            _drain(process.stderr, stderr_chunks, stderr_sink),
        )
        feeder = asyncio.create_task(
            _feed_stdin(process.stdin, input_data, close_stdin)
        )
        exit_task = asyncio.create_task(process.wait())

        timed_out = False
        try:
            done, _ = await asyncio.wait({exit_task}, timeout=timeout)
            if done:
                drain_timeout = (
                    max(deadline - loop.time(), _DRAIN_GRACE_SECONDS)
                    if deadline is not None
                    else None
                )
            else:
                _kill(process)
                await exit_task
                # 强制结束前进程已正常退出时，以正常结果为准
                timed_out = process.returncode != 0
                drain_timeout = _KILL_GRACE_SECONDS

            drained, _ = await asyncio.wait({readers}, timeout=drain_timeout)
            if not drained:
                # 主进程已退出，派生的进程仍占用输出管道
                timed_out = True
                _kill(process)
                drained, _ = await asyncio.wait({readers}, timeout=_KILL_GRACE_SECONDS)
                if not drained:
                    readers.cancel()
        except asyncio.CancelledError:
            _kill(process)
            readers.cancel()
            await exit_task
            raise
        finally:
            feeder.cancel()

        exit_code = process.returncode
        stdout = b"".join(stdout_chunks).decode("utf-8", errors="replace")
        stderr = b"".join(stderr_chunks).decode("utf-8", errors="replace")

        if timed_out:
            logger.warning(f"命令超时已终止 ({config.timeout_ms}ms): {spawned.command_line}")
            raise CommandTimeoutError(spawned.command_line, config.timeout_ms)

        if config.verbose:
            logger.info(f"退出码: {exit_code}")
            if stderr:
                logger.info(f"标准错误: {stderr}")

        if exit_code != 0:
            raise ExecutionError(
                f"ImageMagick 命令执行失败: {stderr or stdout}",
                str(spawned.binary),
                spawned.args,
                exit_code,
                stderr,
                stdout,
            )

        return ExecutionOutcome(exit_code=exit_code, stdout=stdout, stderr=stderr)
